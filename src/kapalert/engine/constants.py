"""Names and vocabularies shared by the generator and the reverse parser."""

from __future__ import annotations

import re

# Name of the httpOut node every alert script ends with.
HTTP_ENDPOINT = "output"

# Field every data pipeline exposes to the alert node.
VALUE_FIELD = "value"

# Fixed declarations every generated script carries, in emission order.
STATIC_DECLARATIONS: tuple[tuple[str, str], ...] = (
    ("idTag", "alertID"),
    ("levelTag", "level"),
    ("messageField", "message"),
    ("durationField", "duration"),
    ("outputDB", "chronograf"),
    ("outputRP", "autogen"),
    ("outputMeasurement", "alerts"),
)

ID_TEMPLATE_SUFFIX = ":{{.Group}}"

OPERATOR_SYMBOLS: dict[str, str] = {
    "greater than": ">",
    "less than": "<",
    "equal to or greater": ">=",
    "equal to or less than": "<=",
    "equal to": "==",
    "not equal to": "!=",
}
SYMBOL_OPERATORS: dict[str, str] = {v: k for k, v in OPERATOR_SYMBOLS.items()}

LEVELS: tuple[str, ...] = ("crit", "warn", "info")

# InfluxQL functions Kapacitor exposes as pipeline nodes.
SUPPORTED_FUNCS: frozenset[str] = frozenset({
    "count", "distinct", "first", "last", "max", "mean",
    "median", "min", "mode", "spread", "stddev", "sum",
})

# Alert handler property methods of Kapacitor's alert node.
SUPPORTED_HANDLERS: frozenset[str] = frozenset({
    "alerta", "email", "exec", "hipChat", "kafka", "log", "mqtt",
    "opsGenie", "pagerDuty", "post", "pushover", "sensu", "slack",
    "snmpTrap", "talk", "tcp", "telegram", "victorOps",
})

DURATION_RE = re.compile(r"^\d+(?:ms|u|µ|s|m|h|d|w)$")
NUMBER_RE = re.compile(r"^-?\d+(?:\.\d+)?$")
IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Words the lexer never reads as plain identifiers.
RESERVED_WORDS: frozenset[str] = frozenset({"var", "lambda", "TRUE", "FALSE", "AND", "OR"})
