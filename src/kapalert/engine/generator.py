"""TICKscript generation from alert rules.

Renders an AlertRule into the TICKscript Kapacitor runs. Every structured
field the reverse parser needs is carried by a ``var`` declaration at the
top of the script, so generation and ``kapalert.engine.reverse`` form a
matched pair. Output is deterministic: the same rule always renders to the
same bytes.
"""

from __future__ import annotations

import logging
from functools import reduce

from kapalert.engine.constants import (
    DURATION_RE,
    HTTP_ENDPOINT,
    IDENTIFIER_RE,
    ID_TEMPLATE_SUFFIX,
    NUMBER_RE,
    OPERATOR_SYMBOLS,
    RESERVED_WORDS,
    STATIC_DECLARATIONS,
    SUPPORTED_FUNCS,
    SUPPORTED_HANDLERS,
    VALUE_FIELD,
)
from kapalert.exceptions import GenerationError
from kapalert.models.enums import TaskType
from kapalert.models.rule import (
    RANGE_OPERATORS,
    AlertHandler,
    AlertRule,
    QueryConfig,
    TICKScript,
    TriggerCondition,
)
from kapalert.tick.ast import (
    BinaryOp,
    BoolLit,
    Call,
    DurationLit,
    Expr,
    Identifier,
    Lambda,
    ListLit,
    NumberLit,
    Reference,
    StringLit,
    UnaryOp,
)
from kapalert.tick.printer import format_expr, quote

logger = logging.getLogger(__name__)

_NODE = " " * 4
_PROPERTY = " " * 8
_HANDLER_PROPERTY = " " * 12


def _number(text: str) -> Expr:
    if text.startswith("-"):
        return UnaryOp("-", NumberLit(text[1:]))
    return NumberLit(text)


def _value_ref() -> Reference:
    return Reference(VALUE_FIELD)


def _upper_var(level: str) -> str:
    return f"{level}Upper"


def where_filter(query: QueryConfig) -> Lambda:
    """Build the ``whereFilter`` lambda for a query's tag selection.

    Accepted tags become ``==`` comparisons OR'ed per tag; rejected tags
    become ``!=`` comparisons AND'ed together. Tag groups are AND'ed in
    sorted key order. No tags means ``lambda: TRUE``.
    """
    op, joiner = ("==", "OR") if query.are_tags_accepted else ("!=", "AND")
    groups: list[Expr] = []
    for key in sorted(query.tags):
        values = query.tags[key]
        if not values:
            continue
        comparisons = [BinaryOp(op, Reference(key), StringLit(v)) for v in values]
        groups.append(reduce(lambda a, b: BinaryOp(joiner, a, b), comparisons))
    if not groups:
        return Lambda(BoolLit(True))
    return Lambda(reduce(lambda a, b: BinaryOp("AND", a, b), groups))


def condition_lambda(condition: TriggerCondition) -> Lambda:
    """Build the lambda for one alert level, referencing its value vars."""
    level = condition.level
    if condition.operator == "inside range":
        return Lambda(BinaryOp(
            "AND",
            BinaryOp(">=", _value_ref(), Identifier(level)),
            BinaryOp("<=", _value_ref(), Identifier(_upper_var(level))),
        ))
    if condition.operator == "outside range":
        return Lambda(BinaryOp(
            "OR",
            BinaryOp("<", _value_ref(), Identifier(level)),
            BinaryOp(">", _value_ref(), Identifier(_upper_var(level))),
        ))
    return Lambda(
        BinaryOp(OPERATOR_SYMBOLS[condition.operator], _value_ref(), Identifier(level))
    )


def change_lambda(change: str) -> Lambda:
    """Build the relative-change eval lambda over the joined streams."""
    delta = Call("float", (BinaryOp("-", Reference("current.value"), Reference("past.value")),))
    if change == "change":
        return Lambda(delta)
    percent = BinaryOp(
        "/", Call("abs", (delta,)), Call("float", (Reference("past.value"),))
    )
    return Lambda(BinaryOp("*", percent, NumberLit("100.0")))


class TickscriptGenerator:
    """Renders AlertRules to TICKscript.

    Stateless; one instance may be shared between threads.
    """

    def generate(self, rule: AlertRule) -> TICKScript:
        """Render ``rule``.

        Raises:
            GenerationError: If the rule is missing required fields or uses
                a shape that has no TICKscript rendering.
        """
        self.validate(rule)
        sections = [
            self._declarations(rule),
            self._data_pipeline(rule),
            *self._trigger_pipelines(rule),
            self._output_pipelines(rule),
        ]
        script = "\n\n".join(sections) + "\n"
        logger.debug(
            "Generated %s script for rule %r (%d bytes)",
            rule.task_type.value, rule.name, len(script),
        )
        return TICKScript(script)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self, rule: AlertRule) -> None:
        """Check that ``rule`` can be rendered. Raises GenerationError."""
        query = rule.query
        if query is None:
            raise GenerationError(f"Rule {rule.name!r} has no query")
        if not rule.conditions:
            raise GenerationError(f"Rule {rule.name!r} has no trigger conditions")

        is_batch = rule.task_type == TaskType.BATCH
        if is_batch:
            if not query.database:
                raise GenerationError("Batch rules require a database")
            if not rule.every:
                raise GenerationError("Batch rules require 'every'")
            raw = query.raw_text or ""
            if "'''" in raw or raw.endswith("'"):
                raise GenerationError(
                    "Raw query text may not contain \"'''\" or end with a quote"
                )

        _check_duration("every", rule.every)
        _check_duration("group by time", query.group_by.time)

        if rule.trigger != "deadman" and len(query.fields) != 1:
            raise GenerationError(
                f"{rule.trigger.capitalize()} rules require exactly one field, "
                f"got {len(query.fields)}"
            )
        if len(query.fields) > 1:
            raise GenerationError("At most one field can be alerted on")
        for f in query.fields:
            if len(f.funcs) > 1:
                raise GenerationError(
                    f"Field {f.name!r} has {len(f.funcs)} functions; at most one is supported"
                )
            for func in f.funcs:
                if func not in SUPPORTED_FUNCS:
                    raise GenerationError(f"Unsupported function {func!r}")

        if rule.trigger == "deadman":
            if len(rule.conditions) != 1:
                raise GenerationError("Deadman rules take exactly one condition")
            cond = rule.conditions[0]
            if (cond.level, cond.operator) != ("crit", "less than"):
                raise GenerationError("Deadman condition must be crit 'less than'")
            _check_duration("period", rule.period, required=True)
        if rule.trigger == "relative":
            if rule.change is None:
                raise GenerationError("Relative rules require 'change'")
            _check_duration("shift", rule.shift, required=True)

        seen: set[str] = set()
        for c in rule.conditions:
            if c.level in seen:
                raise GenerationError(f"Duplicate condition level {c.level!r}")
            seen.add(c.level)
            _check_number(f"{c.level} value", c.value)
            if c.operator in RANGE_OPERATORS and rule.trigger != "deadman":
                _check_number(f"{c.level} range value", c.range_value)

        for h in rule.handlers:
            if h.name not in SUPPORTED_HANDLERS:
                raise GenerationError(f"Unsupported alert handler {h.name!r}")
            for prop in h.properties:
                if (
                    not IDENTIFIER_RE.match(prop.name)
                    or prop.name in SUPPORTED_HANDLERS
                    or prop.name in RESERVED_WORDS
                ):
                    raise GenerationError(
                        f"Invalid property {prop.name!r} on handler {h.name!r}"
                    )

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _declarations(self, rule: AlertRule) -> str:
        query = rule.query
        assert query is not None
        decls: list[tuple[str, Expr]] = [
            ("db", StringLit(query.database)),
            ("rp", StringLit(query.retention_policy)),
            ("measurement", StringLit(query.measurement)),
            ("groupBy", ListLit(tuple(StringLit(t) for t in query.group_by.tags))),
            ("whereFilter", where_filter(query)),
        ]
        if query.are_tags_accepted and not any(query.tags.values()):
            # No comparison in whereFilter carries the flag.
            decls.append(("areTagsAccepted", BoolLit(True)))
        if rule.task_type == TaskType.BATCH:
            decls.append(("rawQuery", StringLit(query.raw_text or "", triple=True)))
        if query.group_by.time:
            decls.append(("period", DurationLit(query.group_by.time)))
        if rule.every:
            decls.append(("every", DurationLit(rule.every)))
        decls.append(("name", StringLit(rule.name)))
        decls.append(
            ("idVar", BinaryOp("+", Identifier("name"), StringLit(ID_TEMPLATE_SUFFIX)))
        )
        decls.append(("message", StringLit(rule.message)))
        if rule.details:
            decls.append(("details", StringLit(rule.details)))
        decls.extend((k, StringLit(v)) for k, v in STATIC_DECLARATIONS)
        decls.append(("triggerType", StringLit(rule.trigger)))

        if rule.trigger == "deadman":
            decls.append(("threshold", _number(rule.conditions[0].value)))
            decls.append(("deadmanPeriod", DurationLit(rule.period)))
        else:
            if rule.trigger == "relative":
                decls.append(("shift", DurationLit(rule.shift)))
            for c in rule.conditions:
                decls.append((c.level, _number(c.value)))
                if c.operator in RANGE_OPERATORS:
                    decls.append((_upper_var(c.level), _number(c.range_value)))

        return "\n".join(f"var {name} = {format_expr(value)}" for name, value in decls)

    def _data_pipeline(self, rule: AlertRule) -> str:
        query = rule.query
        assert query is not None
        period = "period" if query.group_by.time else "every"
        every = "every" if rule.every else "period"
        if rule.task_type == TaskType.BATCH:
            lines = [
                "var data = batch",
                f"{_NODE}|query(rawQuery)",
                f"{_PROPERTY}.period({period})",
                f"{_PROPERTY}.every(every)",
                f"{_PROPERTY}.groupBy(groupBy)",
            ]
        else:
            lines = [
                "var data = stream",
                f"{_NODE}|from()",
                f"{_PROPERTY}.database(db)",
                f"{_PROPERTY}.retentionPolicy(rp)",
                f"{_PROPERTY}.measurement(measurement)",
                f"{_PROPERTY}.groupBy(groupBy)",
                f"{_PROPERTY}.where(whereFilter)",
            ]
            if query.group_by.time:
                lines += [
                    f"{_NODE}|window()",
                    f"{_PROPERTY}.period(period)",
                    f"{_PROPERTY}.every({every})",
                    f"{_PROPERTY}.align()",
                ]

        for f in query.fields:
            if f.funcs:
                lines.append(f"{_NODE}|{f.funcs[0]}({quote(f.name)})")
            else:
                lines.append(f"{_NODE}|eval({format_expr(Lambda(Reference(f.name)))})")
            lines.append(f"{_PROPERTY}.as({quote(VALUE_FIELD)})")
        return "\n".join(lines)

    def _trigger_pipelines(self, rule: AlertRule) -> list[str]:
        if rule.trigger == "deadman":
            lines = ["var trigger = data", f"{_NODE}|deadman(threshold, deadmanPeriod)"]
            lines += self._alert_properties(rule)
            return ["\n".join(lines)]

        pipelines: list[str] = []
        if rule.trigger == "relative":
            assert rule.change is not None
            pipelines.append(f"var past = data\n{_NODE}|shift(shift)")
            pipelines.append("var current = data")
            lines = [
                "var trigger = past",
                f"{_NODE}|join(current)",
                f"{_PROPERTY}.as('past', 'current')",
                f"{_NODE}|eval({format_expr(change_lambda(rule.change))})",
                f"{_PROPERTY}.keep()",
                f"{_PROPERTY}.as({quote(VALUE_FIELD)})",
                f"{_NODE}|alert()",
            ]
        else:
            lines = ["var trigger = data", f"{_NODE}|alert()"]
        for c in rule.conditions:
            lines.append(f"{_PROPERTY}.{c.level}({format_expr(condition_lambda(c))})")
        lines += self._alert_properties(rule)
        pipelines.append("\n".join(lines))
        return pipelines

    def _alert_properties(self, rule: AlertRule) -> list[str]:
        lines = [f"{_PROPERTY}.stateChangesOnly()", f"{_PROPERTY}.message(message)"]
        if rule.details:
            lines.append(f"{_PROPERTY}.details(details)")
        lines += [
            f"{_PROPERTY}.id(idVar)",
            f"{_PROPERTY}.idTag(idTag)",
            f"{_PROPERTY}.levelTag(levelTag)",
            f"{_PROPERTY}.messageField(messageField)",
            f"{_PROPERTY}.durationField(durationField)",
        ]
        for handler in rule.handlers:
            lines += _handler_lines(handler)
        return lines

    def _output_pipelines(self, rule: AlertRule) -> str:
        value = Reference("emitted") if rule.trigger == "deadman" else Call(
            "float", (_value_ref(),)
        )
        return "\n".join([
            "trigger",
            f"{_NODE}|eval({format_expr(Lambda(value))})",
            f"{_PROPERTY}.as({quote(VALUE_FIELD)})",
            f"{_PROPERTY}.keep()",
            f"{_NODE}|influxDBOut()",
            f"{_PROPERTY}.create()",
            f"{_PROPERTY}.database(outputDB)",
            f"{_PROPERTY}.retentionPolicy(outputRP)",
            f"{_PROPERTY}.measurement(outputMeasurement)",
            f"{_PROPERTY}.tag('alertName', name)",
            f"{_PROPERTY}.tag('triggerType', triggerType)",
            "",
            "trigger",
            f"{_NODE}|httpOut({quote(HTTP_ENDPOINT)})",
        ])


def _handler_lines(handler: AlertHandler) -> list[str]:
    args = ", ".join(quote(a) for a in handler.args)
    lines = [f"{_PROPERTY}.{handler.name}({args})"]
    for prop in handler.properties:
        prop_args = ", ".join(quote(a) for a in prop.args)
        lines.append(f"{_HANDLER_PROPERTY}.{prop.name}({prop_args})")
    return lines


def _check_duration(label: str, value: str, *, required: bool = False) -> None:
    if not value:
        if required:
            raise GenerationError(f"Missing {label} duration")
        return
    if not DURATION_RE.match(value):
        raise GenerationError(f"Invalid {label} duration {value!r}")


def _check_number(label: str, value: str) -> None:
    if not NUMBER_RE.match(value):
        raise GenerationError(f"Invalid {label} {value!r}; expected a number")


_default = TickscriptGenerator()


def generate(rule: AlertRule) -> TICKScript:
    """Render ``rule`` with the default generator."""
    return _default.generate(rule)
