"""Alert rule domain model.

AlertRule is the structured form of a Kapacitor alert. It is rendered to a
TICKscript by ``kapalert.engine.generator`` and rebuilt from one by
``kapalert.engine.reverse``.
"""

from __future__ import annotations

from typing import Literal, NewType, Optional

from pydantic import BaseModel, Field, field_validator

from kapalert.models.enums import TaskType

TICKScript = NewType("TICKScript", str)

TriggerType = Literal["threshold", "relative", "deadman"]
Level = Literal["crit", "warn", "info"]
ChangeType = Literal["change", "% change"]
Operator = Literal[
    "greater than",
    "less than",
    "equal to or greater",
    "equal to or less than",
    "equal to",
    "not equal to",
    "inside range",
    "outside range",
]

RANGE_OPERATORS: frozenset[str] = frozenset({"inside range", "outside range"})


class QueryField(BaseModel):
    """A measurement field and the InfluxQL functions applied to it."""

    name: str
    funcs: list[str] = []


class GroupBy(BaseModel):
    """Time bucket and tag grouping of a query."""

    time: str = ""
    tags: list[str] = []


class QueryConfig(BaseModel):
    """The data an alert rule watches.

    ``raw_text`` holds a free-text InfluxQL query. When it is non-empty the
    rule runs as a batch task and the structured fields only describe it.
    """

    database: str = ""
    retention_policy: str = ""
    measurement: str = ""
    fields: list[QueryField] = []
    tags: dict[str, list[str]] = {}
    group_by: GroupBy = Field(default_factory=GroupBy)
    are_tags_accepted: bool = False
    raw_text: Optional[str] = None

    @field_validator("tags")
    @classmethod
    def _drop_empty_tag_keys(cls, v: dict[str, list[str]]) -> dict[str, list[str]]:
        """A tag key without values places no filter."""
        return {key: values for key, values in v.items() if values}


class TriggerCondition(BaseModel):
    """One alert level and the comparison that raises it."""

    level: Level = "crit"
    operator: Operator = "greater than"
    value: str
    range_value: str = ""  # upper bound for range operators


class HandlerProperty(BaseModel):
    """A chained property call on a handler, e.g. ``.channel('#alerts')``."""

    name: str
    args: list[str] = []


class AlertHandler(BaseModel):
    """A notification handler node on the alert, e.g. ``.slack()``."""

    name: str
    args: list[str] = []
    properties: list[HandlerProperty] = []


class AlertRule(BaseModel):
    """SDK-facing alert rule.

    ``tick_script`` caches the last script generated for (or read back from)
    this rule. It is never an input to generation.
    """

    id: str = ""
    name: str = ""
    query: Optional[QueryConfig] = None
    every: str = ""
    trigger: TriggerType = "threshold"
    conditions: list[TriggerCondition] = []
    change: Optional[ChangeType] = None  # relative only
    shift: str = ""  # relative only
    period: str = ""  # deadman only
    message: str = ""
    details: str = ""
    handlers: list[AlertHandler] = []
    tick_script: str = ""

    @property
    def task_type(self) -> TaskType:
        """Stream or batch, derived from the query on every access."""
        return to_task_type(self.query)

    def __str__(self) -> str:
        return f"AlertRule({self.id or '<new>'}: {self.name!r}, {self.trigger})"


def to_task_type(query: QueryConfig | None) -> TaskType:
    """Classify a rule's query: batch iff it carries non-empty raw text."""
    if query is None or query.raw_text is None or query.raw_text == "":
        return TaskType.STREAM
    return TaskType.BATCH
