"""Task domain model and Kapacitor task API values.

Task is the SDK-facing projection of an alert rule running in Kapacitor.
The frozen dataclasses mirror the request and response shapes of the
Kapacitor v1 task API and are what KapaClient implementations exchange.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, TypeVar

from pydantic import BaseModel

from kapalert.models.enums import TaskStatus, TaskType
from kapalert.models.rule import AlertRule

logger = logging.getLogger(__name__)

_E = TypeVar("_E", TaskStatus, TaskType)


class Task(BaseModel):
    """An alert rule as a running Kapacitor task.

    After enable/disable only ``status`` and ``href`` are authoritative;
    ``rule`` is left unset on those paths.
    """

    id: str
    href: str
    href_output: str
    status: Optional[TaskStatus] = None
    tick_script: str = ""
    rule: Optional[AlertRule] = None


# ---------------------------------------------------------------------------
# Kapacitor task API values
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Link:
    """Relative link to a Kapacitor resource."""

    href: str
    rel: str = "self"


@dataclass(frozen=True)
class DBRP:
    """Database / retention policy pair a task reads from."""

    database: str
    retention_policy: str

    def to_dict(self) -> dict:
        return {"db": self.database, "rp": self.retention_policy}


@dataclass(frozen=True)
class RemoteTask:
    """A task as returned by Kapacitor.

    Responses to field-restricted requests (``fields=["status"]``) leave
    everything except ``id``, ``link`` and ``status`` at their defaults.
    """

    id: str
    link: Link
    status: Optional[TaskStatus] = None
    type: Optional[TaskType] = None
    dbrps: tuple[DBRP, ...] = ()
    tick_script: str = ""
    executing: bool = False
    error: str = ""

    @classmethod
    def from_dict(cls, d: dict) -> RemoteTask:
        """Build from a Kapacitor JSON task object."""
        link = d.get("link") or {}
        return cls(
            id=d.get("id") or "",
            link=Link(href=link.get("href") or "", rel=link.get("rel") or "self"),
            status=_known(TaskStatus, d.get("status")),
            type=_known(TaskType, d.get("type")),
            dbrps=tuple(
                DBRP(database=p.get("db") or "", retention_policy=p.get("rp") or "")
                for p in d.get("dbrps") or []
            ),
            tick_script=d.get("script") or "",
            executing=bool(d.get("executing")),
            error=d.get("error") or "",
        )


@dataclass(frozen=True)
class CreateTaskOptions:
    """Body of a task creation request."""

    id: str
    type: TaskType
    dbrps: tuple[DBRP, ...]
    tick_script: str
    status: TaskStatus = TaskStatus.ENABLED

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "dbrps": [p.to_dict() for p in self.dbrps],
            "script": self.tick_script,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class UpdateTaskOptions:
    """Body of a task update request. Unset fields are left unchanged."""

    type: Optional[TaskType] = None
    dbrps: Optional[tuple[DBRP, ...]] = None
    tick_script: Optional[str] = None
    status: Optional[TaskStatus] = None

    def to_dict(self) -> dict:
        result: dict = {}
        if self.type is not None:
            result["type"] = self.type.value
        if self.dbrps is not None:
            result["dbrps"] = [p.to_dict() for p in self.dbrps]
        if self.tick_script is not None:
            result["script"] = self.tick_script
        if self.status is not None:
            result["status"] = self.status.value
        return result


@dataclass(frozen=True)
class ListTasksOptions:
    """Query parameters of a task listing request."""

    fields: tuple[str, ...] = ()
    pattern: str = ""
    offset: int = 0
    limit: int = 100

    def to_params(self) -> dict:
        params: dict = {"offset": self.offset, "limit": self.limit}
        if self.fields:
            params["fields"] = list(self.fields)
        if self.pattern:
            params["pattern"] = self.pattern
        return params


@dataclass(frozen=True)
class TaskOptions:
    """Query parameters of a single task fetch."""

    script_format: str = "raw"
    dot_view: str = "attributes"

    def to_params(self) -> dict:
        return {"script-format": self.script_format, "dot-view": self.dot_view}


def _known(enum_cls: type[_E], value: object) -> Optional[_E]:
    """Enum member for ``value``, or None when it is missing or unrecognized."""
    if not value:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning("Ignoring unknown task %s %r", enum_cls.__name__, value)
        return None
