"""Enumerations shared by the rule and task models."""

from __future__ import annotations

import enum


class TaskType(str, enum.Enum):
    """Kapacitor task type."""

    STREAM = "stream"
    BATCH = "batch"

    def __str__(self) -> str:
        return self.value


class TaskStatus(str, enum.Enum):
    """Kapacitor task status.

    Transitions only happen through explicit enable/disable operations.
    """

    ENABLED = "enabled"
    DISABLED = "disabled"

    def __str__(self) -> str:
        return self.value
