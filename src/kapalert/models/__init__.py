"""Domain models for Kapalert."""

from kapalert.models.config import KapacitorConfig
from kapalert.models.enums import TaskStatus, TaskType
from kapalert.models.rule import (
    AlertHandler,
    AlertRule,
    GroupBy,
    HandlerProperty,
    QueryConfig,
    QueryField,
    TICKScript,
    TriggerCondition,
    to_task_type,
)
from kapalert.models.task import (
    DBRP,
    CreateTaskOptions,
    Link,
    ListTasksOptions,
    RemoteTask,
    Task,
    TaskOptions,
    UpdateTaskOptions,
)

__all__ = [
    "KapacitorConfig",
    "TaskStatus",
    "TaskType",
    "AlertHandler",
    "AlertRule",
    "GroupBy",
    "HandlerProperty",
    "QueryConfig",
    "QueryField",
    "TICKScript",
    "TriggerCondition",
    "to_task_type",
    "DBRP",
    "CreateTaskOptions",
    "Link",
    "ListTasksOptions",
    "RemoteTask",
    "Task",
    "TaskOptions",
    "UpdateTaskOptions",
]
