"""Kapalert exception hierarchy.

All Kapalert-specific exceptions inherit from KapalertError.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kapalert.models.rule import AlertRule
    from kapalert.models.task import Task


class KapalertError(Exception):
    """Base exception for all Kapalert errors."""


class KapacitorConnectionError(KapalertError):
    """Raised when Kapacitor cannot be reached or authenticated against."""


class OperationCancelledError(KapalertError):
    """Raised when an operation exceeds its deadline."""


class GenerationError(KapalertError):
    """Raised when an alert rule cannot be rendered to a TICKscript.

    Always raised before any request reaches Kapacitor.
    """


class ParseError(KapalertError):
    """Base for TICKscript reverse-parsing errors."""


class ScriptSyntaxError(ParseError):
    """Raised when a script is not valid TICKscript of the supported subset."""

    def __init__(self, message: str, line: int | None = None) -> None:
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


class UnsupportedScriptError(ParseError):
    """Raised when a script is valid TICKscript but not a generated alert shape.

    Attributes:
        partial: AlertRule holding every field that could still be extracted.
    """

    def __init__(self, message: str, partial: AlertRule) -> None:
        self.partial = partial
        super().__init__(message)


class RemoteRequestError(KapalertError):
    """Kapacitor rejected or failed a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        if status_code is not None:
            message = f"HTTP {status_code}: {message}"
        super().__init__(message)


class PartialUpdateError(KapalertError):
    """Raised when an update was applied but the task could not be re-enabled.

    The new script and task type are already live in Kapacitor and the task
    is left disabled. The failing enable error is chained as ``__cause__``.

    Attributes:
        task: The updated (disabled) task.
    """

    def __init__(self, task: Task) -> None:
        self.task = task
        super().__init__(
            f"Task {task.id} was updated but could not be re-enabled; "
            f"it is left disabled"
        )


class AlertNotFoundError(KapalertError):
    """Raised when an alert lookup by id fails."""

    def __init__(self, alert_id: str) -> None:
        self.alert_id = alert_id
        super().__init__(f"Alert not found: {alert_id}")
