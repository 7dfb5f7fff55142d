"""Kapalert: alert rules as Kapacitor TICKscript tasks.

Renders structured alert rules to TICKscript, reverse-parses scripts back
into rules, and manages the Kapacitor tasks that run them.
"""

from kapalert._version import __version__

# Task client
from kapalert.client import PREFIX, Client

# Codecs
from kapalert.engine import (
    HTTP_ENDPOINT,
    TickscriptGenerator,
    TickscriptReverser,
    generate,
    reverse,
)

# Models
from kapalert.models import (
    AlertHandler,
    AlertRule,
    GroupBy,
    HandlerProperty,
    KapacitorConfig,
    QueryConfig,
    QueryField,
    Task,
    TaskStatus,
    TaskType,
    TICKScript,
    TriggerCondition,
    to_task_type,
)

# Capabilities
from kapalert.ids import UUIDGenerator
from kapalert.protocols import Connector, IDGenerator, KapaClient
from kapalert.transport import HTTPKapaClient, new_kapa_client

# Exceptions
from kapalert.exceptions import (
    AlertNotFoundError,
    GenerationError,
    KapacitorConnectionError,
    KapalertError,
    OperationCancelledError,
    ParseError,
    PartialUpdateError,
    RemoteRequestError,
    ScriptSyntaxError,
    UnsupportedScriptError,
)

__all__ = [
    "__version__",
    "PREFIX",
    "Client",
    "HTTP_ENDPOINT",
    "TickscriptGenerator",
    "TickscriptReverser",
    "generate",
    "reverse",
    "AlertHandler",
    "AlertRule",
    "GroupBy",
    "HandlerProperty",
    "KapacitorConfig",
    "QueryConfig",
    "QueryField",
    "Task",
    "TaskStatus",
    "TaskType",
    "TICKScript",
    "TriggerCondition",
    "to_task_type",
    "UUIDGenerator",
    "Connector",
    "IDGenerator",
    "KapaClient",
    "HTTPKapaClient",
    "new_kapa_client",
    "AlertNotFoundError",
    "GenerationError",
    "KapacitorConnectionError",
    "KapalertError",
    "OperationCancelledError",
    "ParseError",
    "PartialUpdateError",
    "RemoteRequestError",
    "ScriptSyntaxError",
    "UnsupportedScriptError",
]
