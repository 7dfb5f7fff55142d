"""Capability protocols for Kapalert.

Defines the pluggable interfaces the task client depends on: the Kapacitor
connection (KapaClient), the factory that opens one (Connector) and the
identifier source (IDGenerator). Any conforming object works, including the
in-memory fakes used in tests.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from kapalert.models.task import (
        CreateTaskOptions,
        Link,
        ListTasksOptions,
        RemoteTask,
        TaskOptions,
        UpdateTaskOptions,
    )


@runtime_checkable
class KapaClient(Protocol):
    """A connection to a Kapacitor instance.

    ``timeout`` is the deadline in seconds for the single request, or None
    for the connection default. Implementations raise ``RemoteRequestError``
    for rejected requests and ``OperationCancelledError`` when the deadline
    passes.
    """

    def create_task(
        self, opts: CreateTaskOptions, *, timeout: float | None = None
    ) -> RemoteTask:
        """Create a task."""
        ...

    def task(
        self,
        link: Link,
        opts: TaskOptions | None = None,
        *,
        timeout: float | None = None,
    ) -> RemoteTask:
        """Fetch a single task by link."""
        ...

    def list_tasks(
        self, opts: ListTasksOptions | None = None, *, timeout: float | None = None
    ) -> list[RemoteTask]:
        """List one page of tasks."""
        ...

    def update_task(
        self, link: Link, opts: UpdateTaskOptions, *, timeout: float | None = None
    ) -> RemoteTask:
        """Patch a task by link."""
        ...

    def delete_task(self, link: Link, *, timeout: float | None = None) -> None:
        """Delete a task by link."""
        ...


@runtime_checkable
class Connector(Protocol):
    """Factory producing a KapaClient from a URL and credentials."""

    def __call__(self, url: str, username: str, password: str) -> KapaClient:
        ...


@runtime_checkable
class IDGenerator(Protocol):
    """Source of globally unique identifiers. Must be thread safe."""

    def generate(self) -> str:
        ...
