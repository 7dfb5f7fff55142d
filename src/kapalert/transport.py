"""Built-in httpx transport for the Kapacitor v1 task API.

Provides HTTPKapaClient, the default KapaClient implementation, and
new_kapa_client, the default connector. Requests are never retried here.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from kapalert.exceptions import (
    KapacitorConnectionError,
    OperationCancelledError,
    RemoteRequestError,
)
from kapalert.models.task import (
    CreateTaskOptions,
    Link,
    ListTasksOptions,
    RemoteTask,
    TaskOptions,
    UpdateTaskOptions,
)

logger = logging.getLogger(__name__)

TASKS_PATH = "/kapacitor/v1/tasks"
_AUTH_ERROR_STATUS_CODES = {401, 403}


class HTTPKapaClient:
    """Sync httpx client for Kapacitor's task endpoints.

    Implements the KapaClient protocol. Basic authentication is used when a
    username is given.

    Usage::

        with HTTPKapaClient("http://localhost:9092") as kapa:
            tasks = kapa.list_tasks(ListTasksOptions(fields=("status",)))
    """

    def __init__(
        self,
        url: str,
        username: str = "",
        password: str = "",
        *,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            url: Kapacitor base URL, e.g. ``http://localhost:9092``.
            username: Basic auth user; empty disables authentication.
            password: Basic auth password.
            timeout: Default request timeout in seconds.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self._base_url = url.rstrip("/")
        auth = httpx.BasicAuth(username, password) if username else None
        self._client = httpx.Client(
            base_url=self._base_url,
            auth=auth,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    # ------------------------------------------------------------------
    # KapaClient protocol
    # ------------------------------------------------------------------

    def create_task(
        self, opts: CreateTaskOptions, *, timeout: float | None = None
    ) -> RemoteTask:
        data = self._request("POST", TASKS_PATH, json=opts.to_dict(), timeout=timeout)
        return RemoteTask.from_dict(data)

    def task(
        self,
        link: Link,
        opts: TaskOptions | None = None,
        *,
        timeout: float | None = None,
    ) -> RemoteTask:
        params = (opts or TaskOptions()).to_params()
        data = self._request("GET", link.href, params=params, timeout=timeout)
        return RemoteTask.from_dict(data)

    def list_tasks(
        self, opts: ListTasksOptions | None = None, *, timeout: float | None = None
    ) -> list[RemoteTask]:
        params = (opts or ListTasksOptions()).to_params()
        data = self._request("GET", TASKS_PATH, params=params, timeout=timeout)
        return [RemoteTask.from_dict(t) for t in data.get("tasks") or []]

    def update_task(
        self, link: Link, opts: UpdateTaskOptions, *, timeout: float | None = None
    ) -> RemoteTask:
        data = self._request("PATCH", link.href, json=opts.to_dict(), timeout=timeout)
        return RemoteTask.from_dict(data)

    def delete_task(self, link: Link, *, timeout: float | None = None) -> None:
        self._request("DELETE", link.href, timeout=timeout)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        *,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> dict:
        """Send one request and decode its JSON body.

        Raises:
            OperationCancelledError: If the request timed out.
            KapacitorConnectionError: On transport failures and 401/403.
            RemoteRequestError: On any other non-2xx response.
        """
        if timeout is not None:
            kwargs["timeout"] = timeout
        logger.debug("%s %s%s", method, self._base_url, path)
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise OperationCancelledError(
                f"{method} {path} timed out: {exc}"
            ) from exc
        except httpx.TransportError as exc:
            raise KapacitorConnectionError(
                f"Cannot reach Kapacitor at {self._base_url}: {exc}"
            ) from exc

        if response.status_code in _AUTH_ERROR_STATUS_CODES:
            raise KapacitorConnectionError(
                f"Authentication failed: HTTP {response.status_code} - "
                f"{_error_message(response)}"
            )
        if response.is_error:
            raise RemoteRequestError(
                _error_message(response), status_code=response.status_code
            )
        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteRequestError(
                f"Unexpected response body from {method} {path}: {response.text[:200]}",
                status_code=response.status_code,
            ) from exc

    def close(self) -> None:
        """Close the underlying httpx client."""
        self._client.close()

    def __enter__(self) -> HTTPKapaClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def _error_message(response: httpx.Response) -> str:
    """Kapacitor's ``error`` field, falling back to the raw body."""
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return response.text


def new_kapa_client(
    url: str, username: str = "", password: str = "", *, timeout: float = 30.0
) -> HTTPKapaClient:
    """Default connector: open an HTTPKapaClient for ``url``.

    Raises:
        KapacitorConnectionError: If ``url`` is not an absolute http(s) URL.
    """
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as exc:
        raise KapacitorConnectionError(f"Invalid Kapacitor URL {url!r}: {exc}") from exc
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise KapacitorConnectionError(f"Invalid Kapacitor URL {url!r}")
    return HTTPKapaClient(url, username, password, timeout=timeout)
