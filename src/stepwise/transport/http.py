"""HTTP client for the workflow backend REST API.

Uses aiohttp.ClientSession. Implements both NodeDescriptorSource and
ExecutionBackend:

    GET  /generated-nodes                            list_node_descriptors
    GET  /generated-nodes/{id}                       get_node_descriptor
    GET  /executions/{id}                            get_execution
    GET  /executions/{id}/logs                       get_execution_logs
    GET  /executions/{id}/nodes/{node_id}/logs       get_node_logs
    POST /executions/{id}/cancel                     cancel_execution

Error mapping:
    non-2xx                   ApiError (message from the body's "error")
    401                       SessionExpiredError, after on_session_expired
    connection / timeout      TransportError
"""

from __future__ import annotations

import inspect
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import aiohttp

from stepwise.core.errors import ApiError, SessionExpiredError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:5001/api"

SessionExpiredHook = Callable[[], Awaitable[None] | None]


@dataclass
class BackendClientConfig:
    """Configuration for the backend client."""

    base_url: str = DEFAULT_API_URL
    token: str | None = None

    # Timeouts (seconds)
    connect_timeout: float = 10.0
    request_timeout: float = 30.0


@dataclass
class BackendClient:
    """aiohttp client for the workflow backend.

    The session is opened lazily on the first request, or explicitly with
    connect(). Use as an async context manager to close it reliably.

    Example:
        >>> async with BackendClient(BackendClientConfig(token=token)) as client:
        ...     descriptors = await client.list_node_descriptors()
    """

    config: BackendClientConfig = field(default_factory=BackendClientConfig)
    on_session_expired: SessionExpiredHook | None = None
    _session: aiohttp.ClientSession | None = field(default=None, repr=False)

    async def __aenter__(self) -> BackendClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def connect(self) -> None:
        """Open the HTTP session (no-op if already open)."""
        if self._session is not None and not self._session.closed:
            return
        timeout = aiohttp.ClientTimeout(
            connect=self.config.connect_timeout,
            total=self.config.request_timeout,
        )
        self._session = aiohttp.ClientSession(timeout=timeout)
        logger.debug("backend_connected: base_url=%s", self.config.base_url)

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    def set_token(self, token: str | None) -> None:
        """Switch credentials for subsequent requests."""
        self.config.token = token

    # =========================================================================
    # Node descriptors
    # =========================================================================

    async def list_node_descriptors(self) -> Any:
        """Fetch every generated node descriptor.

        The decoded body is returned as is; the registry rejects anything that
        is not a list.
        """
        return await self._request("GET", "/generated-nodes")

    async def get_node_descriptor(self, descriptor_id: str) -> dict[str, Any]:
        """Fetch a single generated node descriptor."""
        return await self._request("GET", f"/generated-nodes/{quote(descriptor_id, safe='')}")

    # =========================================================================
    # Executions
    # =========================================================================

    async def get_execution(self, execution_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/executions/{quote(execution_id, safe='')}")

    async def get_execution_logs(self, execution_id: str) -> list[dict[str, Any]]:
        data = await self._request("GET", f"/executions/{quote(execution_id, safe='')}/logs")
        return data if isinstance(data, list) else []

    async def get_node_logs(self, execution_id: str, node_id: str) -> list[dict[str, Any]]:
        """Log rows written by one node of an execution."""
        path = (
            f"/executions/{quote(execution_id, safe='')}"
            f"/nodes/{quote(node_id, safe='')}/logs"
        )
        data = await self._request("GET", path)
        return data if isinstance(data, list) else []

    async def cancel_execution(self, execution_id: str) -> dict[str, Any]:
        """Request cancellation.

        Raises:
            ApiError: If the backend rejects the request.
        """
        data = await self._request("POST", f"/executions/{quote(execution_id, safe='')}/cancel")
        return data if isinstance(data, dict) else {}

    # =========================================================================
    # Internals
    # =========================================================================

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        return headers

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}{path}"

    async def _request(self, method: str, path: str, payload: Any = None) -> Any:
        await self.connect()
        assert self._session is not None
        url = self._url(path)

        try:
            async with self._session.request(
                method, url, json=payload, headers=self._headers()
            ) as response:
                text = await response.text()
                status = response.status
        except aiohttp.ClientError as e:
            logger.warning("backend_request_failed: method=%s path=%s error=%s", method, path, e)
            raise TransportError(f"{method} {path} failed: {e}") from e
        except TimeoutError as e:
            logger.warning("backend_request_timeout: method=%s path=%s", method, path)
            raise TransportError(
                f"{method} {path} timed out after {self.config.request_timeout}s"
            ) from e

        logger.debug("backend_response: method=%s path=%s status=%d", method, path, status)
        body = _decode(text)

        if status == 401:
            await self._session_expired()
            raise SessionExpiredError(_error_message(body, status), status, text)
        if status >= 400:
            raise ApiError(_error_message(body, status), status, text)
        return body

    async def _session_expired(self) -> None:
        logger.warning("backend_session_expired")
        if self.on_session_expired is None:
            return
        result = self.on_session_expired()
        if inspect.isawaitable(result):
            await result


def _decode(text: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


def _error_message(body: Any, status: int) -> str:
    if isinstance(body, dict):
        for key in ("error", "message"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return f"Backend returned {status}"
