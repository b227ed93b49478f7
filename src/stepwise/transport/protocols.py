"""Backend protocols consumed by the core.

The registry and the execution tracker depend on these structural types
rather than on the HTTP client, so tests and embedding applications can
supply any object with matching coroutines.
"""

from __future__ import annotations

from typing import Any, Protocol


class NodeDescriptorSource(Protocol):
    """Supplies the complete current set of raw node descriptors."""

    async def list_node_descriptors(self) -> Any:
        """Return every descriptor as untyped JSON (no pagination)."""
        ...


class ExecutionBackend(Protocol):
    """Server-side execution endpoints."""

    async def get_execution(self, execution_id: str) -> dict[str, Any]:
        """Return the raw execution record."""
        ...

    async def get_execution_logs(self, execution_id: str) -> list[dict[str, Any]]:
        """Return the raw log rows for an execution."""
        ...

    async def cancel_execution(self, execution_id: str) -> dict[str, Any]:
        """Request cancellation; raises on rejection."""
        ...
