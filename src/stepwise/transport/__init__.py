"""Backend transport: aiohttp REST client and the protocols the core consumes."""

from stepwise.transport.http import DEFAULT_API_URL, BackendClient, BackendClientConfig
from stepwise.transport.protocols import ExecutionBackend, NodeDescriptorSource

__all__ = [
    "DEFAULT_API_URL",
    "BackendClient",
    "BackendClientConfig",
    "ExecutionBackend",
    "NodeDescriptorSource",
]
