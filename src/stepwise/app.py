"""StepwiseApp - composition root.

Builds the backend client, node registry, step sequence, variable resolver
and execution tracker, wires them together and owns the session boundary:
when the session ends (explicitly, or because the backend answered 401) the
registry is cleared so no dynamic node type from that session stays
selectable.
"""

from __future__ import annotations

import logging

from stepwise.config import StepwiseConfig
from stepwise.core.execution.tracker import ExecutionTracker, PollHandle
from stepwise.core.registry.descriptor import NodeDefinition
from stepwise.core.registry.registry import NodeRegistry
from stepwise.core.sequence.model import StepSequence
from stepwise.core.sequence.variables import VariableResolver
from stepwise.transport.http import BackendClient

logger = logging.getLogger(__name__)


class StepwiseApp:
    """One authoring session's worth of services.

    Example:
        >>> async with StepwiseApp.from_env() as app:
        ...     await app.begin_session(token)
        ...     app.sequence.insert(StepTemplate.from_definition(app.registry.list_all()[0]))
    """

    def __init__(
        self,
        config: StepwiseConfig | None = None,
        client: BackendClient | None = None,
    ) -> None:
        """Wire the services.

        Args:
            config: Settings; defaults are used when omitted.
            client: Backend client to use instead of building one from config.
        """
        self.config = config or StepwiseConfig()
        self.client = client or BackendClient(self.config.client_config())
        if self.client.on_session_expired is None:
            self.client.on_session_expired = self._on_session_expired

        self.registry = NodeRegistry(source=self.client)
        self.sequence = StepSequence(self.registry)
        self.variables = VariableResolver(self.sequence)
        self.tracker = ExecutionTracker(self.client, poll_interval=self.config.poll_interval)
        self._session_active = False

    @classmethod
    def from_env(cls) -> StepwiseApp:
        return cls(StepwiseConfig.from_env())

    async def __aenter__(self) -> StepwiseApp:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def session_active(self) -> bool:
        return self._session_active

    async def begin_session(self, token: str | None = None) -> list[NodeDefinition] | None:
        """Start a session and load the dynamic node types.

        Args:
            token: Bearer token; the configured one is kept when omitted.

        Returns:
            The synced definitions (None if superseded by a later sync).

        Raises:
            RegistryFetchError: If the descriptors cannot be fetched.
        """
        if token is not None:
            self.client.set_token(token)
        self._session_active = True
        logger.info("session_started")
        return await self.registry.sync()

    def end_session(self) -> None:
        """Forget everything tied to the session: node types, tracking, steps."""
        self.registry.clear()
        self.tracker.reset()
        self.sequence.clear()
        self._session_active = False
        logger.info("session_ended")

    def watch(self, execution_id: str) -> PollHandle:
        """Start tracking an execution."""
        return self.tracker.start(execution_id)

    async def close(self) -> None:
        self.tracker.stop()
        await self.client.close()

    async def _on_session_expired(self) -> None:
        logger.warning("session_expired: clearing session state")
        self.end_session()
