"""NodeRegistry - single source of truth for dynamically discovered node types.

The registry is an ordinary object owned by the application's composition
root and passed to whatever needs it. All reads are synchronous. The only
suspension point is sync(), which fetches descriptors from the remote
node-definition service.

Supersession:
    Every sync() and clear() starts a new generation. A sync whose generation
    is no longer current when its fetch finishes discards its result, and
    the fetch task of a superseded sync is cancelled. So the map always
    reflects the most recently *issued* sync, never a slow earlier one.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from stepwise.core.errors import DescriptorError, RegistryFetchError
from stepwise.core.registry.compiler import compile_descriptor
from stepwise.core.registry.descriptor import NodeDefinition, NodeDescriptor

if TYPE_CHECKING:
    from stepwise.transport.protocols import NodeDescriptorSource

logger = logging.getLogger(__name__)

# Receives the full definition list after every change
RegistryCallback = Callable[[list[NodeDefinition]], None]


@dataclass
class Subscription:
    """Handle returned by NodeRegistry.subscribe()."""

    registry: NodeRegistry
    callback: RegistryCallback

    def close(self) -> None:
        """Stop receiving notifications (idempotent)."""
        self.registry.unsubscribe(self.callback)


class NodeRegistry:
    """Registry of compiled node definitions, keyed by definition id.

    Example:
        >>> registry = NodeRegistry(source=backend_client)
        >>> registry.subscribe(lambda defs: print(len(defs), "node types"))
        >>> await registry.sync()
        >>> registry.get("7f3c...")
    """

    def __init__(self, source: NodeDescriptorSource | None = None) -> None:
        """Create an empty registry.

        Args:
            source: Remote descriptor source used by sync(). Optional when
                only register() is used.
        """
        self._source = source
        self._definitions: dict[str, NodeDefinition] = {}
        self._subscribers: list[RegistryCallback] = []
        self._generation = 0
        self._fetch_task: asyncio.Task[list[Any]] | None = None

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, definition_id: str) -> NodeDefinition | None:
        """Get a definition by id, or None if unknown."""
        return self._definitions.get(definition_id)

    def list_all(self) -> list[NodeDefinition]:
        """All definitions in insertion order."""
        return list(self._definitions.values())

    def list_by_category(self) -> dict[str, list[NodeDefinition]]:
        """Definitions grouped by category, categories in first-seen order."""
        grouped: dict[str, list[NodeDefinition]] = {}
        for definition in self._definitions.values():
            grouped.setdefault(definition.category, []).append(definition)
        return grouped

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, definition_id: object) -> bool:
        return definition_id in self._definitions

    @property
    def is_syncing(self) -> bool:
        """True while a sync fetch is in flight."""
        return self._fetch_task is not None and not self._fetch_task.done()

    # =========================================================================
    # Mutations
    # =========================================================================

    async def sync(self) -> list[NodeDefinition] | None:
        """Replace the whole map with the remote descriptor set.

        Returns:
            The new definition list, or None if a later sync() or clear()
            superseded this call (the map is then left to the newer call).

        Raises:
            RegistryFetchError: If the remote fetch fails. The previous map
                is kept and subscribers are not notified.
        """
        if self._source is None:
            raise RegistryFetchError("No descriptor source configured")

        generation = self._supersede()
        task = asyncio.ensure_future(self._source.list_node_descriptors())
        self._fetch_task = task
        logger.debug("registry_sync_started: generation=%d", generation)

        try:
            raw_descriptors = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                logger.debug("registry_sync_superseded: generation=%d", generation)
                return None
            raise
        except Exception as e:
            if generation != self._generation:
                return None
            logger.warning("registry_sync_failed: %s", e)
            raise RegistryFetchError(f"Failed to fetch node descriptors: {e}") from e
        finally:
            if self._fetch_task is task:
                self._fetch_task = None

        if generation != self._generation:
            logger.debug("registry_sync_superseded: generation=%d", generation)
            return None

        if not isinstance(raw_descriptors, list):
            raise RegistryFetchError(
                f"Descriptor service returned {type(raw_descriptors).__name__}, expected a list"
            )

        self._definitions = self._compile_all(raw_descriptors)
        logger.info("registry_synced: count=%d", len(self._definitions))
        self._notify()
        return self.list_all()

    def register(self, descriptor: NodeDescriptor | Mapping[str, Any]) -> NodeDefinition:
        """Compile and upsert a single locally known descriptor.

        Raises:
            DescriptorError: If the descriptor cannot be parsed.
        """
        if not isinstance(descriptor, NodeDescriptor):
            descriptor = NodeDescriptor.from_dict(descriptor)

        definition = compile_descriptor(descriptor)
        # Replace, never merge: drop the old entry so the map holds only the new object
        self._definitions.pop(definition.definition_id, None)
        self._definitions[definition.definition_id] = definition
        logger.debug("registry_registered: id=%s", definition.definition_id)
        self._notify()
        return definition

    def remove(self, definition_id: str) -> bool:
        """Remove a definition.

        Returns:
            True if something was removed (subscribers notified), else False.
        """
        if self._definitions.pop(definition_id, None) is None:
            return False
        logger.debug("registry_removed: id=%s", definition_id)
        self._notify()
        return True

    def clear(self) -> None:
        """Drop every definition and cancel any in-flight sync.

        Used when the acting session ends, so dynamic node types from one
        session never remain selectable in the next.
        """
        self._supersede()
        self._definitions = {}
        logger.info("registry_cleared")
        self._notify()

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscribe(self, callback: RegistryCallback) -> Subscription:
        """Register a change callback.

        The callback gets the full definition list after every change. It
        runs after the change is applied, so reading the registry inside the
        callback sees the new state.
        """
        if callback not in self._subscribers:
            self._subscribers.append(callback)
        return Subscription(registry=self, callback=callback)

    def unsubscribe(self, callback: RegistryCallback) -> None:
        """Remove a change callback (unknown callbacks are ignored)."""
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    # =========================================================================
    # Internals
    # =========================================================================

    def _supersede(self) -> int:
        self._generation += 1
        if self._fetch_task is not None and not self._fetch_task.done():
            self._fetch_task.cancel()
        return self._generation

    def _compile_all(self, raw_descriptors: Iterable[Any]) -> dict[str, NodeDefinition]:
        definitions: dict[str, NodeDefinition] = {}
        for raw in raw_descriptors:
            try:
                descriptor = NodeDescriptor.from_dict(raw)
            except DescriptorError as e:
                logger.warning("registry_descriptor_skipped: %s", e)
                continue
            definitions[descriptor.id] = compile_descriptor(descriptor)
        return definitions

    def _notify(self) -> None:
        snapshot = self.list_all()
        # Iterate a copy: callbacks may unsubscribe themselves
        for callback in list(self._subscribers):
            try:
                callback(list(snapshot))
            except Exception:
                logger.exception("registry_subscriber_failed: callback=%r", callback)
