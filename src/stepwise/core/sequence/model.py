"""StepSequence - ordered list of steps for one workflow being authored.

Every structural mutation renumbers the steps, so ``order`` is always
exactly 0..N-1 in list order with unique ids.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from stepwise.core.registry.descriptor import GENERATED_TYPE_TAG
from stepwise.core.sequence.graph import GraphNode, WorkflowGraph, chain_position
from stepwise.core.sequence.step import (
    BUILTIN_STEP_TYPES,
    FALLBACK_TYPE_TAG,
    UNKNOWN_STEP_TYPE,
    Step,
    StepTemplate,
)

if TYPE_CHECKING:
    from stepwise.core.registry.registry import NodeRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepDisplay:
    """How a step is presented in the editor."""

    label: str
    icon: str
    color: str
    description: str
    category: str | None = None


class StepSequence:
    """Ordered steps of the workflow currently being edited.

    Example:
        >>> seq = StepSequence(registry)
        >>> fetch = seq.insert(StepTemplate.for_type("script", "Fetch"))
        >>> seq.insert(StepTemplate.for_type("apiGet"), at_index=0)
        >>> seq.to_persistable_graph().to_dict()
    """

    def __init__(self, registry: NodeRegistry | None = None) -> None:
        self._registry = registry
        self._steps: list[Step] = []

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def steps(self) -> list[Step]:
        """Snapshot of the steps in order."""
        return list(self._steps)

    @property
    def is_empty(self) -> bool:
        return not self._steps

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[Step]:
        return iter(list(self._steps))

    def get(self, step_id: str) -> Step | None:
        """Get a step by id, or None."""
        index = self.index_of(step_id)
        return None if index is None else self._steps[index]

    def index_of(self, step_id: str) -> int | None:
        """Position of a step, or None if unknown."""
        for index, step in enumerate(self._steps):
            if step.id == step_id:
                return index
        return None

    def display_info(self, step: Step) -> StepDisplay:
        """Label, icon, color and description for a step.

        Generated steps take their display from the registry definition when
        it is still known; otherwise the step's own config is used.
        """
        if step.type_tag == GENERATED_TYPE_TAG:
            definition = None
            if self._registry is not None and step.generated_node_id is not None:
                definition = self._registry.get(step.generated_node_id)
            if definition is not None:
                return StepDisplay(
                    label=step.label or definition.display_name,
                    icon=definition.icon,
                    color=definition.style_hint.background_color,
                    description=definition.description,
                    category=definition.category,
                )
            category = step.config.get("category")
            return StepDisplay(
                label=step.label or "Generated Node",
                icon="box",
                color=UNKNOWN_STEP_TYPE.color,
                description=str(step.config.get("description") or ""),
                category=category if isinstance(category, str) else None,
            )

        step_type = BUILTIN_STEP_TYPES.get(step.type_tag, UNKNOWN_STEP_TYPE)
        return StepDisplay(
            label=step.label or step_type.label,
            icon=step_type.icon,
            color=step_type.color,
            description=step_type.description,
        )

    # =========================================================================
    # Mutations
    # =========================================================================

    def replace_all(self, steps: Iterable[Step | Mapping[str, Any]]) -> list[Step]:
        """Replace every step, e.g. when another saved workflow is opened.

        Accepts Steps or persisted node dicts ({id, type, data}). Missing
        ids get a fresh uuid, missing types fall back to "manual".

        Raises:
            ValueError: If two steps share an id. The sequence is unchanged.
        """
        hydrated = [step if isinstance(step, Step) else _hydrate(step) for step in steps]

        seen: set[str] = set()
        for step in hydrated:
            if step.id in seen:
                raise ValueError(f"Duplicate step id: {step.id}")
            seen.add(step.id)

        self._steps = hydrated
        self._renumber()
        logger.debug("sequence_replaced: count=%d", len(self._steps))
        return self.steps

    def insert(self, template: StepTemplate, at_index: int | None = None) -> Step:
        """Create a step from a template and insert it.

        Args:
            template: Palette selection.
            at_index: Target position; None appends. Clamped to [0, len].

        Returns:
            The new step, with its final order.
        """
        step = Step(
            id=str(uuid.uuid4()),
            type_tag=template.type_tag,
            config=template.initial_config(),
        )
        index = len(self._steps) if at_index is None else _clamp(at_index, len(self._steps))
        self._steps.insert(index, step)
        self._renumber()
        logger.debug("sequence_inserted: id=%s type=%s index=%d", step.id, step.type_tag, index)
        return self._steps[index]

    def move_to(self, step_id: str, target_index: int) -> bool:
        """Move a step to ``target_index`` (clamped). False if the id is unknown."""
        index = self.index_of(step_id)
        if index is None:
            return False
        step = self._steps.pop(index)
        self._steps.insert(_clamp(target_index, len(self._steps)), step)
        self._renumber()
        return True

    def remove(self, step_id: str) -> bool:
        """Delete a step. Absent ids are a no-op returning False."""
        index = self.index_of(step_id)
        if index is None:
            return False
        del self._steps[index]
        self._renumber()
        return True

    def update(self, step_id: str, partial_config: Mapping[str, Any]) -> Step | None:
        """Shallow-merge ``partial_config`` into a step's config.

        Returns:
            The updated step, or None if the id is unknown.
        """
        index = self.index_of(step_id)
        if index is None:
            return None
        current = self._steps[index]
        merged = {**current.config, **dict(partial_config or {})}
        self._steps[index] = replace(current, config=merged)
        return self._steps[index]

    def clear(self) -> None:
        self._steps = []

    # =========================================================================
    # Persistence
    # =========================================================================

    def to_persistable_graph(self) -> WorkflowGraph:
        """Linear chain of N nodes and N-1 edges."""
        nodes = [
            GraphNode(
                id=step.id,
                type=step.type_tag,
                data=dict(step.config),
                position=chain_position(index),
            )
            for index, step in enumerate(self._steps)
        ]
        return WorkflowGraph.chain(nodes)

    def load_graph(self, graph: WorkflowGraph | Mapping[str, Any]) -> list[Step]:
        """Hydrate from a persisted graph. Stored edges are ignored."""
        if not isinstance(graph, WorkflowGraph):
            graph = WorkflowGraph.from_dict(graph)
        return self.replace_all(node.to_dict() for node in graph.nodes)

    def _renumber(self) -> None:
        self._steps = [
            step if step.order == index else replace(step, order=index)
            for index, step in enumerate(self._steps)
        ]


def _hydrate(node: Mapping[str, Any]) -> Step:
    data = node.get("data")
    return Step(
        id=str(node.get("id") or uuid.uuid4()),
        type_tag=str(node.get("type") or FALLBACK_TYPE_TAG),
        config=dict(data) if isinstance(data, Mapping) else {},
    )


def _clamp(index: int, upper: int) -> int:
    return max(0, min(index, upper))
