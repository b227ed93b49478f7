"""Variable resolution context.

For a cursor position in a step sequence, lists every ``{{scope.path}}``
variable a step at that position may reference:

    input      launch payload, always present
    previous   result envelope of the step just before the cursor
    steps      one scope per earlier step, steps.<slug>.result|response
    context    the run itself
    env        illustrative; real values are resolved server-side

This layer only lists and inserts tokens. It never resolves or validates
them.

Slugs are not deduplicated: two steps labelled "Process" both map to
``steps.process``.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from stepwise.core.sequence.step import HTTP_STEP_TYPES, Step

if TYPE_CHECKING:
    from stepwise.core.sequence.model import StepSequence

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class VariableBinding:
    """One referenceable variable."""

    scope_name: str
    path: str
    value_type: str
    description: str

    @property
    def token(self) -> str:
        return variable_token(self.path)


@dataclass(frozen=True)
class VariableScope:
    """A named group of bindings."""

    name: str
    title: str
    description: str
    bindings: tuple[VariableBinding, ...]


# (path, type, description)
INPUT_VARIABLES = (
    ("input.data", "any", "Main input data"),
    ("input.userId", "string", "User who started the workflow"),
    ("input.timestamp", "string", "When the workflow started"),
    ("input.parameters", "object", "Input parameters"),
)

PREVIOUS_VARIABLES = (
    ("previous.result", "any", "Main result from previous step"),
    ("previous.status", "string", "Execution status"),
    ("previous.data", "any", "Processed data"),
    ("previous.metadata", "object", "Step metadata"),
)

CONTEXT_VARIABLES = (
    ("context.executionId", "string", "Unique execution identifier"),
    ("context.workflowId", "string", "Workflow identifier"),
    ("context.userId", "string", "User running the workflow"),
    ("context.timestamp", "string", "Current execution time"),
    ("context.stepIndex", "number", "Current step number"),
)

ENV_VARIABLES = (
    ("env.NODE_ENV", "string", "Environment (development/production)"),
    ("env.API_URL", "string", "API base URL"),
    ("env.CUSTOM_VAR", "string", "Your custom environment variables"),
)


def slugify(label: str) -> str:
    """Lower-case a label and collapse whitespace runs to underscores."""
    return _WHITESPACE.sub("_", label).lower()


def variable_token(path: str) -> str:
    return "{{" + path + "}}"


def insert_variable(current: str | None, path: str) -> str:
    """Append the token for ``path`` to a field's current text."""
    return (current or "") + variable_token(path)


def step_output_property(step: Step) -> str:
    """``response`` for HTTP call steps, ``result`` for everything else."""
    return "response" if step.type_tag in HTTP_STEP_TYPES else "result"


def build_variable_scopes(
    steps: Sequence[Step],
    cursor_index: int,
    query: str = "",
) -> list[VariableScope]:
    """List the variables available to the step at ``cursor_index``.

    Args:
        steps: Steps in sequence order.
        cursor_index: Position of the step being edited.
        query: Case-insensitive substring matched against each path and
            description. Scopes left empty by the filter are omitted.

    Returns:
        Scopes in the order input, previous, steps.*, context, env.
    """
    scopes = [
        _scope(
            "input",
            "Workflow Input",
            "Data provided when the workflow was started",
            INPUT_VARIABLES,
        )
    ]

    if cursor_index > 0:
        scopes.append(
            _scope(
                "previous",
                "Previous Step",
                "Output from the immediately previous step",
                PREVIOUS_VARIABLES,
            )
        )

    for index, step in enumerate(steps[: max(cursor_index, 0)]):
        name = step.label or f"Step {index + 1}"
        path = f"steps.{slugify(name)}.{step_output_property(step)}"
        scopes.append(
            _scope(
                f"steps.{slugify(name)}",
                name,
                f"Output of step {index + 1}",
                ((path, "any", f"Output from {name} ({step.type_tag})"),),
            )
        )

    scopes.append(
        _scope(
            "context",
            "Execution Context",
            "Information about the current workflow execution",
            CONTEXT_VARIABLES,
        )
    )
    scopes.append(_scope("env", "Environment", "Server environment variables", ENV_VARIABLES))

    needle = query.lower()
    if not needle:
        return scopes

    filtered = []
    for scope in scopes:
        bindings = tuple(
            b for b in scope.bindings
            if needle in b.path.lower() or needle in b.description.lower()
        )
        if bindings:
            filtered.append(
                VariableScope(scope.name, scope.title, scope.description, bindings)
            )
    return filtered


class VariableResolver:
    """Variable listing bound to a live StepSequence."""

    def __init__(self, sequence: StepSequence) -> None:
        self._sequence = sequence

    def scopes_at(self, cursor_index: int, query: str = "") -> list[VariableScope]:
        return build_variable_scopes(self._sequence.steps, cursor_index, query)

    def scopes_for(self, step_id: str, query: str = "") -> list[VariableScope]:
        """Scopes for the position of ``step_id`` (empty list if unknown)."""
        index = self._sequence.index_of(step_id)
        if index is None:
            return []
        return self.scopes_at(index, query)

    def paths_at(self, cursor_index: int, query: str = "") -> list[str]:
        """Flat list of variable paths, in scope order."""
        return [b.path for s in self.scopes_at(cursor_index, query) for b in s.bindings]


def _scope(
    name: str,
    title: str,
    description: str,
    rows: Sequence[tuple[str, str, str]],
) -> VariableScope:
    scope_name = name.split(".", 1)[0]
    bindings = tuple(
        VariableBinding(scope_name=scope_name, path=path, value_type=value_type, description=desc)
        for path, value_type, desc in rows
    )
    return VariableScope(name=name, title=title, description=description, bindings=bindings)
