"""Step Sequence Model and variable resolution."""

from stepwise.core.sequence.graph import GraphEdge, GraphNode, WorkflowGraph
from stepwise.core.sequence.model import StepDisplay, StepSequence
from stepwise.core.sequence.step import (
    BUILTIN_STEP_TYPES,
    DEFAULT_STEP_CONFIGS,
    Step,
    StepTemplate,
    StepType,
    default_config,
)
from stepwise.core.sequence.variables import (
    VariableBinding,
    VariableResolver,
    VariableScope,
    build_variable_scopes,
    insert_variable,
    slugify,
    variable_token,
)

__all__ = [
    "BUILTIN_STEP_TYPES",
    "DEFAULT_STEP_CONFIGS",
    "GraphEdge",
    "GraphNode",
    "Step",
    "StepDisplay",
    "StepSequence",
    "StepTemplate",
    "StepType",
    "VariableBinding",
    "VariableResolver",
    "VariableScope",
    "WorkflowGraph",
    "build_variable_scopes",
    "default_config",
    "insert_variable",
    "slugify",
    "variable_token",
]
