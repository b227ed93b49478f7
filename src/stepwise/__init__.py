"""Stepwise - client-side orchestration for sequential automation workflows.

Stepwise keeps three pieces of state for a workflow author:

- NodeRegistry: node types generated on the backend, compiled into
  definitions the editor can offer.
- StepSequence: the ordered steps of the workflow being edited, plus the
  variables each step may reference.
- ExecutionTracker: a polling mirror of one submitted run, with normalized
  stdout/stderr.

StepwiseApp wires them to the backend REST API.

Example:
    >>> from stepwise import StepwiseApp, StepTemplate
    >>>
    >>> async with StepwiseApp.from_env() as app:
    ...     await app.begin_session(token)
    ...     step = app.sequence.insert(StepTemplate.for_type("script", "Fetch"))
    ...     app.variables.paths_at(1)
"""

from stepwise.__version__ import __version__
from stepwise.app import StepwiseApp
from stepwise.config import StepwiseConfig
from stepwise.core.errors import (
    ApiError,
    BackendError,
    DescriptorError,
    RegistryError,
    RegistryFetchError,
    SessionExpiredError,
    StepwiseError,
    TransportError,
)
from stepwise.core.execution import (
    ExecutionRecord,
    ExecutionStatus,
    ExecutionTracker,
    LogEntry,
    PollHandle,
)
from stepwise.core.registry import NodeDefinition, NodeDescriptor, NodeRegistry
from stepwise.core.sequence import (
    Step,
    StepSequence,
    StepTemplate,
    VariableResolver,
    WorkflowGraph,
    build_variable_scopes,
)
from stepwise.transport import BackendClient, BackendClientConfig

__all__ = [
    "ApiError",
    "BackendClient",
    "BackendClientConfig",
    "BackendError",
    "DescriptorError",
    "ExecutionRecord",
    "ExecutionStatus",
    "ExecutionTracker",
    "LogEntry",
    "NodeDefinition",
    "NodeDescriptor",
    "NodeRegistry",
    "PollHandle",
    "RegistryError",
    "RegistryFetchError",
    "SessionExpiredError",
    "Step",
    "StepSequence",
    "StepTemplate",
    "StepwiseApp",
    "StepwiseConfig",
    "StepwiseError",
    "TransportError",
    "VariableResolver",
    "WorkflowGraph",
    "__version__",
    "build_variable_scopes",
]
