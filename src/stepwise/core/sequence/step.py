"""Step - one ordered unit of a workflow being authored.

Also holds the built-in step palette (display metadata per type tag) and
the fixed default configuration each new step starts with.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from stepwise.core.registry.descriptor import GENERATED_TYPE_TAG

if TYPE_CHECKING:
    from stepwise.core.registry.descriptor import NodeDefinition

# Type tag used when a persisted node has no type
FALLBACK_TYPE_TAG = "manual"

# Step types whose output is exposed as ``response`` instead of ``result``
HTTP_STEP_TYPES = frozenset({"apiGet", "apiPost"})


@dataclass(frozen=True)
class StepType:
    """Display metadata for a built-in step type."""

    type_tag: str
    label: str
    icon: str
    color: str
    description: str = ""


_BUILTIN_TYPES = (
    StepType("input", "Input/Trigger", "settings", "#6b7280", "Manual, file, webhook, or timer"),
    StepType("script", "Code Script", "code", "#8b5cf6", "JavaScript, Python, Bash, or SQL"),
    StepType("ansible", "Ansible Playbook", "server", "#ee0000", "Execute Ansible playbooks"),
    StepType("logic", "Logic/Control", "git-branch", "#f59e0b", "Conditions, loops, and filters"),
    StepType("output", "Output/Action", "zap", "#10b981", "Files, email, database, notifications"),
    StepType("apiPost", "API POST", "send", "#00d4aa", "Send POST requests to APIs"),
    StepType("apiGet", "API GET", "globe", "#4ade80", "Fetch data from APIs"),
    StepType("slackOutput", "Slack Message", "message-square", "#4a154b", "Post to Slack"),
    StepType("screenOutput", "Screen Output", "monitor", "#10b981", "Display formatted output"),
    StepType("transform", "Transform", "shuffle", "#667eea", "Transform data with JQ or JSONPath"),
    StepType("userInput", "User Input", "users", "#8b5cf6", "Collect user input via a form"),
)

BUILTIN_STEP_TYPES: dict[str, StepType] = {t.type_tag: t for t in _BUILTIN_TYPES}

UNKNOWN_STEP_TYPE = StepType(FALLBACK_TYPE_TAG, "Step", "box", "#6b7280")

DEFAULT_STEP_CONFIGS: dict[str, dict[str, Any]] = {
    "input": {"inputType": "manual"},
    "script": {
        "scriptType": "javascript",
        "script": "",
        "environment": "docker",
        "timeout": 30,
        "onError": "stop",
    },
    "ansible": {
        "playbookType": "inline",
        "playbook": "",
        "inventoryType": "inline",
        "hosts": "",
        "sshUser": "ubuntu",
        "become": "false",
        "verbosity": "0",
        "checkMode": "false",
    },
    "logic": {"logicType": "condition", "condition": ""},
    "output": {"outputType": "file", "format": "json"},
    "apiPost": {
        "url": "",
        "headers": '{"Content-Type": "application/json"}',
        "body": "{}",
        "timeout": 30,
    },
    "apiGet": {
        "url": "",
        "headers": '{"Content-Type": "application/json"}',
        "params": "{}",
        "timeout": 30,
    },
    "slackOutput": {
        "webhookUrl": "",
        "channel": "",
        "username": "Workflow Bot",
        "message": "",
        "iconEmoji": ":robot_face:",
    },
    "screenOutput": {
        "title": "Screen Output",
        "message": "",
        "format": "text",
        "level": "info",
        "includeTimestamp": False,
    },
    "transform": {
        "inputData": "{{previous}}",
        "transformType": "jq",
        "expression": ".",
        "outputVariable": "transformed",
    },
    "userInput": {
        "title": "User Input Required",
        "description": "",
        "allowMidFlow": True,
        "fields": [],
    },
}


def default_config(type_tag: str) -> dict[str, Any]:
    """Fresh copy of the default configuration for a type tag ({} if unknown)."""
    return copy.deepcopy(DEFAULT_STEP_CONFIGS.get(type_tag, {}))


@dataclass(frozen=True)
class Step:
    """A workflow step.

    Attributes:
        id: Unique step id.
        type_tag: Step type ("script", "apiGet", "generatedNode", ...).
        order: Position in the sequence, always 0..N-1 once a mutation settles.
        config: Step configuration (includes "label" and "description").
    """

    id: str
    type_tag: str
    order: int = 0
    config: Mapping[str, Any] = field(default_factory=dict)

    @property
    def label(self) -> str | None:
        """Label from the config, if one is set."""
        label = self.config.get("label")
        return label if isinstance(label, str) and label else None

    @property
    def generated_node_id(self) -> str | None:
        """Definition id for generated steps."""
        value = self.config.get("generatedNodeId")
        return str(value) if value is not None else None


@dataclass(frozen=True)
class StepTemplate:
    """What the user picked from the palette; insert() turns it into a Step."""

    type_tag: str
    label: str
    description: str = ""
    generated_node_id: str | None = None
    category: str | None = None
    version: int | None = None

    @classmethod
    def for_type(cls, type_tag: str, label: str | None = None) -> StepTemplate:
        """Template for a built-in step type."""
        step_type = BUILTIN_STEP_TYPES.get(type_tag)
        if step_type is None:
            return cls(type_tag=type_tag, label=label or type_tag)
        return cls(
            type_tag=type_tag,
            label=label or step_type.label,
            description=step_type.description,
        )

    @classmethod
    def from_definition(cls, definition: NodeDefinition) -> StepTemplate:
        """Template for a dynamic node definition from the registry."""
        return cls(
            type_tag=GENERATED_TYPE_TAG,
            label=definition.display_name,
            description=definition.description or "Generated workflow node",
            generated_node_id=definition.definition_id,
            category=definition.category,
            version=definition.version,
        )

    @property
    def is_generated(self) -> bool:
        return self.generated_node_id is not None

    def initial_config(self) -> dict[str, Any]:
        """Config for a new step: label, description, type defaults, generated metadata."""
        config: dict[str, Any] = {"label": self.label, "description": self.description}
        config.update(default_config(self.type_tag))
        if self.is_generated:
            config.update(
                {
                    "generatedNodeId": self.generated_node_id,
                    "category": self.category,
                    "version": self.version,
                    "isGenerated": True,
                }
            )
        return config
