"""Node descriptors and compiled node definitions.

A NodeDescriptor is the parsed form of one untyped JSON object returned by
the node-definition service. Parsing happens once, at the boundary, so the
compiler works on a known shape instead of probing optional keys.

A NodeDefinition is what the rest of stepwise uses. It is immutable and is
replaced wholesale when its descriptor is recompiled.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from stepwise.core.errors import DescriptorError

DEFAULT_CATEGORY = "Generated"
DEFAULT_ICON = "box"
NO_CONFIGURATION_NOTE = "No configuration required"

# Type tag carried by steps that reference a dynamic node definition
GENERATED_TYPE_TAG = "generatedNode"


class ParameterKind(Enum):
    """Form input kind derived from a JSON schema type."""

    TEXT = "text"
    NUMBER = "number"
    TOGGLE = "toggle"
    JSON = "json"  # structured: object or array


@dataclass(frozen=True)
class ParameterSpec:
    """One input or output parameter extracted from a schema's properties.

    Attributes:
        name: Property key.
        kind: Form input kind.
        required: True iff the key is listed in the schema root "required".
        description: Property description ("" when absent).
        default: Property default, if any.
        schema_type: The raw schema type string, if any.
    """

    name: str
    kind: ParameterKind = ParameterKind.TEXT
    required: bool = False
    description: str = ""
    default: Any = None
    schema_type: str | None = None


@dataclass(frozen=True)
class FieldSpec:
    """A form field declared by the descriptor's ui_config."""

    name: str
    label: str
    kind: str = "text"
    required: bool = False
    default: Any = None
    placeholder: str = ""
    options: tuple[Any, ...] = ()
    minimum: float | None = None
    maximum: float | None = None


@dataclass(frozen=True)
class StyleHint:
    """Display colors for a definition, picked by category."""

    background_color: str
    border_color: str
    text_color: str = "#ffffff"


@dataclass(frozen=True)
class NodeDefinition:
    """Compiled, ready-to-use node type.

    Attributes:
        definition_id: Stable id (the descriptor id).
        display_name: Human readable name.
        description: Free text description.
        category: Palette category.
        version: Descriptor version.
        icon: Icon name.
        inputs: Input parameters from the input schema.
        outputs: Output parameters from the output schema.
        form_fields: Form fields from ui_config.
        style_hint: Display colors.
        config_note: Shown when the node has nothing to configure.
        is_dynamic: Always True for registry definitions.
    """

    definition_id: str
    display_name: str
    category: str
    version: int
    inputs: tuple[ParameterSpec, ...]
    outputs: tuple[ParameterSpec, ...]
    form_fields: tuple[FieldSpec, ...]
    style_hint: StyleHint
    description: str = ""
    icon: str = DEFAULT_ICON
    config_note: str | None = None
    is_dynamic: bool = True

    @property
    def type_tag(self) -> str:
        """Step type tag used when this definition is placed in a sequence."""
        return GENERATED_TYPE_TAG

    @property
    def has_configuration(self) -> bool:
        """False when the node should show the "no configuration" affordance."""
        return bool(self.inputs or self.form_fields)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "definition_id": self.definition_id,
            "display_name": self.display_name,
            "description": self.description,
            "category": self.category,
            "version": self.version,
            "icon": self.icon,
            "inputs": [_parameter_to_dict(p) for p in self.inputs],
            "outputs": [_parameter_to_dict(p) for p in self.outputs],
            "form_fields": [f.name for f in self.form_fields],
            "style": {
                "backgroundColor": self.style_hint.background_color,
                "borderColor": self.style_hint.border_color,
                "color": self.style_hint.text_color,
            },
            "config_note": self.config_note,
            "is_dynamic": self.is_dynamic,
        }


def _parameter_to_dict(param: ParameterSpec) -> dict[str, Any]:
    return {
        "name": param.name,
        "kind": param.kind.value,
        "required": param.required,
        "description": param.description,
        "default": param.default,
    }


@dataclass(frozen=True)
class NodeDescriptor:
    """Parsed node descriptor as supplied by the node-definition service.

    Use from_dict() to build one from raw JSON. Fields that are missing or of
    the wrong type fall back to permissive defaults; only a missing id or a
    non-object payload is rejected.
    """

    id: str
    name: str
    category: str = DEFAULT_CATEGORY
    version: int = 1
    description: str = ""
    icon: str = DEFAULT_ICON
    input_schema: Mapping[str, Any] = field(default_factory=dict)
    output_schema: Mapping[str, Any] = field(default_factory=dict)
    ui_config: Mapping[str, Any] = field(default_factory=dict)
    config: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> NodeDescriptor:
        """Parse an untyped descriptor payload.

        Both camelCase (inputSchema) and snake_case (input_schema) keys are
        accepted.

        Args:
            data: Raw JSON value.

        Returns:
            Parsed descriptor.

        Raises:
            DescriptorError: If data is not a mapping or has no usable id.
        """
        if not isinstance(data, Mapping):
            raise DescriptorError(f"Descriptor must be an object, got {type(data).__name__}")

        raw_id = data.get("id")
        if raw_id is None or isinstance(raw_id, (bool, Mapping, list)) or not str(raw_id).strip():
            raise DescriptorError("Descriptor is missing an id")
        descriptor_id = str(raw_id).strip()

        return cls(
            id=descriptor_id,
            name=_text(data.get("name")) or descriptor_id,
            category=_text(data.get("category")) or DEFAULT_CATEGORY,
            version=_version(data.get("version")),
            description=_text(data.get("description")),
            icon=_text(data.get("icon")) or DEFAULT_ICON,
            input_schema=_mapping(_pick(data, "inputSchema", "input_schema")),
            output_schema=_mapping(_pick(data, "outputSchema", "output_schema")),
            ui_config=_mapping(_pick(data, "uiConfig", "ui_config")),
            config=_mapping(data.get("config")),
        )


def _pick(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _text(value: Any) -> str:
    if value is None or isinstance(value, (Mapping, list)):
        return ""
    return str(value)


def _version(value: Any) -> int:
    if isinstance(value, bool):
        return 1
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return 1
