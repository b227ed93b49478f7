"""Descriptor compiler - NodeDescriptor to NodeDefinition.

Pure transformation with no external state. Compilation never fails on a
parsed descriptor: a descriptor without a usable schema still compiles, with
empty parameter lists, so the node stays selectable.

Schema type mapping:
    string           -> text
    number, integer  -> number
    boolean          -> toggle
    object, array    -> json
    anything else    -> text
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from stepwise.core.registry.descriptor import (
    DEFAULT_CATEGORY,
    NO_CONFIGURATION_NOTE,
    FieldSpec,
    NodeDefinition,
    NodeDescriptor,
    ParameterKind,
    ParameterSpec,
    StyleHint,
)

SCHEMA_TYPE_KINDS: dict[str, ParameterKind] = {
    "string": ParameterKind.TEXT,
    "number": ParameterKind.NUMBER,
    "integer": ParameterKind.NUMBER,
    "boolean": ParameterKind.TOGGLE,
    "object": ParameterKind.JSON,
    "array": ParameterKind.JSON,
}

CATEGORY_COLORS: dict[str, str] = {
    "Infrastructure": "#8b5cf6",
    "Data": "#3b82f6",
    "Communication": "#10b981",
    "Custom": "#f59e0b",
    "Generated": "#ec4899",
}

CATEGORY_BORDER_COLORS: dict[str, str] = {
    "Infrastructure": "#a78bfa",
    "Data": "#60a5fa",
    "Communication": "#34d399",
    "Custom": "#fbbf24",
    "Generated": "#f472b6",
}


def compile_descriptor(descriptor: NodeDescriptor) -> NodeDefinition:
    """Compile a parsed descriptor into a node definition.

    Args:
        descriptor: Parsed descriptor.

    Returns:
        A new, immutable NodeDefinition whose definition_id is the
        descriptor id.
    """
    inputs = extract_parameters(descriptor.input_schema)
    outputs = extract_parameters(descriptor.output_schema)
    form_fields = extract_form_fields(descriptor.ui_config)

    config_note: str | None = None
    if not inputs and not form_fields:
        note = descriptor.config.get("description")
        config_note = note if isinstance(note, str) and note else NO_CONFIGURATION_NOTE

    return NodeDefinition(
        definition_id=descriptor.id,
        display_name=descriptor.name,
        description=descriptor.description,
        category=descriptor.category,
        version=descriptor.version,
        icon=descriptor.icon,
        inputs=inputs,
        outputs=outputs,
        form_fields=form_fields,
        style_hint=style_for_category(descriptor.category),
        config_note=config_note,
    )


def schema_kind(schema_type: Any) -> ParameterKind:
    """Map a JSON schema type to a form input kind (unknown -> text)."""
    if not isinstance(schema_type, str):
        return ParameterKind.TEXT
    return SCHEMA_TYPE_KINDS.get(schema_type, ParameterKind.TEXT)


def extract_parameters(schema: Mapping[str, Any]) -> tuple[ParameterSpec, ...]:
    """Walk a schema's "properties" object into parameter specs.

    A parameter is required iff its key appears in the root "required" array.
    Property order follows the schema's own key order.
    """
    properties = schema.get("properties")
    if not isinstance(properties, Mapping):
        return ()

    required_keys = schema.get("required")
    required = (
        {key for key in required_keys if isinstance(key, str)}
        if isinstance(required_keys, list)
        else set()
    )

    params = []
    for name, prop in properties.items():
        prop = prop if isinstance(prop, Mapping) else {}
        schema_type = prop.get("type")
        description = prop.get("description")
        params.append(
            ParameterSpec(
                name=str(name),
                kind=schema_kind(schema_type),
                required=name in required,
                description=description if isinstance(description, str) else "",
                default=prop.get("default"),
                schema_type=schema_type if isinstance(schema_type, str) else None,
            )
        )
    return tuple(params)


def extract_form_fields(ui_config: Mapping[str, Any]) -> tuple[FieldSpec, ...]:
    """Read ui_config.formFields, skipping entries without a name."""
    raw_fields = ui_config.get("formFields")
    if not isinstance(raw_fields, list):
        return ()

    fields = []
    for raw in raw_fields:
        if not isinstance(raw, Mapping):
            continue
        name = raw.get("name")
        if not isinstance(name, str) or not name:
            continue
        label = raw.get("label")
        options = raw.get("options")
        placeholder = raw.get("placeholder")
        fields.append(
            FieldSpec(
                name=name,
                label=label if isinstance(label, str) and label else name,
                kind=str(raw.get("type") or "text"),
                required=bool(raw.get("required", False)),
                default=raw.get("default"),
                placeholder=placeholder if isinstance(placeholder, str) else "",
                options=tuple(options) if isinstance(options, list) else (),
                minimum=_bound(raw, "min", "minimum"),
                maximum=_bound(raw, "max", "maximum"),
            )
        )
    return tuple(fields)


def style_for_category(category: str) -> StyleHint:
    """Category colors; unknown categories use the Generated palette."""
    return StyleHint(
        background_color=CATEGORY_COLORS.get(category, CATEGORY_COLORS[DEFAULT_CATEGORY]),
        border_color=CATEGORY_BORDER_COLORS.get(
            category, CATEGORY_BORDER_COLORS[DEFAULT_CATEGORY]
        ),
    )


def _bound(raw: Mapping[str, Any], *keys: str) -> float | None:
    for key in keys:
        value = raw.get(key)
        if isinstance(value, bool):
            continue
        if isinstance(value, (int, float)):
            return float(value)
    return None
