"""Node Descriptor Registry.

Turns externally supplied node descriptors into NodeDefinitions and keeps
them indexed:

    descriptor.py   NodeDescriptor (parsed boundary type), NodeDefinition
    compiler.py     compile_descriptor(): descriptor -> definition
    registry.py     NodeRegistry: sync/register/remove/get/subscribe/clear
"""

from stepwise.core.registry.compiler import compile_descriptor, schema_kind
from stepwise.core.registry.descriptor import (
    GENERATED_TYPE_TAG,
    FieldSpec,
    NodeDefinition,
    NodeDescriptor,
    ParameterKind,
    ParameterSpec,
    StyleHint,
)
from stepwise.core.registry.registry import NodeRegistry, RegistryCallback, Subscription

__all__ = [
    "GENERATED_TYPE_TAG",
    "FieldSpec",
    "NodeDefinition",
    "NodeDescriptor",
    "NodeRegistry",
    "ParameterKind",
    "ParameterSpec",
    "RegistryCallback",
    "StyleHint",
    "Subscription",
    "compile_descriptor",
    "schema_kind",
]
