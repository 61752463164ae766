"""
Policy construction for permgate.

This module holds the data-only policy descriptors and the fluent builder
that produces them. Descriptors are frozen once compiled and may be shared
across any number of evaluations.

Key concepts:
    - PolicyBuilder: Open -> Finalized chain producing a PolicyDescriptor
    - PolicyDescriptor: one scheme, one combinator, a set of targets
    - CompoundPolicyDescriptor: allOf / anyOf over two or more descriptors
    - NopDescriptor: always passes
"""

from permgate.policy.builder import BuilderState, PolicyBuilder, all_of, any_of, none
from permgate.policy.descriptor import (
    DEFAULT_NAMESPACE,
    WILDCARD,
    CompoundPolicyDescriptor,
    Descriptor,
    LiteralValue,
    NopDescriptor,
    ParameterDefinition,
    ParameterSource,
    PolicyDescriptor,
    PolicyMethod,
    qualified_name,
)

__all__ = [
    "DEFAULT_NAMESPACE",
    "WILDCARD",
    "BuilderState",
    "CompoundPolicyDescriptor",
    "Descriptor",
    "LiteralValue",
    "NopDescriptor",
    "ParameterDefinition",
    "ParameterSource",
    "PolicyBuilder",
    "PolicyDescriptor",
    "PolicyMethod",
    "all_of",
    "any_of",
    "none",
    "qualified_name",
]
