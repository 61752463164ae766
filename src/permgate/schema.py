"""
Schema definitions for permgate's external formats.

Descriptors are plain frozen dataclasses (see permgate.policy.descriptor);
this module validates the *external* shapes they travel in, whether a dict
handed to the evaluator or a YAML policy file:

    Simple:   {namespace, scheme, method, params, target, parallel?}
    Compound: {method: allOf | anyOf, target: [descriptor, ...]}
    No-op:    {method: NOP}

It also loads request-context fixtures used by the CLI and tests.

Pydantic validation failures are re-raised as MalformedDescriptorError so
callers only deal with permgate's own error hierarchy.
"""

from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from permgate.errors import MalformedDescriptorError, describe_value
from permgate.params import RequestContext
from permgate.policy.descriptor import (
    DEFAULT_NAMESPACE,
    NOP_METHOD,
    WILDCARD,
    CompoundPolicyDescriptor,
    Descriptor,
    LiteralValue,
    NopDescriptor,
    ParameterDefinition,
    PolicyDescriptor,
    PolicyMethod,
)

NAME_PATTERN = r"^[^:]+$"


# =============================================================================
# Descriptor Documents
# =============================================================================


class LiteralDocument(BaseModel):
    """A literal parameter: {"value": ...}."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    value: Any = Field(..., description="Constant passed through to validations")


class SimplePolicyDocument(BaseModel):
    """
    External shape of a simple policy.

    Attributes:
        namespace: Namespace the scheme is registered in
        scheme: Registered provider name
        method: One of all, any, allOf, anyOf
        params: Parameter overrides ('?x', '$x', 'req.x' or {"value": x})
        target: '*' for all/any, a non-empty name list for allOf/anyOf
        parallel: Optional execution preference
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    namespace: str = Field(default=DEFAULT_NAMESPACE, pattern=NAME_PATTERN)
    scheme: str = Field(..., pattern=NAME_PATTERN)
    method: Literal["all", "any", "allOf", "anyOf"]
    params: dict[str, str | LiteralDocument] = Field(default_factory=dict)
    target: Literal["*"] | list[str]
    parallel: bool | None = None

    @field_validator("params")
    @classmethod
    def validate_params(cls, v: dict[str, Any]) -> dict[str, Any]:
        """Every string parameter must use a known prefix."""
        for name, raw in v.items():
            if isinstance(raw, str):
                ParameterDefinition.parse(name, raw)
        return v

    @model_validator(mode="after")
    def validate_target_matches_method(self) -> "SimplePolicyDocument":
        """all/any target '*'; allOf/anyOf target a non-empty list."""
        if self.method in ("all", "any") and self.target != WILDCARD:
            msg = f"method {self.method!r} requires target '*'"
            raise ValueError(msg)
        if self.method in ("allOf", "anyOf") and (
            isinstance(self.target, str) or not self.target
        ):
            msg = f"method {self.method!r} requires a non-empty list of validation names"
            raise ValueError(msg)
        return self

    def to_descriptor(self) -> PolicyDescriptor:
        """Build the frozen descriptor."""
        params = {
            name: LiteralValue(raw.value) if isinstance(raw, LiteralDocument) else raw
            for name, raw in self.params.items()
        }
        return PolicyDescriptor(
            namespace=self.namespace,
            scheme=self.scheme,
            method=PolicyMethod(self.method),
            target=self.target if isinstance(self.target, str) else tuple(self.target),
            params=params,
            parallel=self.parallel,
        )


class CompoundPolicyDocument(BaseModel):
    """External shape of a compound policy (targets parsed recursively)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    method: Literal["allOf", "anyOf"]
    target: list[Any] = Field(..., min_length=2)


class NopPolicyDocument(BaseModel):
    """External shape of the no-op policy."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    method: Literal["NOP"]


def parse_descriptor(data: Any) -> Descriptor:
    """
    Validate an external descriptor mapping and build the descriptor.

    Descriptor instances are returned unchanged, so compound targets may mix
    parsed mappings and already-built descriptors.

    Raises:
        MalformedDescriptorError: If the data matches none of the shapes
    """
    if isinstance(data, (PolicyDescriptor, CompoundPolicyDescriptor, NopDescriptor)):
        return data
    if not isinstance(data, Mapping):
        raise MalformedDescriptorError(
            detail=f"Expected a descriptor mapping, but received instead: {describe_value(data)}",
        )

    method = data.get("method")
    try:
        if method == NOP_METHOD:
            NopPolicyDocument.model_validate(dict(data))
            return NopDescriptor()
        if "scheme" in data:
            return SimplePolicyDocument.model_validate(dict(data)).to_descriptor()
        if method in ("allOf", "anyOf"):
            document = CompoundPolicyDocument.model_validate(dict(data))
            return CompoundPolicyDescriptor(
                method=PolicyMethod(document.method),
                target=tuple(parse_descriptor(t) for t in document.target),
            )
    except ValidationError as e:
        raise MalformedDescriptorError(detail=str(e)) from e

    raise MalformedDescriptorError(
        detail=(
            "The descriptor provides neither a scheme nor a compound method. "
            f"Found method: {describe_value(method)}"
        ),
    )


# =============================================================================
# Request Context Documents
# =============================================================================


class ContextDocument(BaseModel):
    """
    A request-context fixture.

    Attributes:
        params: Request parameters, read by '?name'
        cookies: Cookies, read by '$name'
        fields: Additional context fields, read by 'req.a.b'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    params: dict[str, Any] = Field(default_factory=dict)
    cookies: dict[str, Any] = Field(default_factory=dict)
    fields: dict[str, Any] = Field(default_factory=dict)

    @field_validator("fields")
    @classmethod
    def validate_field_names(cls, v: dict[str, Any]) -> dict[str, Any]:
        """Field names become attributes and must not shadow the lookups."""
        for name in v:
            if not name.isidentifier() or name in ("params", "cookies", "param"):
                msg = f"Invalid context field name: {name}"
                raise ValueError(msg)
        return v

    def to_context(self) -> RequestContext:
        """Build a RequestContext."""
        return RequestContext(params=self.params, cookies=self.cookies, **self.fields)


# =============================================================================
# YAML Loading Helpers
# =============================================================================


def load_policy(path: Path | str) -> Descriptor:
    """
    Load a policy descriptor from a YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        MalformedDescriptorError: If the YAML doesn't match a descriptor shape
    """
    path = Path(path)
    with path.open() as f:
        data = yaml.safe_load(f)

    return parse_descriptor(data)


def load_policy_from_string(content: str) -> Descriptor:
    """Load a policy descriptor from a YAML string."""
    data = yaml.safe_load(content)
    return parse_descriptor(data)


def load_context(path: Path | str) -> RequestContext:
    """
    Load a request context from a YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the YAML doesn't match the schema
    """
    path = Path(path)
    with path.open() as f:
        data = yaml.safe_load(f)

    return ContextDocument.model_validate(data or {}).to_context()


def load_context_from_string(content: str) -> RequestContext:
    """Load a request context from a YAML string."""
    data = yaml.safe_load(content)
    return ContextDocument.model_validate(data or {}).to_context()
