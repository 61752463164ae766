"""
Policy descriptors for permgate.

Descriptors are the data-only output of the builder and the only input the
evaluator accepts. They are frozen once created: ``params`` is exposed as a
read-only mapping and ``target`` as a tuple, so a descriptor can be shared by
any number of concurrent evaluations.

Shapes (see ``to_dict``):
    - Simple:   {namespace, scheme, method, params, target, parallel?}
    - Compound: {method: "allOf" | "anyOf", target: [descriptor, ...]}
    - No-op:    {method: "NOP"}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Union

from permgate.errors import InvalidNameError, InvalidParameterError, ParameterTypeError

DEFAULT_NAMESPACE = "global"
WILDCARD = "*"
NOP_METHOD = "NOP"
NAME_SEPARATOR = ":"

REQUEST_PARAMETER_PREFIX = "?"
COOKIE_PREFIX = "$"
FIELD_PATH_PREFIX = "req."


class PolicyMethod(str, Enum):
    """Combinator deciding how target outcomes aggregate into a verdict."""

    ALL = "all"
    ANY = "any"
    ALL_OF = "allOf"
    ANY_OF = "anyOf"


COMPOUND_METHODS = (PolicyMethod.ALL_OF, PolicyMethod.ANY_OF)


class ParameterSource(str, Enum):
    """Where a parameter's value comes from at resolution time."""

    REQUEST_PARAMETER = "request-parameter"
    COOKIE = "cookie"
    FIELD_PATH = "field-path"
    LITERAL = "literal"


@dataclass(frozen=True)
class LiteralValue:
    """A constant parameter value, passed through to validations unchanged."""

    value: Any


ParameterValue = Union[str, LiteralValue]


def has_valid_prefix(raw: str) -> bool:
    """Check whether a string parameter definition uses a known prefix."""
    return raw.startswith((REQUEST_PARAMETER_PREFIX, COOKIE_PREFIX, FIELD_PATH_PREFIX))


@dataclass(frozen=True)
class ParameterDefinition:
    """
    A single parameter and the rule used to resolve it.

    Attributes:
        name: Parameter name as seen by validations
        source: Resolution rule
        path: Lookup key (request parameter / cookie) or dotted field path
        value: The wrapped constant, for literal definitions only
    """

    name: str
    source: ParameterSource
    path: str = ""
    value: Any = None

    @classmethod
    def parse(cls, name: str, raw: Any) -> ParameterDefinition:
        """
        Parse the string mini-language (or a LiteralValue) into a definition.

        Raises:
            ParameterTypeError: If raw is neither a string nor a LiteralValue
            InvalidParameterError: If a string uses an unknown prefix
        """
        if isinstance(raw, LiteralValue):
            return cls(name=name, source=ParameterSource.LITERAL, value=raw.value)
        if not isinstance(raw, str):
            raise ParameterTypeError(parameter=name, value=raw)
        if raw.startswith(REQUEST_PARAMETER_PREFIX):
            return cls(name=name, source=ParameterSource.REQUEST_PARAMETER, path=raw[1:])
        if raw.startswith(COOKIE_PREFIX):
            return cls(name=name, source=ParameterSource.COOKIE, path=raw[1:])
        if raw.startswith(FIELD_PATH_PREFIX):
            return cls(name=name, source=ParameterSource.FIELD_PATH, path=raw)
        raise InvalidParameterError(parameter=name, value=raw)

    def to_raw(self) -> ParameterValue:
        """Render back into the mini-language form."""
        if self.source is ParameterSource.LITERAL:
            return LiteralValue(self.value)
        if self.source is ParameterSource.REQUEST_PARAMETER:
            return REQUEST_PARAMETER_PREFIX + self.path
        if self.source is ParameterSource.COOKIE:
            return COOKIE_PREFIX + self.path
        return self.path


def check_name(kind: str, value: object) -> str:
    """
    Validate a scheme or namespace name.

    Names may not contain the separator used by qualified names, so two
    (namespace, scheme) pairs never share an export key.

    Raises:
        InvalidNameError: If value is not a non-empty string or contains ':'
    """
    if not isinstance(value, str) or not value or NAME_SEPARATOR in value:
        raise InvalidNameError(kind=kind, value=value)
    return value


def qualified_name(namespace: str, scheme: str, method: str | None = None) -> str:
    """
    Build the human-readable identifier used in diagnostics.

    The namespace segment is omitted for the default namespace:
        qualified_name("global", "user", "is_admin") -> "user:is_admin"
        qualified_name("blog", "user") -> "blog:user"
    """
    parts = [] if namespace == DEFAULT_NAMESPACE else [namespace]
    parts.append(scheme)
    if method is not None:
        parts.append(method)
    return NAME_SEPARATOR.join(parts)


def _raw_to_dict(raw: ParameterValue) -> Any:
    if isinstance(raw, LiteralValue):
        return {"value": raw.value}
    return raw


@dataclass(frozen=True)
class PolicyDescriptor:
    """
    A simple policy: one scheme, one combinator, a set of targets.

    Attributes:
        namespace: Namespace the scheme is registered in
        scheme: Registered provider name
        method: Combinator (None while the builder is still open)
        target: WILDCARD or an ordered tuple of validation names
        params: Parameter overrides (read-only)
        parallel: Execution preference, None to use the provider default
    """

    namespace: str
    scheme: str
    method: PolicyMethod | None
    target: str | tuple[str, ...] = ()
    params: Mapping[str, ParameterValue] = field(default_factory=dict)
    parallel: bool | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))
        if not isinstance(self.target, str):
            object.__setattr__(self, "target", tuple(self.target))

    def __hash__(self) -> int:
        # Literal parameters wrapping unhashable values make the descriptor unhashable.
        return hash((
            self.namespace,
            self.scheme,
            self.method,
            self.target,
            frozenset(self.params.items()),
            self.parallel,
        ))

    @property
    def qualified_scheme(self) -> str:
        """Scheme name qualified by its namespace."""
        return qualified_name(self.namespace, self.scheme)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the external dict shape."""
        data: dict[str, Any] = {
            "namespace": self.namespace,
            "scheme": self.scheme,
            "method": self.method.value if self.method is not None else None,
            "params": {k: _raw_to_dict(v) for k, v in self.params.items()},
            "target": self.target if isinstance(self.target, str) else list(self.target),
        }
        if self.parallel is not None:
            data["parallel"] = self.parallel
        return data


@dataclass(frozen=True)
class CompoundPolicyDescriptor:
    """A combination of two or more descriptors under allOf / anyOf."""

    method: PolicyMethod
    target: tuple[Descriptor, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "target", tuple(self.target))

    def to_dict(self) -> dict[str, Any]:
        """Convert to the external dict shape."""
        return {
            "method": self.method.value,
            "target": [t.to_dict() for t in self.target],
        }


@dataclass(frozen=True)
class NopDescriptor:
    """A descriptor that always passes."""

    method: str = NOP_METHOD

    def to_dict(self) -> dict[str, Any]:
        """Convert to the external dict shape."""
        return {"method": NOP_METHOD}


Descriptor = Union[PolicyDescriptor, CompoundPolicyDescriptor, NopDescriptor]
