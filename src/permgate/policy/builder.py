"""
Fluent builder for policy descriptors.

A builder starts Open: parameter overrides may be set. Calling one of the
terminal methods (all, any, all_of, any_of) moves it to Finalized, after which
only ``compile()`` and ``parallel()`` are allowed. Finalization is one-way.

Usage:
    builder = PolicyBuilder.create("user")
    descriptor = (
        builder
        .set_parameter("user_id", "?id")
        .set_parameter("limit", LiteralValue(10))
        .all_of("is_logged_in", "owns_resource")
        .compile()
    )

Compound descriptors are built with the module-level ``all_of`` / ``any_of``
helpers, and ``none()`` returns the always-passing descriptor.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from permgate.errors import (
    BuilderFinalizedError,
    BuilderMisuseError,
    CompoundArityError,
    EmptyTargetError,
    MalformedDescriptorError,
    ValidationNameTypeError,
    describe_value,
)
from permgate.policy.descriptor import (
    DEFAULT_NAMESPACE,
    WILDCARD,
    CompoundPolicyDescriptor,
    Descriptor,
    NopDescriptor,
    ParameterDefinition,
    ParameterValue,
    PolicyDescriptor,
    PolicyMethod,
    check_name,
)

_FACTORY_TOKEN = object()


class BuilderState(str, Enum):
    """Lifecycle state of a PolicyBuilder."""

    OPEN = "open"
    FINALIZED = "finalized"


class PolicyBuilder:
    """
    Stateful chain that accumulates overrides and finalizes into a descriptor.

    Attributes:
        scheme: Registered provider name the policy targets
        namespace: Namespace the provider lives in
        state: Current BuilderState
    """

    def __init__(self, *args: Any, _token: object = None, **kwargs: Any) -> None:
        if _token is not _FACTORY_TOKEN:
            raise BuilderMisuseError()
        scheme, namespace = args
        self._scheme: str = scheme
        self._namespace: str = namespace
        self._params: dict[str, ParameterValue] = {}
        self._state = BuilderState.OPEN
        self._method: PolicyMethod | None = None
        self._target: str | tuple[str, ...] = ()
        self._parallel: bool | None = None

    @classmethod
    def create(cls, scheme: str, namespace: str | None = None) -> PolicyBuilder:
        """
        Create a new, open builder for the given scheme.

        Args:
            scheme: Name of a registered provider
            namespace: Namespace to search; empty or None means the default namespace

        Raises:
            InvalidNameError: If a name is empty, not a string or contains ':'
        """
        if namespace is None or namespace == "":
            namespace = DEFAULT_NAMESPACE
        return cls(
            check_name("scheme", scheme),
            check_name("namespace", namespace),
            _token=_FACTORY_TOKEN,
        )

    @property
    def scheme(self) -> str:
        return self._scheme

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def state(self) -> BuilderState:
        return self._state

    @property
    def is_finalized(self) -> bool:
        return self._state is BuilderState.FINALIZED

    def _ensure_open(self, operation: str) -> None:
        if self._state is BuilderState.FINALIZED:
            raise BuilderFinalizedError(operation=operation)

    def set_parameter(self, name: str, value: ParameterValue) -> PolicyBuilder:
        """
        Override a provider parameter definition.

        Args:
            name: Parameter name, as declared in the provider's defaults
            value: '?name', '$name', 'req.a.b' or a LiteralValue

        Raises:
            BuilderFinalizedError: If the builder is finalized
            InvalidParameterError: If a string value has an unknown prefix
            ParameterTypeError: If the value is neither a string nor a LiteralValue
        """
        self._ensure_open("set_parameter")
        ParameterDefinition.parse(name, value)
        self._params[name] = value
        return self

    def all(self) -> PolicyBuilder:
        """Finalize: every validation of the scheme must pass."""
        return self._finalize("all", PolicyMethod.ALL, WILDCARD)

    def any(self) -> PolicyBuilder:
        """Finalize: at least one validation of the scheme must pass."""
        return self._finalize("any", PolicyMethod.ANY, WILDCARD)

    def all_of(self, *validation_names: str) -> PolicyBuilder:
        """Finalize: every named validation must pass."""
        names = self._check_names("all_of", "all", validation_names)
        return self._finalize("all_of", PolicyMethod.ALL_OF, names)

    def any_of(self, *validation_names: str) -> PolicyBuilder:
        """Finalize: at least one named validation must pass."""
        names = self._check_names("any_of", "any", validation_names)
        return self._finalize("any_of", PolicyMethod.ANY_OF, names)

    def parallel(self, enabled: bool = True) -> PolicyBuilder:
        """
        Set the execution preference for the targeted validations.

        This is metadata rather than a terminal operation, so it may be called
        before or after finalization.
        """
        self._parallel = bool(enabled)
        return self

    def compile(self) -> PolicyDescriptor:
        """Return the frozen descriptor. Idempotent and always permitted."""
        return PolicyDescriptor(
            namespace=self._namespace,
            scheme=self._scheme,
            method=self._method,
            target=self._target,
            params=self._params,
            parallel=self._parallel,
        )

    def _check_names(
        self,
        operation: str,
        alternative: str,
        validation_names: tuple[Any, ...],
    ) -> tuple[str, ...]:
        self._ensure_open(operation)
        names: list[str] = []
        for name in validation_names:
            if not isinstance(name, str):
                raise ValidationNameTypeError(value=name)
            if name not in names:
                names.append(name)
        if not names:
            raise EmptyTargetError(operation=operation, alternative=alternative)
        return tuple(names)

    def _finalize(
        self,
        operation: str,
        method: PolicyMethod,
        target: str | tuple[str, ...],
    ) -> PolicyBuilder:
        self._ensure_open(operation)
        self._method = method
        self._target = target
        self._state = BuilderState.FINALIZED
        return self

    def __repr__(self) -> str:
        return (
            f"<PolicyBuilder {self._namespace}:{self._scheme} "
            f"[{self._state.value}] method={self._method and self._method.value}>"
        )


def _as_descriptor(policy: Descriptor | PolicyBuilder) -> Descriptor:
    if isinstance(policy, PolicyBuilder):
        return policy.compile()
    if not isinstance(policy, (PolicyDescriptor, CompoundPolicyDescriptor, NopDescriptor)):
        raise MalformedDescriptorError(
            detail=f"Compound policies combine descriptors or builders, got {describe_value(policy)}"
        )
    return policy


def _compound(
    operation: str,
    method: PolicyMethod,
    policies: tuple[Descriptor | PolicyBuilder, ...],
) -> CompoundPolicyDescriptor:
    if len(policies) < 2:
        raise CompoundArityError(operation=operation, count=len(policies))
    return CompoundPolicyDescriptor(
        method=method,
        target=tuple(_as_descriptor(p) for p in policies),
    )


def all_of(*policies: Descriptor | PolicyBuilder) -> CompoundPolicyDescriptor:
    """Combine policies so that every one of them must pass."""
    return _compound("all_of", PolicyMethod.ALL_OF, policies)


def any_of(*policies: Descriptor | PolicyBuilder) -> CompoundPolicyDescriptor:
    """Combine policies so that at least one of them must pass."""
    return _compound("any_of", PolicyMethod.ANY_OF, policies)


def none() -> NopDescriptor:
    """Return a policy that always passes, for routes needing no protection."""
    return NopDescriptor()
