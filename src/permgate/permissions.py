"""
Permissions facade.

Bundles one Registry and one Evaluator behind the surface applications use:

    perms = Permissions()
    perms.register({"is_admin": is_admin, "_params": {"user": "req.user"}}, "user")

    policy = perms.any_of(
        perms.for_scheme("user").all_of("is_admin"),
        perms.for_scheme("post", "blog").set_parameter("id", "?id").all(),
    )
    perms.verify(policy)
    result = await perms.evaluate(request, policy)

The registry is owned by the instance rather than the process, so tests and
applications can keep separate provider sets.
"""

from __future__ import annotations

from typing import Any, Mapping

from permgate.config import EngineConfig
from permgate.engine import Evaluator, Result
from permgate.policy import builder as _builder
from permgate.policy.builder import PolicyBuilder
from permgate.policy.descriptor import CompoundPolicyDescriptor, Descriptor, NopDescriptor
from permgate.providers.registry import ProviderDescriptor, Registry
from permgate.schema import parse_descriptor


class Permissions:
    """
    Entry point tying the builder factory, registry and evaluator together.

    Attributes:
        registry: Providers known to this instance
        evaluator: Evaluator bound to the registry
    """

    def __init__(
        self,
        registry: Registry | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        self.registry = registry if registry is not None else Registry()
        self.evaluator = Evaluator(self.registry, config)

    def for_scheme(self, scheme: str, namespace: str | None = None) -> PolicyBuilder:
        """Start building a policy against a registered scheme."""
        return PolicyBuilder.create(scheme, namespace)

    def all_of(self, *policies: Descriptor | PolicyBuilder) -> CompoundPolicyDescriptor:
        """Every given policy must pass."""
        return _builder.all_of(*policies)

    def any_of(self, *policies: Descriptor | PolicyBuilder) -> CompoundPolicyDescriptor:
        """At least one given policy must pass."""
        return _builder.any_of(*policies)

    def none(self) -> NopDescriptor:
        """A policy that always passes."""
        return _builder.none()

    def register(
        self,
        provider: Mapping[str, Any],
        name: str,
        namespace: str | None = None,
    ) -> None:
        """Register a provider (see Registry.register)."""
        self.registry.register(provider, name, namespace)

    def unregister(self, name: str, namespace: str | None = None) -> ProviderDescriptor | None:
        """Remove a provider, returning it or None."""
        return self.registry.unregister(name, namespace)

    def verify(self, policy: Descriptor | PolicyBuilder | Mapping[str, Any]) -> None:
        """Check that every scheme and named validation in a policy is registered."""
        if isinstance(policy, PolicyBuilder):
            policy = policy.compile()
        self.registry.verify(parse_descriptor(policy))

    async def evaluate(
        self,
        context: Any,
        policy: Descriptor | PolicyBuilder | Mapping[str, Any],
    ) -> Result:
        """Evaluate a policy against a request context."""
        return await self.evaluator.evaluate(context, policy)
