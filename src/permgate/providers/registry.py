"""
Capability registry for permgate.

The registry stores provider descriptors, keyed by namespace and name. A
provider is a mapping of capabilities:

    {
        "is_logged_in": is_logged_in,        # validation
        "owns_post": owns_post,              # validation
        "before": load_session,              # lifecycle hook (reserved)
        "params": check_params,              # lifecycle hook (reserved)
        "_params": {"user": "req.session.user", "post_id": "?id"},
        "_parallel": True,
    }

Every callable entry whose key is not a reserved lifecycle name or a
configuration key becomes a validation, in insertion order.

Design:
    - One Registry instance per application, injected where needed
    - Multiple registries for testing/isolation
    - No internal locking: register/unregister races must be serialized by the caller
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Iterator, Mapping

from permgate.errors import (
    DuplicateProviderError,
    InvalidParameterError,
    ParameterTypeError,
    ProviderShapeError,
    UnknownNamespaceError,
    UnknownSchemeError,
    UnknownValidationError,
    describe_value,
)
from permgate.policy.descriptor import (
    DEFAULT_NAMESPACE,
    WILDCARD,
    CompoundPolicyDescriptor,
    Descriptor,
    NopDescriptor,
    ParameterDefinition,
    PolicyDescriptor,
    check_name,
    has_valid_prefix,
    qualified_name,
)

logger = logging.getLogger(__name__)

RESERVED_HOOKS = ("before", "after", "params", "error")
PARAMS_KEY = "_params"
PARALLEL_KEY = "_parallel"
CONFIG_KEYS = (PARAMS_KEY, PARALLEL_KEY)


@dataclass(frozen=True)
class ProviderDescriptor:
    """
    A registered provider.

    Attributes:
        name: Name the provider was registered under (the scheme)
        namespace: Namespace the provider lives in
        validation_names: Ordered, unique validation names
        capabilities: Validation name -> callable
        default_params: Parameter name -> default definition
        parallel_default: Whether validations run concurrently by default
        provider: The registered mapping (read-only copy)
    """

    name: str
    namespace: str
    validation_names: tuple[str, ...]
    capabilities: Mapping[str, Callable[..., Any]]
    default_params: Mapping[str, ParameterDefinition]
    parallel_default: bool
    provider: Mapping[str, Any]

    @property
    def qualified_name(self) -> str:
        return qualified_name(self.namespace, self.name)

    def hook(self, name: str) -> Callable[..., Any] | None:
        """Return a lifecycle hook if the provider defines one."""
        fn = self.provider.get(name)
        return fn if callable(fn) else None


def _normalize_namespace(namespace: str | None) -> str:
    if not isinstance(namespace, str) or not namespace:
        return DEFAULT_NAMESPACE
    return namespace


class Registry:
    """
    Registry for looking up providers by namespace and name.

    Attributes:
        _namespaces: namespace -> (name -> ProviderDescriptor)
    """

    def __init__(self) -> None:
        """Initialize a registry holding only the empty default namespace."""
        self._namespaces: dict[str, dict[str, ProviderDescriptor]] = {DEFAULT_NAMESPACE: {}}

    def register(
        self,
        provider: Mapping[str, Any],
        name: str,
        namespace: str | None = None,
    ) -> None:
        """
        Register a provider under the given name and namespace.

        Args:
            provider: Mapping of capabilities, hooks and configuration keys
            name: Name the provider is registered under
            namespace: Namespace to register in; defaults to "global"

        Raises:
            InvalidNameError: If name or namespace is empty, not a string or contains ':'
            ProviderShapeError: If provider is not a mapping
            ParameterTypeError: If a `_params` entry is not a string
            InvalidParameterError: If a `_params` entry has an unknown prefix
            DuplicateProviderError: If (namespace, name) is already taken
        """
        if not isinstance(provider, Mapping):
            raise ProviderShapeError(provider=provider)
        check_name("scheme", name)
        if namespace is not None and namespace != "":
            check_name("namespace", namespace)
        namespace = _normalize_namespace(namespace)

        default_params = self._parse_default_params(provider, name, namespace)

        providers = self._namespaces.setdefault(namespace, {})
        if name in providers:
            raise DuplicateProviderError(name=name, namespace=namespace)

        capabilities = {
            key: fn
            for key, fn in provider.items()
            if callable(fn) and key not in RESERVED_HOOKS and key not in CONFIG_KEYS
        }
        providers[name] = ProviderDescriptor(
            name=name,
            namespace=namespace,
            validation_names=tuple(capabilities),
            capabilities=MappingProxyType(capabilities),
            default_params=MappingProxyType(default_params),
            parallel_default=bool(provider.get(PARALLEL_KEY, False)),
            provider=MappingProxyType(dict(provider)),
        )
        logger.debug(
            "Registered provider %s with validations %s",
            qualified_name(namespace, name),
            list(capabilities),
        )

    @staticmethod
    def _parse_default_params(
        provider: Mapping[str, Any],
        name: str,
        namespace: str,
    ) -> dict[str, ParameterDefinition]:
        raw_params = provider.get(PARAMS_KEY)
        if raw_params is None:
            return {}
        if not isinstance(raw_params, Mapping):
            raise ProviderShapeError(
                provider=raw_params,
                message=(
                    f'The provider definition "{name}" in namespace "{namespace}" has an '
                    f"invalid {PARAMS_KEY} entry. Expected a mapping, but instead found: "
                    f"{describe_value(raw_params)}"
                ),
            )

        defaults: dict[str, ParameterDefinition] = {}
        for key, raw in raw_params.items():
            prefix = (
                f'The provider definition "{name}" in namespace "{namespace}" contains '
                f'an invalid {PARAMS_KEY} entry "{key}".'
            )
            if not isinstance(raw, str):
                raise ParameterTypeError(
                    parameter=key,
                    value=raw,
                    message=f"{prefix} Expected a string, but instead found: {describe_value(raw)}",
                )
            if not has_valid_prefix(raw):
                raise InvalidParameterError(
                    parameter=key,
                    value=raw,
                    message=(
                        f"{prefix} The string value must begin with one of '?', '$' or 'req.', "
                        f"but instead found: {describe_value(raw)}"
                    ),
                )
            defaults[key] = ParameterDefinition.parse(key, raw)
        return defaults

    def unregister(self, name: str, namespace: str | None = None) -> ProviderDescriptor | None:
        """
        Remove a provider from the registry.

        Returns:
            The removed ProviderDescriptor, or None if nothing was registered
        """
        namespace = _normalize_namespace(namespace)
        removed = self._namespaces.get(namespace, {}).pop(name, None)
        if removed is not None:
            logger.debug("Unregistered provider %s", removed.qualified_name)
        return removed

    def get(self, name: str, namespace: str | None = None) -> ProviderDescriptor:
        """
        Look up a provider.

        Raises:
            UnknownNamespaceError: If the namespace has never been registered into
            UnknownSchemeError: If no provider with that name is registered
        """
        namespace = _normalize_namespace(namespace)
        providers = self._namespaces.get(namespace)
        if providers is None:
            raise UnknownNamespaceError(namespace=namespace, available=self.namespaces())
        descriptor = providers.get(name)
        if descriptor is None:
            raise UnknownSchemeError(
                scheme=name,
                namespace=namespace,
                available=sorted(providers),
            )
        return descriptor

    def get_optional(self, name: str, namespace: str | None = None) -> ProviderDescriptor | None:
        """Look up a provider, returning None if not found."""
        return self._namespaces.get(_normalize_namespace(namespace), {}).get(name)

    def has(self, name: str, namespace: str | None = None) -> bool:
        """Check if a provider is registered."""
        return self.get_optional(name, namespace) is not None

    def namespaces(self) -> list[str]:
        """List known namespaces in sorted order."""
        return sorted(self._namespaces)

    def list_providers(self, namespace: str | None = None) -> list[str]:
        """List provider names of a namespace in sorted order."""
        return sorted(self._namespaces.get(_normalize_namespace(namespace), {}))

    def verify(self, descriptor: Descriptor) -> None:
        """
        Check that every scheme and named target of a descriptor exists.

        Useful once all providers are registered (e.g. at application start)
        to surface typos before the first request is evaluated.

        Raises:
            UnknownNamespaceError, UnknownSchemeError, UnknownValidationError
        """
        if isinstance(descriptor, NopDescriptor):
            return
        if isinstance(descriptor, CompoundPolicyDescriptor):
            for sub in descriptor.target:
                self.verify(sub)
            return
        if isinstance(descriptor, PolicyDescriptor):
            provider = self.get(descriptor.scheme, descriptor.namespace)
            targets = (descriptor.target,) if isinstance(descriptor.target, str) else descriptor.target
            for target in targets:
                if target != WILDCARD and target not in provider.capabilities:
                    raise UnknownValidationError(
                        validation=target,
                        scheme=descriptor.scheme,
                        namespace=descriptor.namespace,
                        available=list(provider.validation_names),
                    )

    def clear(self) -> None:
        """Remove all providers from the registry."""
        self._namespaces = {DEFAULT_NAMESPACE: {}}

    def __len__(self) -> int:
        """Return the number of registered providers across namespaces."""
        return sum(len(providers) for providers in self._namespaces.values())

    def __iter__(self) -> Iterator[ProviderDescriptor]:
        """Iterate over all registered providers."""
        for providers in self._namespaces.values():
            yield from providers.values()

    def __contains__(self, key: object) -> bool:
        """Check registration with `(namespace, name) in registry`."""
        if not isinstance(key, tuple) or len(key) != 2:
            return False
        namespace, name = key
        return self.get_optional(name, namespace) is not None

    def __repr__(self) -> str:
        """String representation of the registry."""
        names = ", ".join(p.qualified_name for p in self)
        return f"<Registry: [{names}]>"
