"""
Providers module for permgate.

A provider is a named set of validation capabilities plus optional lifecycle
hooks (``before``, ``params``) and default parameter definitions. Providers
are registered into a Registry under a namespace and name; policies refer to
them by that pair.

Architecture:
    - Registry: namespace -> name -> ProviderDescriptor
    - ProviderDescriptor: frozen view of a registered provider
    - load_providers: import ``module:function`` registration hooks
"""

from permgate.providers.loader import load_providers
from permgate.providers.registry import (
    RESERVED_HOOKS,
    ProviderDescriptor,
    Registry,
)

__all__ = [
    "RESERVED_HOOKS",
    "ProviderDescriptor",
    "Registry",
    "load_providers",
]
