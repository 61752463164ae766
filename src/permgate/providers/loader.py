"""
Load provider registrations from importable modules.

A target has the form ``package.module:function``. The function is called
with the Registry and is expected to call ``registry.register(...)`` for each
provider it contributes. This is how the CLI wires application providers in.
"""

from __future__ import annotations

import importlib
import logging

from permgate.errors import ProviderLoadError
from permgate.providers.registry import Registry

logger = logging.getLogger(__name__)


def load_providers(target: str, registry: Registry) -> None:
    """
    Import ``module:function`` and call it with the registry.

    Raises:
        ProviderLoadError: If the target is malformed, the module cannot be
            imported, or the attribute is missing or not callable
    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ProviderLoadError(target=target, underlying_error="expected 'module:function'")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ProviderLoadError(target=target, underlying_error=str(e)) from e

    register_fn = getattr(module, attr, None)
    if not callable(register_fn):
        raise ProviderLoadError(
            target=target,
            underlying_error=f"{module_name} has no callable attribute {attr!r}",
        )

    before = len(registry)
    register_fn(registry)
    logger.debug("Loaded %d provider(s) from %s", len(registry) - before, target)
