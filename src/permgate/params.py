"""
Parameter resolution for permgate.

Before a provider's validations run, its parameters are pulled out of the
request context:

    1. Merge policy overrides over the provider's default definitions
    2. Call the provider's ``before(context, definitions, exports)`` hook
    3. Resolve each definition against the context
    4. Call the provider's ``params(context, resolved, exports)`` hook
    5. Freeze the exports and attach them to the context

Definition mini-language:
    ?name       request parameter, via ``context.param(name)``
    $name       cookie, via ``context.cookies[name]``
    req.a.b     field path, traversed from the context root (``req`` dropped)
    LiteralValue(x) / {"value": x}   constant

Hook failures are not caught here: they abort the enclosing policy.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import MutableMapping, Sequence
from types import MappingProxyType
from typing import Any, Callable, Mapping

from permgate.errors import ExportContainerError
from permgate.policy.descriptor import (
    ParameterDefinition,
    ParameterSource,
    ParameterValue,
)
from permgate.providers.registry import ProviderDescriptor

logger = logging.getLogger(__name__)

DEFAULT_EXPORT_ATTRIBUTE = "permissions"

_SCALARS = (str, bytes, int, float, bool)
_MISSING = object()


class RequestContext:
    """
    Minimal request object exposing the lookups permgate needs.

    Any object providing ``param(name)``, a ``cookies`` mapping and
    traversable fields works as a context; this class is a ready-made one
    for tests, the CLI and framework adapters.

    Example:
        ctx = RequestContext(params={"id": "7"}, cookies={"sid": "abc"},
                             session={"user": {"id": 7}})
        ctx.param("id")          # "7"
        ctx.session["user"]      # {"id": 7}
    """

    def __init__(
        self,
        params: Mapping[str, Any] | None = None,
        cookies: Mapping[str, Any] | None = None,
        **fields: Any,
    ) -> None:
        self.params: dict[str, Any] = dict(params or {})
        self.cookies: dict[str, Any] = dict(cookies or {})
        for name, value in fields.items():
            setattr(self, name, value)

    def param(self, name: str, default: Any = None) -> Any:
        """Look up a named request parameter."""
        return self.params.get(name, default)

    def __repr__(self) -> str:
        return f"<RequestContext params={sorted(self.params)} cookies={sorted(self.cookies)}>"


async def maybe_await(fn: Callable[..., Any], *args: Any) -> Any:
    """Call fn and await the result if it is awaitable."""
    result = fn(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def merge_definitions(
    overrides: Mapping[str, ParameterValue],
    defaults: Mapping[str, ParameterDefinition],
) -> list[ParameterDefinition]:
    """
    Merge overrides over defaults.

    Only names present in the defaults are kept; an override replaces the
    default definition entirely.
    """
    merged = []
    for name, default in defaults.items():
        if name in overrides:
            merged.append(ParameterDefinition.parse(name, overrides[name]))
        else:
            merged.append(default)
    return merged


def traverse(root: Any, path: str) -> Any:
    """
    Follow a dotted path from root, dropping the first segment.

    Mappings are indexed by key, sequences by integer segment, other objects
    by attribute. Missing or non-traversable segments yield None.
    """
    current = root
    for segment in path.split(".")[1:]:
        if current is None or isinstance(current, _SCALARS):
            return None
        if isinstance(current, Mapping):
            current = current.get(segment)
        elif isinstance(current, Sequence):
            if not segment.isdigit() or int(segment) >= len(current):
                return None
            current = current[int(segment)]
        else:
            current = getattr(current, segment, None)
    return current


def resolve_definition(context: Any, definition: ParameterDefinition) -> Any:
    """Resolve a single definition against the context."""
    if definition.source is ParameterSource.LITERAL:
        return definition.value
    if definition.source is ParameterSource.REQUEST_PARAMETER:
        return context.param(definition.path)
    if definition.source is ParameterSource.COOKIE:
        cookies = getattr(context, "cookies", None) or {}
        return cookies.get(definition.path)
    return traverse(context, definition.path)


def attach_exports(
    context: Any,
    key: str,
    exports: Mapping[str, Any],
    attribute: str = DEFAULT_EXPORT_ATTRIBUTE,
) -> Mapping[str, Any]:
    """
    Freeze exports and store them on the context under ``attribute[key]``.

    The container is created when missing. Other keys of the container and
    other fields of the context are left alone.

    Raises:
        ExportContainerError: If ``attribute`` already holds a non-mapping value
    """
    frozen = MappingProxyType(dict(exports))
    if isinstance(context, MutableMapping):
        container = context.get(attribute, _MISSING)
    else:
        container = getattr(context, attribute, _MISSING)
    if container is _MISSING:
        container = {}
        if isinstance(context, MutableMapping):
            context[attribute] = container
        else:
            setattr(context, attribute, container)
    elif not isinstance(container, MutableMapping):
        raise ExportContainerError(attribute=attribute, value=container)
    container[key] = frozen
    return frozen


async def resolve_parameters(
    context: Any,
    overrides: Mapping[str, ParameterValue],
    provider: ProviderDescriptor,
    export_key: str,
    export_attribute: str = DEFAULT_EXPORT_ATTRIBUTE,
) -> Mapping[str, Any]:
    """
    Resolve a provider's parameters for one evaluation.

    Args:
        context: The request context
        overrides: Parameter overrides from the policy descriptor
        provider: The provider whose defaults and hooks apply
        export_key: Key the frozen exports are attached under
        export_attribute: Context attribute holding all exports

    Returns:
        Read-only mapping of parameter name to resolved value
    """
    definitions = merge_definitions(overrides, provider.default_params)
    exports: dict[str, Any] = {}

    before = provider.hook("before")
    if before is not None:
        await maybe_await(before, context, definitions, exports)

    resolved = {d.name: resolve_definition(context, d) for d in definitions}

    params_hook = provider.hook("params")
    if params_hook is not None:
        await maybe_await(params_hook, context, resolved, exports)

    attach_exports(context, export_key, exports, export_attribute)
    logger.debug(
        "Resolved parameters %s for %s (exports: %s)",
        sorted(resolved),
        export_key,
        sorted(exports),
    )
    return MappingProxyType(resolved)
