"""
Exception hierarchy for permgate.

All permgate exceptions inherit from PermgateError, allowing callers to catch
every permgate-specific exception with a single except clause.

Exception Categories:
    - Builder errors: misuse of the policy builder chain
    - Registry errors: bad provider shape, invalid names, duplicates, unknown names
    - Descriptor and context errors: malformed descriptors, unusable export fields
    - Loader errors: provider modules that cannot be imported

Every error here is a configuration error: it signals a programmer mistake,
is raised immediately, and is never caught inside permgate. Exceptions raised
by validation capabilities are not wrapped; they are recorded on the Result.
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Builder errors: 1xxx
ERROR_BUILDER_MISUSE = 1001
ERROR_BUILDER_FINALIZED = 1002
ERROR_PARAMETER_PREFIX = 1003
ERROR_PARAMETER_TYPE = 1004
ERROR_VALIDATION_NAME_TYPE = 1005
ERROR_EMPTY_TARGET = 1006
ERROR_COMPOUND_ARITY = 1007

# Registry errors: 2xxx
ERROR_PROVIDER_SHAPE = 2001
ERROR_PROVIDER_DUPLICATE = 2002
ERROR_UNKNOWN_NAMESPACE = 2003
ERROR_UNKNOWN_SCHEME = 2004
ERROR_UNKNOWN_VALIDATION = 2005
ERROR_INVALID_NAME = 2006

# Descriptor and context errors: 3xxx
ERROR_DESCRIPTOR_MALFORMED = 3001
ERROR_DESCRIPTOR_INVALID_METHOD = 3002
ERROR_EXPORT_CONTAINER = 3003

# Loader errors: 4xxx
ERROR_PROVIDER_LOAD = 4001


def describe_value(value: Any) -> str:
    """Render a value as ``(type) value`` for error messages."""
    return f"({type(value).__name__}) {value!r}"


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class PermgateError(Exception):
    """
    Base exception for all permgate errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


@dataclass
class ConfigurationError(PermgateError):
    """
    Base class for construction and configuration errors.

    These represent programmer mistakes (bad provider shape, misuse of the
    builder, unknown schemes). They propagate to the caller unmodified.
    """


# =============================================================================
# Builder Errors
# =============================================================================


@dataclass
class BuilderMisuseError(ConfigurationError):
    """Raised when a PolicyBuilder is constructed directly."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                "Policy builders should be created via the `PolicyBuilder.create(...)` "
                "factory, not the constructor!"
            )
        if self.code == 0:
            self.code = ERROR_BUILDER_MISUSE


@dataclass
class BuilderFinalizedError(ConfigurationError):
    """Raised when a terminal or parameter method is called on a finalized builder."""

    operation: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f'Attempted to call method "{self.operation}" of an already finalized '
                "policy builder. Only `.compile()` may be used at this point!"
            )
        if self.code == 0:
            self.code = ERROR_BUILDER_FINALIZED
        self.context["operation"] = self.operation


@dataclass
class InvalidParameterError(ConfigurationError):
    """Raised when a string parameter definition has an unknown prefix."""

    parameter: str = ""
    value: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f'Attempted to set parameter definition "{self.parameter}" to an invalid '
                f"string value {describe_value(self.value)}. String-type parameter definitions must "
                "start with one of: '?', '$' or 'req.'"
            )
        if self.code == 0:
            self.code = ERROR_PARAMETER_PREFIX
        if not self.suggestion:
            self.suggestion = "Use '?name' for request parameters, '$name' for cookies or 'req.a.b' for fields"
        self.context.update({
            "parameter": self.parameter,
            "value": self.value,
        })


@dataclass
class ParameterTypeError(ConfigurationError):
    """Raised when a parameter definition is neither a string nor a LiteralValue."""

    parameter: str = ""
    value: Any = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f'Attempted to set parameter definition "{self.parameter}" to an invalid '
                "value! Expected a string or LiteralValue, but instead found: "
                f"{describe_value(self.value)}"
            )
        if self.code == 0:
            self.code = ERROR_PARAMETER_TYPE
        if not self.suggestion:
            self.suggestion = "Wrap constant values in LiteralValue(...)"
        self.context.update({
            "parameter": self.parameter,
            "value_type": type(self.value).__name__,
        })


@dataclass
class ValidationNameTypeError(ConfigurationError):
    """Raised when a validation name passed to all_of/any_of is not a string."""

    value: Any = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                "Expected validation name of type string, but instead found: "
                f"{describe_value(self.value)}"
            )
        if self.code == 0:
            self.code = ERROR_VALIDATION_NAME_TYPE
        self.context["value_type"] = type(self.value).__name__


@dataclass
class EmptyTargetError(ConfigurationError):
    """Raised when all_of/any_of receive no validation names."""

    operation: str = ""
    alternative: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                "Expected at least one validation name passed for the "
                f"`.{self.operation}(...)` method, but received nothing instead! "
                f"To match against every validation, simply use the `.{self.alternative}()` method."
            )
        if self.code == 0:
            self.code = ERROR_EMPTY_TARGET
        self.context.update({
            "operation": self.operation,
            "alternative": self.alternative,
        })


@dataclass
class CompoundArityError(ConfigurationError):
    """Raised when a compound descriptor is built from fewer than two policies."""

    operation: str = ""
    count: int = 0

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            noun = "policy" if self.count == 1 else "policies"
            self.message = (
                "Expected at least two policies to be passed when creating a compound "
                f"policy with `{self.operation}(...)`, but found {self.count} {noun} "
                "passed instead."
            )
        if self.code == 0:
            self.code = ERROR_COMPOUND_ARITY
        self.context.update({
            "operation": self.operation,
            "count": self.count,
        })


# =============================================================================
# Registry Errors
# =============================================================================


@dataclass
class ProviderShapeError(ConfigurationError):
    """Raised when a provider is not a mapping of capabilities."""

    provider: Any = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                "Expected provider to be a mapping of capabilities, but instead found: "
                f"{describe_value(self.provider)}"
            )
        if self.code == 0:
            self.code = ERROR_PROVIDER_SHAPE
        self.context["provider_type"] = type(self.provider).__name__


@dataclass
class DuplicateProviderError(ConfigurationError):
    """Raised when (namespace, name) is already registered."""

    name: str = ""
    namespace: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                "Attempted to register a provider under already registered name "
                f'"{self.name}", in namespace "{self.namespace}".'
            )
        if self.code == 0:
            self.code = ERROR_PROVIDER_DUPLICATE
        if not self.suggestion:
            self.suggestion = "Unregister the existing provider first or pick another name"
        self.context.update({
            "name": self.name,
            "namespace": self.namespace,
        })


@dataclass
class UnknownNamespaceError(ConfigurationError):
    """Raised when a descriptor references a namespace with no providers."""

    namespace: str = ""
    available: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f'Failed to locate namespace "{self.namespace}". Registered namespaces: '
                f"{', '.join(self.available) or '(none)'}"
            )
        if self.code == 0:
            self.code = ERROR_UNKNOWN_NAMESPACE
        self.context.update({
            "namespace": self.namespace,
            "available": self.available,
        })


@dataclass
class UnknownSchemeError(ConfigurationError):
    """Raised when a descriptor references a scheme that is not registered."""

    scheme: str = ""
    namespace: str = ""
    available: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f'Failed to locate scheme "{self.scheme}" in namespace "{self.namespace}". '
                f"Schemes currently registered in this namespace: "
                f"{', '.join(self.available) or '(none)'}"
            )
        if self.code == 0:
            self.code = ERROR_UNKNOWN_SCHEME
        if not self.suggestion:
            self.suggestion = "Check the scheme name spelling or register the provider"
        self.context.update({
            "scheme": self.scheme,
            "namespace": self.namespace,
            "available": self.available,
        })


@dataclass
class UnknownValidationError(ConfigurationError):
    """Raised when a descriptor targets a validation the provider does not define."""

    validation: str = ""
    scheme: str = ""
    namespace: str = ""
    available: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f'Attempted to match against method "{self.validation}" with scheme '
                f'"{self.scheme}" (in namespace "{self.namespace}"), but no such '
                f"validation method exists! Available: {', '.join(self.available) or '(none)'}"
            )
        if self.code == 0:
            self.code = ERROR_UNKNOWN_VALIDATION
        self.context.update({
            "validation": self.validation,
            "scheme": self.scheme,
            "namespace": self.namespace,
            "available": self.available,
        })


@dataclass
class InvalidNameError(ConfigurationError):
    """Raised when a scheme or namespace name is empty or contains the separator."""

    kind: str = ""
    value: Any = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Expected {self.kind} name to be a non-empty string without ':', "
                f"but instead found: {describe_value(self.value)}"
            )
        if self.code == 0:
            self.code = ERROR_INVALID_NAME
        if not self.suggestion:
            self.suggestion = "':' separates namespace, scheme and validation in qualified names"
        self.context.update({
            "kind": self.kind,
            "value": repr(self.value),
        })


# =============================================================================
# Descriptor and Context Errors
# =============================================================================


@dataclass
class MalformedDescriptorError(ConfigurationError):
    """Raised when the evaluator receives something that is not a descriptor."""

    detail: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Received malformed policy descriptor! {self.detail}"
        if self.code == 0:
            self.code = ERROR_DESCRIPTOR_MALFORMED
        self.context["detail"] = self.detail


@dataclass
class InvalidMethodError(ConfigurationError):
    """Raised when a simple descriptor carries an unrecognized combinator."""

    method: Any = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Invalid method type found for policy: {describe_value(self.method)}. "
                'Expected one of: "all", "any", "allOf", or "anyOf".'
            )
        if self.code == 0:
            self.code = ERROR_DESCRIPTOR_INVALID_METHOD
        if not self.suggestion:
            self.suggestion = "Finalize the builder with all(), any(), all_of(...) or any_of(...) before compiling"
        self.context["method"] = repr(self.method)


@dataclass
class ExportContainerError(ConfigurationError):
    """Raised when the context's export attribute holds something other than a mapping."""

    attribute: str = ""
    value: Any = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f'Cannot attach provider exports: the request context field "{self.attribute}" '
                f"is already set to a non-mapping value {describe_value(self.value)}"
            )
        if self.code == 0:
            self.code = ERROR_EXPORT_CONTAINER
        if not self.suggestion:
            self.suggestion = "Rename the field or set EngineConfig.export_attribute to an unused name"
        self.context.update({
            "attribute": self.attribute,
            "value_type": type(self.value).__name__,
        })


# =============================================================================
# Loader Errors
# =============================================================================


@dataclass
class ProviderLoadError(ConfigurationError):
    """Raised when a provider module:function target cannot be loaded."""

    target: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to load providers from {self.target!r}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_PROVIDER_LOAD
        if not self.suggestion:
            self.suggestion = "Targets take the form 'package.module:function'"
        self.context.update({
            "target": self.target,
            "underlying_error": self.underlying_error,
        })
