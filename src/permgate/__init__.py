"""
permgate - declarative permission policies for request pipelines.

Callers register providers (named sets of validation capabilities), build
immutable policy descriptors with a fluent builder, and evaluate them against
a request context to get a structured pass/fail Result with diagnostics.

Example usage:
    perms = Permissions()
    perms.register({"is_admin": lambda params, req: params["role"] == "admin",
                    "_params": {"role": "req.user.role"}}, "user")
    policy = perms.for_scheme("user").all()
    result = await perms.evaluate(request, policy)

    $ permgate check policy.yaml --provider myapp.permissions:register --context request.yaml
"""

__version__ = "0.1.0"
__author__ = "permgate Contributors"

from permgate.config import EngineConfig
from permgate.engine import Evaluator, FailedValidation, Result
from permgate.params import RequestContext
from permgate.permissions import Permissions
from permgate.policy import (
    CompoundPolicyDescriptor,
    LiteralValue,
    NopDescriptor,
    PolicyBuilder,
    PolicyDescriptor,
    PolicyMethod,
)
from permgate.providers import ProviderDescriptor, Registry

__all__ = [
    "__version__",
    "__author__",
    "CompoundPolicyDescriptor",
    "EngineConfig",
    "Evaluator",
    "FailedValidation",
    "LiteralValue",
    "NopDescriptor",
    "Permissions",
    "PolicyBuilder",
    "PolicyDescriptor",
    "PolicyMethod",
    "ProviderDescriptor",
    "Registry",
    "RequestContext",
    "Result",
]
