"""
Evaluation engine for permgate.

The Evaluator matches a request context against a policy descriptor and
returns a Result. It coordinates between:
- Registry: providers looked up by (namespace, scheme)
- Parameter resolution: overrides merged over provider defaults, hooks run
- Validations: run sequentially or concurrently, outcomes aggregated

Evaluation Flow (simple descriptor):
    1. Look up the provider, expand '*' targets, de-duplicate
    2. Resolve parameters (before / params hooks may abort the policy)
    3. Run every targeted validation with (params, context)
    4. Record passed / failed / raised outcomes by target position
    5. Decide has_passed from the combinator

Compound descriptors evaluate their sub-descriptors concurrently and merge
the results; no-op descriptors pass immediately.

Design Principles:
    - Fail loudly on configuration mistakes, never guess
    - A raising validation fails its policy without hiding sibling outcomes
    - Same descriptor + context + deterministic validations = same outcome
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, NamedTuple

from permgate.config import EngineConfig
from permgate.errors import (
    InvalidMethodError,
    MalformedDescriptorError,
    UnknownValidationError,
    describe_value,
)
from permgate.params import maybe_await, resolve_parameters
from permgate.policy.builder import PolicyBuilder
from permgate.policy.descriptor import (
    COMPOUND_METHODS,
    WILDCARD,
    CompoundPolicyDescriptor,
    Descriptor,
    NopDescriptor,
    PolicyDescriptor,
    PolicyMethod,
    qualified_name,
)
from permgate.providers.registry import ProviderDescriptor, Registry
from permgate.schema import parse_descriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FailedValidation:
    """
    A validation that returned something other than True.

    Attributes:
        name: Qualified validation name ([namespace:]scheme:method)
        explanation: The returned value, or None when it was a boolean
    """

    name: str
    explanation: Any = None


@dataclass
class Result:
    """
    Outcome of evaluating a descriptor.

    Attributes:
        has_passed: Overall verdict
        passed_validations: Qualified names of validations that returned True
        failed_validations: Validations that returned anything else
        thrown_errors: Exceptions raised by validations
    """

    has_passed: bool
    passed_validations: list[str] = field(default_factory=list)
    failed_validations: list[FailedValidation] = field(default_factory=list)
    thrown_errors: list[Exception] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary (exceptions rendered as type + message)."""
        return {
            "has_passed": self.has_passed,
            "passed_validations": list(self.passed_validations),
            "failed_validations": [
                {"name": f.name, "explanation": f.explanation}
                for f in self.failed_validations
            ],
            "thrown_errors": [
                {"type": type(e).__name__, "message": str(e)}
                for e in self.thrown_errors
            ],
        }


class _Outcome(NamedTuple):
    value: Any = None
    error: Exception | None = None


class Evaluator:
    """
    Matches request contexts against policy descriptors.

    Usage:
        evaluator = Evaluator(registry)
        result = await evaluator.evaluate(request, descriptor)
        if not result.has_passed:
            # reject the request

    Attributes:
        registry: Providers available to descriptors
        config: Engine configuration
    """

    def __init__(self, registry: Registry, config: EngineConfig | None = None) -> None:
        self.registry = registry
        self.config = config or EngineConfig()

    async def evaluate(
        self,
        context: Any,
        descriptor: Descriptor | PolicyBuilder | Mapping[str, Any],
    ) -> Result:
        """
        Evaluate a descriptor against a request context.

        Args:
            context: The request context (see permgate.params.RequestContext)
            descriptor: A descriptor, a builder (compiled first) or a mapping
                in the external descriptor shape

        Returns:
            A fresh Result owned by the caller

        Raises:
            ConfigurationError: On malformed descriptors or unknown names
            Exception: Whatever a provider's before / params hook raised
        """
        descriptor = self._coerce(descriptor)

        if isinstance(descriptor, NopDescriptor):
            return Result(has_passed=True, passed_validations=[self.config.nop_marker])
        if isinstance(descriptor, CompoundPolicyDescriptor):
            return await self._evaluate_compound(context, descriptor)
        return await self._evaluate_simple(context, descriptor)

    def _coerce(self, descriptor: Any) -> Descriptor:
        if isinstance(descriptor, PolicyBuilder):
            return descriptor.compile()
        if isinstance(descriptor, (PolicyDescriptor, CompoundPolicyDescriptor, NopDescriptor)):
            return descriptor
        if isinstance(descriptor, Mapping):
            return parse_descriptor(descriptor)
        raise MalformedDescriptorError(
            detail=(
                "Expected a policy descriptor (as from `Permissions.for_scheme(...)`), "
                f"but received instead: {describe_value(descriptor)}"
            ),
        )

    # =========================================================================
    # Compound Evaluation
    # =========================================================================

    async def _evaluate_compound(
        self,
        context: Any,
        descriptor: CompoundPolicyDescriptor,
    ) -> Result:
        """
        Evaluate every sub-descriptor concurrently and merge the results.

        All sub-evaluations are awaited even if one raises; the first raised
        exception is then propagated.
        """
        if len(descriptor.target) < 2:
            raise MalformedDescriptorError(
                detail=(
                    "The `target` of a compound policy should contain at least two "
                    f"elements, but it contains just {len(descriptor.target)}."
                ),
            )
        if not isinstance(descriptor.method, PolicyMethod) or descriptor.method not in COMPOUND_METHODS:
            raise MalformedDescriptorError(
                detail=(
                    "Expected a compound `method` of either 'allOf' or 'anyOf', but "
                    f"instead found: {describe_value(descriptor.method)}"
                ),
            )

        targets: list[Descriptor] = []
        for target in descriptor.target:
            if target not in targets:
                targets.append(target)

        outcomes = await asyncio.gather(
            *(self.evaluate(context, target) for target in targets),
            return_exceptions=True,
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        sub_results: list[Result] = list(outcomes)

        merged = Result(has_passed=False)
        for sub in sub_results:
            for name in sub.passed_validations:
                if name not in merged.passed_validations:
                    merged.passed_validations.append(name)
            for failed in sub.failed_validations:
                if failed not in merged.failed_validations:
                    merged.failed_validations.append(failed)
            for error in sub.thrown_errors:
                if not any(error is seen for seen in merged.thrown_errors):
                    merged.thrown_errors.append(error)

        if descriptor.method is PolicyMethod.ALL_OF:
            merged.has_passed = all(sub.has_passed is True for sub in sub_results)
        elif descriptor.method is PolicyMethod.ANY_OF:
            merged.has_passed = any(sub.has_passed is True for sub in sub_results)
        else:
            raise InvalidMethodError(method=descriptor.method)

        return merged

    # =========================================================================
    # Simple Evaluation
    # =========================================================================

    async def _evaluate_simple(self, context: Any, descriptor: PolicyDescriptor) -> Result:
        """Evaluate one scheme's validations against the context."""
        if not isinstance(descriptor.method, PolicyMethod):
            raise InvalidMethodError(method=descriptor.method)

        provider = self.registry.get(descriptor.scheme, descriptor.namespace)
        targets = self._expand_targets(descriptor, provider)

        params = await resolve_parameters(
            context,
            descriptor.params,
            provider,
            export_key=descriptor.qualified_scheme,
            export_attribute=self.config.export_attribute,
        )

        run_parallel = (
            descriptor.parallel if descriptor.parallel is not None else provider.parallel_default
        )
        calls = [provider.capabilities[name] for name in targets]
        if run_parallel:
            outcomes = await self._run_concurrent(calls, params, context)
        else:
            outcomes = await self._run_sequential(calls, params, context)

        result = Result(has_passed=False)
        for name, outcome in zip(targets, outcomes):
            qualified = qualified_name(descriptor.namespace, descriptor.scheme, name)
            if outcome.error is not None:
                note = f"raised by validation {qualified}"
                if note not in getattr(outcome.error, "__notes__", ()):
                    outcome.error.add_note(note)
                logger.warning("Validation %s raised %r", qualified, outcome.error)
                result.thrown_errors.append(outcome.error)
            elif outcome.value is True:
                logger.debug("Validation %s passed", qualified)
                result.passed_validations.append(qualified)
            else:
                logger.debug("Validation %s failed: %r", qualified, outcome.value)
                explanation = None if isinstance(outcome.value, bool) else outcome.value
                result.failed_validations.append(
                    FailedValidation(name=qualified, explanation=explanation)
                )

        result.has_passed = self._decide(descriptor.method, result, len(targets))
        return result

    def _expand_targets(
        self,
        descriptor: PolicyDescriptor,
        provider: ProviderDescriptor,
    ) -> list[str]:
        """Expand '*' into the provider's validations and de-duplicate."""
        raw = descriptor.target
        if isinstance(raw, str):
            if raw != WILDCARD:
                raise MalformedDescriptorError(
                    detail=f"Expected `target` to be '*' or a list of names, but found: {raw!r}",
                )
            raw = (WILDCARD,)

        targets: list[str] = []
        for name in raw:
            expanded = provider.validation_names if name == WILDCARD else (name,)
            for candidate in expanded:
                if candidate not in provider.capabilities:
                    raise UnknownValidationError(
                        validation=candidate,
                        scheme=descriptor.scheme,
                        namespace=descriptor.namespace,
                        available=list(provider.validation_names),
                    )
                if candidate not in targets:
                    targets.append(candidate)
        return targets

    async def _call(
        self,
        fn: Callable[..., Any],
        params: Mapping[str, Any],
        context: Any,
    ) -> _Outcome:
        try:
            return _Outcome(value=await maybe_await(fn, params, context))
        except Exception as e:
            return _Outcome(error=e)

    async def _run_sequential(
        self,
        calls: list[Callable[..., Any]],
        params: Mapping[str, Any],
        context: Any,
    ) -> list[_Outcome]:
        """Run calls in order, each awaited before the next starts."""
        outcomes = []
        for fn in calls:
            outcomes.append(await self._call(fn, params, context))
        return outcomes

    async def _run_concurrent(
        self,
        calls: list[Callable[..., Any]],
        params: Mapping[str, Any],
        context: Any,
    ) -> list[_Outcome]:
        """Launch every call, then wait for all of them. Order matches calls."""
        return list(await asyncio.gather(*(self._call(fn, params, context) for fn in calls)))

    def _decide(self, method: PolicyMethod, result: Result, target_count: int) -> bool:
        """Apply the combinator to the collected outcomes."""
        if result.thrown_errors:
            return False
        if method in (PolicyMethod.ALL, PolicyMethod.ALL_OF):
            return len(result.passed_validations) == target_count and not result.failed_validations
        if method in (PolicyMethod.ANY, PolicyMethod.ANY_OF):
            return len(result.passed_validations) > 0
        raise InvalidMethodError(method=method)
