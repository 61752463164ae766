"""
Unit tests for the policy builder and descriptors.

Tests cover:
- Factory-only construction
- Open / Finalized lifecycle
- Parameter overrides and the prefix mini-language
- Terminal methods and target normalization
- Compound helpers and the no-op descriptor
- Descriptor dict shapes
"""

from types import MappingProxyType
from typing import Any

import pytest

from permgate.errors import (
    BuilderFinalizedError,
    BuilderMisuseError,
    CompoundArityError,
    EmptyTargetError,
    InvalidNameError,
    InvalidParameterError,
    MalformedDescriptorError,
    ParameterTypeError,
    ValidationNameTypeError,
)
from permgate.policy import (
    BuilderState,
    CompoundPolicyDescriptor,
    LiteralValue,
    NopDescriptor,
    ParameterDefinition,
    ParameterSource,
    PolicyBuilder,
    PolicyDescriptor,
    PolicyMethod,
    all_of,
    any_of,
    none,
    qualified_name,
)


# =============================================================================
# Construction
# =============================================================================


class TestConstruction:
    """Tests for creating builders."""

    def test_constructor_is_rejected(self) -> None:
        """Direct construction raises a misuse error."""
        with pytest.raises(BuilderMisuseError) as exc_info:
            PolicyBuilder("user", "global")
        assert "PolicyBuilder.create" in exc_info.value.message

    def test_create_defaults_namespace(self) -> None:
        """No namespace means the default namespace."""
        builder = PolicyBuilder.create("user")
        assert builder.scheme == "user"
        assert builder.namespace == "global"

    def test_create_empty_namespace_is_default(self) -> None:
        """An empty namespace string is the default namespace."""
        assert PolicyBuilder.create("user", "").namespace == "global"

    def test_create_custom_namespace(self) -> None:
        """Explicit namespaces are kept."""
        assert PolicyBuilder.create("post", "blog").namespace == "blog"

    @pytest.mark.parametrize("scheme", ["blog:post", "", None, 3])
    def test_create_rejects_invalid_scheme(self, scheme: Any) -> None:
        """Scheme names must be non-empty strings without ':'."""
        with pytest.raises(InvalidNameError) as exc_info:
            PolicyBuilder.create(scheme)
        assert exc_info.value.kind == "scheme"

    def test_create_rejects_separator_in_namespace(self) -> None:
        """A namespace containing ':' could collide with another qualified scheme."""
        with pytest.raises(InvalidNameError) as exc_info:
            PolicyBuilder.create("post", "blog:admin")
        assert exc_info.value.kind == "namespace"
        assert "(str) 'blog:admin'" in exc_info.value.message

    def test_new_builder_is_open(self) -> None:
        """A fresh builder accepts parameters."""
        builder = PolicyBuilder.create("user")
        assert builder.state is BuilderState.OPEN
        assert not builder.is_finalized


# =============================================================================
# Parameters
# =============================================================================


class TestSetParameter:
    """Tests for parameter overrides."""

    @pytest.mark.parametrize("value", ["?id", "$sid", "req.session.user"])
    def test_prefixed_strings_accepted(self, value: str) -> None:
        """Request parameter, cookie and field path strings are accepted."""
        descriptor = PolicyBuilder.create("user").set_parameter("x", value).all().compile()
        assert descriptor.params["x"] == value

    def test_literal_accepted(self) -> None:
        """LiteralValue wraps constants."""
        descriptor = (
            PolicyBuilder.create("user").set_parameter("limit", LiteralValue(10)).all().compile()
        )
        assert descriptor.params["limit"] == LiteralValue(10)

    def test_returns_builder_for_chaining(self) -> None:
        """set_parameter returns the same builder."""
        builder = PolicyBuilder.create("user")
        assert builder.set_parameter("id", "?id") is builder

    def test_unknown_prefix_rejected(self) -> None:
        """A string without a known prefix raises."""
        with pytest.raises(InvalidParameterError) as exc_info:
            PolicyBuilder.create("user").set_parameter("id", "id")
        assert exc_info.value.parameter == "id"
        assert "'?', '$' or 'req.'" in exc_info.value.message
        assert "(str) 'id'" in exc_info.value.message

    def test_non_string_rejected(self) -> None:
        """Non-string, non-literal values raise, naming the type."""
        with pytest.raises(ParameterTypeError) as exc_info:
            PolicyBuilder.create("user").set_parameter("limit", 10)
        assert "(int) 10" in exc_info.value.message

    def test_later_override_wins(self) -> None:
        """Setting the same parameter twice keeps the last value."""
        descriptor = (
            PolicyBuilder.create("user")
            .set_parameter("id", "?id")
            .set_parameter("id", "$id")
            .all()
            .compile()
        )
        assert descriptor.params["id"] == "$id"

    def test_rejected_after_finalize(self) -> None:
        """Parameters cannot change once finalized."""
        builder = PolicyBuilder.create("user").all()
        with pytest.raises(BuilderFinalizedError) as exc_info:
            builder.set_parameter("id", "?id")
        assert exc_info.value.operation == "set_parameter"
        assert "Only `.compile()` may be used" in exc_info.value.message


# =============================================================================
# Terminal Methods
# =============================================================================


class TestTerminalMethods:
    """Tests for all / any / all_of / any_of."""

    def test_all_targets_wildcard(self) -> None:
        """all() compiles to target '*'."""
        descriptor = PolicyBuilder.create("user").all().compile()
        assert descriptor.method is PolicyMethod.ALL
        assert descriptor.target == "*"

    def test_any_targets_wildcard(self) -> None:
        """any() compiles to target '*'."""
        descriptor = PolicyBuilder.create("user").any().compile()
        assert descriptor.method is PolicyMethod.ANY
        assert descriptor.target == "*"

    def test_all_of_keeps_order_and_deduplicates(self) -> None:
        """Names are kept in order without duplicates."""
        descriptor = PolicyBuilder.create("user").all_of("b", "a", "b").compile()
        assert descriptor.method is PolicyMethod.ALL_OF
        assert descriptor.target == ("b", "a")

    def test_any_of(self) -> None:
        """any_of() records the names."""
        descriptor = PolicyBuilder.create("user").any_of("a", "c").compile()
        assert descriptor.method is PolicyMethod.ANY_OF
        assert descriptor.target == ("a", "c")

    def test_all_of_empty_points_to_all(self) -> None:
        """all_of() without names directs the caller to all()."""
        with pytest.raises(EmptyTargetError) as exc_info:
            PolicyBuilder.create("user").all_of()
        assert "`.all()`" in exc_info.value.message

    def test_any_of_empty_points_to_any(self) -> None:
        """any_of() without names directs the caller to any()."""
        with pytest.raises(EmptyTargetError) as exc_info:
            PolicyBuilder.create("user").any_of()
        assert "`.any()`" in exc_info.value.message

    def test_non_string_name_rejected(self) -> None:
        """Validation names must be strings."""
        with pytest.raises(ValidationNameTypeError) as exc_info:
            PolicyBuilder.create("user").all_of("a", 3)
        assert "(int) 3" in exc_info.value.message

    @pytest.mark.parametrize("method", ["all", "any"])
    def test_terminal_twice_rejected(self, method: str) -> None:
        """A second terminal call raises."""
        builder = PolicyBuilder.create("user").all()
        with pytest.raises(BuilderFinalizedError):
            getattr(builder, method)()

    def test_all_of_after_finalize_rejected(self) -> None:
        """Named terminals are also rejected once finalized."""
        builder = PolicyBuilder.create("user").any()
        with pytest.raises(BuilderFinalizedError) as exc_info:
            builder.all_of("a")
        assert exc_info.value.operation == "all_of"

    def test_finalize_changes_state(self) -> None:
        """Terminal methods finalize the builder."""
        builder = PolicyBuilder.create("user").any_of("a")
        assert builder.state is BuilderState.FINALIZED
        assert builder.is_finalized


# =============================================================================
# Compile and Parallel
# =============================================================================


class TestCompile:
    """Tests for compile() and parallel()."""

    def test_compile_is_idempotent(self) -> None:
        """Compiling twice yields equal descriptors."""
        builder = PolicyBuilder.create("user").set_parameter("id", "?id").all()
        assert builder.compile() == builder.compile()

    def test_compile_open_builder_has_no_method(self) -> None:
        """An open builder compiles with method None."""
        descriptor = PolicyBuilder.create("user").compile()
        assert descriptor.method is None

    def test_descriptor_is_frozen(self) -> None:
        """Descriptors cannot be mutated."""
        descriptor = PolicyBuilder.create("user").set_parameter("id", "?id").all().compile()
        assert isinstance(descriptor.params, MappingProxyType)
        with pytest.raises(TypeError):
            descriptor.params["id"] = "?other"  # type: ignore[index]
        with pytest.raises(AttributeError):
            descriptor.scheme = "other"  # type: ignore[misc]

    def test_descriptor_independent_of_builder(self) -> None:
        """Later builder changes do not leak into compiled descriptors."""
        builder = PolicyBuilder.create("user").set_parameter("id", "?id")
        early = builder.compile()
        builder.set_parameter("page", "?page")
        assert "page" not in early.params

    def test_parallel_defaults_to_none(self) -> None:
        """Without parallel() the provider default applies."""
        assert PolicyBuilder.create("user").all().compile().parallel is None

    def test_parallel_before_finalize(self) -> None:
        """parallel() is allowed while open."""
        descriptor = PolicyBuilder.create("user").parallel().all().compile()
        assert descriptor.parallel is True

    def test_parallel_after_finalize(self) -> None:
        """parallel() is allowed once finalized."""
        descriptor = PolicyBuilder.create("user").all().parallel(False).compile()
        assert descriptor.parallel is False


# =============================================================================
# Compound Helpers
# =============================================================================


class TestCompound:
    """Tests for all_of / any_of / none helpers."""

    def test_all_of_keeps_descriptors_in_order(self) -> None:
        """Target holds exactly the given descriptors."""
        first = PolicyBuilder.create("user").all().compile()
        second = PolicyBuilder.create("post").any().compile()
        compound = all_of(first, second)
        assert isinstance(compound, CompoundPolicyDescriptor)
        assert compound.method is PolicyMethod.ALL_OF
        assert compound.target == (first, second)

    def test_any_of_compiles_builders(self) -> None:
        """Builders passed in are compiled."""
        compound = any_of(PolicyBuilder.create("user").all(), PolicyBuilder.create("post").all())
        assert compound.method is PolicyMethod.ANY_OF
        assert all(isinstance(t, PolicyDescriptor) for t in compound.target)

    def test_nested_compound(self) -> None:
        """Compounds can contain compounds and no-ops."""
        inner = any_of(none(), PolicyBuilder.create("user").all())
        outer = all_of(inner, none())
        assert outer.target[0] is inner

    @pytest.mark.parametrize("count", [0, 1])
    def test_arity_enforced(self, count: int) -> None:
        """Fewer than two policies raises, counting what was passed."""
        policies = [PolicyBuilder.create("user").all().compile()] * count
        with pytest.raises(CompoundArityError) as exc_info:
            all_of(*policies)
        assert f"found {count} " in exc_info.value.message
        assert exc_info.value.count == count

    def test_any_of_arity_names_operation(self) -> None:
        """The error names the helper that was called."""
        with pytest.raises(CompoundArityError) as exc_info:
            any_of(none())
        assert "`any_of(...)`" in exc_info.value.message

    def test_non_descriptor_items_rejected(self) -> None:
        """Only descriptors and builders can be combined."""
        with pytest.raises(MalformedDescriptorError) as exc_info:
            all_of("a", "b")  # type: ignore[arg-type]
        assert "(str) 'a'" in exc_info.value.message

    def test_mixed_items_rejected(self) -> None:
        """A single bad item fails the whole compound."""
        with pytest.raises(MalformedDescriptorError):
            any_of(none(), {"method": "NOP"})  # type: ignore[arg-type]

    def test_none(self) -> None:
        """none() returns the no-op descriptor."""
        assert isinstance(none(), NopDescriptor)
        assert none().to_dict() == {"method": "NOP"}


# =============================================================================
# Descriptor Shapes
# =============================================================================


class TestDescriptorShapes:
    """Tests for descriptor dict shapes and parameter definitions."""

    def test_simple_to_dict(self) -> None:
        """Literal parameters serialize as {'value': x}."""
        descriptor = (
            PolicyBuilder.create("post", "blog")
            .set_parameter("id", "?id")
            .set_parameter("limit", LiteralValue(5))
            .all_of("owns")
            .compile()
        )
        assert descriptor.to_dict() == {
            "namespace": "blog",
            "scheme": "post",
            "method": "allOf",
            "params": {"id": "?id", "limit": {"value": 5}},
            "target": ["owns"],
        }

    def test_parallel_included_when_set(self) -> None:
        """parallel only appears once chosen."""
        data = PolicyBuilder.create("user").all().parallel().compile().to_dict()
        assert data["parallel"] is True
        assert data["target"] == "*"

    def test_compound_to_dict(self) -> None:
        """Compound dicts nest their targets."""
        compound = any_of(none(), PolicyBuilder.create("user").any())
        data = compound.to_dict()
        assert data["method"] == "anyOf"
        assert data["target"][0] == {"method": "NOP"}
        assert data["target"][1]["scheme"] == "user"

    def test_qualified_name_omits_default_namespace(self) -> None:
        """The default namespace is left out of qualified names."""
        assert qualified_name("global", "user", "is_admin") == "user:is_admin"
        assert qualified_name("blog", "post", "owns") == "blog:post:owns"
        assert qualified_name("blog", "post") == "blog:post"

    def test_equal_descriptors_hash_equal(self) -> None:
        """Equal descriptors hash alike and deduplicate in sets."""
        first = PolicyBuilder.create("user").set_parameter("id", "?id").all_of("A", "B").compile()
        second = PolicyBuilder.create("user").set_parameter("id", "?id").all_of("A", "B").compile()
        assert first == second
        assert hash(first) == hash(second)
        assert len({first, second}) == 1

    def test_params_affect_hash_key(self) -> None:
        """Descriptors differing only in parameters stay distinct in a set."""
        first = PolicyBuilder.create("user").set_parameter("id", "?id").all().compile()
        second = PolicyBuilder.create("user").set_parameter("id", "?uid").all().compile()
        assert len({first, second}) == 2

    def test_compound_descriptor_is_hashable(self) -> None:
        """Compounds over hashable descriptors can be dictionary keys."""
        compound = all_of(PolicyBuilder.create("user").all(), none())
        cache = {compound: "cached"}
        assert cache[all_of(PolicyBuilder.create("user").all(), none())] == "cached"

    @pytest.mark.parametrize(
        "raw,source,path",
        [
            ("?id", ParameterSource.REQUEST_PARAMETER, "id"),
            ("$sid", ParameterSource.COOKIE, "sid"),
            ("req.a.b", ParameterSource.FIELD_PATH, "req.a.b"),
        ],
    )
    def test_parse_definition(self, raw: str, source: ParameterSource, path: str) -> None:
        """Prefixes select the resolution source."""
        definition = ParameterDefinition.parse("p", raw)
        assert definition.source is source
        assert definition.path == path
        assert definition.to_raw() == raw

    def test_parse_literal_definition(self) -> None:
        """Literals carry their value."""
        definition = ParameterDefinition.parse("p", LiteralValue([1, 2]))
        assert definition.source is ParameterSource.LITERAL
        assert definition.value == [1, 2]
