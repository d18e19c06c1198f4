"""Tests for registry.py - strategy resolution and caching."""

from __future__ import annotations

import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Annotated, Any, Optional, Union

import pytest

from lgr.core.errors import MarshalerError, UnsupportedTypeError
from lgr.core.registry import IndirectStrategy, TypeRegistry


@dataclass
class Point:
    x: int
    y: int


@dataclass
class Node:
    name: str
    children: list[Node] = field(default_factory=list)


class Opaque:
    pass


def encode_opaque(state, value):
    state.buf += b'"opaque"'


class TestResolve:
    """Tests for TypeRegistry.resolve()."""

    def test_resolve_is_cached(self, registry):
        """Should return the same strategy object on every call."""
        assert registry.resolve(Point) is registry.resolve(Point)

    def test_registries_are_independent(self):
        """Should keep separate caches per registry."""
        first, second = TypeRegistry(), TypeRegistry()
        first.register(Opaque, encode_opaque)
        assert first.resolve(Opaque) is encode_opaque
        assert second.resolve(Opaque) is not encode_opaque

    def test_finished_strategy_replaces_placeholder(self, registry):
        """Should publish the real strategy once construction completes."""
        strategy = registry.resolve(Node)
        assert not isinstance(strategy, IndirectStrategy)

    def test_recursive_shape_resolves_container_annotation(self, registry):
        """Should resolve a self-referencing container annotation to a finished strategy."""
        registry.resolve(Node)
        children = registry.fields(Node)[1]
        assert children.hint is not None
        assert children.hint.expected is list
        element_strategy = registry.resolve(list[Node])
        assert not isinstance(element_strategy, IndirectStrategy)

    def test_failed_construction_is_withdrawn(self, registry, monkeypatch):
        """Should remove the placeholder so a later call can retry."""
        original = registry._new_strategy
        calls = []

        def flaky(shape):
            calls.append(shape)
            if len(calls) == 1:
                raise RuntimeError("boom")
            return original(shape)

        monkeypatch.setattr(registry, "_new_strategy", flaky)

        with pytest.raises(RuntimeError):
            registry.resolve(Point)
        assert Point not in registry._strategies

        strategy = registry.resolve(Point)
        assert registry.resolve(Point) is strategy

    def test_get_default_returns_singleton(self):
        """Should return the same default registry on multiple calls."""
        assert TypeRegistry.get_default() is TypeRegistry.get_default()


class TestRegister:
    """Tests for explicit registrations."""

    def test_register_before_use(self, registry):
        """Should use the registered strategy."""
        registry.register(Opaque, encode_opaque)
        assert registry.resolve(Opaque) is encode_opaque

    def test_register_after_resolution_raises(self, registry):
        """Should refuse to replace a published strategy."""
        registry.resolve(Opaque)
        with pytest.raises(ValueError, match="already been resolved"):
            registry.register(Opaque, encode_opaque)

    def test_register_text_after_resolution_raises(self, registry):
        """Should refuse a text converter for a resolved shape."""
        registry.resolve(Opaque)
        with pytest.raises(ValueError):
            registry.register_text(Opaque, str)

    def test_register_base_after_subclass_resolution_raises(self, registry):
        """Should refuse a base class registration that a resolved subclass would miss."""

        class Sub(Opaque):
            pass

        registry.resolve(Sub)
        with pytest.raises(ValueError, match="already been resolved"):
            registry.register(Opaque, encode_opaque)
        with pytest.raises(ValueError):
            registry.register_text(Opaque, str)

    def test_register_unrelated_after_alias_resolution(self, registry):
        """Should ignore resolved container aliases when checking registrations."""
        registry.resolve(list[int])
        registry.register(Opaque, encode_opaque)
        assert registry.resolve(Opaque) is encode_opaque

    def test_text_converter_lookup_follows_mro(self, registry):
        """Should find converters registered on a base class."""

        class Sub(Opaque):
            pass

        registry.register_text(Opaque, lambda v: "x")
        assert registry.text_converter(Sub) is not None


class TestHint:
    """Tests for TypeRegistry.hint()."""

    def test_plain_class(self, registry):
        """Should pre-resolve a concrete class."""
        hint = registry.hint(int)
        assert hint is not None
        assert hint.expected is int
        assert hint.strategy is registry.resolve(int)

    @pytest.mark.parametrize("annotation", [Optional[int], Union[int, None], Annotated[int, "meta"], int | None])
    def test_unwraps_optional_and_annotated(self, registry, annotation):
        """Should see through Optional and Annotated."""
        hint = registry.hint(annotation)
        assert hint is not None
        assert hint.expected is int

    def test_parametrized_containers(self, registry):
        """Should resolve parametrized builtin containers by their alias."""
        hint = registry.hint(dict[str, Point])
        assert hint is not None
        assert hint.expected is dict
        assert hint.strategy is registry.resolve(dict[str, Point])

    @pytest.mark.parametrize("annotation", [Any, int | str, "Forward", Sequence[int], None])
    def test_no_hint(self, registry, annotation):
        """Should return None when the annotation does not fix a single shape."""
        assert registry.hint(annotation) is None

    def test_unhashable_annotation(self, registry):
        """Should return None for annotations that cannot be cache keys."""
        assert registry.hint(list[Annotated[int, []]]) is None


class TestMappingKey:
    """Tests for mapping key canonicalization."""

    def test_canonical_keys(self, registry):
        """Should convert supported key types to their emitted text."""
        assert registry.mapping_key("a") == "a"
        assert registry.mapping_key(12) == "12"

    def test_bool_key_rejected(self, registry):
        """Should reject bool keys even though bool is an int."""
        with pytest.raises(UnsupportedTypeError):
            registry.mapping_key(True)

    def test_non_text_marshal_text_result_rejected(self, registry):
        """Should wrap a marshal_text result that is neither str nor bytes."""

        class Numbered:
            def marshal_text(self):
                return 7

        with pytest.raises(MarshalerError, match="expected bytes or str, got int"):
            registry.mapping_key(Numbered())

    def test_non_text_converter_result_rejected(self, registry):
        """Should wrap a registered converter that returns a non-string."""
        registry.register_text(Opaque, lambda v: 3)
        with pytest.raises(MarshalerError):
            registry.mapping_key(Opaque())

    def test_failing_converter_wrapped(self, registry):
        """Should wrap exceptions raised by a registered converter."""

        def explode(value):
            raise ValueError("nope")

        registry.register_text(Opaque, explode)
        with pytest.raises(MarshalerError) as exc_info:
            registry.mapping_key(Opaque())
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_bytes_key_text_decoded(self, registry):
        """Should accept bytes from marshal_text."""

        class Tagged:
            def marshal_text(self):
                return b"tag"

        assert registry.mapping_key(Tagged()) == "tag"


class TestIndirectStrategy:
    """Tests for the construction placeholder."""

    def test_waits_until_bound(self):
        """Should block callers until the real strategy is available."""
        placeholder = IndirectStrategy(int)
        seen = []

        caller = threading.Thread(target=placeholder, args=(None, 5))
        caller.start()
        time.sleep(0.05)
        assert seen == []

        placeholder.bind(lambda state, value: seen.append(value))
        caller.join(timeout=5)
        assert seen == [5]

    def test_abandoned_placeholder_re_resolves(self, registry):
        """Should resolve the shape again if construction was abandoned."""
        placeholder = IndirectStrategy(Opaque)
        registry.register(Opaque, encode_opaque)
        placeholder.abandon(registry)

        class State:
            buf = bytearray()

        state = State()
        placeholder(state, Opaque())
        assert bytes(state.buf) == b'"opaque"'

    def test_released_without_strategy_raises(self):
        """Should raise RuntimeError if released with neither a strategy nor a registry."""
        placeholder = IndirectStrategy(Opaque)
        placeholder._ready.set()
        with pytest.raises(RuntimeError, match="released without a strategy"):
            placeholder(None, Opaque())
