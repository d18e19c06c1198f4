"""Per-shape cache of encode strategies and record field lists.

Strategies are resolved lazily the first time a shape is encoded. A shape
whose construction needs itself (``Node.children: list[Node]``) receives an
``IndirectStrategy`` placeholder that forwards to the real strategy once it
has been built.
"""

from __future__ import annotations

import datetime
import logging
import threading
import types
import uuid
from collections.abc import Mapping, Sequence, Set
from decimal import Decimal
from enum import Enum
from pathlib import PurePath
from typing import Annotated, Any, Union, get_args, get_origin

from . import strategies
from .errors import MarshalerError, UnsupportedTypeError
from .fields import FieldDescriptor, is_record, type_fields
from .types import EncodeStrategy, Float32, JSONMarshaler, ShapeHint, TextConverter, TextMarshaler

logger = logging.getLogger(__name__)

_CONTAINER_ORIGINS = frozenset({list, tuple, set, frozenset, dict})


class IndirectStrategy:
    """
    Placeholder published while a shape's strategy is being built.

    Callers that obtained the placeholder block until construction finishes,
    then forward to the real strategy. If construction failed, the shape is
    resolved again on use.
    """

    __slots__ = ("shape", "_ready", "_target", "_registry")

    def __init__(self, shape: Any) -> None:
        self.shape = shape
        self._ready = threading.Event()
        self._target: EncodeStrategy | None = None
        self._registry: TypeRegistry | None = None

    def bind(self, target: EncodeStrategy) -> None:
        self._target = target
        self._ready.set()

    def abandon(self, registry: TypeRegistry) -> None:
        self._registry = registry
        self._ready.set()

    def __call__(self, state: Any, value: Any) -> None:
        self._ready.wait()
        target = self._target
        if target is None:
            if self._registry is None:
                raise RuntimeError(f"placeholder for {self.shape!r} released without a strategy")
            target = self._registry.resolve(self.shape)
        target(state, value)

    def __repr__(self) -> str:
        return f"IndirectStrategy({self.shape!r}, ready={self._ready.is_set()})"


def _lookup_mro(table: dict[type, Any], cls: type) -> Any:
    for klass in cls.__mro__:
        found = table.get(klass)
        if found is not None:
            return found
    return None


def _key_text(key: Any, text: Any) -> str:
    if isinstance(text, str):
        return text
    if isinstance(text, (bytes, bytearray)):
        return bytes(text).decode("utf-8", errors="surrogateescape")
    err = TypeError(f"expected bytes or str, got {type(text).__name__}")
    raise MarshalerError(type(key), err, "marshal_text")


def _unwrap(annotation: Any) -> Any:
    """Strip Annotated and Optional; None when the annotation names several types."""
    while True:
        origin = get_origin(annotation)
        if origin is Annotated:
            annotation = get_args(annotation)[0]
        elif origin is Union or origin is types.UnionType:
            args = [a for a in get_args(annotation) if a is not type(None)]
            if len(args) != 1:
                return None
            annotation = args[0]
        else:
            return annotation


class TypeRegistry:
    """
    Cache of encode strategies keyed by shape.

    A shape is a class, or a parametrized container annotation such as
    ``list[Node]``. Entries are published once and never replaced except for
    the swap from placeholder to finished strategy.
    """

    _default: TypeRegistry | None = None
    _default_lock = threading.Lock()

    def __init__(self) -> None:
        self._strategies: dict[Any, EncodeStrategy] = {}
        self._fields: dict[type, tuple[FieldDescriptor, ...]] = {}
        self._custom: dict[type, EncodeStrategy] = {}
        self._text_converters: dict[type, TextConverter] = {
            datetime.datetime: datetime.datetime.isoformat,
            datetime.date: datetime.date.isoformat,
            datetime.time: datetime.time.isoformat,
            uuid.UUID: str,
            PurePath: str,
        }

    @classmethod
    def get_default(cls) -> TypeRegistry:
        """Get the process-wide registry used by the module-level ``marshal``."""
        if cls._default is None:
            with cls._default_lock:
                if cls._default is None:
                    cls._default = cls()
        return cls._default

    def register(self, shape: type, strategy: EncodeStrategy) -> None:
        """
        Use ``strategy`` for ``shape`` and its subclasses.

        Raises:
            ValueError: If ``shape`` or one of its subclasses has already been resolved
        """
        self._check_unresolved(shape)
        self._custom[shape] = strategy

    def register_text(self, shape: type, to_text: TextConverter) -> None:
        """Encode ``shape`` (and subclasses) as the string returned by ``to_text``."""
        self._check_unresolved(shape)
        self._text_converters[shape] = to_text

    def _check_unresolved(self, shape: type) -> None:
        for resolved in list(self._strategies):
            if not isinstance(resolved, type) or isinstance(resolved, types.GenericAlias):
                continue
            if issubclass(resolved, shape):
                raise ValueError(f"{resolved!r} has already been resolved; register {shape!r} before first use")

    def text_converter(self, cls: type) -> TextConverter | None:
        return _lookup_mro(self._text_converters, cls)

    def resolve(self, shape: Any) -> EncodeStrategy:
        """
        Get the strategy for ``shape``, building and publishing it on first use.

        Args:
            shape: A class or a parametrized container annotation

        Returns:
            The cached strategy, or a placeholder if construction is in progress
        """
        strategy = self._strategies.get(shape)
        if strategy is not None:
            return strategy

        placeholder = IndirectStrategy(shape)
        existing = self._strategies.setdefault(shape, placeholder)
        if existing is not placeholder:
            return existing

        try:
            strategy = self._new_strategy(shape)
        except BaseException:
            if self._strategies.get(shape) is placeholder:
                del self._strategies[shape]
            placeholder.abandon(self)
            raise

        placeholder.bind(strategy)
        self._strategies[shape] = strategy
        logger.debug(f"Resolved encode strategy for {shape!r}")
        return strategy

    def fields(self, record_type: type) -> tuple[FieldDescriptor, ...]:
        """Get the encoded members of a record type, computing them once."""
        cached = self._fields.get(record_type)
        if cached is not None:
            return cached
        return self._fields.setdefault(record_type, type_fields(record_type, self))

    def hint(self, annotation: Any) -> ShapeHint | None:
        """
        Pre-resolve the strategy for a declared annotation.

        Returns:
            A ShapeHint, or None when the annotation does not pin down one shape
        """
        annotation = _unwrap(annotation)
        if annotation is None or annotation is Any:
            return None
        try:
            origin = get_origin(annotation)
            if origin is not None:
                if origin not in _CONTAINER_ORIGINS:
                    return None
                shape = annotation if get_args(annotation) else origin
                return ShapeHint(origin, self.resolve(shape))
            if isinstance(annotation, type):
                return ShapeHint(annotation, self.resolve(annotation))
        except TypeError:
            # Unhashable annotation metadata
            return None
        return None

    def mapping_key(self, key: Any) -> str:
        """
        Canonicalize a mapping key to the string it is emitted as.

        Raises:
            UnsupportedTypeError: For bool keys and key types without a text form
            MarshalerError: If a key's ``marshal_text`` or text converter fails or
                returns neither str nor bytes
        """
        if isinstance(key, str) and not isinstance(key, Enum):
            return str.__str__(key)
        if isinstance(key, TextMarshaler):
            try:
                text = key.marshal_text()
            except Exception as err:
                raise MarshalerError(type(key), err, "marshal_text") from err
            return _key_text(key, text)
        if isinstance(key, bool):
            raise UnsupportedTypeError(type(key))
        if isinstance(key, Enum):
            return self.mapping_key(key.value)
        if isinstance(key, int):
            return int.__repr__(key)
        converter = self.text_converter(type(key))
        if converter is not None:
            try:
                text = converter(key)
            except Exception as err:
                raise MarshalerError(type(key), err, "marshal_text") from err
            return _key_text(key, text)
        raise UnsupportedTypeError(type(key))

    def _new_strategy(self, shape: Any) -> EncodeStrategy:
        if not isinstance(shape, type):
            return self._alias_strategy(shape)

        custom = _lookup_mro(self._custom, shape)
        if custom is not None:
            return custom
        if issubclass(shape, JSONMarshaler):
            return strategies.encode_marshaler
        if issubclass(shape, TextMarshaler):
            return strategies.encode_text_marshaler
        converter = self.text_converter(shape)
        if converter is not None:
            return strategies.text_converter_strategy(converter)
        if issubclass(shape, Enum):
            return strategies.encode_enum
        if shape is type(None):
            return strategies.encode_null
        if issubclass(shape, bool):
            return strategies.encode_bool
        if issubclass(shape, Float32):
            return strategies.encode_float32
        if issubclass(shape, int):
            return strategies.encode_int
        if issubclass(shape, float):
            return strategies.encode_float
        if issubclass(shape, Decimal):
            return strategies.encode_decimal
        if issubclass(shape, str):
            return strategies.encode_str
        if issubclass(shape, (bytes, bytearray, memoryview)):
            return strategies.encode_bytes
        if is_record(shape):
            return strategies.record_strategy(self.fields(shape))
        if issubclass(shape, Mapping):
            return strategies.mapping_strategy(self.mapping_key)
        if issubclass(shape, Set):
            return strategies.set_strategy()
        if issubclass(shape, Sequence):
            return strategies.sequence_strategy()

        logger.debug(f"No encoding for {shape!r}")
        return strategies.unsupported_strategy(shape)

    def _alias_strategy(self, shape: Any) -> EncodeStrategy:
        origin = get_origin(shape)
        args = get_args(shape)
        if origin is list:
            return strategies.sequence_strategy(self.hint(args[0]) if args else None)
        if origin is tuple:
            if len(args) == 2 and args[1] is Ellipsis:
                return strategies.sequence_strategy(self.hint(args[0]))
            return strategies.tuple_strategy([self.hint(a) for a in args])
        if origin in (set, frozenset):
            return strategies.set_strategy(self.hint(args[0]) if args else None)
        if origin is dict:
            value_hint = self.hint(args[1]) if len(args) == 2 else None
            return strategies.mapping_strategy(self.mapping_key, value_hint)
        return strategies.encode_dynamic
