"""Encode strategies for each supported value shape.

Every strategy has the signature ``strategy(state, value)`` and appends the
encoding of ``value`` to ``state.buf``. Container and record strategies are
built by factories that close over the pre-resolved hints of their elements.
"""

from __future__ import annotations

import base64
from collections.abc import Callable, Sequence
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

from .errors import MarshalerError, UnsupportedTypeError, UnsupportedValueError
from .fields import MISSING, FieldDescriptor, is_empty_value
from .formatting import format_float, is_valid_number, write_string, write_string_bytes
from .scanner import compact
from .types import EncodeStrategy, ShapeHint, TextConverter

if TYPE_CHECKING:
    from .encoder import EncodeState


def encode_null(state: EncodeState, value: Any) -> None:
    state.buf += b"null"


def encode_bool(state: EncodeState, value: Any) -> None:
    state.buf += b"true" if value else b"false"


def encode_int(state: EncodeState, value: Any) -> None:
    state.buf += int.__repr__(value).encode("ascii")


def encode_float(state: EncodeState, value: Any) -> None:
    state.buf += format_float(value).encode("ascii")


def encode_float32(state: EncodeState, value: Any) -> None:
    state.buf += format_float(value, bits=32).encode("ascii")


def encode_decimal(state: EncodeState, value: Decimal) -> None:
    text = str(value)
    if not value.is_finite() or not is_valid_number(text):
        raise UnsupportedValueError(value, text)
    state.buf += text.encode("ascii")


def encode_str(state: EncodeState, value: Any) -> None:
    write_string(state.buf, str.__str__(value), state.options.escape_html)


def encode_bytes(state: EncodeState, value: Any) -> None:
    state.buf += b'"'
    state.buf += base64.b64encode(value)
    state.buf += b'"'


def encode_enum(state: EncodeState, value: Enum) -> None:
    state.encode(value.value)


def encode_dynamic(state: EncodeState, value: Any) -> None:
    """Dispatch on the runtime type; used for shapes that carry no static information."""
    state.encode(value)


def encode_marshaler(state: EncodeState, value: Any) -> None:
    """Embed the output of ``value.marshal_json()`` after validating and compacting it."""
    try:
        raw = value.marshal_json()
        if isinstance(raw, str):
            raw = raw.encode("utf-8")
        elif not isinstance(raw, (bytes, bytearray)):
            raise TypeError(f"marshal_json returned {type(raw).__name__}, expected bytes or str")
        compact(state.buf, raw, state.options.escape_html)
    except Exception as err:
        raise MarshalerError(type(value), err, "marshal_json") from err


def encode_text_marshaler(state: EncodeState, value: Any) -> None:
    """Emit the output of ``value.marshal_text()`` as a string."""
    try:
        text = value.marshal_text()
    except Exception as err:
        raise MarshalerError(type(value), err, "marshal_text") from err
    _write_text(state, value, text)


def text_converter_strategy(convert: TextConverter) -> EncodeStrategy:
    """Emit the result of a registered ``convert(value) -> str`` as a string."""

    def encode(state: EncodeState, value: Any) -> None:
        try:
            text = convert(value)
        except Exception as err:
            raise MarshalerError(type(value), err, "marshal_text") from err
        _write_text(state, value, text)

    return encode


def _write_text(state: EncodeState, value: Any, text: Any) -> None:
    if isinstance(text, str):
        write_string(state.buf, text, state.options.escape_html)
    elif isinstance(text, (bytes, bytearray)):
        write_string_bytes(state.buf, bytes(text), state.options.escape_html)
    else:
        err = TypeError(f"expected bytes or str, got {type(text).__name__}")
        raise MarshalerError(type(value), err, "marshal_text")


def unsupported_strategy(shape: Any) -> EncodeStrategy:
    def encode(state: EncodeState, value: Any) -> None:
        raise UnsupportedTypeError(type(value))

    return encode


def record_strategy(fields: Sequence[FieldDescriptor]) -> EncodeStrategy:
    """Encode a record as an object whose members follow ``fields`` order."""

    def encode(state: EncodeState, value: Any) -> None:
        tracked = state.cycles.enter(value)
        try:
            buf = state.buf
            buf += b"{"
            first = True
            for field in fields:
                member = field.lookup(value)
                if member is MISSING:
                    continue
                if field.omit_empty and is_empty_value(member):
                    continue
                if not first:
                    buf += b","
                first = False
                buf += field.key(state.options)
                state.encode(member, field.hint)
            buf += b"}"
        finally:
            state.cycles.leave(value, tracked)

    return encode


def sequence_strategy(element: ShapeHint | None = None) -> EncodeStrategy:
    """Encode an ordered sequence as an array."""

    def encode(state: EncodeState, value: Any) -> None:
        tracked = state.cycles.enter(value)
        try:
            state.buf += b"["
            for i, item in enumerate(value):
                if i:
                    state.buf += b","
                state.encode(item, element)
            state.buf += b"]"
        finally:
            state.cycles.leave(value, tracked)

    return encode


def tuple_strategy(positions: Sequence[ShapeHint | None]) -> EncodeStrategy:
    """Encode a fixed-size tuple, using a separate hint for each position."""

    def encode(state: EncodeState, value: Any) -> None:
        tracked = state.cycles.enter(value)
        try:
            state.buf += b"["
            for i, item in enumerate(value):
                if i:
                    state.buf += b","
                state.encode(item, positions[i] if i < len(positions) else None)
            state.buf += b"]"
        finally:
            state.cycles.leave(value, tracked)

    return encode


def set_strategy(element: ShapeHint | None = None) -> EncodeStrategy:
    """Encode an unordered set as an array sorted by the encoded elements."""

    def encode(state: EncodeState, value: Any) -> None:
        tracked = state.cycles.enter(value)
        try:
            buf = state.buf
            encoded = []
            for item in value:
                start = len(buf)
                state.encode(item, element)
                encoded.append(bytes(buf[start:]))
                del buf[start:]
            encoded.sort()
            buf += b"["
            buf += b",".join(encoded)
            buf += b"]"
        finally:
            state.cycles.leave(value, tracked)

    return encode


def mapping_strategy(key_text: Callable[[Any], str], element: ShapeHint | None = None) -> EncodeStrategy:
    """
    Encode a mapping as an object with keys in sorted order.

    Args:
        key_text: Canonicalizes a key to its emitted string
        element: Hint for the mapping's values
    """

    def encode(state: EncodeState, value: Any) -> None:
        tracked = state.cycles.enter(value)
        try:
            buf = state.buf
            html = state.options.escape_html
            separator = b": " if state.options.human_readable else b":"
            items = sorted(((key_text(k), v) for k, v in value.items()), key=lambda kv: kv[0])
            # Distinct keys such as 1 and "1" can share one emitted form
            for (key, _), (next_key, _) in zip(items, items[1:]):
                if key == next_key:
                    raise UnsupportedValueError(value, f"duplicate mapping key {key!r}")
            buf += b"{"
            for i, (key, item) in enumerate(items):
                if i:
                    buf += b","
                write_string(buf, key, html)
                buf += separator
                state.encode(item, element)
            buf += b"}"
        finally:
            state.cycles.leave(value, tracked)

    return encode
