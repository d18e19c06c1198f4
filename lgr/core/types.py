"""Core types: capabilities, field tags, numeric widths and encode options."""

from __future__ import annotations

import dataclasses
import math
import struct
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .encoder import EncodeState

EncodeStrategy = Callable[["EncodeState", Any], None]
"""A cached, shape-specific procedure writing one value into an EncodeState."""

TextConverter = Callable[[Any], str]

TAG_METADATA_KEY = "json"


@runtime_checkable
class JSONMarshaler(Protocol):
    """A type that emits its own encoded representation.

    The returned bytes are validated and compacted before being embedded, so
    a faulty implementation cannot corrupt the surrounding output.
    """

    def marshal_json(self) -> bytes | str: ...


@runtime_checkable
class TextMarshaler(Protocol):
    """A type that converts itself to text; the text is emitted as a string."""

    def marshal_text(self) -> bytes | str: ...


@dataclass(frozen=True)
class EncodeOptions:
    """Per-call formatting options."""

    # Escape <, > and & so the output can be embedded in HTML
    escape_html: bool = False
    # Render record members as `name: value` instead of `"name":value`
    human_readable: bool = False


@dataclass(frozen=True)
class Tag:
    """Serialization tag attached to a record member.

    Use it as field metadata (see ``json_field``) or as ``Annotated`` metadata:
    ``count: Annotated[int, Tag("n", omitempty=True)]``.
    """

    name: str = ""
    omitempty: bool = False
    skip: bool = False
    embed: bool = False

    @classmethod
    def parse(cls, text: str) -> Tag:
        """Parse a ``"name,opt1,opt2"`` tag string. ``"-"`` skips the member."""
        if text == "-":
            return cls(skip=True)
        name, _, opts = text.partition(",")
        options = set(opts.split(",")) if opts else set()
        return cls(
            name=name,
            omitempty="omitempty" in options,
            embed="embed" in options,
        )

    @classmethod
    def coerce(cls, value: Any) -> Tag | None:
        if isinstance(value, Tag):
            return value
        if isinstance(value, str):
            return cls.parse(value)
        return None


def json_field(
    name: str = "",
    *,
    omitempty: bool = False,
    skip: bool = False,
    embed: bool = False,
    **kwargs: Any,
) -> Any:
    """Declare a dataclass field with a serialization tag.

    Args:
        name: Emitted name; empty uses the attribute name
        omitempty: Omit the member when its value is empty
        skip: Never emit the member
        embed: Promote the members of a nested record into the enclosing one
        **kwargs: Forwarded to ``dataclasses.field`` (default, default_factory, ...)

    Returns:
        A ``dataclasses.Field`` carrying the tag in its metadata
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[TAG_METADATA_KEY] = Tag(name=name, omitempty=omitempty, skip=skip, embed=embed)
    return dataclasses.field(metadata=metadata, **kwargs)


def round_float32(value: float) -> float:
    """Round a float to the nearest single-precision value (overflow gives +/-inf)."""
    try:
        return struct.unpack("<f", struct.pack("<f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


class Float32(float):
    """A float stored at single precision.

    Encoding picks the shortest decimal that round-trips at 32 bits instead of
    64, so ``Float32(0.1)`` encodes as ``0.1``.
    """

    def __new__(cls, value: Any = 0.0) -> Float32:
        return super().__new__(cls, round_float32(float(value)))

    def __repr__(self) -> str:
        return f"Float32({float(self)!r})"


@dataclass(frozen=True)
class ShapeHint:
    """A strategy resolved ahead of time from a declared annotation.

    The strategy is only used for values whose exact type is ``expected``;
    anything else is dispatched on its runtime type.
    """

    expected: type
    strategy: EncodeStrategy
