"""Error taxonomy for the serializer and the stream scanner."""

from __future__ import annotations

from typing import Any


class MarshalError(Exception):
    """Base class for every failure reported by ``marshal``."""


class UnsupportedTypeError(MarshalError):
    """Raised when a value's shape has no defined encoding (e.g. a callable)."""

    def __init__(self, type_: type) -> None:
        self.type = type_
        super().__init__(f"unsupported type: {_type_name(type_)}")


class UnsupportedValueError(MarshalError):
    """Raised when a value fits its shape but not the output format (NaN, +Inf)."""

    def __init__(self, value: Any, text: str) -> None:
        self.value = value
        self.text = text
        super().__init__(f"unsupported value: {text}")


class CyclicStructureError(MarshalError):
    """Raised when the same container is reached again while still being encoded."""

    def __init__(self, type_: type) -> None:
        self.type = type_
        super().__init__(f"encountered a cycle via {_type_name(type_)}")


class MarshalerError(MarshalError):
    """Raised when a ``marshal_json`` or ``marshal_text`` capability fails.

    The original exception is kept on ``err`` and chained as ``__cause__``.
    """

    def __init__(self, type_: type, err: BaseException, source_func: str = "marshal_json") -> None:
        self.type = type_
        self.err = err
        self.source_func = source_func
        super().__init__(f"error calling {source_func} for type {_type_name(type_)}: {err}")


class JSONSyntaxError(MarshalError, ValueError):
    """Malformed input found by the stream scanner.

    Attributes:
        msg: Description of the problem
        offset: Number of bytes read when the error was found
    """

    def __init__(self, msg: str, offset: int) -> None:
        self.msg = msg
        self.offset = offset
        super().__init__(msg)


def _type_name(type_: type) -> str:
    module = getattr(type_, "__module__", None)
    qualname = getattr(type_, "__qualname__", None) or repr(type_)
    if module in (None, "builtins"):
        return qualname
    return f"{module}.{qualname}"
