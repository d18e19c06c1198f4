"""Writes fully encoded values to a caller-supplied sink."""

from __future__ import annotations

import io
from typing import IO, Any, Optional, Union

from ..core.encoder import Serializer

NULL_LITERAL = b"null"


class ReflectedEncoder:
    """
    Encodes arbitrary values onto a sink.

    The value is encoded completely before anything is written, so a failure
    never leaves a partial value on the sink.
    """

    def __init__(self, sink: Union[IO[bytes], IO[str]], serializer: Optional[Serializer] = None) -> None:
        self._sink = sink
        self._serializer = serializer or Serializer()
        self._text = isinstance(sink, io.TextIOBase)

    def encode_bytes(self, obj: Any) -> bytes:
        if obj is None:
            return NULL_LITERAL
        return self._serializer.marshal(obj)

    def encode(self, obj: Any) -> None:
        """
        Encode ``obj`` and write it to the sink.

        Raises:
            MarshalError: If the value cannot be encoded; nothing is written
        """
        data = self.encode_bytes(obj)
        if self._text:
            self._sink.write(data.decode("utf-8"))  # type: ignore[arg-type]
        else:
            self._sink.write(data)  # type: ignore[arg-type]
