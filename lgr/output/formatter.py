"""logging.Formatter that renders record fields through the serializer."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from ..core.config import LoggingConfig
from ..core.encoder import Serializer
from ..core.errors import MarshalError
from ..core.formatting import write_string

ENCODINGS = ("json", "console")

# Attributes every LogRecord carries; anything else on a record came from `extra=`
_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def _utc_iso(created: float) -> str:
    return datetime.fromtimestamp(created, timezone.utc).isoformat()


class StructuredFormatter(logging.Formatter):
    """
    Formats records as one line of structured output.

    ``json`` encoding emits a single object holding the timestamp, level,
    logger name, message and every ``extra`` field. ``console`` encoding emits
    the metadata tab-separated, followed by ``key=value`` pairs rendered in
    human-readable mode.

    A field whose value cannot be serialized is replaced by a ``<key>Error``
    field holding the error text, so the line is never lost.
    """

    def __init__(
        self,
        encoding: str = "json",
        time_key: str = "ts",
        serializer: Optional[Serializer] = None,
    ) -> None:
        super().__init__()
        if encoding not in ENCODINGS:
            raise ValueError(f"Unknown encoding {encoding!r}; expected one of {', '.join(ENCODINGS)}")
        self.encoding = encoding
        self.time_key = time_key
        if serializer is None:
            serializer = Serializer(human_readable=encoding == "console")
        self.serializer = serializer

    @classmethod
    def from_config(cls, config: LoggingConfig, serializer: Optional[Serializer] = None) -> StructuredFormatter:
        return cls(encoding=config.encoding, time_key=config.time_key, serializer=serializer)

    def extra_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        return {k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS and not k.startswith("_")}

    def render_field(self, key: str, value: Any) -> tuple[str, bytes]:
        """Serialize one field, falling back to ``<key>Error`` on failure."""
        try:
            return key, b"null" if value is None else self.serializer.marshal(value)
        except MarshalError as e:
            buf = bytearray()
            write_string(buf, str(e))
            return f"{key}Error", bytes(buf)

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if self.encoding == "console":
            return self._format_console(record, message)
        return self._format_json(record, message)

    def _format_json(self, record: logging.LogRecord, message: str) -> str:
        base: dict[str, Any] = {
            self.time_key: _utc_iso(record.created),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": message,
        }
        for k, v in self.extra_fields(record).items():
            # Core keys are never overridden by extras
            if k not in base:
                base[k] = v
        if record.exc_info:
            base["exception"] = self.formatException(record.exc_info)

        buf = bytearray(b"{")
        for i, (key, value) in enumerate(base.items()):
            name, encoded = self.render_field(key, value)
            if i:
                buf += b","
            write_string(buf, name)
            buf += b":"
            buf += encoded
        buf += b"}"
        return buf.decode("utf-8")

    def _format_console(self, record: logging.LogRecord, message: str) -> str:
        parts = [_utc_iso(record.created), record.levelname, record.name, message]
        line = "\t".join(parts)
        extras = self.extra_fields(record)
        if extras:
            pairs = []
            for key, value in extras.items():
                name, encoded = self.render_field(key, value)
                pairs.append(f"{name}={encoded.decode('utf-8')}")
            line += "\t" + " ".join(pairs)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line
