"""Core module for the lgr serializer."""

from .config import (
    LgrFileConfig,
    LoggingConfig,
    SerializerConfig,
    find_project_root,
    load_config,
    resolve_logging_config,
    resolve_serializer_config,
)
from .cycle_guard import START_DETECTING_CYCLES_AFTER, CycleGuard
from .encoder import EncodeState, Serializer, marshal
from .errors import (
    CyclicStructureError,
    JSONSyntaxError,
    MarshalError,
    MarshalerError,
    UnsupportedTypeError,
    UnsupportedValueError,
)
from .fields import FieldDescriptor, is_empty_value, is_record, type_fields
from .formatting import escape_string, format_float, is_valid_number
from .registry import IndirectStrategy, TypeRegistry
from .scanner import MAX_NESTING_DEPTH, Scanner, check_valid, compact, compact_bytes, valid
from .types import (
    EncodeOptions,
    EncodeStrategy,
    Float32,
    JSONMarshaler,
    ShapeHint,
    Tag,
    TextMarshaler,
    json_field,
)

__all__ = [
    # Encoding
    "Serializer",
    "EncodeState",
    "marshal",
    # Registry
    "TypeRegistry",
    "IndirectStrategy",
    "ShapeHint",
    "EncodeStrategy",
    # Records
    "FieldDescriptor",
    "type_fields",
    "is_record",
    "is_empty_value",
    "Tag",
    "json_field",
    # Capabilities and types
    "JSONMarshaler",
    "TextMarshaler",
    "Float32",
    "EncodeOptions",
    # Formatting
    "escape_string",
    "format_float",
    "is_valid_number",
    # Cycle detection
    "CycleGuard",
    "START_DETECTING_CYCLES_AFTER",
    # Scanner
    "Scanner",
    "valid",
    "check_valid",
    "compact",
    "compact_bytes",
    "MAX_NESTING_DEPTH",
    # Errors
    "MarshalError",
    "UnsupportedTypeError",
    "UnsupportedValueError",
    "CyclicStructureError",
    "MarshalerError",
    "JSONSyntaxError",
    # Config
    "SerializerConfig",
    "LoggingConfig",
    "LgrFileConfig",
    "load_config",
    "find_project_root",
    "resolve_serializer_config",
    "resolve_logging_config",
]
