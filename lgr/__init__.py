"""lgr: deterministic structured-value serializer."""

from .core import (
    CyclicStructureError,
    Float32,
    JSONMarshaler,
    JSONSyntaxError,
    MarshalError,
    MarshalerError,
    Serializer,
    SerializerConfig,
    Tag,
    TextMarshaler,
    TypeRegistry,
    UnsupportedTypeError,
    UnsupportedValueError,
    compact_bytes,
    find_project_root,
    json_field,
    load_config,
    marshal,
    valid,
)
from .core.logger import LogLevel, configure_logger, get_log_level, set_log_level
from .output import ReflectedEncoder, StructuredFormatter

__version__ = "0.1.0"

__all__ = [
    # Encoding
    "marshal",
    "Serializer",
    "TypeRegistry",
    # Scanner
    "valid",
    "compact_bytes",
    # Records and capabilities
    "Tag",
    "json_field",
    "JSONMarshaler",
    "TextMarshaler",
    "Float32",
    # Errors
    "MarshalError",
    "UnsupportedTypeError",
    "UnsupportedValueError",
    "CyclicStructureError",
    "MarshalerError",
    "JSONSyntaxError",
    # Config
    "SerializerConfig",
    "load_config",
    "find_project_root",
    # Logging
    "LogLevel",
    "configure_logger",
    "set_log_level",
    "get_log_level",
    # Output
    "ReflectedEncoder",
    "StructuredFormatter",
]
