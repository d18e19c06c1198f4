"""Output adapters: sink encoder and logging formatter."""

from .formatter import StructuredFormatter
from .reflected import ReflectedEncoder

__all__ = ["ReflectedEncoder", "StructuredFormatter"]
