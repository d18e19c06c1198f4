"""Value encoder entry points."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .cycle_guard import START_DETECTING_CYCLES_AFTER, CycleGuard
from .errors import UnsupportedValueError
from .pool import ObjectPool
from .registry import TypeRegistry
from .types import EncodeOptions, ShapeHint

if TYPE_CHECKING:
    from .config import SerializerConfig


class EncodeState:
    """Scratch state owned by a single ``marshal`` call."""

    __slots__ = ("buf", "registry", "options", "cycles")

    def __init__(self) -> None:
        self.buf = bytearray()
        self.registry: TypeRegistry = TypeRegistry.get_default()
        self.options = EncodeOptions()
        self.cycles = CycleGuard()

    def encode(self, value: Any, hint: ShapeHint | None = None) -> None:
        """Append the encoding of ``value``, using ``hint`` when it matches the runtime type."""
        if hint is not None and type(value) is hint.expected:
            hint.strategy(self, value)
        else:
            self.registry.resolve(type(value))(self, value)

    def reset(self) -> None:
        self.buf.clear()
        self.cycles.reset()


def _reset_state(state: EncodeState) -> None:
    state.reset()


_state_pool: ObjectPool[EncodeState] = ObjectPool(EncodeState, reset=_reset_state)


class Serializer:
    """
    Encodes arbitrary values to bytes.

    A serializer is immutable once constructed and may be shared between
    threads; each ``marshal`` call borrows its own ``EncodeState``.
    """

    def __init__(
        self,
        registry: TypeRegistry | None = None,
        *,
        escape_html: bool = False,
        human_readable: bool = False,
        cycle_check_depth: int = START_DETECTING_CYCLES_AFTER,
    ) -> None:
        """
        Initialize the serializer.

        Args:
            registry: Strategy cache to use (defaults to the process-wide registry)
            escape_html: Escape <, > and & in strings
            human_readable: Emit record member names unquoted as ``name: value``
            cycle_check_depth: Nesting depth after which cycle tracking starts

        Raises:
            TypeError: If ``cycle_check_depth`` is not an int
        """
        if not isinstance(cycle_check_depth, int) or isinstance(cycle_check_depth, bool):
            raise TypeError(f"cycle_check_depth must be int, got {type(cycle_check_depth).__name__}")
        self.registry = registry or TypeRegistry.get_default()
        self.options = EncodeOptions(escape_html=escape_html, human_readable=human_readable)
        self.cycle_check_depth = cycle_check_depth

    @classmethod
    def from_config(cls, config: SerializerConfig, registry: TypeRegistry | None = None) -> Serializer:
        return cls(
            registry,
            escape_html=config.escape_html,
            human_readable=config.human_readable,
            cycle_check_depth=config.cycle_check_depth,
        )

    def marshal(self, value: Any) -> bytes:
        """
        Encode ``value``.

        Returns:
            The UTF-8 encoding

        Raises:
            MarshalError: If any part of the value cannot be encoded; no
                partial output is returned
        """
        with _state_pool.checkout() as state:
            state.registry = self.registry
            state.options = self.options
            state.cycles.threshold = self.cycle_check_depth
            try:
                state.encode(value)
            except RecursionError:
                state.cycles.clear()
                raise UnsupportedValueError(value, "exceeded max depth") from None
            return bytes(state.buf)


def marshal(
    value: Any,
    *,
    escape_html: bool = False,
    human_readable: bool = False,
    registry: TypeRegistry | None = None,
) -> bytes:
    """Encode ``value`` with a one-off Serializer; see ``Serializer.marshal``."""
    return Serializer(registry, escape_html=escape_html, human_readable=human_readable).marshal(value)
