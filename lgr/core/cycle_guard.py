"""Reference-cycle detection for deep recursion."""

from __future__ import annotations

from typing import Any

from .errors import CyclicStructureError

# Nesting depth after which container identities start being tracked
START_DETECTING_CYCLES_AFTER = 200


class CycleGuard:
    """
    Tracks the containers on the active encoding path.

    Shallow values pay only a depth counter; identities are recorded once the
    depth passes ``threshold``, which keeps the common case cheap while still
    catching self-referencing structures long before the interpreter's
    recursion limit.
    """

    __slots__ = ("threshold", "level", "_seen")

    def __init__(self, threshold: int = START_DETECTING_CYCLES_AFTER) -> None:
        self.threshold = threshold
        self.level = 0
        self._seen: set[int] = set()

    def enter(self, value: Any) -> bool:
        """
        Register ``value`` before recursing into it.

        Returns:
            True if the identity was recorded and must be released by ``leave``

        Raises:
            CyclicStructureError: If ``value`` is already on the active path
        """
        level = self.level + 1
        if level <= self.threshold:
            self.level = level
            return False
        self.level = level
        key = id(value)
        if key in self._seen:
            self.level -= 1
            raise CyclicStructureError(type(value))
        self._seen.add(key)
        return True

    def leave(self, value: Any, tracked: bool) -> None:
        """Release ``value`` after its recursive call returned or raised."""
        self.level -= 1
        if tracked:
            self._seen.discard(id(value))

    @property
    def active(self) -> int:
        """Number of identities currently tracked."""
        return len(self._seen)

    def reset(self) -> None:
        if self._seen or self.level:
            raise RuntimeError("CycleGuard.leave should have emptied the tracking set on every exit path")

    def clear(self) -> None:
        """Drop all tracking state after a call was abandoned by RecursionError."""
        self.level = 0
        self._seen.clear()
