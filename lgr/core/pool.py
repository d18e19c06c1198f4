"""Reuse pool for per-call scratch objects (encode buffers, scanners)."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Generic, TypeVar

T = TypeVar("T")


class ObjectPool(Generic[T]):
    """
    Thread-safe free list of reusable objects.

    Each checked-out object is owned by one caller until it is returned. The
    reset hook runs before an object goes back into the pool, so pooled
    objects never carry state from one call into the next.
    """

    def __init__(
        self,
        factory: Callable[[], T],
        reset: Callable[[T], None] | None = None,
        max_size: int = 32,
    ) -> None:
        """
        Initialize the pool.

        Args:
            factory: Creates a new object when the pool is empty
            reset: Clears an object before it is returned to the pool
            max_size: Maximum number of idle objects kept
        """
        self._factory = factory
        self._reset = reset
        self._max_size = max_size
        self._items: list[T] = []
        self._lock = threading.Lock()

    def get(self) -> T:
        with self._lock:
            if self._items:
                return self._items.pop()
        return self._factory()

    def put(self, item: T) -> None:
        if self._reset is not None:
            self._reset(item)
        with self._lock:
            if len(self._items) < self._max_size:
                self._items.append(item)

    @contextmanager
    def checkout(self) -> Iterator[T]:
        """Borrow an object for the duration of a ``with`` block."""
        item = self.get()
        try:
            yield item
        finally:
            self.put(item)

    @property
    def idle_count(self) -> int:
        with self._lock:
            return len(self._items)
