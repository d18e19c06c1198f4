"""Tests for pool.py - reusable scratch objects."""

from __future__ import annotations

import pytest

from lgr.core.pool import ObjectPool


class TestObjectPool:
    """Tests for ObjectPool."""

    def test_creates_when_empty(self):
        """Should call the factory when no idle object exists."""
        created = []
        pool = ObjectPool(lambda: created.append(1) or bytearray())
        pool.get()
        assert created == [1]

    def test_reuses_returned_objects(self):
        """Should hand back a returned object."""
        pool = ObjectPool(bytearray)
        item = pool.get()
        pool.put(item)
        assert pool.get() is item

    def test_reset_runs_before_reuse(self):
        """Should reset objects when they are returned."""
        pool = ObjectPool(bytearray, reset=lambda b: b.clear())
        item = pool.get()
        item += b"dirty"
        pool.put(item)
        assert pool.get() == bytearray()

    def test_max_size_bounds_idle_objects(self):
        """Should drop objects beyond the idle limit."""
        pool = ObjectPool(bytearray, max_size=1)
        first, second = pool.get(), pool.get()
        pool.put(first)
        pool.put(second)
        assert pool.idle_count == 1

    def test_checkout_returns_object_on_error(self):
        """Should return the object to the pool even when the block raises."""
        pool = ObjectPool(bytearray)
        with pytest.raises(ValueError):
            with pool.checkout():
                raise ValueError("fail")
        assert pool.idle_count == 1
