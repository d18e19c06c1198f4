"""Pytest configuration and fixtures for lgr tests."""

from __future__ import annotations

import os
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from lgr.core.encoder import Serializer
from lgr.core.registry import TypeRegistry


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def original_cwd() -> Generator[str, None, None]:
    """Save and restore the current working directory."""
    cwd = os.getcwd()
    yield cwd
    os.chdir(cwd)


@pytest.fixture
def registry() -> TypeRegistry:
    """Create a fresh TypeRegistry so cached strategies never leak between tests."""
    return TypeRegistry()


@pytest.fixture
def serializer(registry: TypeRegistry) -> Serializer:
    """Create a strict-mode Serializer backed by the test's own registry."""
    return Serializer(registry)


@pytest.fixture
def human_serializer(registry: TypeRegistry) -> Serializer:
    """Create a human-readable Serializer backed by the test's own registry."""
    return Serializer(registry, human_readable=True)
