"""Tests for config file loading functionality."""

import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from lgr.core.config import (
    LgrFileConfig,
    LoggingConfig,
    SerializerConfig,
    find_project_root,
    load_config,
    resolve_logging_config,
    resolve_serializer_config,
)


class TestFindProjectRoot(unittest.TestCase):
    """Test the find_project_root function."""

    def test_finds_project_root_with_pyproject_toml(self):
        """Should find project root when pyproject.toml exists."""
        with tempfile.TemporaryDirectory() as tmpdir:
            project_root = Path(tmpdir).resolve()
            (project_root / "pyproject.toml").touch()

            subdir = project_root / "src" / "myapp"
            subdir.mkdir(parents=True)

            original_cwd = os.getcwd()
            try:
                os.chdir(subdir)
                found_root = find_project_root()
                assert found_root is not None
                self.assertEqual(found_root.resolve(), project_root)
            finally:
                os.chdir(original_cwd)

    def test_finds_project_root_from_explicit_start(self):
        """Should walk up from the given start directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            project_root = Path(tmpdir).resolve()
            (project_root / "setup.py").touch()
            subdir = project_root / "pkg"
            subdir.mkdir()

            self.assertEqual(find_project_root(subdir), project_root)

    def test_returns_path_or_none_without_markers(self):
        """Should return None or a marker directory above the temp tree."""
        with tempfile.TemporaryDirectory() as tmpdir:
            subdir = Path(tmpdir) / "some" / "deep" / "path"
            subdir.mkdir(parents=True)

            found_root = find_project_root(subdir)
            # A marker higher up the real filesystem may still be found
            self.assertIsInstance(found_root, (Path, type(None)))


class TestLoadConfig(unittest.TestCase):
    """Test the load_config function."""

    def _write_config(self, project_root: Path, content: str) -> Path:
        (project_root / "pyproject.toml").touch()
        config_dir = project_root / ".lgr"
        config_dir.mkdir()
        path = config_dir / "config.yaml"
        path.write_text(content)
        return path

    def test_loads_valid_config_file(self):
        """Should load and parse a valid config file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            project_root = Path(tmpdir)
            self._write_config(
                project_root,
                """
serializer:
  escape_html: true
  human_readable: false
  cycle_check_depth: 50

logging:
  level: debug
  encoding: console
  time_key: time
""",
            )

            original_cwd = os.getcwd()
            try:
                os.chdir(project_root)
                config = load_config()

                self.assertIsInstance(config, LgrFileConfig)
                assert config is not None
                assert config.serializer is not None
                self.assertTrue(config.serializer.escape_html)
                self.assertFalse(config.serializer.human_readable)
                self.assertEqual(config.serializer.cycle_check_depth, 50)

                assert config.logging is not None
                self.assertEqual(config.logging.level, "debug")
                self.assertEqual(config.logging.encoding, "console")
                self.assertEqual(config.logging.time_key, "time")
                self.assertEqual(config.logging.name, "lgr")
            finally:
                os.chdir(original_cwd)

    def test_loads_explicit_path(self):
        """Should read the file given explicitly."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "custom.yaml"
            path.write_text("logging:\n  level: warn\n")

            config = load_config(path)
            assert config is not None
            assert config.logging is not None
            self.assertEqual(config.logging.level, "warn")
            self.assertIsNone(config.serializer)

    def test_returns_none_when_config_file_missing(self):
        """Should return None when config file doesn't exist."""
        with tempfile.TemporaryDirectory() as tmpdir:
            project_root = Path(tmpdir)
            (project_root / "pyproject.toml").touch()

            original_cwd = os.getcwd()
            try:
                os.chdir(project_root)
                self.assertIsNone(load_config())
            finally:
                os.chdir(original_cwd)

    def test_handles_empty_config_file(self):
        """Should return a config with no sections for an empty file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self._write_config(Path(tmpdir), "")
            config = load_config(path)

            assert config is not None
            self.assertIsNone(config.serializer)
            self.assertIsNone(config.logging)

    def test_ignores_unknown_keys(self):
        """Should drop keys the config classes do not define."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self._write_config(Path(tmpdir), "serializer:\n  escape_html: true\n  colour: red\n")
            with self.assertLogs("lgr.core.config", level="WARNING"):
                config = load_config(path)

            assert config is not None
            assert config.serializer is not None
            self.assertTrue(config.serializer.escape_html)

    def test_handles_invalid_yaml(self):
        """Should return None when YAML is invalid."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self._write_config(Path(tmpdir), "invalid: yaml: content: [")
            self.assertIsNone(load_config(path))

    def test_handles_non_mapping_section(self):
        """Should return None when a section is not a mapping."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self._write_config(Path(tmpdir), "serializer: [1, 2]\n")
            self.assertIsNone(load_config(path))

    def test_rejects_quoted_boolean(self):
        """Should return None when a flag is given as a quoted string."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self._write_config(Path(tmpdir), 'serializer:\n  escape_html: "false"\n')
            with self.assertLogs("lgr.core.config", level="WARNING"):
                self.assertIsNone(load_config(path))

    def test_rejects_quoted_depth(self):
        """Should return None when the cycle check depth is not an integer."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self._write_config(Path(tmpdir), 'serializer:\n  cycle_check_depth: "200"\n')
            with self.assertLogs("lgr.core.config", level="WARNING"):
                self.assertIsNone(load_config(path))

    def test_rejects_boolean_depth(self):
        """Should not accept a boolean where an integer is expected."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self._write_config(Path(tmpdir), "serializer:\n  cycle_check_depth: true\n")
            self.assertIsNone(load_config(path))

    def test_rejects_non_string_logging_value(self):
        """Should return None when a logging setting has the wrong type."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self._write_config(Path(tmpdir), "logging:\n  level: 10\n")
            self.assertIsNone(load_config(path))


class TestEnvironmentOverrides(unittest.TestCase):
    """Test the environment variable overrides."""

    def test_defaults_without_file_or_env(self):
        """Should fall back to built-in defaults."""
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertEqual(resolve_serializer_config(None), SerializerConfig())
            self.assertEqual(resolve_logging_config(None), LoggingConfig())

    def test_env_overrides_file_values(self):
        """Should let environment variables win over the file."""
        file_config = LgrFileConfig(
            serializer=SerializerConfig(escape_html=False, human_readable=True),
            logging=LoggingConfig(level="info"),
        )
        env = {"LGR_ESCAPE_HTML": "true", "LGR_HUMAN_READABLE": "0", "LGR_LOG_LEVEL": "DEBUG"}
        with mock.patch.dict(os.environ, env, clear=True):
            serializer = resolve_serializer_config(file_config)
            logging_config = resolve_logging_config(file_config)

        self.assertTrue(serializer.escape_html)
        self.assertFalse(serializer.human_readable)
        self.assertEqual(logging_config.level, "debug")

    def test_resolving_does_not_mutate_file_config(self):
        """Should leave the loaded file config untouched."""
        file_config = LgrFileConfig(serializer=SerializerConfig())
        with mock.patch.dict(os.environ, {"LGR_ESCAPE_HTML": "1"}, clear=True):
            resolve_serializer_config(file_config)
        assert file_config.serializer is not None
        self.assertFalse(file_config.serializer.escape_html)


if __name__ == "__main__":
    unittest.main()
