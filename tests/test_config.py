"""Tests for sabo.config — local config file management."""

import textwrap
from pathlib import Path

import pytest

from sabo.config import (
    DB_ENV_VAR,
    DEFAULT_ARENA_URL,
    DEFAULT_DB_PATH,
    SaboConfig,
    load_config,
    resolve_db_path,
)


@pytest.fixture
def config_dir(tmp_path):
    """Temporary directory for config files."""
    return tmp_path


def _write_config(config_dir: Path, content: str) -> Path:
    """Write a config.toml and return the path."""
    config_path = config_dir / "config.toml"
    config_path.write_text(textwrap.dedent(content))
    return config_path


class TestLoadConfig:
    def test_missing_file_returns_defaults(self, config_dir):
        missing = config_dir / "nonexistent.toml"
        cfg = load_config(missing)
        assert isinstance(cfg, SaboConfig)
        assert cfg.arena.server == DEFAULT_ARENA_URL
        assert cfg.arena.port == 8000
        assert cfg.arena.db_path == DEFAULT_DB_PATH
        assert cfg.workflow.strict_gating is False
        assert cfg.workflow.reset_on_tournament_change is False
        assert cfg.log_level == "INFO"

    def test_full_config(self, config_dir):
        path = _write_config(config_dir, """\
            [arena]
            server = "http://example.com:9000"
            host = "127.0.0.1"
            port = 9000
            db = "/var/lib/sabo/arena.db"

            [workflow]
            strict_gating = true
            reset_on_tournament_change = true

            [logging]
            level = "debug"
        """)
        cfg = load_config(path)

        assert cfg.arena.server == "http://example.com:9000"
        assert cfg.arena.host == "127.0.0.1"
        assert cfg.arena.port == 9000
        assert cfg.arena.db_path == "/var/lib/sabo/arena.db"
        assert cfg.workflow.strict_gating is True
        assert cfg.workflow.reset_on_tournament_change is True
        assert cfg.log_level == "DEBUG"

    def test_tilde_expansion(self, config_dir):
        path = _write_config(config_dir, """\
            [arena]
            db = "~/.sabo/arena.db"
        """)
        cfg = load_config(path)
        assert cfg.arena.db_path.startswith(str(Path.home()))
        # Tilde should be gone
        assert "~" not in cfg.arena.db_path

    def test_partial_config_keeps_defaults(self, config_dir):
        path = _write_config(config_dir, """\
            [workflow]
            strict_gating = true
        """)
        cfg = load_config(path)
        assert cfg.workflow.strict_gating is True
        assert cfg.workflow.reset_on_tournament_change is False
        assert cfg.arena.server == DEFAULT_ARENA_URL
        assert cfg.arena.db_path == DEFAULT_DB_PATH

    def test_corrupt_toml_returns_defaults(self, config_dir):
        path = config_dir / "config.toml"
        path.write_text("this is not [valid toml }{")
        cfg = load_config(path)
        assert cfg == SaboConfig()

    def test_empty_file(self, config_dir):
        path = config_dir / "config.toml"
        path.write_text("")
        assert load_config(path) == SaboConfig()

    def test_non_table_section_is_ignored(self, config_dir):
        path = _write_config(config_dir, """\
            arena = "not a table"
        """)
        assert load_config(path).arena.server == DEFAULT_ARENA_URL


class TestResolveDbPath:
    def test_env_var_wins(self, config_dir, monkeypatch):
        path = _write_config(config_dir, """\
            [arena]
            db = "/from/config.db"
        """)
        monkeypatch.setenv(DB_ENV_VAR, "/from/env.db")
        assert resolve_db_path(load_config(path)) == "/from/env.db"

    def test_falls_back_to_config(self, config_dir, monkeypatch):
        path = _write_config(config_dir, """\
            [arena]
            db = "/from/config.db"
        """)
        monkeypatch.delenv(DB_ENV_VAR, raising=False)
        assert resolve_db_path(load_config(path)) == "/from/config.db"

    def test_default_without_config(self, monkeypatch):
        monkeypatch.delenv(DB_ENV_VAR, raising=False)
        assert resolve_db_path() == DEFAULT_DB_PATH
