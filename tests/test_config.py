"""
Tests for configuration loading and the config check use case.
"""

import textwrap
from pathlib import Path

import pytest

from provision.core.config.loader import (
    ConfigError,
    config_root,
    find_config_file,
    load_config,
    load_optional_config,
)
from provision.core.models.backend import Backend
from provision.core.use_cases.config_check import check_config


def _write_config(directory: Path, content: str) -> Path:
    path = directory / "provision.yml"
    path.write_text(textwrap.dedent(content))
    return path


# ── Discovery ────────────────────────────────────────────────────────


class TestFindConfigFile:
    def test_in_start_dir(self, tmp_path):
        path = _write_config(tmp_path, "packages: []\n")
        assert find_config_file(tmp_path) == path.resolve()

    def test_walks_up(self, tmp_path):
        path = _write_config(tmp_path, "packages: []\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config_file(nested) == path.resolve()

    def test_not_found(self, tmp_path):
        assert find_config_file(tmp_path) is None


# ── Loading ──────────────────────────────────────────────────────────


class TestLoadConfig:
    def test_full(self, tmp_path):
        path = _write_config(tmp_path, """\
            backend: dnf
            logging:
              level: INFO
              file_level: DEBUG
              directory: log
              colorize: false
            packages:
              - name: htop
              - name: org.mozilla.firefox
                backend: flatpak
              - name: nginx
                state: absent
                purge: true
        """)
        config = load_config(path)
        assert config.backend is Backend.DNF
        assert config.logging.level == "INFO"
        assert not config.logging.colorize
        assert config.logging.directory == str(tmp_path.resolve() / "log")
        assert [p.name for p in config.packages] == ["htop", "org.mozilla.firefox", "nginx"]
        assert config.packages[2].purge

    def test_absolute_log_dir_kept(self, tmp_path):
        path = _write_config(tmp_path, "logging:\n  directory: /var/log/provision\n")
        assert load_config(path).logging.directory == "/var/log/provision"

    def test_empty_file(self, tmp_path):
        path = _write_config(tmp_path, "")
        config = load_config(path)
        assert config.packages == []
        assert config.backend is None

    def test_missing_explicit(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.yml")

    def test_none_found(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(
            "provision.core.config.loader.find_config_file", lambda start_dir=None: None
        )
        with pytest.raises(ConfigError, match="No provision.yml"):
            load_config()

    def test_invalid_yaml(self, tmp_path):
        path = _write_config(tmp_path, "packages: [htop\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_not_a_mapping(self, tmp_path):
        path = _write_config(tmp_path, "- htop\n- curl\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)

    def test_bad_backend(self, tmp_path):
        path = _write_config(tmp_path, "backend: brew\n")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(path)

    def test_bad_state(self, tmp_path):
        path = _write_config(tmp_path, "packages:\n  - name: htop\n    state: latest\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_exit_code(self):
        assert ConfigError("x").exit_code == 78

    def test_config_root(self, tmp_path):
        assert config_root(tmp_path / "provision.yml") == tmp_path.resolve()


class TestLoadOptionalConfig:
    def test_defaults_when_absent(self, monkeypatch):
        monkeypatch.setattr(
            "provision.core.config.loader.find_config_file", lambda start_dir=None: None
        )
        config = load_optional_config()
        assert config.packages == []
        assert config.logging.level == "WARNING"

    def test_explicit_missing_is_error(self, tmp_path):
        with pytest.raises(ConfigError):
            load_optional_config(tmp_path / "nope.yml")


# ── Config check ─────────────────────────────────────────────────────


class TestCheckConfig:
    def test_valid(self, tmp_path):
        path = _write_config(tmp_path, "packages:\n  - name: htop\n")
        result = check_config(path)
        assert result.valid
        assert result.errors == []
        assert result.to_dict()["package_count"] == 1

    def test_missing(self, monkeypatch):
        monkeypatch.setattr(
            "provision.core.use_cases.config_check.find_config_file", lambda: None
        )
        result = check_config()
        assert not result.valid
        assert "No provision.yml" in result.errors[0]

    def test_parse_error_reported(self, tmp_path):
        path = _write_config(tmp_path, "backend: brew\n")
        result = check_config(path)
        assert not result.valid
        assert "Invalid configuration" in result.errors[0]

    def test_duplicates(self, tmp_path):
        path = _write_config(tmp_path, """\
            packages:
              - name: htop
              - name: htop
              - name: htop
                backend: snap
        """)
        result = check_config(path)
        assert not result.valid
        assert result.errors == ["Duplicate package entries: htop"]

    def test_unknown_backend_rejected(self, tmp_path):
        path = _write_config(tmp_path, "backend: unknown\n")
        result = check_config(path)
        assert not result.valid

    def test_warnings(self, tmp_path):
        path = _write_config(tmp_path, """\
            logging:
              level: LOUD
            packages:
              - name: htop
                purge: true
        """)
        result = check_config(path)
        assert result.valid
        assert any("purge has no effect" in w for w in result.warnings)
        assert any("unknown level 'LOUD'" in w for w in result.warnings)

    def test_empty_warns(self, tmp_path):
        path = _write_config(tmp_path, "backend: apt\n")
        result = check_config(path)
        assert result.valid
        assert result.to_dict()["backend"] == "apt"
        assert any("No packages" in w for w in result.warnings)
