"""Tests for routelens.config -- XDG paths, atomic writes, config layers, precedence."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from routelens.config import (
    _atomic_write,
    get_config_dir,
    get_data_dir,
    load_global_config,
    load_project_config,
    resolve_config,
    save_global_config,
    write_text,
)
from routelens.exceptions import ConfigError
from routelens.models import GlobalConfig, OpenAPIInfoConfig, ScanConfig


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    """Write a dict as JSON to *path*, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPaths:
    def test_config_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("routelens.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_config_dir()
        assert result == tmp_path / ".config" / "routelens"
        assert result.is_dir()

    def test_config_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        custom = tmp_path / "custom_config"
        monkeypatch.setattr("routelens.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(custom))

        assert get_config_dir() == custom / "routelens"

    def test_data_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("routelens.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

        result = get_data_dir()
        assert result == tmp_path / "data" / "routelens"
        assert result.is_dir()

    def test_fallback_dirs(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("routelens.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_config_dir() == tmp_path / ".routelens"
        assert get_data_dir() == tmp_path / ".routelens" / "logs"


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_creates_file_with_content(self, tmp_path: Path) -> None:
        target = tmp_path / "a" / "b" / "openapi.json"
        _atomic_write(target, "{}")
        assert target.read_text(encoding="utf-8") == "{}"

    def test_overwrites_existing_file(self, tmp_path: Path) -> None:
        target = tmp_path / "openapi.yaml"
        target.write_text("old", encoding="utf-8")
        _atomic_write(target, "new")
        assert target.read_text(encoding="utf-8") == "new"

    def test_no_temp_files_left_on_error(self, tmp_path: Path) -> None:
        target = tmp_path / "openapi.json"
        with patch("routelens.config.os.fsync", side_effect=OSError("disk error")):
            with pytest.raises(OSError, match="disk error"):
                _atomic_write(target, "will fail")
        assert list(tmp_path.iterdir()) == []

    def test_write_text_adds_trailing_newline(self, tmp_path: Path) -> None:
        target = tmp_path / "openapi.json"
        write_text(target, "{}")
        assert target.read_text(encoding="utf-8") == "{}\n"
        write_text(target, "{}\n")
        assert target.read_text(encoding="utf-8") == "{}\n"


# ---------------------------------------------------------------------------
# Global config
# ---------------------------------------------------------------------------


class TestGlobalConfig:
    def test_load_returns_defaults_when_missing(self, isolated_config: Path) -> None:
        cfg = load_global_config()
        assert cfg == GlobalConfig()
        assert cfg.frameworks == []
        assert cfg.scan.workers == 4
        assert cfg.default_responses == {"200": "Successful response"}

    def test_save_and_load_roundtrip(self, isolated_config: Path) -> None:
        original = GlobalConfig(
            frameworks=["fastapi"],
            scan=ScanConfig(exclude=["tests/"], workers=2),
            openapi=OpenAPIInfoConfig(title="Shop", version="2.1.0"),
        )
        save_global_config(original)
        assert load_global_config() == original

    def test_load_invalid_json_raises_config_error(self, isolated_config: Path) -> None:
        path = isolated_config / "config" / "routelens" / "config.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid global config"):
            load_global_config()

    def test_load_invalid_schema_raises_config_error(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "config" / "routelens" / "config.json", {"scan": {"workers": 0}})
        with pytest.raises(ConfigError):
            load_global_config()


# ---------------------------------------------------------------------------
# Project config
# ---------------------------------------------------------------------------


class TestProjectConfig:
    def test_load_returns_none_when_missing(self, tmp_path: Path) -> None:
        assert load_project_config(tmp_path) is None

    def test_load_valid_project_config(self, tmp_path: Path) -> None:
        _write_json(tmp_path / "routelens.json", {"frameworks": ["spring"], "openapi": {"title": "Users"}})
        project = load_project_config(tmp_path)
        assert project is not None
        assert project.frameworks == ["spring"]
        assert project.openapi.title == "Users"
        assert project.scan is None

    def test_unknown_keys_raise_config_error(self, tmp_path: Path) -> None:
        _write_json(tmp_path / "routelens.json", {"framework": "spring"})
        with pytest.raises(ConfigError, match="Invalid project config"):
            load_project_config(tmp_path)


# ---------------------------------------------------------------------------
# Precedence resolution
# ---------------------------------------------------------------------------


class TestResolveConfig:
    @pytest.fixture
    def project(self, isolated_config: Path) -> Path:
        root = isolated_config / "project"
        root.mkdir()
        return root

    def test_defaults(self, project: Path) -> None:
        cfg = resolve_config(project)
        assert cfg.frameworks == []
        assert cfg.output.format == "json"

    def test_project_overrides_global(self, isolated_config: Path, project: Path) -> None:
        save_global_config(GlobalConfig(frameworks=["flask"], scan=ScanConfig(workers=8)))
        _write_json(project / "routelens.json", {"frameworks": ["fastapi"]})

        cfg = resolve_config(project)
        assert cfg.frameworks == ["fastapi"]
        assert cfg.scan.workers == 8

    def test_project_section_replaces_global_section(self, project: Path) -> None:
        save_global_config(GlobalConfig(scan=ScanConfig(exclude=["vendor/"], workers=8)))
        _write_json(project / "routelens.json", {"scan": {"include": ["app/"]}})

        cfg = resolve_config(project)
        assert cfg.scan.include == ["app/"]
        assert cfg.scan.exclude == []
        assert cfg.scan.workers == 4

    def test_env_overrides_project(self, project: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_json(project / "routelens.json", {"frameworks": ["fastapi"]})
        monkeypatch.setenv("ROUTELENS_FRAMEWORK", "spring, aspnet")
        monkeypatch.setenv("ROUTELENS_FORMAT", "yaml")
        monkeypatch.setenv("ROUTELENS_WORKERS", "2")

        cfg = resolve_config(project)
        assert cfg.frameworks == ["spring", "aspnet"]
        assert cfg.output.format == "yaml"
        assert cfg.scan.workers == 2

    def test_cli_overrides_env(self, project: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ROUTELENS_FRAMEWORK", "spring")
        monkeypatch.setenv("ROUTELENS_WORKERS", "2")

        cfg = resolve_config(project, cli_frameworks=["rocket"], cli_format="table", cli_workers=6)
        assert cfg.frameworks == ["rocket"]
        assert cfg.output.format == "table"
        assert cfg.scan.workers == 6

    def test_invalid_env_workers(self, project: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ROUTELENS_WORKERS", "many")
        with pytest.raises(ConfigError, match="ROUTELENS_WORKERS"):
            resolve_config(project)

    def test_invalid_cli_workers(self, project: Path) -> None:
        with pytest.raises(ConfigError, match="--workers"):
            resolve_config(project, cli_workers=0)
