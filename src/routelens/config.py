"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for routelens:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.routelens/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Global config** -- A single :class:`~routelens.models.GlobalConfig`
  JSON file storing defaults (scan settings, adapter lists, document info).
* **Project config** -- An optional ``routelens.json`` at the root of the
  scanned project, deserialised into :class:`~routelens.models.ProjectConfig`.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, project-local config, and global config into the
  final effective configuration.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from routelens.exceptions import ConfigError
from routelens.models import GlobalConfig, ProjectConfig

_APP_NAME = "routelens"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "routelens.json"

ENV_FRAMEWORK = "ROUTELENS_FRAMEWORK"
ENV_WORKERS = "ROUTELENS_WORKERS"
ENV_FORMAT = "ROUTELENS_FORMAT"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/routelens/`` (default ``~/.config/routelens/``).
    On macOS/Windows: ``~/.routelens/``.

    Returns:
        Absolute path to the configuration directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/routelens/`` (default ``~/.local/share/routelens/``).
    On macOS/Windows: ``~/.routelens/logs/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    On success the temp file is renamed over *path*; on any failure the temp
    file is cleaned up.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


def write_text(path: Path, data: str) -> None:
    """Atomically write a generated document to *path*."""
    _atomic_write(path, data if data.endswith("\n") else data + "\n")


# --- Global config ---


def _global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~routelens.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk.

    Args:
        config: The configuration to save.
    """
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Project-local config ---


def load_project_config(project_root: Path) -> Optional[ProjectConfig]:
    """Load project-local configuration from ``<project_root>/routelens.json``.

    Returns:
        The parsed :class:`~routelens.models.ProjectConfig`, or ``None`` if
        the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or unknown
            keys.
    """
    path = project_root / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return ProjectConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc


# --- Precedence resolution ---


def _split_names(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def resolve_config(
    project_root: Optional[Path] = None,
    cli_frameworks: Optional[list[str]] = None,
    cli_format: Optional[str] = None,
    cli_workers: Optional[int] = None,
) -> GlobalConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_frameworks``, ``cli_format``, ``cli_workers``)
        2. Environment variables (``ROUTELENS_FRAMEWORK``,
           ``ROUTELENS_FORMAT``, ``ROUTELENS_WORKERS``)
        3. Project config (``<project_root>/routelens.json``)
        4. User config (``~/.config/routelens/config.json``)
        5. Defaults

    Returns:
        A new :class:`~routelens.models.GlobalConfig` carrying the effective
        values.

    Raises:
        ConfigError: If any layer holds an invalid value.
    """
    # 5 + 4. Base global config (fills in defaults automatically)
    config = load_global_config()

    # 3. Project-local sections replace global ones wholesale
    if project_root is not None:
        project = load_project_config(project_root)
        if project is not None:
            overrides = project.model_dump(exclude_none=True)
            config = GlobalConfig.model_validate({**config.model_dump(), **overrides})

    # 2. Environment
    env_frameworks = os.environ.get(ENV_FRAMEWORK)
    if env_frameworks:
        config.frameworks = _split_names(env_frameworks)
    env_format = os.environ.get(ENV_FORMAT)
    if env_format:
        config.output.format = env_format
    env_workers = os.environ.get(ENV_WORKERS)
    if env_workers:
        try:
            config.scan.workers = max(1, int(env_workers))
        except ValueError:
            raise ConfigError(f"{ENV_WORKERS} must be an integer, got '{env_workers}'") from None

    # 1. CLI flags (highest precedence)
    if cli_frameworks:
        config.frameworks = list(cli_frameworks)
    if cli_format is not None:
        config.output.format = cli_format
    if cli_workers is not None:
        if cli_workers < 1:
            raise ConfigError("--workers must be at least 1")
        config.scan.workers = cli_workers

    return config
