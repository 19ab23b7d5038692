"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for cachegate:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.cachegate/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`, :func:`get_store_dir`.
* **Global config** -- a single :class:`~cachegate.models.GlobalConfig`
  JSON file holding the engine configuration and output defaults.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, the project-local ``cachegate.json``, and the
  global config into the effective configuration.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`).
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from cachegate.exceptions import ConfigError
from cachegate.models import GlobalConfig

_APP_NAME = "cachegate"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "cachegate.json"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
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

    On Linux/BSD: ``$XDG_CONFIG_HOME/cachegate/`` (default ``~/.config/cachegate/``).
    On macOS/Windows: ``~/.cachegate/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CACHE_HOME/cachegate/`` (default ``~/.cache/cachegate/``).
    On macOS/Windows: ``~/.cachegate/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary."""
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_store_dir(config: GlobalConfig) -> Path:
    """Return the disk store root: ``config.store_dir`` or ``<cache dir>/stores``."""
    if config.store_dir:
        return Path(config.store_dir).expanduser()
    return get_cache_dir() / "stores"


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file lives in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems.
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


# --- Global config ---


def global_config_path() -> Path:
    """Path to the global config file, honouring ``CACHEGATE_CONFIG``."""
    override = os.environ.get("CACHEGATE_CONFIG")
    if override:
        return Path(override).expanduser()
    return get_config_dir() / _CONFIG_FILENAME


def _read_json(path: Path, what: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        raise ConfigError(f"Invalid {what} at {path}: {exc}") from exc


def _validate(data: Any, path: Path, what: str) -> GlobalConfig:
    try:
        return GlobalConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid {what} at {path}: {exc}") from exc


def load_global_config() -> GlobalConfig:
    """Load the global configuration.

    Returns:
        The deserialised :class:`~cachegate.models.GlobalConfig`, or a
        default instance when the file does not exist.

    Raises:
        ConfigError: If the file contains invalid JSON or fails validation.
    """
    path = global_config_path()
    if not path.is_file():
        return GlobalConfig()
    return _validate(_read_json(path, "global config"), path, "global config")


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local overrides from ``./cachegate.json``.

    The file holds a partial :class:`~cachegate.models.GlobalConfig`
    (for example just ``{"engine": {"origin": "https://shop.example"}}``)
    that is deep-merged over the global config.

    Returns:
        The parsed JSON object, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file is not a JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    data = _read_json(path, "project config")
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected a JSON object")
    return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# --- Precedence resolution ---


def resolve_config(
    cli_origin: Optional[str] = None,
    cli_version: Optional[str] = None,
    cli_store_dir: Optional[str] = None,
    cli_format: Optional[str] = None,
) -> GlobalConfig:
    """Resolve the effective configuration.

    Precedence (high to low):
        1. CLI flags (``--origin``, ``--cache-version``, ``--store-dir``, output flags)
        2. Environment variables (``CACHEGATE_ORIGIN``, ``CACHEGATE_VERSION``,
           ``CACHEGATE_STORE_DIR``)
        3. Project config (``./cachegate.json``)
        4. User config (``~/.config/cachegate/config.json`` or ``CACHEGATE_CONFIG``)
        5. Defaults

    Raises:
        ConfigError: If any layer is invalid.
    """
    data = load_global_config().model_dump(mode="json")

    project = load_project_config()
    if project is not None:
        data = _deep_merge(data, project)

    engine = data.setdefault("engine", {})
    env_origin = os.environ.get("CACHEGATE_ORIGIN")
    env_version = os.environ.get("CACHEGATE_VERSION")
    env_store_dir = os.environ.get("CACHEGATE_STORE_DIR")
    if env_origin:
        engine["origin"] = env_origin
    if env_version:
        engine["version"] = env_version
    if env_store_dir:
        data["store_dir"] = env_store_dir

    if cli_origin is not None:
        engine["origin"] = cli_origin
    if cli_version is not None:
        engine["version"] = cli_version
    if cli_store_dir is not None:
        data["store_dir"] = cli_store_dir
    if cli_format is not None:
        data.setdefault("output", {})["format"] = cli_format

    return _validate(data, Path.cwd() / _PROJECT_CONFIG_FILENAME, "effective config")
