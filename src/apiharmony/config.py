"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for apiharmony:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.apiharmony/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir` and :func:`get_data_dir`.
* **Global config** -- A single :class:`~apiharmony.models.GlobalConfig`
  JSON file storing fetch, cache and output defaults.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables and the global config into the effective settings.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`).
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from apiharmony.exceptions import ConfigError
from apiharmony.models import GlobalConfig

_APP_NAME = "apiharmony"
_CONFIG_FILENAME = "config.json"

ENV_TIMEOUT = "APIHARMONY_TIMEOUT"
ENV_NO_CACHE = "APIHARMONY_NO_CACHE"
ENV_USER_AGENT = "APIHARMONY_USER_AGENT"


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

    On Linux/BSD: ``$XDG_CONFIG_HOME/apiharmony/`` (default
    ``~/.config/apiharmony/``). On macOS/Windows: ``~/.apiharmony/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory (fetched documents), creating it if necessary.

    On Linux/BSD: ``$XDG_CACHE_HOME/apiharmony/``. On macOS/Windows:
    ``~/.apiharmony/cache/``. Cached data can be safely deleted at any time.
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
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


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


def _global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~apiharmony.models.GlobalConfig`, or a
        default instance when the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Precedence resolution ---


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


def resolve_config(
    cli_timeout: Optional[float] = None,
    cli_format: Optional[str] = None,
    cli_no_cache: bool = False,
) -> GlobalConfig:
    """Resolve the effective configuration.

    Precedence (high to low):
        1. CLI flags (``--timeout``, ``--json``/``--plain``, ``--no-cache``)
        2. Environment variables (``APIHARMONY_TIMEOUT``,
           ``APIHARMONY_NO_CACHE``, ``APIHARMONY_USER_AGENT``)
        3. User config (``~/.config/apiharmony/config.json``)
        4. Defaults

    Raises:
        ConfigError: If the config file is invalid or ``APIHARMONY_TIMEOUT``
            is not a positive number.
    """
    config = load_global_config()

    env_timeout = os.environ.get(ENV_TIMEOUT)
    if env_timeout:
        try:
            config.fetch.timeout = float(env_timeout)
        except ValueError as exc:
            raise ConfigError(
                f"{ENV_TIMEOUT} must be a number of seconds, got: {env_timeout}"
            ) from exc
    env_agent = os.environ.get(ENV_USER_AGENT)
    if env_agent:
        config.fetch.user_agent = env_agent
    if _env_flag(ENV_NO_CACHE):
        config.cache.enabled = False

    if cli_timeout is not None:
        config.fetch.timeout = cli_timeout
    if cli_no_cache:
        config.cache.enabled = False
    if cli_format is not None:
        config.output.format = cli_format

    if config.fetch.timeout <= 0:
        raise ConfigError(
            f"Fetch timeout must be positive, got: {config.fetch.timeout}"
        )

    return config
