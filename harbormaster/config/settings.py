"""Centralised environment configuration for harbormaster.

This module ensures `.env` loading happens in one place and exposes a
typed snapshot of logging targets, provisioning timeouts, and host policy.
Downstream modules call `get_settings()` instead of touching `os.environ`
directly, making it easier to validate values and override behaviour in
tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import os
from pathlib import Path

from dotenv import load_dotenv


_DEFAULT_ENV_PATH = Path(__file__).resolve().parents[2] / ".env"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def _coerce_float(value: str | None, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _coerce_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    token = value.strip().lower()
    if token in _TRUTHY:
        return True
    if token in _FALSY:
        return False
    return default


@dataclass(frozen=True)
class LoggingSettings:
    level: str
    file_path: str | None


@dataclass(frozen=True)
class ProvisioningSettings:
    verify_timeout: float
    stop_timeout: float
    require_root: bool
    data_root: Path


@dataclass(frozen=True)
class HarbormasterSettings:
    """Top-level snapshot of configuration values."""

    env_file: Path
    logging: LoggingSettings
    provisioning: ProvisioningSettings


def _resolve_env_path(env_file: os.PathLike[str] | str | None) -> Path:
    if env_file is None:
        return _DEFAULT_ENV_PATH
    return Path(env_file).resolve()


@lru_cache(maxsize=4)
def _load_settings(env_path: Path) -> HarbormasterSettings:
    # Existing environment variables take precedence over `.env` defaults.
    load_dotenv(dotenv_path=env_path, override=False)

    log_file = os.getenv("HARBORMASTER_LOG_FILE", "harbormaster.log")
    logging_settings = LoggingSettings(
        level=os.getenv("HARBORMASTER_LOG_LEVEL", "INFO").upper(),
        file_path=log_file or None,
    )

    provisioning = ProvisioningSettings(
        verify_timeout=_coerce_float(os.getenv("HARBORMASTER_VERIFY_TIMEOUT"), 5.0),
        stop_timeout=_coerce_float(os.getenv("HARBORMASTER_STOP_TIMEOUT"), 10.0),
        require_root=_coerce_bool(os.getenv("HARBORMASTER_REQUIRE_ROOT"), True),
        data_root=Path(os.getenv("HARBORMASTER_DATA_ROOT") or "/srv").expanduser(),
    )

    return HarbormasterSettings(
        env_file=env_path,
        logging=logging_settings,
        provisioning=provisioning,
    )


def get_settings(
    env_file: os.PathLike[str] | str | None = None,
    *,
    reload: bool = False,
) -> HarbormasterSettings:
    """Return the cached settings snapshot.

    Args:
        env_file: Optional explicit path to a `.env` file. When omitted the repo
            root `.env` file is used.
        reload: When True the cached snapshot is cleared before loading.
    """
    env_path = _resolve_env_path(env_file)
    if reload:
        _load_settings.cache_clear()
    return _load_settings(env_path)
