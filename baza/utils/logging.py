"""Logging setup for scripts and workers built on the baza client.

The library itself only creates module loggers; applications call
:func:`configure_root` once at startup.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

_DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DEFAULT_DATEFMT = "%H:%M:%S"
_LEVEL_ENV_VAR = "BAZA_LOG_LEVEL"
_DEBUG_FLAGS = ("BAZA_DEBUG", "BAZA_DEBUG_LOGGING")
_TRANSPORT_LOGGERS = ("urllib3", "requests")


def _coerce_level(value: Optional[str], fallback: int) -> int:
    if not value or not value.strip():
        return fallback
    text = value.strip()
    if text.isdigit():
        return int(text)
    candidate = logging.getLevelName(text.upper())
    if isinstance(candidate, int):
        return candidate
    return fallback


def _env_truthy(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def resolve_env_level() -> Optional[int]:
    """Level forced by the environment, or ``None`` when nothing is set."""
    value = os.getenv(_LEVEL_ENV_VAR)
    if value:
        return _coerce_level(value, logging.INFO)
    if any(_env_truthy(os.getenv(flag)) for flag in _DEBUG_FLAGS):
        return logging.DEBUG
    return None


def env_requests_debug() -> bool:
    """Return True if environment variables force DEBUG logging."""
    env_level = resolve_env_level()
    if env_level is None:
        return False
    return env_level <= logging.DEBUG


def configure_root(default_level: int | str = logging.INFO) -> int:
    """
    Configure the root logger with a compact format.

    Environment overrides:
      - BAZA_LOG_LEVEL: explicit log level
      - BAZA_DEBUG / BAZA_DEBUG_LOGGING: truthy -> DEBUG

    The connection-level chatter of urllib3 stays at WARNING unless the
    environment asks for DEBUG. Returns the effective root level.
    """
    fallback = (
        _coerce_level(default_level, logging.INFO)
        if isinstance(default_level, str)
        else int(default_level)
    )
    effective = resolve_env_level() or fallback

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=effective, format=_DEFAULT_FORMAT, datefmt=_DEFAULT_DATEFMT)
    root.setLevel(effective)

    transport_level = logging.DEBUG if env_requests_debug() else logging.WARNING
    for name in _TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(transport_level)
    return effective


__all__ = ["configure_root", "env_requests_debug", "resolve_env_level"]
