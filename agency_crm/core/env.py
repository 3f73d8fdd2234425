"""Environment variable readers shared by the configurable modules."""

from __future__ import annotations

import logging
import os

LOGGER = logging.getLogger(__name__)


def get_env_int(name: str, default: int) -> int:
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        value = int(raw_value)
    except ValueError:
        LOGGER.warning("Invalid value for %s=%s; using default %s", name, raw_value, default)
        return default
    if value < 1:
        LOGGER.warning("Non-positive value for %s=%s; using default %s", name, raw_value, default)
        return default
    return value


__all__ = ["get_env_int"]
