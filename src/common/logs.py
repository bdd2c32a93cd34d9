from __future__ import annotations

import logging
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def resolve_log_level(level: Optional[str] = None) -> int:
    """Map a level name (or ``LOG_LEVEL`` when unset) to its numeric value."""

    name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    resolved = getattr(logging, name, None)
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {name}")
    return resolved


def configure_logging(level: Optional[str] = None) -> int:
    """Configure root logging once for the webhook process and return the level used."""

    resolved = resolve_log_level(level)
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    return resolved


__all__ = ["LOG_FORMAT", "configure_logging", "resolve_log_level"]
