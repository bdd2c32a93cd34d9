from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from .allow_list import AllowList, parse_allow_list

GROUPS_ENV = "ADMISSION_GROUPS"
RESOURCES_ENV = "ADMISSION_RESOURCES"
OPERATIONS_ENV = "ADMISSION_OPERATIONS"
DEBUG_ENV = "ADMISSION_DEBUG"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class EngineConfig:
    """Allow-lists consulted by the group/resource/operation filter.

    Built once at startup and shared read-only by every request.
    """

    groups: AllowList = ()
    resources: AllowList = ()
    operations: AllowList = ()
    debug: bool = False

    @classmethod
    def from_strings(
        cls,
        groups: Optional[str] = None,
        resources: Optional[str] = None,
        operations: Optional[str] = None,
        debug: bool = False,
    ) -> "EngineConfig":
        return cls(
            groups=parse_allow_list(groups),
            resources=parse_allow_list(resources),
            operations=parse_allow_list(operations),
            debug=debug,
        )

    @classmethod
    def from_env(
        cls,
        groups: Optional[str] = None,
        resources: Optional[str] = None,
        operations: Optional[str] = None,
        debug: Optional[bool] = None,
    ) -> "EngineConfig":
        if debug is None:
            debug = os.getenv(DEBUG_ENV, "").strip().lower() in _TRUTHY
        return cls.from_strings(
            groups=groups if groups is not None else os.getenv(GROUPS_ENV),
            resources=resources if resources is not None else os.getenv(RESOURCES_ENV),
            operations=operations if operations is not None else os.getenv(OPERATIONS_ENV),
            debug=debug,
        )


__all__ = ["EngineConfig"]
