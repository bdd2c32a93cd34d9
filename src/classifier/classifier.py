from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from src.common.allow_list import AllowList, matches
from src.common.config import EngineConfig


class Classification(enum.Enum):
    IN_SCOPE = "in-scope"
    PASS_THROUGH = "pass-through"


@dataclass(frozen=True)
class RequestAttributes:
    group: str = ""
    resource: str = ""
    operation: str = ""

    def describe(self) -> str:
        return f"{self.group}/{self.resource}/{self.operation}"


@dataclass(frozen=True)
class RequestClassifier:
    groups: AllowList
    resources: AllowList
    operations: AllowList

    @classmethod
    def from_config(cls, config: EngineConfig) -> "RequestClassifier":
        return cls(groups=config.groups, resources=config.resources, operations=config.operations)

    def classify(self, attributes: RequestAttributes) -> Classification:
        if self.mismatch(attributes) is None:
            return Classification.IN_SCOPE
        return Classification.PASS_THROUGH

    def mismatch(self, attributes: RequestAttributes) -> Optional[str]:
        """Name the first field whose value is not allowed, or None when all three match."""

        if not matches(attributes.group, self.groups):
            return "group"
        if not matches(attributes.resource, self.resources):
            return "resource"
        if not matches(attributes.operation, self.operations):
            return "operation"
        return None


# Fixed scope of the PodSecurityPolicy mutator.
PSP_SCOPE = RequestClassifier(
    groups=("policy",),
    resources=("podsecuritypolicies",),
    operations=("CREATE", "UPDATE"),
)


__all__ = ["Classification", "PSP_SCOPE", "RequestAttributes", "RequestClassifier"]
