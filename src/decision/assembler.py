from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from src.sanitizer.guards import validate_patch_ops

PATCH_TYPE_JSON_PATCH = "JSONPatch"

DENIED_BY_POLICY_CODE = 403
DENIED_BY_POLICY_REASON = "denied by policy"


@dataclass(frozen=True)
class PassThrough:
    """The request is not subject to the policy."""


@dataclass(frozen=True)
class Deny:
    code: int = DENIED_BY_POLICY_CODE
    reason: str = DENIED_BY_POLICY_REASON


@dataclass(frozen=True)
class Mutate:
    ops: Tuple[Dict[str, Any], ...] = field(default_factory=tuple)


Verdict = Union[PassThrough, Deny, Mutate]


@dataclass(frozen=True)
class Decision:
    allowed: bool
    correlation_id: Optional[str] = None
    deny_code: Optional[int] = None
    deny_reason: Optional[str] = None
    patch: Optional[List[Dict[str, Any]]] = None
    patch_type: Optional[str] = None

    def __post_init__(self) -> None:
        if self.patch is not None and not self.allowed:
            raise ValueError("a denied decision cannot carry a patch")
        if self.patch is not None and not self.patch:
            raise ValueError("an empty patch document must be omitted")


def assemble(correlation_id: Optional[str], verdict: Verdict) -> Decision:
    """Render a verdict into a decision bound to the caller's correlation ID."""

    if isinstance(verdict, Deny):
        return Decision(
            allowed=False,
            correlation_id=correlation_id,
            deny_code=verdict.code,
            deny_reason=verdict.reason,
        )
    if isinstance(verdict, Mutate) and verdict.ops:
        return Decision(
            allowed=True,
            correlation_id=correlation_id,
            patch=validate_patch_ops(list(verdict.ops)),
            patch_type=PATCH_TYPE_JSON_PATCH,
        )
    if isinstance(verdict, (PassThrough, Mutate)):
        return Decision(allowed=True, correlation_id=correlation_id)
    raise TypeError(f"unknown verdict {verdict!r}")


__all__ = [
    "DENIED_BY_POLICY_CODE",
    "DENIED_BY_POLICY_REASON",
    "Decision",
    "Deny",
    "Mutate",
    "PATCH_TYPE_JSON_PATCH",
    "PassThrough",
    "Verdict",
    "assemble",
]
