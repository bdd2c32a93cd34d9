from __future__ import annotations

import copy
from typing import Any, Dict, List, Sequence

import jsonpatch


class PatchError(Exception):
    """Raised when a patch document is malformed or cannot be applied."""


_VALID_OPS = {"add", "remove", "replace"}


def validate_patch_ops(ops: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Check every operation is a standalone add/remove/replace with a JSON Pointer path."""

    validated: List[Dict[str, Any]] = []
    for op in ops:
        if not isinstance(op, dict):
            raise PatchError("non-object operation")
        operation = op.get("op")
        if operation not in _VALID_OPS:
            raise PatchError(f"invalid op {operation!r}")
        path = op.get("path")
        if not isinstance(path, str) or not path.startswith("/"):
            raise PatchError("missing path")
        if operation in {"add", "replace"} and "value" not in op:
            raise PatchError(f"{operation} at {path} missing value")
        validated.append(op)
    return validated


def apply_patch(document: Dict[str, Any], ops: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """Return a patched copy of ``document``; the input is left untouched."""

    if not isinstance(document, dict):
        raise PatchError("document must be a mapping")
    try:
        return jsonpatch.apply_patch(copy.deepcopy(document), list(ops), in_place=False)
    except (jsonpatch.JsonPatchException, jsonpatch.JsonPointerException) as exc:
        raise PatchError(f"bad path or conflict: {exc}") from exc


__all__ = ["PatchError", "apply_patch", "validate_patch_ops"]
