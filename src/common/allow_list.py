"""Exact-match / wildcard allow-lists shared by every request filter."""

from __future__ import annotations

from typing import Iterable, Optional, Tuple

WILDCARD = "*"

AllowList = Tuple[str, ...]


def matches(subject: str, allow_list: Iterable[str]) -> bool:
    """Return True when ``subject`` is listed verbatim or the list holds the wildcard.

    An empty subject is an unspecified field and never matches, not even ``"*"``.
    """

    if not subject:
        return False
    for item in allow_list:
        if item == subject or item == WILDCARD:
            return True
    return False


def parse_allow_list(text: Optional[str]) -> AllowList:
    """Split a comma-separated configuration value into allow-list tokens."""

    if not text:
        return ()
    tokens = (token.strip() for token in text.split(","))
    return tuple(token for token in tokens if token)


__all__ = ["AllowList", "WILDCARD", "matches", "parse_allow_list"]
