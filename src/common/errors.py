from __future__ import annotations

from typing import Optional


class DecodeError(Exception):
    """Raised when a review body or its embedded object cannot be decoded.

    ``correlation_id`` carries the review UID when it was recovered before the
    failure, so the denial can still be matched to its request.
    """

    def __init__(self, message: str, correlation_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.correlation_id = correlation_id


class UnsupportedMethod(Exception):
    """Raised when a review is submitted with anything other than POST."""

    def __init__(self, method: str) -> None:
        super().__init__(f"unsupported method {method}")
        self.method = method


__all__ = ["DecodeError", "UnsupportedMethod"]
