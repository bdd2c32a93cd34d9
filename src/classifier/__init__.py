"""Classifier package deciding whether a request falls under a policy."""

from .classifier import PSP_SCOPE, Classification, RequestAttributes, RequestClassifier

__all__ = [
    "Classification",
    "PSP_SCOPE",
    "RequestAttributes",
    "RequestClassifier",
]
