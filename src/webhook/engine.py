from __future__ import annotations

import logging
from typing import Any, Callable, Dict

from src.classifier import PSP_SCOPE, Classification, RequestAttributes, RequestClassifier
from src.common.config import EngineConfig
from src.common.errors import DecodeError, UnsupportedMethod
from src.decision import Decision, Deny, Mutate, PassThrough, assemble
from src.decision.assembler import Verdict
from src.sanitizer.psp import decode_pod_security_policy, sanitize

from .envelope import (
    AdmissionRequest,
    SubjectAccessRequest,
    parse_admission_review,
    parse_subject_access_review,
    render_admission_review,
    render_subject_access_review,
)

logger = logging.getLogger(__name__)

ROUTE_VALIDATE = "validate"
ROUTE_AUTHORIZE = "authorize"
ROUTE_MUTATE_PSP = "mutate-psp"
ROUTES = (ROUTE_VALIDATE, ROUTE_AUTHORIZE, ROUTE_MUTATE_PSP)

WEBHOOK_ERROR_CODE = 500
PARSE_ERROR_REASON = "Webhook: JSON parse error"
OBJECT_PARSE_ERROR_REASON = "Webhook: JSON parse object error"
NOT_POST_REASON = "Webhook: Not POST method"


class AdmissionEngine:
    """Evaluates decoded reviews against the configured filter and the PSP mutator."""

    def __init__(self, config: EngineConfig) -> None:
        self.config = config
        self.classifier = RequestClassifier.from_config(config)

    def validate(self, request: AdmissionRequest) -> Decision:
        return assemble(request.correlation_id, self._filter(request.attributes))

    def authorize(self, request: SubjectAccessRequest) -> Decision:
        return assemble(None, self._filter(request.attributes))

    def mutate_pod_security_policy(self, request: AdmissionRequest) -> Decision:
        correlation_id = request.correlation_id
        attributes = request.attributes
        self._trace(attributes)
        mismatch = PSP_SCOPE.mismatch(attributes)
        if mismatch is not None:
            logger.warning(
                "%s %r not matched for PodSecurityPolicy mutation - request allowed",
                mismatch.capitalize(),
                getattr(attributes, mismatch),
            )
            return assemble(correlation_id, PassThrough())

        logger.info("Patching : %s", request.raw_object.decode("utf-8", errors="replace"))
        try:
            spec = decode_pod_security_policy(request.raw_object)
        except DecodeError as exc:
            logger.error("PodSecurityPolicy decode failed for %s: %s", correlation_id, exc)
            return assemble(correlation_id, Deny(WEBHOOK_ERROR_CODE, OBJECT_PARSE_ERROR_REASON))
        return assemble(correlation_id, Mutate(tuple(sanitize(spec))))

    def handle(self, route: str, body: bytes, method: str = "POST") -> Dict[str, Any]:
        """Decode a review body for ``route``, decide, and render the response envelope.

        Every failure is answered with a well-formed denial instead of an error.
        """

        render = _renderer(route)
        try:
            _check_method(method)
            if route == ROUTE_AUTHORIZE:
                review = parse_subject_access_review(body)
                return render(self.authorize(review), review.api_version)
            request = parse_admission_review(body)
        except UnsupportedMethod as exc:
            logger.warning("Rejecting /%s: %s", route, exc)
            return render(assemble(None, Deny(WEBHOOK_ERROR_CODE, NOT_POST_REASON)))
        except DecodeError as exc:
            logger.error("Rejecting /%s: %s", route, exc)
            return render(assemble(exc.correlation_id, Deny(WEBHOOK_ERROR_CODE, PARSE_ERROR_REASON)))

        if route == ROUTE_MUTATE_PSP:
            decision = self.mutate_pod_security_policy(request)
        else:
            decision = self.validate(request)
        return render(decision, request.api_version)

    def _filter(self, attributes: RequestAttributes) -> Verdict:
        self._trace(attributes)
        if self.classifier.classify(attributes) is Classification.IN_SCOPE:
            return Deny()
        return PassThrough()

    def _trace(self, attributes: RequestAttributes) -> None:
        if self.config.debug:
            logger.info("Admission webhook checking : %s", attributes.describe())


def _check_method(method: str) -> None:
    if method.upper() != "POST":
        raise UnsupportedMethod(method)


def _renderer(route: str) -> Callable[..., Dict[str, Any]]:
    if route == ROUTE_AUTHORIZE:
        return render_subject_access_review
    if route in (ROUTE_VALIDATE, ROUTE_MUTATE_PSP):
        return render_admission_review
    raise ValueError(f"Unknown webhook route: {route}")


__all__ = [
    "AdmissionEngine",
    "NOT_POST_REASON",
    "OBJECT_PARSE_ERROR_REASON",
    "PARSE_ERROR_REASON",
    "ROUTES",
    "ROUTE_AUTHORIZE",
    "ROUTE_MUTATE_PSP",
    "ROUTE_VALIDATE",
    "WEBHOOK_ERROR_CODE",
]
