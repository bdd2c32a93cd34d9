"""Decode AdmissionReview / SubjectAccessReview bodies and render decisions back."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import jsonpatch
from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError

from src.classifier import RequestAttributes
from src.common.errors import DecodeError
from src.decision import Decision

ADMISSION_API_VERSION = "admission.k8s.io/v1"
AUTHORIZATION_API_VERSION = "authorization.k8s.io/v1"


class _EnvelopeModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class GroupVersionResource(_EnvelopeModel):
    group: StrictStr = ""
    version: StrictStr = ""
    resource: StrictStr = ""


class AdmissionRequestModel(_EnvelopeModel):
    uid: StrictStr = ""
    resource: GroupVersionResource = Field(default_factory=GroupVersionResource)
    operation: StrictStr = ""
    object: Optional[Dict[str, Any]] = None


class AdmissionReviewModel(_EnvelopeModel):
    api_version: StrictStr = Field(default=ADMISSION_API_VERSION, alias="apiVersion")
    kind: StrictStr = "AdmissionReview"
    request: AdmissionRequestModel


class ResourceAttributesModel(_EnvelopeModel):
    group: StrictStr = ""
    resource: StrictStr = ""
    verb: StrictStr = ""
    namespace: StrictStr = ""
    name: StrictStr = ""


class SubjectAccessReviewSpecModel(_EnvelopeModel):
    user: StrictStr = ""
    resource_attributes: Optional[ResourceAttributesModel] = Field(default=None, alias="resourceAttributes")
    non_resource_attributes: Optional[Dict[str, Any]] = Field(default=None, alias="nonResourceAttributes")


class SubjectAccessReviewModel(_EnvelopeModel):
    api_version: StrictStr = Field(default=AUTHORIZATION_API_VERSION, alias="apiVersion")
    kind: StrictStr = "SubjectAccessReview"
    spec: SubjectAccessReviewSpecModel


@dataclass(frozen=True)
class AdmissionRequest:
    correlation_id: str
    group: str = ""
    resource: str = ""
    operation: str = ""
    raw_object: bytes = b""
    api_version: str = ADMISSION_API_VERSION

    @property
    def attributes(self) -> RequestAttributes:
        return RequestAttributes(group=self.group, resource=self.resource, operation=self.operation)


@dataclass(frozen=True)
class SubjectAccessRequest:
    attributes: RequestAttributes = field(default_factory=RequestAttributes)
    user: str = ""
    api_version: str = AUTHORIZATION_API_VERSION


def parse_admission_review(body: bytes) -> AdmissionRequest:
    document = _load_document(body)
    correlation_id = _recover_uid(document)
    try:
        review = AdmissionReviewModel.model_validate(document)
    except ValidationError as exc:
        raise DecodeError(f"malformed AdmissionReview: {exc}", correlation_id=correlation_id) from exc

    request = review.request
    raw_object = b""
    if request.object is not None:
        raw_object = json.dumps(request.object).encode("utf-8")
    return AdmissionRequest(
        correlation_id=request.uid,
        group=request.resource.group,
        resource=request.resource.resource,
        operation=request.operation,
        raw_object=raw_object,
        api_version=review.api_version,
    )


def parse_subject_access_review(body: bytes) -> SubjectAccessRequest:
    document = _load_document(body)
    try:
        review = SubjectAccessReviewModel.model_validate(document)
    except ValidationError as exc:
        raise DecodeError(f"malformed SubjectAccessReview: {exc}") from exc

    attributes = RequestAttributes()
    resource_attributes = review.spec.resource_attributes
    if resource_attributes is not None:
        attributes = RequestAttributes(
            group=resource_attributes.group,
            resource=resource_attributes.resource,
            operation=resource_attributes.verb,
        )
    return SubjectAccessRequest(attributes=attributes, user=review.spec.user, api_version=review.api_version)


def render_admission_review(decision: Decision, api_version: str = ADMISSION_API_VERSION) -> Dict[str, Any]:
    response: Dict[str, Any] = {}
    if decision.correlation_id is not None:
        response["uid"] = decision.correlation_id
    response["allowed"] = decision.allowed
    if not decision.allowed:
        response["status"] = {
            "code": decision.deny_code,
            "reason": decision.deny_reason,
            "message": decision.deny_reason,
        }
    if decision.patch is not None:
        patch_bytes = jsonpatch.JsonPatch(decision.patch).to_string().encode("utf-8")
        response["patch"] = base64.b64encode(patch_bytes).decode("ascii")
        response["patchType"] = decision.patch_type
    return {"apiVersion": api_version, "kind": "AdmissionReview", "response": response}


def render_subject_access_review(
    decision: Decision, api_version: str = AUTHORIZATION_API_VERSION
) -> Dict[str, Any]:
    status: Dict[str, Any] = {"allowed": decision.allowed}
    if not decision.allowed:
        status["denied"] = True
        if decision.deny_reason:
            status["reason"] = decision.deny_reason
    return {"apiVersion": api_version, "kind": "SubjectAccessReview", "status": status}


def _load_document(body: bytes) -> Any:
    try:
        return json.loads(body)
    except (ValueError, RecursionError) as exc:
        raise DecodeError(f"body is not valid JSON: {exc}") from exc


def _recover_uid(document: Any) -> Optional[str]:
    if not isinstance(document, dict):
        return None
    request = document.get("request")
    if not isinstance(request, dict):
        return None
    uid = request.get("uid")
    return uid if isinstance(uid, str) else None


__all__ = [
    "ADMISSION_API_VERSION",
    "AUTHORIZATION_API_VERSION",
    "AdmissionRequest",
    "SubjectAccessRequest",
    "parse_admission_review",
    "parse_subject_access_review",
    "render_admission_review",
    "render_subject_access_review",
]
