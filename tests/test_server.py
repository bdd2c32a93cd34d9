import base64
import json

from fastapi.testclient import TestClient

from src.common.config import EngineConfig
from src.webhook.engine import AdmissionEngine
from src.webhook.server import _default_engine, app, create_app, get_engine


def _review(group: str, resource: str, operation: str, obj=None, uid: str = "srv-1") -> dict:
    return {
        "apiVersion": "admission.k8s.io/v1",
        "kind": "AdmissionReview",
        "request": {
            "uid": uid,
            "resource": {"group": group, "version": "v1", "resource": resource},
            "operation": operation,
            "object": obj,
        },
    }


class TestWebhookServer:
    def setup_method(self) -> None:
        self._original_override = app.dependency_overrides.get(get_engine)
        engine = AdmissionEngine(EngineConfig.from_strings("apps", "deployments", "DELETE"))
        app.dependency_overrides[get_engine] = lambda: engine
        self.client = TestClient(app)

    def teardown_method(self) -> None:
        if self._original_override is not None:
            app.dependency_overrides[get_engine] = self._original_override
        else:
            app.dependency_overrides.pop(get_engine, None)

    def test_validate_denies_in_scope_request(self) -> None:
        response = self.client.post("/validate", json=_review("apps", "deployments", "DELETE"))
        assert response.status_code == 200
        body = response.json()["response"]
        assert body["uid"] == "srv-1"
        assert body["allowed"] is False
        assert body["status"]["reason"] == "denied by policy"

    def test_validate_allows_other_requests(self) -> None:
        response = self.client.post("/validate", json=_review("apps", "deployments", "CREATE"))
        assert response.json()["response"] == {"uid": "srv-1", "allowed": True}

    def test_authorize_route(self) -> None:
        payload = {
            "apiVersion": "authorization.k8s.io/v1",
            "kind": "SubjectAccessReview",
            "spec": {"resourceAttributes": {"group": "apps", "resource": "deployments", "verb": "DELETE"}},
        }
        response = self.client.post("/authorize", json=payload)
        assert response.status_code == 200
        assert response.json()["status"]["denied"] is True

    def test_mutate_psp_returns_base64_patch(self) -> None:
        psp = {"kind": "PodSecurityPolicy", "spec": {"hostIPC": True, "allowedCapabilities": ["SYS_ADMIN"]}}
        response = self.client.post("/mutate-psp", json=_review("policy", "podsecuritypolicies", "CREATE", psp))
        body = response.json()["response"]
        assert body["allowed"] is True
        assert body["patchType"] == "JSONPatch"
        assert json.loads(base64.b64decode(body["patch"])) == [
            {"op": "remove", "path": "/spec/hostIPC"},
            {"op": "remove", "path": "/spec/allowedCapabilities"},
        ]

    def test_malformed_body_still_gets_review_envelope(self) -> None:
        response = self.client.post(
            "/mutate-psp",
            content=b"{definitely not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["kind"] == "AdmissionReview"
        assert body["response"]["allowed"] is False
        assert body["response"]["status"]["reason"] == "Webhook: JSON parse error"

    def test_get_is_answered_with_denial(self) -> None:
        response = self.client.get("/validate")
        assert response.status_code == 200
        body = response.json()["response"]
        assert body["allowed"] is False
        assert body["status"]["reason"] == "Webhook: Not POST method"

    def test_healthz(self) -> None:
        response = self.client.get("/healthz")
        assert response.json() == {"status": "ok"}

    def test_options_is_answered_with_denial(self) -> None:
        response = self.client.options("/authorize")
        assert response.status_code == 200
        assert response.json()["status"]["reason"] == "Webhook: Not POST method"

    def test_head_is_not_rejected_with_405(self) -> None:
        response = self.client.head("/mutate-psp")
        assert response.status_code == 200


def test_create_app_serves_the_given_engine() -> None:
    engine = AdmissionEngine(EngineConfig.from_strings("policy", "*", "*"))
    client = TestClient(create_app(engine))
    body = client.post("/validate", json=_review("policy", "podsecuritypolicies", "CREATE")).json()
    assert body["response"]["allowed"] is False


def test_create_app_without_engine_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("ADMISSION_GROUPS", "batch")
    monkeypatch.setenv("ADMISSION_RESOURCES", "jobs")
    monkeypatch.setenv("ADMISSION_OPERATIONS", "CREATE")
    _default_engine.cache_clear()
    try:
        client = TestClient(create_app())
        body = client.post("/validate", json=_review("batch", "jobs", "CREATE")).json()
    finally:
        _default_engine.cache_clear()
    assert body["response"]["allowed"] is False
