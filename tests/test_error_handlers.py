from __future__ import annotations

from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.testclient import TestClient

from backoffice.errors import register_error_handlers
from backoffice.observability import ObservabilityMiddleware
from backoffice.services.errors import BillingProviderError, RequiresForce


def _build_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(ObservabilityMiddleware)
    register_error_handlers(app)

    api_router = APIRouter(prefix="/api/v1")

    @api_router.get("/http-403")
    def api_http_403():
        raise HTTPException(status_code=403, detail="Forbidden api")

    @api_router.get("/needs-force")
    def api_needs_force():
        raise RequiresForce("This customer has already used this code.", {"rule": "one_per_customer"})

    @api_router.get("/provider-down")
    def api_provider_down():
        raise BillingProviderError("Billing provider error: timeout", "timeout")

    @api_router.get("/needs-int")
    def api_needs_int(value: int):
        return {"value": value}

    @api_router.get("/crash")
    def api_crash():
        raise RuntimeError("boom")

    app.include_router(api_router)
    return app


def test_plain_http_exception_uses_json_envelope() -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    resp = client.get("/api/v1/http-403", headers={"X-Request-ID": "req-123"})
    assert resp.status_code == 403
    payload = resp.json()
    assert payload["code"] == "http_403"
    assert payload["message"] == "Forbidden api"
    assert payload["request_id"] == "req-123"
    assert resp.headers["X-Request-ID"] == "req-123"


def test_service_error_keeps_code_and_details() -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    resp = client.get("/api/v1/needs-force")
    assert resp.status_code == 400
    payload = resp.json()
    assert payload["code"] == "requires_force"
    assert payload["details"] == {"rule": "one_per_customer", "requires_force": True}


def test_billing_provider_error_is_502() -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    resp = client.get("/api/v1/provider-down")
    assert resp.status_code == 502
    assert resp.json()["details"]["provider_message"] == "timeout"


def test_request_validation_is_422() -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    resp = client.get("/api/v1/needs-int", params={"value": "abc"})
    assert resp.status_code == 422
    payload = resp.json()
    assert payload["code"] == "validation_error"
    assert payload["details"][0]["loc"] == ["query", "value"]


def test_unknown_route_is_404() -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    resp = client.get("/api/v1/missing")
    assert resp.status_code == 404
    assert resp.json()["code"] == "http_404"


def test_unhandled_exception_hides_details() -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    resp = client.get("/api/v1/crash")
    assert resp.status_code == 500
    payload = resp.json()
    assert payload["code"] == "internal_error"
    assert payload["message"] == "Internal server error"
    assert payload["details"] is None
