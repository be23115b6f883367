"""API tests for the customer back-office routes."""

import uuid
from datetime import datetime, timedelta, timezone

from backoffice.models.activity import SentEmail
from backoffice.models.admin import AdminRole
from backoffice.models.customer import AccountStatus
from backoffice.models.promo import PromoCodeType
from tests.mocks import FakeStripeClient


def _url(customer, action=""):
    suffix = f"/{action}" if action else ""
    return f"/api/v1/customers/{customer.id}{suffix}"


def _headers_for(access_token, admin):
    return {"Authorization": f"Bearer {access_token(admin)}"}


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_detail_requires_token(client, paid_customer):
    resp = client.get(_url(paid_customer))
    assert resp.status_code == 401
    assert resp.json()["code"] == "unauthorized"


def test_detail(client, auth_headers, paid_customer):
    resp = client.get(_url(paid_customer), headers=auth_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "active_paid"
    assert body["status_label"] == "Active Paid"
    assert body["billing"]["provider_subscription_id"] == "sub_test123"
    assert resp.headers["X-Request-ID"]


def test_detail_unknown_customer(client, auth_headers):
    resp = client.get(f"/api/v1/customers/{uuid.uuid4()}", headers=auth_headers)
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


def test_timeline(client, auth_headers, db_session, trial_customer):
    db_session.add(
        SentEmail(
            customer_id=trial_customer.id,
            template_key="welcome",
            recipient="owner@example.com",
            sent_at=datetime.now(timezone.utc) - timedelta(hours=1),
        )
    )
    db_session.commit()
    resp = client.get(_url(trial_customer, "timeline"), headers=auth_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 1
    assert body["events"][0]["title"] == "Welcome email"
    assert body["has_more"] is False


def test_timeline_rejects_negative_page(client, auth_headers, trial_customer):
    resp = client.get(_url(trial_customer, "timeline"), params={"page": -1}, headers=auth_headers)
    assert resp.status_code == 422


def test_apply_promo_requires_force_body(client, auth_headers, trial_customer, make_promo):
    make_promo("ONCE", one_per_customer=True)
    first = client.post(_url(trial_customer, "apply-promo"), json={"code": "once"}, headers=auth_headers)
    assert first.status_code == 200
    assert first.json()["type"] == "extended_trial"

    second = client.post(_url(trial_customer, "apply-promo"), json={"code": "ONCE"}, headers=auth_headers)
    assert second.status_code == 400
    assert second.json()["code"] == "requires_force"
    assert second.json()["details"]["requires_force"] is True

    forced = client.post(
        _url(trial_customer, "apply-promo"),
        json={"code": "ONCE", "force": True},
        headers=auth_headers,
    )
    assert forced.status_code == 200


def test_support_l1_can_apply_discount(client, access_token, make_admin, paid_customer, make_promo):
    make_promo("SAVE20", promo_type=PromoCodeType.subscription_discount)
    headers = _headers_for(access_token, make_admin(AdminRole.support_l1))
    resp = client.post(_url(paid_customer, "apply-promo"), json={"code": "SAVE20"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["trial_ends_at"] is None


def test_comp_month(client, auth_headers, paid_customer, fake_provider):
    resp = client.post(
        _url(paid_customer, "comp-month"), json={"reason": "Outage credit"}, headers=auth_headers
    )
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert fake_provider.call_names() == ["update_subscription_period_end"]


def test_comp_month_provider_failure_is_502(client, auth_headers, paid_customer):
    from backoffice.main import app
    from backoffice.services.billing_provider import get_billing_provider

    app.dependency_overrides[get_billing_provider] = lambda: FakeStripeClient(
        fail_with="No such subscription"
    )
    resp = client.post(
        _url(paid_customer, "comp-month"), json={"reason": "Outage credit"}, headers=auth_headers
    )
    assert resp.status_code == 502
    body = resp.json()
    assert body["code"] == "billing_provider_error"
    assert body["details"]["provider_message"] == "No such subscription"
    assert body["details"]["reverted"] is True


def test_comp_month_forbidden_for_support_l1(client, access_token, make_admin, paid_customer):
    headers = _headers_for(access_token, make_admin(AdminRole.support_l1))
    resp = client.post(_url(paid_customer, "comp-month"), json={"reason": "Outage"}, headers=headers)
    assert resp.status_code == 403
    assert resp.json()["code"] == "forbidden"


def test_apply_credit(client, auth_headers, paid_customer, fake_provider):
    resp = client.post(
        _url(paid_customer, "apply-credit"),
        json={"amount": 1500, "reason": "Goodwill"},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "amount": 1500, "currency": "cad"}
    assert fake_provider.calls[0][1]["amount"] == -1500


def test_suspended_customer_blocks_mutations(client, auth_headers, make_customer, make_promo):
    customer = make_customer(account_status=AccountStatus.suspended)
    make_promo("TRIAL7")
    for action, payload in [
        ("apply-promo", {"code": "TRIAL7"}),
        ("extend-trial", {"days": 7, "reason": "More time"}),
        ("change-plan", {"plan_tier": "solo", "reason": "Upgrade"}),
        ("billing-exempt", {"billing_exempt": True, "reason": "Partner"}),
    ]:
        resp = client.post(_url(customer, action), json=payload, headers=auth_headers)
        assert resp.status_code == 403, action
        assert resp.json()["details"] == {"account_status": "suspended"}


def test_suspended_gate_runs_after_auth(client, make_customer):
    customer = make_customer(account_status=AccountStatus.suspended)
    resp = client.post(_url(customer, "extend-trial"), json={"days": 7, "reason": "More time"})
    assert resp.status_code == 401


def test_suspend_and_re_enable(client, auth_headers, paid_customer):
    resp = client.post(
        _url(paid_customer, "suspend"),
        json={"reason_code": "fraud", "notes": "card testing"},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["account_status"] == "suspended"
    assert resp.json()["suspended_reason"] == "Fraud: card testing"

    short = client.post(_url(paid_customer, "re-enable"), json={"reason": "ok"}, headers=auth_headers)
    assert short.status_code == 400
    assert short.json()["code"] == "validation_error"

    resp = client.post(
        _url(paid_customer, "re-enable"),
        json={"reason": "Verified the cardholder"},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["account_status"] == "active"


def test_extend_trial(client, auth_headers, trial_customer):
    resp = client.post(
        _url(trial_customer, "extend-trial"),
        json={"days": 7, "reason": "Evaluating"},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["trial_ends_at"]


def test_change_plan(client, auth_headers, trial_customer):
    resp = client.post(
        _url(trial_customer, "change-plan"),
        json={"plan_tier": "team_growth", "reason": "Signed contract"},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "previous_plan": "free_trial",
        "new_plan": "team_growth",
    }


def test_billing_exempt(client, auth_headers, paid_customer):
    resp = client.post(
        _url(paid_customer, "billing-exempt"),
        json={"billing_exempt": True, "reason": "Partner account"},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "billing_exempt": True}
