"""Tests for the Stripe SDK wrapper and its use by billing sync."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
import stripe
from fastapi import HTTPException

from backoffice.models.admin import AdminAction
from backoffice.services.billing_provider import BillingProviderClientError, StripeClient
from backoffice.services.billing_sync import billing_sync as billing_sync_service
from backoffice.services.common import as_utc

PERIOD_END = datetime(2026, 11, 1, tzinfo=timezone.utc)


@pytest.fixture
def mock_stripe():
    """Replace the SDK module while keeping its real error classes."""
    with patch("backoffice.services.billing_provider.stripe") as mocked:
        mocked.StripeError = stripe.StripeError
        yield mocked


@pytest.fixture
def client():
    return StripeClient("sk_test_123")


# =============================================================================
# Client Tests
# =============================================================================


class TestStripeClient:
    def test_missing_secret_key_raises(self, mock_stripe):
        with pytest.raises(BillingProviderClientError) as exc_info:
            StripeClient("").create_coupon(10, 3, "TEN")
        assert "not configured" in exc_info.value.message
        mock_stripe.Coupon.create.assert_not_called()

    def test_update_subscription_period_end(self, client, mock_stripe):
        mock_stripe.Subscription.modify.return_value = {"id": "sub_1"}

        result = client.update_subscription_period_end("sub_1", 1790000000)

        assert result == {"id": "sub_1"}
        mock_stripe.Subscription.modify.assert_called_once_with(
            "sub_1",
            api_key="sk_test_123",
            trial_end=1790000000,
            proration_behavior="none",
        )

    def test_create_balance_transaction(self, client, mock_stripe):
        client.create_balance_transaction(
            "cus_1", -2500, "cad", "Goodwill", metadata={"customer_id": "c1"}
        )
        mock_stripe.Customer.create_balance_transaction.assert_called_once_with(
            "cus_1",
            api_key="sk_test_123",
            amount=-2500,
            currency="cad",
            description="Goodwill",
            metadata={"customer_id": "c1"},
        )

    def test_create_promotion_code_omits_unset_limits(self, client, mock_stripe):
        client.create_promotion_code("coupon_1", "SAVE20")

        kwargs = mock_stripe.PromotionCode.create.call_args.kwargs
        assert "max_redemptions" not in kwargs
        assert "expires_at" not in kwargs
        assert kwargs["coupon"] == "coupon_1"
        assert kwargs["code"] == "SAVE20"

    def test_create_coupon_is_repeating(self, client, mock_stripe):
        client.create_coupon(15, 2, "SAVE15")
        kwargs = mock_stripe.Coupon.create.call_args.kwargs
        assert kwargs["duration"] == "repeating"
        assert kwargs["duration_in_months"] == 2
        assert kwargs["percent_off"] == 15


class TestErrorTranslation:
    def test_invalid_request_keeps_message_and_status(self, client, mock_stripe):
        mock_stripe.Subscription.modify.side_effect = stripe.InvalidRequestError(
            "No such subscription: 'sub_1'", "id", http_status=404
        )

        with pytest.raises(BillingProviderClientError) as exc_info:
            client.update_subscription_period_end("sub_1", 1790000000)

        assert exc_info.value.message == "No such subscription: 'sub_1'"
        assert exc_info.value.status_code == 404

    def test_connection_error(self, client, mock_stripe):
        mock_stripe.Coupon.create.side_effect = stripe.APIConnectionError("Connection refused")

        with pytest.raises(BillingProviderClientError) as exc_info:
            client.create_coupon(10, 3, "TEN")

        assert exc_info.value.message == "Connection refused"
        assert exc_info.value.status_code is None


# =============================================================================
# Billing Sync Through The Real Client
# =============================================================================


def _actions(db_session, customer):
    return (
        db_session.query(AdminAction)
        .filter(AdminAction.target_customer_id == customer.id)
        .order_by(AdminAction.action_type)
        .all()
    )


class TestCompMonthWithStripeClient:
    def test_success_reaches_the_sdk(self, db_session, paid_customer, client, mock_stripe):
        mock_stripe.Subscription.modify.return_value = MagicMock(id="sub_test123")
        new_end = PERIOD_END + timedelta(days=30)

        billing_sync_service.comp_month(
            db_session, str(paid_customer.id), "Outage credit", provider=client
        )

        mock_stripe.Subscription.modify.assert_called_once_with(
            "sub_test123",
            api_key="sk_test_123",
            trial_end=int(new_end.timestamp()),
            proration_behavior="none",
        )
        db_session.refresh(paid_customer.billing_snapshot)
        assert as_utc(paid_customer.billing_snapshot.current_period_end) == new_end
        assert [action.action_type for action in _actions(db_session, paid_customer)] == [
            "comp_month"
        ]

    def test_sdk_error_reverts_and_returns_502(self, db_session, paid_customer, client, mock_stripe):
        mock_stripe.Subscription.modify.side_effect = stripe.APIError("Bad gateway", http_status=502)

        with pytest.raises(HTTPException) as exc:
            billing_sync_service.comp_month(
                db_session, str(paid_customer.id), "Outage credit", provider=client
            )

        assert exc.value.status_code == 502
        assert exc.value.detail["details"]["provider_message"] == "Bad gateway"
        db_session.refresh(paid_customer.billing_snapshot)
        assert as_utc(paid_customer.billing_snapshot.current_period_end) == PERIOD_END
        assert [action.action_type for action in _actions(db_session, paid_customer)] == [
            "comp_month_failed"
        ]

    def test_apply_credit_reaches_the_sdk(self, db_session, paid_customer, client, mock_stripe):
        result = billing_sync_service.apply_credit(
            db_session, str(paid_customer.id), 500, "Goodwill", provider=client
        )

        assert result == {"amount": 500, "currency": "cad"}
        args, kwargs = mock_stripe.Customer.create_balance_transaction.call_args
        assert args == ("cus_test123",)
        assert kwargs["amount"] == -500
