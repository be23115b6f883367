"""Stripe calls made by billing sync and promo creation.

Every call passes the configured key explicitly instead of setting the
module-level ``stripe.api_key``, so handlers running in different threads
never share mutable SDK state. SDK errors are translated into
``BillingProviderClientError`` for the service layer.
"""

from __future__ import annotations

import logging
from typing import Any

import stripe

from backoffice.config import settings

logger = logging.getLogger(__name__)


class BillingProviderClientError(Exception):
    """Any failure reported by the billing provider or its SDK."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class StripeClient:
    def __init__(self, secret_key: str | None = None):
        self.secret_key = secret_key if secret_key is not None else settings.stripe_secret_key

    def _call(self, operation: str, func, *args, **params) -> Any:
        if not self.secret_key:
            raise BillingProviderClientError("Stripe secret key is not configured")
        params = {key: value for key, value in params.items() if value is not None}
        try:
            return func(*args, api_key=self.secret_key, **params)
        except stripe.StripeError as exc:
            message = exc.user_message or str(exc) or type(exc).__name__
            logger.error("Stripe %s failed: %s", operation, message)
            raise BillingProviderClientError(message, status_code=exc.http_status) from exc

    def update_subscription_period_end(self, subscription_id: str, period_end: int):
        """Push a new period end through the subscription's trial-end mechanism."""
        return self._call(
            "subscription update",
            stripe.Subscription.modify,
            subscription_id,
            trial_end=period_end,
            proration_behavior="none",
        )

    def create_balance_transaction(
        self,
        customer_id: str,
        amount: int,
        currency: str,
        description: str,
        metadata: dict[str, str] | None = None,
    ):
        """Negative ``amount`` credits the customer."""
        return self._call(
            "balance transaction",
            stripe.Customer.create_balance_transaction,
            customer_id,
            amount=amount,
            currency=currency,
            description=description,
            metadata=metadata or {},
        )

    def create_coupon(
        self,
        percent_off: int,
        duration_in_months: int,
        name: str,
        metadata: dict[str, str] | None = None,
    ):
        return self._call(
            "coupon create",
            stripe.Coupon.create,
            percent_off=percent_off,
            duration="repeating",
            duration_in_months=duration_in_months,
            name=name,
            metadata=metadata or {},
        )

    def create_promotion_code(
        self,
        coupon_id: str,
        code: str,
        max_redemptions: int | None = None,
        expires_at: int | None = None,
        metadata: dict[str, str] | None = None,
    ):
        return self._call(
            "promotion code create",
            stripe.PromotionCode.create,
            coupon=coupon_id,
            code=code,
            max_redemptions=max_redemptions,
            expires_at=expires_at,
            metadata=metadata or {},
        )


def get_billing_provider() -> StripeClient:
    return StripeClient()
