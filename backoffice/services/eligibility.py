"""Promo code eligibility predicates.

Each predicate returns one of three distinct outcomes. ``force`` only ever
downgrades ``BlockedOverridable``; a hard ``Blocked`` always stands.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Union

from sqlalchemy.orm import Session

from backoffice.models.customer import Customer
from backoffice.models.promo import (
    PromoCode,
    PromoCodeRedemption,
    PromoCodeType,
    RedemptionStatus,
)
from backoffice.services.errors import Conflict, RequiresForce
from backoffice.services.status import CustomerStatus, customer_status


@dataclass(frozen=True)
class Allowed:
    pass


@dataclass(frozen=True)
class Blocked:
    rule: str
    message: str


@dataclass(frozen=True)
class BlockedOverridable:
    rule: str
    message: str


Outcome = Union[Allowed, Blocked, BlockedOverridable]
Predicate = Callable[[Session, PromoCode, Customer], Outcome]

ALLOWED = Allowed()


def trial_codes_need_trial(db: Session, promo: PromoCode, customer: Customer) -> Outcome:
    if promo.type != PromoCodeType.extended_trial:
        return ALLOWED
    if customer_status(customer) != CustomerStatus.active_trial:
        return Blocked(
            "trial_only",
            "Trial extension codes only apply to customers on free trial",
        )
    return ALLOWED


def new_customers_only(db: Session, promo: PromoCode, customer: Customer) -> Outcome:
    if promo.new_customers_only and customer.has_ever_subscribed:
        return BlockedOverridable(
            "new_customers_only",
            "This code is for new customers only. Pass force: true to override.",
        )
    return ALLOWED


def one_per_customer(db: Session, promo: PromoCode, customer: Customer) -> Outcome:
    if not promo.one_per_customer:
        return ALLOWED
    existing = (
        db.query(PromoCodeRedemption.id)
        .filter(PromoCodeRedemption.promo_code_id == promo.id)
        .filter(PromoCodeRedemption.customer_id == customer.id)
        .filter(PromoCodeRedemption.status != RedemptionStatus.reversed)
        .first()
    )
    if existing:
        return BlockedOverridable(
            "one_per_customer",
            "This customer has already used this code. Pass force: true to override.",
        )
    return ALLOWED


DEFAULT_PREDICATES: tuple[Predicate, ...] = (
    trial_codes_need_trial,
    new_customers_only,
    one_per_customer,
)


def apply_force(outcome: Outcome, force: bool) -> Outcome:
    if force and isinstance(outcome, BlockedOverridable):
        return ALLOWED
    return outcome


def evaluate(
    db: Session,
    promo: PromoCode,
    customer: Customer,
    force: bool = False,
    predicates: tuple[Predicate, ...] = DEFAULT_PREDICATES,
) -> list[Outcome]:
    """Run every predicate and return the outcomes after ``force`` is applied."""
    return [apply_force(predicate(db, promo, customer), force) for predicate in predicates]


def ensure_eligible(
    db: Session,
    promo: PromoCode,
    customer: Customer,
    force: bool = False,
    predicates: tuple[Predicate, ...] = DEFAULT_PREDICATES,
) -> None:
    """Raise for the first hard block, else for the first overridable block."""
    outcomes = evaluate(db, promo, customer, force, predicates)
    for outcome in outcomes:
        if isinstance(outcome, Blocked):
            raise Conflict(outcome.message, {"rule": outcome.rule})
    for outcome in outcomes:
        if isinstance(outcome, BlockedOverridable):
            raise RequiresForce(outcome.message, {"rule": outcome.rule})
