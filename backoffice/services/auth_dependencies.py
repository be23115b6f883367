"""Operator authentication and permission checks for the API.

Tokens are issued by the admin login service; here they are only verified.
The ``sub`` claim is the ``AdminUser`` id and ``role`` one of ``AdminRole``.
"""

from dataclasses import dataclass
from typing import Any, cast

from fastapi import Depends, Header, Request
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from backoffice.config import settings
from backoffice.db import get_db as _get_db
from backoffice.models.admin import AdminRole, AdminUser
from backoffice.models.customer import AccountStatus, Customer
from backoffice.services.common import coerce_uuid, get_or_404
from backoffice.services.errors import Forbidden, Unauthorized, ValidationFailed

_ALL_ROLES = (AdminRole.super_admin, AdminRole.support_l1, AdminRole.support_l2)
_SENIOR_ROLES = (AdminRole.super_admin, AdminRole.support_l2)

PERMISSIONS: dict[str, tuple[AdminRole, ...]] = {
    "view_customer_detail": _ALL_ROLES,
    "apply_promo_code": _ALL_ROLES,
    "extend_trial": _SENIOR_ROLES,
    "comp_month": _SENIOR_ROLES,
    "apply_credit": _SENIOR_ROLES,
    "edit_customer": _SENIOR_ROLES,
    "re_enable_account": _SENIOR_ROLES,
    "view_promo_codes": _ALL_ROLES,
    "create_promo_code": (AdminRole.super_admin,),
    "edit_promo_code": (AdminRole.super_admin,),
    "deactivate_promo_code": (AdminRole.super_admin,),
}


@dataclass(frozen=True)
class AdminPrincipal:
    admin_id: str
    email: str
    role: AdminRole


def has_permission(role: AdminRole, permission_key: str) -> bool:
    return role in PERMISSIONS.get(permission_key, ())


def _extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1].strip()
    return None


def decode_access_token(token: str) -> dict:
    if not settings.jwt_secret:
        raise Unauthorized("Token verification is not configured")
    try:
        payload = cast(
            dict[Any, Any],
            jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]),
        )
    except JWTError as exc:
        raise Unauthorized("Invalid token") from exc
    if payload.get("typ") != "access":
        raise Unauthorized("Invalid token type")
    return payload


def require_admin_auth(
    authorization: str | None = Header(default=None),
    request: Request = None,
    db: Session = Depends(_get_db),
) -> AdminPrincipal:
    token = _extract_bearer_token(authorization)
    if not token:
        raise Unauthorized("Unauthorized")
    payload = decode_access_token(token)
    admin_id = payload.get("sub")
    try:
        role = AdminRole(payload.get("role"))
    except ValueError as exc:
        raise Unauthorized("Invalid token role") from exc
    if not admin_id:
        raise Unauthorized("Unauthorized")
    try:
        admin = db.get(AdminUser, coerce_uuid(admin_id))
    except ValidationFailed as exc:
        raise Unauthorized("Unauthorized") from exc
    if admin is None or not admin.is_active:
        raise Unauthorized("Unauthorized")
    if request is not None:
        request.state.actor_id = str(admin.id)
    return AdminPrincipal(admin_id=str(admin.id), email=admin.email, role=role)


def require_permission(permission_key: str):
    def _require_permission(
        principal: AdminPrincipal = Depends(require_admin_auth),
    ) -> AdminPrincipal:
        if not has_permission(principal.role, permission_key):
            raise Forbidden(
                f"Role '{principal.role.value}' cannot perform '{permission_key}'"
            )
        return principal

    return _require_permission


def require_active_customer(
    customer_id: str,
    db: Session = Depends(_get_db),
) -> None:
    """Reject mutations on suspended accounts; suspend and re-enable skip this."""
    customer = get_or_404(db, Customer, customer_id, "Customer not found")
    if customer.account_status == AccountStatus.suspended:
        raise Forbidden(
            "Account is suspended. Re-enable it before making changes.",
            {"account_status": customer.account_status.value},
        )
