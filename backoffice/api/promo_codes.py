from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from backoffice.db import get_db
from backoffice.schemas.promo import PromoCodeCreate, PromoCodeRead, PromoCodeUpdate
from backoffice.services.auth_dependencies import AdminPrincipal, require_permission
from backoffice.services.billing_provider import StripeClient, get_billing_provider
from backoffice.services.promo_codes import promo_codes as promo_codes_service

router = APIRouter(prefix="/promo-codes", tags=["promo-codes"])


@router.post("", response_model=PromoCodeRead, status_code=status.HTTP_201_CREATED)
def create_promo_code(
    payload: PromoCodeCreate,
    db: Session = Depends(get_db),
    provider: StripeClient = Depends(get_billing_provider),
    principal: AdminPrincipal = Depends(require_permission("create_promo_code")),
):
    return promo_codes_service.create(db, payload, principal.admin_id, provider=provider)


@router.get("", response_model=list[PromoCodeRead])
def list_promo_codes(
    is_active: bool | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    _: AdminPrincipal = Depends(require_permission("view_promo_codes")),
):
    return promo_codes_service.list(db, is_active, limit, offset)


@router.get("/{code}", response_model=PromoCodeRead)
def get_promo_code(
    code: str,
    db: Session = Depends(get_db),
    _: AdminPrincipal = Depends(require_permission("view_promo_codes")),
):
    return promo_codes_service.get(db, code)


@router.patch("/{code}", response_model=PromoCodeRead)
def update_promo_code(
    code: str,
    payload: PromoCodeUpdate,
    db: Session = Depends(get_db),
    principal: AdminPrincipal = Depends(require_permission("edit_promo_code")),
):
    return promo_codes_service.update(db, code, payload, principal.admin_id)


@router.post("/{code}/deactivate", response_model=PromoCodeRead)
def deactivate_promo_code(
    code: str,
    db: Session = Depends(get_db),
    principal: AdminPrincipal = Depends(require_permission("deactivate_promo_code")),
):
    return promo_codes_service.deactivate(db, code, principal.admin_id)
