"""Merchant onboarding, credits and dashboard data"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Response
from sqlalchemy.orm import Session

from reviewloop.api.errors import to_http_exception
from reviewloop.core.exceptions import ReviewLoopError, ValidationError
from reviewloop.core.security import require_merchant_access
from reviewloop.db.session import get_db
from reviewloop.schemas.merchants import CheckoutRequest, DisplayFormatUpdate, MerchantCreate
from reviewloop.services import platform_service
from reviewloop.services.credit_service import get_credit_pack_amount, get_credit_transactions
from reviewloop.services.email_service import get_email_logs
from reviewloop.services.merchant_service import (
    get_analytics_stats, onboard_merchant, require_merchant, serialize_merchant, update_display_format
)

router = APIRouter(prefix="/api/merchants", tags=["merchants"])
logger = logging.getLogger(__name__)


@router.post("")
def create_merchant(
    request_data: MerchantCreate,
    response: Response,
    x_platform_user_token: Optional[str] = Header(None, alias="x-platform-user-token"),
    db: Session = Depends(get_db)
):
    """Onboard a company. Repeat calls return the existing merchant."""
    require_merchant_access(request_data.company_id, x_platform_user_token)
    merchant, created = onboard_merchant(request_data.company_id, db, name=request_data.name, email=request_data.email)
    response.status_code = 201 if created else 200
    return serialize_merchant(merchant)


@router.get("/{company_id}")
def get_merchant(company_id: str = Depends(require_merchant_access), db: Session = Depends(get_db)):
    try:
        return serialize_merchant(require_merchant(company_id, db))
    except ReviewLoopError as e:
        raise to_http_exception(e)


@router.patch("/{company_id}/display-format")
def set_display_format(
    request_data: DisplayFormatUpdate,
    company_id: str = Depends(require_merchant_access),
    db: Session = Depends(get_db)
):
    try:
        merchant = update_display_format(require_merchant(company_id, db), request_data.review_display_format, db)
    except ReviewLoopError as e:
        raise to_http_exception(e)
    return serialize_merchant(merchant)


@router.get("/{company_id}/credits")
def get_credits(
    company_id: str = Depends(require_merchant_access),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db)
):
    """Balance plus recent credit transactions"""
    try:
        merchant = require_merchant(company_id, db)
    except ReviewLoopError as e:
        raise to_http_exception(e)
    return {
        "credit_balance": merchant.credit_balance,
        "transactions": get_credit_transactions(merchant.id, limit=limit, db=db),
    }


@router.post("/{company_id}/credits/checkout")
def create_credit_checkout(
    request_data: CheckoutRequest,
    company_id: str = Depends(require_merchant_access),
    db: Session = Depends(get_db)
):
    """Start a credit pack purchase; the payment webhook adds the credits"""
    credits = get_credit_pack_amount(request_data.plan_id)
    try:
        require_merchant(company_id, db)
        if credits is None:
            raise ValidationError(f"Unknown credit pack: {request_data.plan_id}")
        checkout = platform_service.create_checkout_configuration(request_data.plan_id, company_id)
    except ReviewLoopError as e:
        logger.error(f"Checkout for {company_id} failed: {e}")
        raise to_http_exception(e)
    return {"plan_id": request_data.plan_id, "credits": credits, "checkout": checkout}


@router.get("/{company_id}/analytics")
def get_analytics(company_id: str = Depends(require_merchant_access), db: Session = Depends(get_db)):
    try:
        return get_analytics_stats(require_merchant(company_id, db), db)
    except ReviewLoopError as e:
        raise to_http_exception(e)


@router.get("/{company_id}/email-logs")
def list_email_logs(
    company_id: str = Depends(require_merchant_access),
    email_type: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db)
):
    try:
        merchant = require_merchant(company_id, db)
    except ReviewLoopError as e:
        raise to_http_exception(e)
    return {"email_logs": get_email_logs(merchant.id, db, email_type=email_type, limit=limit)}


@router.get("/{company_id}/promo-codes")
def list_promo_codes(company_id: str = Depends(require_merchant_access)):
    """Active promo codes a product can be configured with"""
    try:
        promo_codes = platform_service.list_promo_codes(company_id)
    except ReviewLoopError as e:
        logger.error(f"Listing promo codes for {company_id} failed: {e}")
        raise to_http_exception(e)
    return {
        "promo_codes": [
            {
                "id": p.get("id"),
                "code": p.get("code"),
                "promo_type": p.get("promo_type"),
                "amount_off": p.get("amount_off"),
                "currency": p.get("currency"),
                "status": p.get("status"),
            }
            for p in promo_codes
        ]
    }
