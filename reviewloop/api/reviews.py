"""Review moderation (merchant) and the public showcase"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from reviewloop.api.errors import to_http_exception
from reviewloop.core.exceptions import ReviewLoopError
from reviewloop.core.security import require_merchant_access
from reviewloop.db.session import get_db
from reviewloop.schemas.reviews import RejectReviewRequest
from reviewloop.services.merchant_service import require_merchant
from reviewloop.services.review_service import (
    approve_review, list_approved_reviews, list_reviews, reject_review, serialize_review
)

router = APIRouter(prefix="/api/merchants/{company_id}/reviews", tags=["reviews"])
showcase_router = APIRouter(prefix="/api/showcase", tags=["showcase"])
logger = logging.getLogger(__name__)


@router.get("")
def get_reviews(
    company_id: str = Depends(require_merchant_access),
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    """Reviews for the dashboard, optionally filtered by status"""
    try:
        merchant = require_merchant(company_id, db)
        return {"reviews": list_reviews(merchant.id, db, status=status)}
    except ReviewLoopError as e:
        raise to_http_exception(e)


@router.post("/{review_id}/approve")
def approve(review_id: int, company_id: str = Depends(require_merchant_access), db: Session = Depends(get_db)):
    try:
        merchant = require_merchant(company_id, db)
        review = approve_review(review_id, db, merchant_id=merchant.id)
    except ReviewLoopError as e:
        raise to_http_exception(e)
    return serialize_review(review)


@router.post("/{review_id}/reject")
def reject(
    review_id: int,
    request_data: Optional[RejectReviewRequest] = None,
    company_id: str = Depends(require_merchant_access),
    db: Session = Depends(get_db)
):
    reason = request_data.reason if request_data else None
    try:
        merchant = require_merchant(company_id, db)
        review = reject_review(review_id, db, rejection_reason=reason, merchant_id=merchant.id)
    except ReviewLoopError as e:
        raise to_http_exception(e)
    return serialize_review(review)


@showcase_router.get("/{company_id}")
def get_showcase(company_id: str, db: Session = Depends(get_db)):
    """Approved reviews, public, in the merchant's chosen layout"""
    try:
        merchant = require_merchant(company_id, db)
    except ReviewLoopError as e:
        raise to_http_exception(e)
    return {
        "display_format": merchant.review_display_format,
        "reviews": list_approved_reviews(merchant.id, db),
    }
