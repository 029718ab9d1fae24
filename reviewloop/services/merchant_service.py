"""Merchant onboarding, preferences and dashboard stats"""
import logging
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from reviewloop.core.config import settings
from reviewloop.core.exceptions import NotFoundError, ValidationError
from reviewloop.core.metrics import credits_counter
from reviewloop.models.credit_transaction import CreditTransaction
from reviewloop.models.email_log import EmailLog
from reviewloop.models.merchant import DISPLAY_FORMATS, Merchant
from reviewloop.models.product_config import ProductConfig
from reviewloop.models.review import Review

logger = logging.getLogger(__name__)


def get_merchant_by_company_id(company_id: str, db: Session) -> Optional[Merchant]:
    return db.query(Merchant).filter(Merchant.company_id == company_id).first()


def require_merchant(company_id: str, db: Session) -> Merchant:
    merchant = get_merchant_by_company_id(company_id, db)
    if not merchant:
        raise NotFoundError("Merchant not found. Please complete onboarding first.")
    return merchant


def onboard_merchant(
    company_id: str,
    db: Session,
    name: Optional[str] = None,
    email: Optional[str] = None
) -> Tuple[Merchant, bool]:
    """Get or create the merchant for a platform company.

    New merchants start with DEFAULT_MERCHANT_CREDITS, recorded as a
    'grant' transaction in the same commit.

    Returns:
        (merchant, created)
    """
    merchant = get_merchant_by_company_id(company_id, db)
    if merchant:
        return merchant, False

    starting_credits = settings.DEFAULT_MERCHANT_CREDITS
    merchant = Merchant(company_id=company_id, name=name, email=email, credit_balance=starting_credits)
    db.add(merchant)
    try:
        db.flush()
        if starting_credits > 0:
            db.add(CreditTransaction(
                merchant_id=merchant.id,
                transaction_type="grant",
                credits=starting_credits,
                balance_after=starting_credits,
                transaction_metadata={"reason": "onboarding"},
            ))
        db.commit()
    except IntegrityError:
        # Concurrent onboarding of the same company
        db.rollback()
        return require_merchant(company_id, db), False

    db.refresh(merchant)
    if starting_credits > 0:
        credits_counter.labels(direction="added").inc(starting_credits)
    logger.info(f"Onboarded merchant {company_id} with {starting_credits} credits")
    return merchant, True


def serialize_merchant(merchant: Merchant) -> Dict[str, Any]:
    return {
        "id": merchant.id,
        "company_id": merchant.company_id,
        "name": merchant.name,
        "email": merchant.email,
        "credit_balance": merchant.credit_balance,
        "review_display_format": merchant.review_display_format,
        "created_at": merchant.created_at.isoformat() if merchant.created_at else None,
    }


def update_display_format(merchant: Merchant, display_format: str, db: Session) -> Merchant:
    if display_format not in DISPLAY_FORMATS:
        raise ValidationError(f"Display format must be one of: {', '.join(DISPLAY_FORMATS)}")
    merchant.review_display_format = display_format
    db.commit()
    db.refresh(merchant)
    return merchant


def get_analytics_stats(merchant: Merchant, db: Session) -> Dict[str, int]:
    """Simple counts for the dashboard"""
    review_counts = dict(
        db.query(Review.status, func.count(Review.id))
        .filter(Review.merchant_id == merchant.id)
        .group_by(Review.status)
        .all()
    )
    email_counts = dict(
        db.query(EmailLog.status, func.count(EmailLog.id))
        .filter(EmailLog.merchant_id == merchant.id)
        .group_by(EmailLog.status)
        .all()
    )
    total_products = db.query(func.count(ProductConfig.id)).filter(ProductConfig.merchant_id == merchant.id).scalar()
    enabled_products = (
        db.query(func.count(ProductConfig.id))
        .filter(ProductConfig.merchant_id == merchant.id, ProductConfig.is_enabled.is_(True))
        .scalar()
    )

    return {
        "total_emails_sent": sum(n for status, n in email_counts.items() if status != "failed"),
        "failed_emails": email_counts.get("failed", 0),
        "total_reviews": sum(review_counts.values()),
        "approved_reviews": review_counts.get("approved", 0),
        "rejected_reviews": review_counts.get("rejected", 0),
        "pending_approval": review_counts.get("pending_approval", 0),
        "pending_submission": review_counts.get("pending_submission", 0),
        "total_products": total_products or 0,
        "enabled_products": enabled_products or 0,
        "credit_balance": merchant.credit_balance,
    }
