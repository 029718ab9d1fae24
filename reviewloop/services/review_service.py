"""Review lifecycle: request -> submission -> approval / rejection

Every state change is a single conditional UPDATE on (id, status) so that
concurrent actors resolve deterministically: one wins, the rest see a
precondition failure.
"""
import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from reviewloop.core.config import settings
from reviewloop.core.exceptions import (
    FileTooLargeError, NotFoundError, PreconditionFailedError, SubmissionTokenError, ValidationError
)
from reviewloop.core.metrics import review_transitions_counter
from reviewloop.models.merchant import Merchant
from reviewloop.models.product_config import ProductConfig
from reviewloop.models.review import REVIEW_STATUSES, Review
from reviewloop.services.email_service import log_failed_notification, send_notification
from reviewloop.services.reward_service import resolve_reward, resolve_reward_code
from reviewloop.services.storage.r2_service import build_object_key, get_r2_service
from reviewloop.utils.email_templates import (
    REVIEW_REQUEST_SUBJECT, render_review_rejection_email, render_review_request_email,
    render_reward_delivery_email
)

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 2000
DEFAULT_BRAND_NAME = "Our Team"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    value = _as_utc(value)
    return value.isoformat() if value else None


def generate_submission_token() -> str:
    """Unguessable, URL-safe token; the only credential for the public submission page"""
    return secrets.token_urlsafe(32)


def build_review_link(submission_token: str) -> str:
    return f"{settings.APP_URL.rstrip('/')}/submit/{submission_token}"


def is_token_expired(review: Review, now: Optional[datetime] = None) -> bool:
    return _as_utc(review.token_expires_at) <= (now or _utcnow())


# ============================================================================
# CREATION (none -> pending_submission)
# ============================================================================

def request_review(
    merchant: Merchant,
    product_config: Optional[ProductConfig],
    customer: Dict[str, Any],
    db: Session,
    product_platform_id: Optional[str] = None,
    event_id: Optional[str] = None
) -> Optional[Review]:
    """Create a review for a purchase and send the request email.

    Preconditions are checked in order: product enabled, reward resolvable,
    customer email present, merchant can afford the request. Any failure
    records a failed review_request EmailLog and creates nothing.

    Args:
        merchant: Merchant that sold the product
        product_config: Product config for the purchased product, if any
        customer: Dict with 'id', 'email' and 'name'
        db: Database session
        product_platform_id: Platform product id (for the audit trail)
        event_id: Source webhook event id (for the audit trail)

    Returns:
        The created Review, or None if a precondition failed
    """
    customer_email = customer.get("email")
    metadata = {
        "productId": product_platform_id or (product_config.platform_product_id if product_config else None),
        "productName": product_config.product_name if product_config else None,
        "promoCode": product_config.promo_code if product_config else None,
        "eventId": event_id,
    }

    def fail(reason: str) -> None:
        log_failed_notification(
            "review_request", customer_email, merchant.id, reason, db,
            subject=REVIEW_REQUEST_SUBJECT, metadata=metadata
        )

    if product_config is None:
        fail(f"Product config not found for product {product_platform_id}")
        return None

    if not product_config.is_enabled:
        fail("Product not enabled for review requests")
        return None

    promo_details, promo_error = resolve_reward(product_config.promo_code)
    if promo_error:
        fail(promo_error)
        return None

    if not customer_email:
        fail(f"User email not available for user {customer.get('id')}")
        return None

    cost = settings.REVIEW_REQUEST_CREDIT_COST
    if merchant.credit_balance < cost:
        fail(f"Insufficient credits: merchant has {merchant.credit_balance} credits, {cost} required")
        return None

    review = Review(
        merchant_id=merchant.id,
        product_config_id=product_config.id,
        customer_email=customer_email,
        customer_name=customer.get("name") or customer_email,
        customer_platform_id=customer.get("id") or "",
        status="pending_submission",
        submission_token=generate_submission_token(),
        token_expires_at=_utcnow() + timedelta(days=settings.REVIEW_TOKEN_TTL_DAYS),
    )
    db.add(review)
    db.commit()
    db.refresh(review)
    review_transitions_counter.labels(to_status="pending_submission").inc()
    logger.info(f"Review {review.id} created for merchant {merchant.id} (event: {event_id})")

    subject, html = render_review_request_email(
        customer_name=review.customer_name,
        product_name=product_config.product_name,
        promo_details=promo_details,
        brand_name=merchant.name or DEFAULT_BRAND_NAME,
        review_link=build_review_link(review.submission_token),
        expires_in_days=settings.REVIEW_TOKEN_TTL_DAYS,
    )
    result = send_notification(
        "review_request", customer_email, subject, html, merchant.id, db,
        review_id=review.id,
        metadata={**metadata, "submissionToken": review.submission_token},
    )
    if not result["success"]:
        logger.error(f"Review request email for review {review.id} failed: {result['error']}")

    return review


# ============================================================================
# PUBLIC SUBMISSION (pending_submission -> pending_approval)
# ============================================================================

def get_review_by_token(submission_token: str, db: Session) -> Tuple[Review, ProductConfig]:
    """Resolve a submission token for the public page.

    Raises:
        SubmissionTokenError: kind 'invalid' (unknown token), 'already_submitted'
            (review left pending_submission, whatever the expiry) or 'expired'
    """
    if not submission_token:
        raise SubmissionTokenError(SubmissionTokenError.INVALID)

    review = db.query(Review).filter(Review.submission_token == submission_token).first()
    if not review:
        raise SubmissionTokenError(SubmissionTokenError.INVALID)

    if review.status != "pending_submission":
        raise SubmissionTokenError(SubmissionTokenError.ALREADY_SUBMITTED)

    if is_token_expired(review):
        raise SubmissionTokenError(SubmissionTokenError.EXPIRED)

    return review, review.product_config


def file_type_from_content_type(content_type: Optional[str]) -> Optional[str]:
    content_type = (content_type or "").lower()
    if content_type.startswith("image/"):
        return "photo"
    if content_type.startswith("video/"):
        return "video"
    return None


def _file_extension(filename: Optional[str]) -> Optional[str]:
    if not filename or "." not in filename:
        return None
    extension = filename.rsplit(".", 1)[1].lower()
    return extension if extension.isalnum() and len(extension) <= 10 else None


def validate_submission(
    product_config: ProductConfig,
    data: bytes,
    content_type: Optional[str],
    comment: Optional[str],
    rating: Optional[int]
) -> str:
    """Check submission input; returns the media file type

    Raises:
        ValidationError: On bad rating, comment, size or media type
    """
    if rating is not None and not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5")

    if comment is not None and len(comment) > MAX_COMMENT_LENGTH:
        raise ValidationError(f"Comment must be at most {MAX_COMMENT_LENGTH} characters")

    if not data:
        raise ValidationError("File is required")

    if len(data) > settings.MAX_UPLOAD_SIZE:
        raise FileTooLargeError(f"File too large (max {settings.MAX_UPLOAD_SIZE // (1024 * 1024)} MB)")

    file_type = file_type_from_content_type(content_type)
    if file_type is None:
        raise ValidationError("Only photo or video files are accepted")

    if product_config.review_type != "any" and product_config.review_type != file_type:
        raise ValidationError(f"This product accepts {product_config.review_type} reviews only")

    return file_type


def submit_review(
    submission_token: str,
    data: bytes,
    content_type: Optional[str],
    filename: Optional[str],
    db: Session,
    comment: Optional[str] = None,
    rating: Optional[int] = None
) -> Review:
    """Accept a customer's media submission.

    Raises:
        SubmissionTokenError: Token invalid, expired or already used
        ValidationError: Bad input
        StorageError: Upload failed; nothing was changed and the link still works

    The upload happens before the status change, so a request that loses the
    transition deletes its object again.
    """
    review, product_config = get_review_by_token(submission_token, db)
    comment = comment.strip() if comment and comment.strip() else None
    file_type = validate_submission(product_config, data, content_type, comment, rating)

    object_key = build_object_key(review.merchant_id, review.id, uuid.uuid4().hex, _file_extension(filename))
    storage = get_r2_service()
    file_url = storage.upload_bytes(data, object_key, content_type=content_type)

    now = _utcnow()
    updated = (
        db.query(Review)
        .filter(
            Review.id == review.id,
            Review.status == "pending_submission",
            Review.token_expires_at > now,
        )
        .update({
            Review.file_url: file_url,
            Review.file_type: file_type,
            Review.comment: comment,
            Review.rating: rating,
            Review.status: "pending_approval",
            Review.submitted_at: now,
        }, synchronize_session=False)
    )
    db.commit()

    if updated == 0:
        # Lost a race with another submission, or the token expired mid-upload
        storage.delete_object(object_key)
        db.refresh(review)
        if review.status != "pending_submission":
            raise SubmissionTokenError(SubmissionTokenError.ALREADY_SUBMITTED)
        raise SubmissionTokenError(SubmissionTokenError.EXPIRED)

    db.refresh(review)
    review_transitions_counter.labels(to_status="pending_approval").inc()
    logger.info(f"Review {review.id} submitted ({file_type})")
    return review


# ============================================================================
# MERCHANT MODERATION (pending_approval -> approved | rejected)
# ============================================================================

def _get_review(review_id: int, db: Session, merchant_id: Optional[int] = None) -> Review:
    query = db.query(Review).filter(Review.id == review_id)
    if merchant_id is not None:
        query = query.filter(Review.merchant_id == merchant_id)
    review = query.first()
    if not review:
        raise NotFoundError(f"Review {review_id} not found")
    return review


def _transition(review: Review, to_status: str, values: Dict[Any, Any], db: Session) -> None:
    """Conditional pending_approval -> to_status update; raises if another actor got there first"""
    updated = (
        db.query(Review)
        .filter(Review.id == review.id, Review.status == "pending_approval")
        .update({Review.status: to_status, **values}, synchronize_session=False)
    )
    db.commit()
    db.refresh(review)
    if updated == 0:
        raise PreconditionFailedError(f"Review is not in pending approval status (status: {review.status})")
    review_transitions_counter.labels(to_status=to_status).inc()


def approve_review(review_id: int, db: Session, merchant_id: Optional[int] = None) -> Review:
    """Approve a submitted review and deliver the reward code.

    The approval is authoritative. The reward email is best effort: if the
    promo no longer resolves, a failed reward_delivery EmailLog records why.

    Raises:
        NotFoundError: Review does not exist (for this merchant)
        PreconditionFailedError: Review is not pending approval
    """
    review = _get_review(review_id, db, merchant_id)
    if review.status != "pending_approval":
        raise PreconditionFailedError(f"Review is not in pending approval status (status: {review.status})")

    product_config = review.product_config
    merchant = review.merchant

    reward_code, reward_error = None, None
    if product_config.promo_code:
        reward_code, reward_error = resolve_reward_code(product_config.promo_code, product_config.promo_code_name)

    _transition(review, "approved", {
        Review.approved_at: _utcnow(),
        Review.promo_code_sent: reward_code,
        Review.promo_code_id: product_config.promo_code if reward_code else None,
    }, db)
    logger.info(f"Review {review.id} approved")

    if not review.customer_email:
        logger.info(f"Customer email not available for review {review.id}, skipping reward email")
        return review

    metadata = {
        "productId": product_config.platform_product_id,
        "productName": product_config.product_name,
        "promoCode": product_config.promo_code,
        "promoCodeName": product_config.promo_code_name,
    }

    if not product_config.promo_code:
        logger.info(f"No promo code configured for review {review.id}, skipping reward email")
        return review

    try:
        if reward_error:
            log_failed_notification(
                "reward_delivery", review.customer_email, merchant.id, reward_error, db,
                review_id=review.id, metadata=metadata
            )
        else:
            subject, html = render_reward_delivery_email(
                customer_name=review.customer_name,
                product_name=product_config.product_name,
                promo_code=reward_code,
                brand_name=merchant.name or DEFAULT_BRAND_NAME,
            )
            send_notification(
                "reward_delivery", review.customer_email, subject, html, merchant.id, db,
                review_id=review.id, metadata=metadata
            )
    except Exception as e:
        logger.error(f"Error sending reward email for review {review.id}: {e}", exc_info=True)

    return review


def reject_review(
    review_id: int,
    db: Session,
    rejection_reason: Optional[str] = None,
    merchant_id: Optional[int] = None
) -> Review:
    """Reject a submitted review and tell the customer why (best effort).

    Raises:
        NotFoundError: Review does not exist (for this merchant)
        PreconditionFailedError: Review is not pending approval
    """
    review = _get_review(review_id, db, merchant_id)
    rejection_reason = rejection_reason.strip() if rejection_reason and rejection_reason.strip() else None

    _transition(review, "rejected", {
        Review.rejected_at: _utcnow(),
        Review.rejection_reason: rejection_reason,
    }, db)
    logger.info(f"Review {review.id} rejected")

    if not review.customer_email:
        logger.info(f"Customer email not available for review {review.id}, skipping rejection email")
        return review

    product_config = review.product_config
    merchant = review.merchant
    try:
        subject, html = render_review_rejection_email(
            customer_name=review.customer_name,
            product_name=product_config.product_name,
            brand_name=merchant.name or DEFAULT_BRAND_NAME,
            rejection_reason=rejection_reason,
        )
        send_notification(
            "review_rejection", review.customer_email, subject, html, merchant.id, db,
            review_id=review.id,
            metadata={
                "productId": product_config.platform_product_id,
                "productName": product_config.product_name,
                "rejectionReason": rejection_reason,
            }
        )
    except Exception as e:
        logger.error(f"Error sending rejection email for review {review.id}: {e}", exc_info=True)

    return review


# ============================================================================
# QUERIES
# ============================================================================

def serialize_review(review: Review, include_private: bool = True) -> Dict[str, Any]:
    """Review as a dict; customer email and moderation fields only when include_private"""
    data = {
        "id": review.id,
        "customer_name": review.customer_name,
        "product_name": review.product_config.product_name if review.product_config else None,
        "status": review.status,
        "file_url": review.file_url,
        "file_type": review.file_type,
        "comment": review.comment,
        "rating": review.rating,
        "submitted_at": _isoformat(review.submitted_at),
        "approved_at": _isoformat(review.approved_at),
    }
    if include_private:
        data.update({
            "customer_email": review.customer_email,
            "rejection_reason": review.rejection_reason,
            "promo_code_sent": review.promo_code_sent,
            "created_at": _isoformat(review.created_at),
            "rejected_at": _isoformat(review.rejected_at),
            "token_expires_at": _isoformat(review.token_expires_at),
            "token_expired": review.status == "pending_submission" and is_token_expired(review),
        })
    return data


def list_reviews(merchant_id: int, db: Session, status: Optional[str] = None) -> List[Dict[str, Any]]:
    """Reviews for the merchant dashboard, most recently submitted first"""
    if status is not None and status not in REVIEW_STATUSES:
        raise ValidationError(f"Unknown review status: {status}")

    query = db.query(Review).filter(Review.merchant_id == merchant_id)
    if status:
        query = query.filter(Review.status == status)
    reviews = query.order_by(Review.submitted_at.desc(), Review.created_at.desc(), Review.id.desc()).all()
    return [serialize_review(r) for r in reviews]


def list_approved_reviews(merchant_id: int, db: Session) -> List[Dict[str, Any]]:
    """Approved reviews for the public showcase, newest approval first"""
    reviews = (
        db.query(Review)
        .filter(Review.merchant_id == merchant_id, Review.status == "approved")
        .order_by(Review.approved_at.desc(), Review.id.desc())
        .all()
    )
    return [serialize_review(r, include_private=False) for r in reviews]
