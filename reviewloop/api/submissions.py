"""Public review submission pages, authorized only by the submission token"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from reviewloop.api.errors import to_http_exception
from reviewloop.core.config import settings
from reviewloop.core.exceptions import ReviewLoopError
from reviewloop.core.security import rate_limit_public
from reviewloop.db.session import get_db
from reviewloop.services.review_service import (
    DEFAULT_BRAND_NAME, get_review_by_token, serialize_review, submit_review
)

router = APIRouter(prefix="/api/submit", tags=["submissions"], dependencies=[Depends(rate_limit_public)])
logger = logging.getLogger(__name__)


@router.get("/{submission_token}")
def get_submission(submission_token: str, db: Session = Depends(get_db)):
    """What the customer sees before uploading"""
    try:
        review, product_config = get_review_by_token(submission_token, db)
    except ReviewLoopError as e:
        raise to_http_exception(e)

    return {
        "customer_name": review.customer_name,
        "product_name": product_config.product_name,
        "review_type": product_config.review_type,
        "brand_name": review.merchant.name or DEFAULT_BRAND_NAME,
        "token_expires_at": serialize_review(review)["token_expires_at"],
        "max_upload_size": settings.MAX_UPLOAD_SIZE,
    }


@router.post("/{submission_token}")
def post_submission(
    submission_token: str,
    file: UploadFile = File(...),
    comment: Optional[str] = Form(None),
    rating: Optional[int] = Form(None),
    db: Session = Depends(get_db)
):
    """Upload the review media and move the review to pending approval"""
    # One byte past the limit is enough to reject it
    data = file.file.read(settings.MAX_UPLOAD_SIZE + 1)
    try:
        review = submit_review(
            submission_token,
            data,
            file.content_type,
            file.filename,
            db,
            comment=comment,
            rating=rating,
        )
    except ReviewLoopError as e:
        raise to_http_exception(e)

    return {"status": review.status, "message": "Thank you! Your review has been submitted for approval."}
