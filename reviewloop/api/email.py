"""Email provider (Resend) delivery status webhook"""
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from reviewloop.api.errors import to_http_exception
from reviewloop.core.exceptions import ValidationError, WebhookSignatureError
from reviewloop.db.session import get_db
from reviewloop.services.email_service import process_resend_webhook

router = APIRouter(prefix="/api/email", tags=["email"])
logger = logging.getLogger(__name__)


@router.post("/webhook")
async def resend_webhook(request: Request, db: Session = Depends(get_db)):
    """Advance EmailLog delivery status from Resend (Svix-signed) events"""
    payload = await request.body()
    try:
        return process_resend_webhook(
            payload,
            request.headers.get("svix-id"),
            request.headers.get("svix-timestamp"),
            request.headers.get("svix-signature"),
            db
        )
    except (ValidationError, WebhookSignatureError) as e:
        logger.warning(f"Rejected email webhook: {e}")
        raise to_http_exception(e)
