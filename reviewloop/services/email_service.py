"""Notification dispatcher - sends transactional email via Resend and records every attempt"""
import json
import logging
from typing import Any, Dict, Optional, Tuple

import resend
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from reviewloop.core.config import settings
from reviewloop.core.exceptions import ValidationError, WebhookSignatureError
from reviewloop.core.metrics import emails_counter
from reviewloop.core.security import verify_webhook_signature
from reviewloop.models.email_log import EMAIL_TYPES, EmailLog
from reviewloop.services.credit_service import decrement_credits_if_available
from reviewloop.services.idempotency_service import claim_event

logger = logging.getLogger(__name__)

# Provider delivery events, mapped to the EmailLog status they advance to
RESEND_EVENT_STATUSES = {
    "email.delivered": "delivered",
    "email.bounced": "bounced",
    "email.opened": "opened",
    "email.clicked": "clicked",
}

# Delivery statuses only move forward; a late "delivered" must not undo "clicked"
_STATUS_RANK = {"sent": 0, "delivered": 1, "opened": 2, "clicked": 3, "bounced": 4}


def validate_email_config() -> tuple[bool, str]:
    """
    Validate email service configuration.

    Returns:
        tuple: (is_valid, error_message)
    """
    if not settings.RESEND_API_KEY:
        return False, "RESEND_API_KEY is not set in environment variables"

    if not settings.APP_URL:
        return False, "APP_URL is not set in environment variables"

    return True, ""


def _send_email(to: str, subject: str, html: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Send one email via the Resend API.

    Returns:
        (provider_message_id, None) on success, (None, error_message) on failure
    """
    if not settings.RESEND_API_KEY:
        logger.warning("RESEND_API_KEY is not set; skipping email")
        return None, "Email provider not configured"

    try:
        resend.api_key = settings.RESEND_API_KEY

        response = resend.Emails.send(
            {
                "from": settings.RESEND_FROM_EMAIL,
                "to": to,
                "subject": subject,
                "html": html,
            }
        )

        # Resend returns a dict with 'id' on success; older SDKs return an object
        email_id = None
        if isinstance(response, dict):
            email_id = response.get('id')
        elif hasattr(response, 'id'):
            email_id = response.id

        if email_id:
            logger.info(f"Email sent successfully to {to} (id: {email_id})")
            return email_id, None

        logger.error(f"Email send returned invalid response: {response} (type: {type(response)})")
        return None, "Email provider returned no message id"

    except Exception as exc:
        logger.error(f"Failed to send email to {to}: {exc}", exc_info=True)
        return None, str(exc) or "Failed to send email"


def _write_email_log(
    merchant_id: int,
    email_type: str,
    recipient: str,
    status: str,
    db: Session,
    subject: Optional[str] = None,
    review_id: Optional[int] = None,
    provider_message_id: Optional[str] = None,
    error_message: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> Optional[int]:
    """Insert one EmailLog row.

    If the full row cannot be written (e.g. unserialisable metadata) a second
    attempt drops the metadata so the outcome itself is never lost.
    """
    attempts = [metadata, None] if metadata else [None]
    for attempt_metadata in attempts:
        email_log = EmailLog(
            merchant_id=merchant_id,
            review_id=review_id,
            email_type=email_type,
            recipient=recipient or "",
            subject=subject,
            status=status,
            provider_message_id=provider_message_id,
            error_message=error_message,
            log_metadata=attempt_metadata,
        )
        try:
            db.add(email_log)
            db.commit()
            db.refresh(email_log)
            return email_log.id
        except (SQLAlchemyError, TypeError, ValueError) as e:
            db.rollback()
            logger.error(f"Error logging {status} {email_type} email to {recipient} (metadata kept: {attempt_metadata is not None}): {e}")

    return None


def log_failed_notification(
    email_type: str,
    recipient: Optional[str],
    merchant_id: int,
    error_message: str,
    db: Session,
    subject: Optional[str] = None,
    review_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> Optional[int]:
    """Record a notification that was never attempted because a precondition failed"""
    emails_counter.labels(email_type=email_type, status="failed").inc()
    logger.warning(f"{email_type} to '{recipient or ''}' not sent for merchant {merchant_id}: {error_message}")
    return _write_email_log(
        merchant_id, email_type, recipient or "", "failed", db,
        subject=subject, review_id=review_id, error_message=error_message, metadata=metadata
    )


def send_notification(
    email_type: str,
    recipient: str,
    subject: str,
    html: str,
    merchant_id: int,
    db: Session,
    review_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Send a lifecycle email and record the outcome.

    Exactly one EmailLog row is written per call. For review requests a
    successful send is followed by the atomic credit decrement; a failed
    send consumes nothing.

    Returns:
        Dict with 'success', 'log_id', 'message_id', 'error' and, for review
        requests, 'credit_charged'
    """
    if email_type not in EMAIL_TYPES:
        raise ValueError(f"Unknown email type: {email_type}")

    if not recipient:
        message_id, error = None, "Recipient email address is required"
    else:
        message_id, error = _send_email(recipient, subject, html)

    success = message_id is not None
    status = "sent" if success else "failed"
    emails_counter.labels(email_type=email_type, status=status).inc()

    log_id = _write_email_log(
        merchant_id, email_type, recipient, status, db,
        subject=subject, review_id=review_id, provider_message_id=message_id,
        error_message=error, metadata=metadata
    )
    if log_id is None:
        logger.error(f"{email_type} email to {recipient} was {status} but could not be logged")

    result = {"success": success, "log_id": log_id, "message_id": message_id, "error": error}

    if email_type == "review_request":
        charged = False
        if success:
            try:
                charged = decrement_credits_if_available(
                    merchant_id,
                    settings.REVIEW_REQUEST_CREDIT_COST,
                    db,
                    review_id=review_id,
                    metadata={"email_log_id": log_id, "message_id": message_id}
                )
            except SQLAlchemyError as e:
                logger.error(f"Credit deduction failed for review request {review_id}: {e}", exc_info=True)
        if success and not charged:
            # The balance was drained between the pre-check and the send
            logger.error(
                f"Review request {review_id} sent but merchant {merchant_id} had no credit left to charge"
            )
        result["credit_charged"] = charged

    return result


def get_email_logs(merchant_id: int, db: Session, email_type: Optional[str] = None, limit: int = 100) -> list:
    """Email log rows for the merchant dashboard, newest first"""
    query = db.query(EmailLog).filter(EmailLog.merchant_id == merchant_id)
    if email_type:
        query = query.filter(EmailLog.email_type == email_type)
    logs = query.order_by(EmailLog.created_at.desc(), EmailLog.id.desc()).limit(limit).all()
    return [
        {
            "id": log.id,
            "review_id": log.review_id,
            "email_type": log.email_type,
            "recipient": log.recipient,
            "subject": log.subject,
            "status": log.status,
            "provider_message_id": log.provider_message_id,
            "error_message": log.error_message,
            "metadata": log.log_metadata,
            "created_at": log.created_at.isoformat() if log.created_at else None,
        }
        for log in logs
    ]


def process_resend_webhook(
    payload: bytes,
    svix_id: Optional[str],
    svix_timestamp: Optional[str],
    svix_signature: Optional[str],
    db: Session
) -> Dict[str, Any]:
    """Apply a Resend delivery event to the matching EmailLog.

    Raises:
        WebhookSignatureError: Signature missing or invalid while a secret is configured
        ValidationError: Payload is not a JSON event
    """
    if settings.RESEND_WEBHOOK_SECRET:
        if not verify_webhook_signature(payload, svix_id, svix_timestamp, svix_signature, settings.RESEND_WEBHOOK_SECRET):
            raise WebhookSignatureError("Invalid signature")
    elif settings.ENVIRONMENT == "production":
        logger.error("RESEND_WEBHOOK_SECRET not set in production; rejecting email webhook")
        raise WebhookSignatureError("Webhook secret not configured")
    else:
        logger.warning("Email webhook signature not verified: RESEND_WEBHOOK_SECRET not set")

    try:
        event = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Invalid JSON payload")
    if not isinstance(event, dict):
        raise ValidationError("Invalid JSON payload")

    event_type = event.get("type")
    event_data = event.get("data") or {}
    if not isinstance(event_data, dict):
        raise ValidationError("Invalid event data")
    email_id = event_data.get("email_id")
    new_status = RESEND_EVENT_STATUSES.get(event_type)

    if not new_status or not email_id:
        logger.info(f"Ignoring email webhook {event_type} for email {email_id}")
        return {"status": "ignored"}

    event_id = svix_id or f"{email_id}:{event_type}"
    if not claim_event(event_id, event_type, event, db):
        return {"status": "already_processed"}

    email_log = db.query(EmailLog).filter(EmailLog.provider_message_id == email_id).first()
    if not email_log:
        logger.warning(f"No email log found for provider message {email_id}")
        return {"status": "not_found"}

    if email_log.status == "failed" or _STATUS_RANK.get(new_status, 0) <= _STATUS_RANK.get(email_log.status, 0):
        return {"status": "unchanged"}

    email_log.status = new_status
    if new_status == "bounced":
        bounce = event_data.get("bounce")
        email_log.error_message = (bounce.get("message") if isinstance(bounce, dict) else None) or "Email bounced"
    db.commit()
    logger.info(f"Email log {email_log.id} advanced to {new_status}")
    return {"status": "success"}
