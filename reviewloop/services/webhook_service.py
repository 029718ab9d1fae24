"""Commerce platform webhook processing

The HTTP layer only validates and acknowledges. Everything with side effects
runs in process_webhook_event_safely(), detached from the response.
"""
import json
import logging
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from reviewloop.core.config import settings
from reviewloop.core.exceptions import ValidationError, WebhookSignatureError
from reviewloop.core.logging import webhook_logger
from reviewloop.core.metrics import webhook_events_counter
from reviewloop.core.security import verify_webhook_signature
from reviewloop.db.session import SessionLocal
from reviewloop.models.merchant import Merchant
from reviewloop.models.product_config import ProductConfig
from reviewloop.schemas.webhooks import WebhookEnvelope
from reviewloop.services.credit_service import get_credit_pack_amount, increment_credits
from reviewloop.services.idempotency_service import claim_event
from reviewloop.services.review_service import request_review

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment.succeeded"


def verify_platform_webhook(payload: bytes, headers: Mapping[str, str]) -> None:
    """Check the Standard Webhooks signature headers.

    Without a configured secret, signatures are skipped outside production
    and refused in production.

    Raises:
        WebhookSignatureError: Signature missing, stale or wrong
    """
    if not settings.WEBHOOK_SECRET:
        if settings.ENVIRONMENT == "production":
            logger.error("WEBHOOK_SECRET not set in production; rejecting webhook")
            raise WebhookSignatureError("Webhook secret not configured")
        logger.warning("Webhook signature not verified: WEBHOOK_SECRET not set")
        return

    if not verify_webhook_signature(
        payload,
        headers.get("webhook-id"),
        headers.get("webhook-timestamp"),
        headers.get("webhook-signature"),
        settings.WEBHOOK_SECRET,
    ):
        raise WebhookSignatureError("Invalid webhook signature")


def parse_webhook_event(payload: bytes) -> WebhookEnvelope:
    """Decode and validate the { id, type, data } envelope

    Raises:
        ValidationError: Body is not JSON or not an event envelope
    """
    try:
        body = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError(f"Invalid JSON payload: {e}")

    try:
        return WebhookEnvelope.model_validate(body)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid webhook envelope: {e.errors()[0]['msg']}")


def is_payment_succeeded(event: WebhookEnvelope) -> bool:
    return event.type == PAYMENT_SUCCEEDED


def _nested_id(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    return value.get("id") if isinstance(value, dict) else None


def extract_purchase(data: Dict[str, Any]) -> Dict[str, Any]:
    """Pull the fields we use out of a payment object"""
    user = data.get("user") if isinstance(data.get("user"), dict) else {}
    metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
    return {
        "payment_id": data.get("id"),
        "product_id": _nested_id(data, "product"),
        "plan_id": _nested_id(data, "plan"),
        "company_id": _nested_id(data, "company"),
        "metadata": metadata,
        "customer": {
            "id": user.get("id"),
            "email": user.get("email"),
            "name": user.get("name") or user.get("username"),
        },
    }


def _process_credit_pack(event_id: str, purchase: Dict[str, Any], credits: int, db: Session) -> Dict[str, Any]:
    company_id = purchase["metadata"].get("merchantId")
    merchant = db.query(Merchant).filter(Merchant.company_id == company_id).first() if company_id else None
    if not merchant:
        logger.error(f"Credit pack payment {purchase['payment_id']} has no known merchant (merchantId: {company_id})")
        return {"status": "merchant_not_found"}

    new_balance = increment_credits(
        merchant.id,
        credits,
        db,
        metadata={"planId": purchase["plan_id"], "eventId": event_id, "paymentId": purchase["payment_id"]}
    )
    logger.info(f"Added {credits} credits to merchant {company_id}, balance now {new_balance}")
    return {"status": "credits_added", "credits": credits, "balance": new_balance}


def process_payment_succeeded(event: Dict[str, Any], db: Session) -> Dict[str, Any]:
    """Apply one payment.succeeded event exactly once.

    Credit pack plans top up the buying merchant. Any other purchase of a
    configured product becomes a review request. Events missing required
    fields are dropped before the idempotency marker is written.

    Returns:
        Dict with 'status' describing the outcome
    """
    event_id = event["id"]
    event_type = event["type"]
    purchase = extract_purchase(event.get("data") or {})
    credits = get_credit_pack_amount(purchase["plan_id"])

    if credits is None and not (purchase["product_id"] and purchase["customer"]["id"] and purchase["company_id"]):
        logger.error(
            f"Payment event {event_id} missing required fields "
            f"(product: {purchase['product_id']}, user: {purchase['customer']['id']}, company: {purchase['company_id']})"
        )
        return {"status": "invalid"}

    if not claim_event(event_id, event_type, event, db):
        return {"status": "already_processed"}

    if credits is not None:
        return _process_credit_pack(event_id, purchase, credits, db)

    merchant = db.query(Merchant).filter(Merchant.company_id == purchase["company_id"]).first()
    if not merchant:
        logger.error(f"Merchant not found for company {purchase['company_id']} (event {event_id})")
        return {"status": "merchant_not_found"}

    product_config = (
        db.query(ProductConfig)
        .filter(
            ProductConfig.merchant_id == merchant.id,
            ProductConfig.platform_product_id == purchase["product_id"],
        )
        .first()
    )

    review = request_review(
        merchant,
        product_config,
        purchase["customer"],
        db,
        product_platform_id=purchase["product_id"],
        event_id=event_id,
    )
    if review is None:
        return {"status": "review_not_created"}
    return {"status": "review_created", "review_id": review.id}


def process_webhook_event_safely(event: Dict[str, Any]) -> None:
    """Background entry point: own session, never raises.

    The upstream platform's retry, gated by the idempotency ledger, is the
    only retry path, so failures are logged and counted here and dropped.
    """
    event_id = event.get("id")
    event_type = event.get("type") or "unknown"
    if settings.WEBHOOK_LOG_ENABLE:
        webhook_logger.info(f"Processing webhook {event_id} ({event_type}): {json.dumps(event, default=str)}")

    db = SessionLocal()
    try:
        result = process_payment_succeeded(event, db)
        webhook_events_counter.labels(event_type=event_type, outcome=result["status"]).inc()
        webhook_logger.info(f"Webhook {event_id} ({event_type}) processed: {result}")
    except Exception as e:
        db.rollback()
        webhook_events_counter.labels(event_type=event_type, outcome="error").inc()
        webhook_logger.error(f"Error processing webhook {event_id} ({event_type}): {e}", exc_info=True)
    finally:
        db.close()
