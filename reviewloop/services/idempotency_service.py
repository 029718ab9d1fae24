"""Idempotency ledger for inbound webhook events"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from reviewloop.core.config import settings
from reviewloop.models.processed_event import ProcessedEvent

logger = logging.getLogger(__name__)


def was_processed(event_id: str, db: Session) -> bool:
    """Check whether an event id has already been recorded.

    Informational only; processing paths must use claim_event() as the gate.
    """
    return db.query(ProcessedEvent.id).filter(ProcessedEvent.event_id == event_id).first() is not None


def mark_processed(event_id: str, event_type: str, payload: Optional[Dict[str, Any]], db: Session) -> bool:
    """Record an event id. Returns False if it was already recorded."""
    return claim_event(event_id, event_type, payload, db)


def claim_event(event_id: str, event_type: str, payload: Optional[Dict[str, Any]], db: Session) -> bool:
    """Atomically claim an event for processing.

    The insert itself is the gate: the unique constraint on event_id makes
    exactly one concurrent delivery succeed. Every other delivery hits an
    IntegrityError and is told the event was already processed.

    Args:
        event_id: External event id
        event_type: Event type string
        payload: Raw event payload, retained only when WEBHOOK_LOG_ENABLE is set
        db: Database session

    Returns:
        True if this call claimed the event, False if it was already claimed
    """
    if not event_id:
        raise ValueError("event_id is required")

    processed_event = ProcessedEvent(
        event_id=event_id,
        event_type=event_type,
        payload=payload if settings.WEBHOOK_LOG_ENABLE else None,
    )
    db.add(processed_event)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(f"Event {event_id} ({event_type}) already processed, skipping")
        return False

    logger.info(f"Claimed event {event_id} ({event_type})")
    return True
