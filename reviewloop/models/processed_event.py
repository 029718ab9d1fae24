"""ProcessedEvent model"""
from sqlalchemy import Column, Integer, String, JSON, DateTime
from datetime import datetime, timezone
from reviewloop.models.base import Base


class ProcessedEvent(Base):
    """Write-once idempotency marker for inbound webhook events.

    The unique constraint on event_id is the gate: inserting a row claims the
    event, a duplicate insert means another delivery already claimed it.
    """
    __tablename__ = "processed_events"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(String(255), unique=True, nullable=False, index=True)
    event_type = Column(String(100), nullable=False, index=True)
    payload = Column(JSON, nullable=True)
    processed_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False, index=True)
