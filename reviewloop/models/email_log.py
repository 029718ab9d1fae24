"""EmailLog model"""
from sqlalchemy import Column, Integer, String, Text, JSON, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from reviewloop.models.base import Base

EMAIL_TYPES = ("review_request", "reward_delivery", "review_rejection")


class EmailLog(Base):
    """Append-only record of every notification attempt"""
    __tablename__ = "email_logs"

    id = Column(Integer, primary_key=True, index=True)
    merchant_id = Column(Integer, ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False, index=True)
    # Not a foreign key: the log outlives review mutation and may reference a review that was never created
    review_id = Column(Integer, nullable=True, index=True)

    email_type = Column(String(30), nullable=False)
    recipient = Column(String(255), nullable=False, default="")
    subject = Column(String(255), nullable=True)

    status = Column(String(20), nullable=False, index=True)
    provider_message_id = Column(String(255), nullable=True, index=True)
    error_message = Column(Text, nullable=True)
    log_metadata = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc), nullable=False)

    merchant = relationship("Merchant", back_populates="email_logs")

    __table_args__ = (
        Index('ix_email_logs_merchant_type', 'merchant_id', 'email_type'),
    )
