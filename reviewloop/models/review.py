"""Review model"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from reviewloop.models.base import Base

REVIEW_STATUSES = ("pending_submission", "pending_approval", "approved", "rejected")
TERMINAL_STATUSES = ("approved", "rejected")


class Review(Base):
    """A customer review requested after a purchase"""
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    merchant_id = Column(Integer, ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False, index=True)
    product_config_id = Column(Integer, ForeignKey("product_configs.id", ondelete="CASCADE"), nullable=False, index=True)

    # Customer
    customer_email = Column(String(255), nullable=True)
    customer_name = Column(String(255), nullable=False)
    customer_platform_id = Column(String(255), nullable=False)

    status = Column(String(30), default="pending_submission", nullable=False)

    # Public submission link
    submission_token = Column(String(255), unique=True, nullable=False, index=True)
    token_expires_at = Column(DateTime(timezone=True), nullable=False)

    # Content
    file_url = Column(Text, nullable=True)
    file_type = Column(String(10), nullable=True)
    comment = Column(Text, nullable=True)
    rating = Column(Integer, nullable=True)  # Optional 1-5

    # Reward
    promo_code_sent = Column(String(255), nullable=True)
    promo_code_id = Column(String(255), nullable=True)

    rejection_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    merchant = relationship("Merchant", back_populates="reviews")
    product_config = relationship("ProductConfig", back_populates="reviews")

    __table_args__ = (
        Index('ix_reviews_merchant_status', 'merchant_id', 'status'),
        Index('ix_reviews_status_created', 'status', 'created_at'),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
