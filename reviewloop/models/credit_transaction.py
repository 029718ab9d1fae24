"""CreditTransaction model"""
from sqlalchemy import Column, Integer, String, ForeignKey, JSON, Index, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from reviewloop.models.base import Base


class CreditTransaction(Base):
    """Credit mutation audit log"""
    __tablename__ = "credit_transactions"

    id = Column(Integer, primary_key=True, index=True)
    merchant_id = Column(Integer, ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False, index=True)
    review_id = Column(Integer, nullable=True)
    transaction_type = Column(String(50), nullable=False)  # 'purchase', 'review_request', 'grant'
    credits = Column(Integer, nullable=False)  # Positive for additions, negative for deductions
    balance_after = Column(Integer, nullable=False)
    transaction_metadata = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False, index=True)

    merchant = relationship("Merchant", back_populates="credit_transactions")

    __table_args__ = (
        Index('ix_credit_transactions_merchant_created', 'merchant_id', 'created_at'),
    )
