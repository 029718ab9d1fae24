"""Merchant model"""
from sqlalchemy import Column, Integer, String, DateTime, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from reviewloop.models.base import Base

DISPLAY_FORMATS = ("grid", "list", "cards")


class Merchant(Base):
    """A platform company using the review app"""
    __tablename__ = "merchants"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(String(255), unique=True, nullable=False, index=True)  # Platform company ID
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)

    credit_balance = Column(Integer, default=0, nullable=False)
    review_display_format = Column(String(20), default="grid", nullable=False)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationships
    product_configs = relationship("ProductConfig", back_populates="merchant", cascade="all, delete-orphan")
    reviews = relationship("Review", back_populates="merchant", cascade="all, delete-orphan")
    email_logs = relationship("EmailLog", back_populates="merchant", cascade="all, delete-orphan")
    credit_transactions = relationship("CreditTransaction", back_populates="merchant", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("credit_balance >= 0", name="ck_merchants_credit_balance_non_negative"),
    )

    def __repr__(self):
        return f"<Merchant(company_id={self.company_id}, credits={self.credit_balance})>"
