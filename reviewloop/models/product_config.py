"""ProductConfig model"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from reviewloop.models.base import Base

REVIEW_TYPES = ("photo", "video", "any")
PRODUCT_STATUSES = ("visible", "hidden", "archived", "quick_link")


class ProductConfig(Base):
    """Per-product review campaign settings"""
    __tablename__ = "product_configs"

    id = Column(Integer, primary_key=True, index=True)
    merchant_id = Column(Integer, ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False, index=True)
    platform_product_id = Column(String(255), unique=True, nullable=False, index=True)
    product_name = Column(String(255), nullable=False)
    status = Column(String(20), default="visible", nullable=False)  # Visibility mirrored from the platform

    # Campaign settings
    is_enabled = Column(Boolean, default=False, nullable=False)
    review_type = Column(String(10), default="any", nullable=False)

    # Reward reference (resolved against the platform at send time)
    promo_code = Column(String(255), nullable=True)  # Platform promo ID
    promo_code_name = Column(String(255), nullable=True)  # Redeemable code shown after approval

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationships
    merchant = relationship("Merchant", back_populates="product_configs")
    reviews = relationship("Review", back_populates="product_config", cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_product_configs_merchant_enabled', 'merchant_id', 'is_enabled'),
    )
