"""Pydantic schemas for product configuration"""
from pydantic import BaseModel, Field
from typing import Literal, Optional


class ProductConfigUpdate(BaseModel):
    """Schema for updating a product's review campaign"""
    is_enabled: Optional[bool] = None
    review_type: Optional[Literal["photo", "video", "any"]] = None
    promo_code: Optional[str] = Field(None, max_length=255)
    promo_code_name: Optional[str] = Field(None, max_length=255)
