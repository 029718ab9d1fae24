"""Pydantic schemas for merchants and credits"""
from pydantic import BaseModel, Field
from typing import Literal, Optional


class MerchantCreate(BaseModel):
    """Onboarding request"""
    company_id: str = Field(..., min_length=1, max_length=255)
    name: Optional[str] = Field(None, max_length=255)
    email: Optional[str] = Field(None, max_length=255)


class DisplayFormatUpdate(BaseModel):
    review_display_format: Literal["grid", "list", "cards"]


class CheckoutRequest(BaseModel):
    """Credit pack purchase"""
    plan_id: str = Field(..., min_length=1)
