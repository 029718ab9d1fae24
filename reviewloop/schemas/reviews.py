"""Pydantic schemas for review moderation"""
from pydantic import BaseModel, Field
from typing import Optional


class RejectReviewRequest(BaseModel):
    """Schema for rejecting a review"""
    reason: Optional[str] = Field(None, max_length=1000)
