"""Pydantic schemas for inbound webhooks"""
from typing import Any, Dict

from pydantic import BaseModel, Field


class WebhookEnvelope(BaseModel):
    """Commerce platform event envelope: { id, type, data }"""
    id: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    data: Dict[str, Any]
