"""Additional typed outputs used for oracle usage accounting."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


class UsageRecord(BaseModel):
    model: str
    feature: str
    tokens_in: int
    tokens_out: int
    cost_usd: float
    latency_ms: int
    document_id: Optional[str] = None
    section_key: Optional[str] = None
    user_email: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
