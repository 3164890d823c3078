"""Review workflow payloads emitted for the external notifier."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from proposal_engine.models.enums import NotificationType


class Reviewer(BaseModel):
    email: str
    name: str = ""
    can_review: bool = True


class ReviewNotification(BaseModel):
    notification_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    document_id: str
    section_id: str
    recipient_email: str
    notification_type: NotificationType
    title: str
    message: str
    link_url: str = ""
    priority: str = "normal"
    from_email: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class StageTransitionRequest(BaseModel):
    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    document_id: str
    target_stage: str = "review"
    requested_by: str
    reason: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
