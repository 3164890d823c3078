"""Review workflow payloads: per-reviewer notifications and stage transition requests.

Delivery is someone else's job; this module only writes the rows and moves the
document's workflow stage.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

import aiosqlite

from proposal_engine.db.database import transaction
from proposal_engine.db.repositories import ActivityRepository, DocumentRepository
from proposal_engine.models import (
    NotificationType,
    Reviewer,
    ReviewNotification,
    Section,
    StageTransitionRequest,
)
from proposal_engine.utils.logging_config import get_logger

logger = get_logger(__name__)

REVIEW_STAGE = "review"
WRITING_STAGE = "writing"


def section_link(document_id: str, section_key: str) -> str:
    return f"/documents/{document_id}/sections/{section_key}"


def eligible_reviewers(reviewers: Sequence[Reviewer], requested_by: str) -> List[Reviewer]:
    """Reviewers allowed to review, minus the requester, deduplicated by email."""
    seen = set()
    eligible: List[Reviewer] = []
    requester = (requested_by or "").strip().lower()
    for reviewer in reviewers:
        email = reviewer.email.strip().lower()
        if not reviewer.can_review or not email or email == requester or email in seen:
            continue
        seen.add(email)
        eligible.append(reviewer)
    return eligible


class ReviewNotifier:
    def __init__(self, db: aiosqlite.Connection):
        self.db = db
        self.activity = ActivityRepository(db)
        self.documents = DocumentRepository(db)

    async def _document_name(self, document_id: str) -> str:
        document = await self.documents.get_document(document_id)
        return document.name if document else document_id

    async def request_review(
        self,
        section: Section,
        requested_by: str,
        reviewers: Sequence[Reviewer],
        document_name: Optional[str] = None,
    ) -> Tuple[List[ReviewNotification], StageTransitionRequest]:
        """Emit one review request per eligible reviewer and ask for the review stage."""
        name = document_name or await self._document_name(section.document_id)
        notifications = [
            ReviewNotification(
                document_id=section.document_id,
                section_id=section.section_id,
                recipient_email=reviewer.email,
                notification_type=NotificationType.REVIEW_REQUEST,
                title=f"Review requested: {section.section_name}",
                message=(
                    f"{requested_by} marked the '{section.section_name}' section of "
                    f"{name} for review."
                ),
                link_url=section_link(section.document_id, section.section_key),
                priority="high",
                from_email=requested_by,
            )
            for reviewer in eligible_reviewers(reviewers, requested_by)
        ]
        request = StageTransitionRequest(
            document_id=section.document_id,
            target_stage=REVIEW_STAGE,
            requested_by=requested_by,
            reason=f"Section '{section.section_name}' marked for review",
        )
        await self._emit(notifications, request)
        logger.info(
            "Review requested for %s: %d reviewer(s) notified",
            section.section_key,
            len(notifications),
        )
        return notifications, request

    async def notify_approved(
        self,
        section: Section,
        approved_by: str,
        document_name: Optional[str] = None,
    ) -> Optional[ReviewNotification]:
        """Tell whoever asked for the review that the section was approved."""
        recipient = section.marked_for_review_by
        if not recipient or recipient.strip().lower() == (approved_by or "").strip().lower():
            return None
        name = document_name or await self._document_name(section.document_id)
        notification = ReviewNotification(
            document_id=section.document_id,
            section_id=section.section_id,
            recipient_email=recipient,
            notification_type=NotificationType.SECTION_APPROVED,
            title=f"Section approved: {section.section_name}",
            message=f"{approved_by} approved the '{section.section_name}' section of {name}.",
            link_url=section_link(section.document_id, section.section_key),
            from_email=approved_by,
        )
        await self.activity.save_notifications([notification])
        return notification

    async def notify_sent_back(
        self,
        section: Section,
        reviewer: str,
        feedback: str,
        document_name: Optional[str] = None,
    ) -> Tuple[Optional[ReviewNotification], StageTransitionRequest]:
        """Return the section to its writer with feedback and move the document back to writing."""
        name = document_name or await self._document_name(section.document_id)
        notification: Optional[ReviewNotification] = None
        recipient = section.marked_for_review_by
        if recipient and recipient.strip().lower() != (reviewer or "").strip().lower():
            notification = ReviewNotification(
                document_id=section.document_id,
                section_id=section.section_id,
                recipient_email=recipient,
                notification_type=NotificationType.STATUS_CHANGE,
                title=f"Section sent back: {section.section_name}",
                message=(
                    f"{reviewer} sent the '{section.section_name}' section of {name} "
                    f"back for rework: {feedback}"
                ),
                link_url=section_link(section.document_id, section.section_key),
                priority="high",
                from_email=reviewer,
            )
        request = StageTransitionRequest(
            document_id=section.document_id,
            target_stage=WRITING_STAGE,
            requested_by=reviewer,
            reason=f"Section '{section.section_name}' sent back: {feedback}",
        )
        await self._emit([notification] if notification else [], request)
        logger.info("Section %s sent back by %s", section.section_key, reviewer)
        return notification, request

    async def _emit(self, notifications: List[ReviewNotification], request: StageTransitionRequest) -> None:
        async with transaction(self.db):
            if notifications:
                await self.activity.save_notifications(notifications, commit=False)
            await self.activity.save_stage_request(request, commit=False)
            await self.documents.update_workflow_stage(request.document_id, request.target_stage, commit=False)
