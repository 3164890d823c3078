"""Manual save and review transitions for a section."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Sequence

import aiosqlite
from pydantic import BaseModel

from proposal_engine.exceptions import InvalidTransition, ValidationFailure
from proposal_engine.models import (
    ChangeType,
    Reviewer,
    Section,
    SectionPatch,
    SectionStatus,
    SectionVersion,
)
from proposal_engine.review.notifier import ReviewNotifier
from proposal_engine.sections.ledger import VersionLedger
from proposal_engine.utils.logging_config import get_logger
from proposal_engine.utils.structured_log import log_section_event
from proposal_engine.utils.text import strip_html

logger = get_logger(__name__)

MANUAL_EDIT_SUMMARY = "Manual edit by user"
INITIAL_SUMMARY = "Initial version"


class SaveResult(BaseModel):
    section: Section
    version: Optional[SectionVersion] = None

    @property
    def changed(self) -> bool:
        return self.version is not None


def require_content(content: Optional[str], action: str = "save") -> None:
    if not strip_html(content):
        raise ValidationFailure(f"Cannot {action} a section with empty content")


class SectionEditor:
    def __init__(
        self,
        db: aiosqlite.Connection,
        ledger: Optional[VersionLedger] = None,
        notifier: Optional[ReviewNotifier] = None,
    ):
        self.db = db
        self.ledger = ledger or VersionLedger(db)
        self.store = self.ledger.store
        self.notifier = notifier or ReviewNotifier(db)

    async def save_section(
        self,
        document_id: str,
        section_key: str,
        content: str,
        author: str,
        section_name: Optional[str] = None,
        mark_for_review: bool = False,
        reviewers: Sequence[Reviewer] = (),
    ) -> SaveResult:
        """Persist a manual edit.

        The first save of a key is a draft with an ``initial_creation`` version;
        later saves that change content become ``reviewed`` with a ``user_edit``
        version. Saving identical content writes nothing.
        """
        require_content(content)

        existing = await self.store.find_section(document_id, section_key)
        version: Optional[SectionVersion] = None
        if existing is not None and existing.content == content:
            section = existing
            logger.debug("Save of %s skipped: content unchanged", section_key)
        else:
            first = existing is None or not await self.ledger.has_versions(existing.section_id)
            fields = {
                "content": content,
                "status": SectionStatus.DRAFT if first else SectionStatus.REVIEWED,
            }
            if section_name:
                fields["section_name"] = section_name
            section, version = await self.ledger.record_change(
                document_id,
                section_key,
                SectionPatch(**fields),
                ChangeType.INITIAL_CREATION if first else ChangeType.USER_EDIT,
                author=author,
                summary=INITIAL_SUMMARY if first else MANUAL_EDIT_SUMMARY,
            )
            logger.info("Saved %s as version %d", section_key, version.version_number)

        if mark_for_review:
            section = await self.mark_for_review(document_id, section_key, author, reviewers)
        return SaveResult(section=section, version=version)

    async def mark_for_review(
        self,
        document_id: str,
        section_key: str,
        requested_by: str,
        reviewers: Sequence[Reviewer] = (),
    ) -> Section:
        section = await self.store.get_section(document_id, section_key)
        require_content(section.content, action="mark for review")
        section = await self.ledger.update_status(
            document_id,
            section_key,
            SectionPatch(
                status=SectionStatus.PENDING_REVIEW,
                marked_for_review_by=requested_by,
                marked_for_review_date=datetime.now(timezone.utc),
            ),
        )
        log_section_event(
            "marked_for_review",
            section.section_id,
            section_key=section_key,
            status=section.status.value,
            author=requested_by,
        )
        await self.notifier.request_review(section, requested_by, reviewers)
        return section

    async def approve_section(self, document_id: str, section_key: str, approved_by: str) -> Section:
        section = await self.store.get_section(document_id, section_key)
        if section.status != SectionStatus.PENDING_REVIEW:
            raise InvalidTransition("section", section.status.value, SectionStatus.APPROVED.value)
        section = await self.ledger.update_status(
            document_id, section_key, SectionPatch(status=SectionStatus.APPROVED)
        )
        log_section_event(
            "approved",
            section.section_id,
            section_key=section_key,
            status=section.status.value,
            author=approved_by,
        )
        await self.notifier.notify_approved(section, approved_by)
        return section

    async def send_back(self, document_id: str, section_key: str, reviewer: str, feedback: str) -> Section:
        """Reject a section under review: back to draft, writer notified, document back to writing."""
        if not (feedback or "").strip():
            raise ValidationFailure("Feedback is required to send a section back")
        section = await self.store.get_section(document_id, section_key)
        if section.status != SectionStatus.PENDING_REVIEW:
            raise InvalidTransition("section", section.status.value, SectionStatus.DRAFT.value)
        section = await self.ledger.update_status(
            document_id, section_key, SectionPatch(status=SectionStatus.DRAFT)
        )
        log_section_event(
            "sent_back",
            section.section_id,
            section_key=section_key,
            status=section.status.value,
            author=reviewer,
        )
        await self.notifier.notify_sent_back(section, reviewer, feedback.strip())
        return section
