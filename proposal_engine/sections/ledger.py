"""Append-only version history for sections.

Every content change goes through ``record_change``: the section upsert and
the version append commit together or not at all, so the newest version
always matches the section's current content.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, List, Optional, Tuple

import aiosqlite
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
)

from proposal_engine.db.database import transaction
from proposal_engine.db.repositories import VersionRepository
from proposal_engine.exceptions import ConcurrencyConflict, VersionNotFound
from proposal_engine.models import ChangeType, Section, SectionPatch, SectionStatus, SectionVersion
from proposal_engine.sections.store import PatchLike, SectionStore
from proposal_engine.utils.logging_config import get_logger
from proposal_engine.utils.structured_log import log_section_event

logger = get_logger(__name__)

AfterWrite = Callable[[Section, SectionVersion], Awaitable[None]]


class VersionLedger:
    def __init__(self, db: aiosqlite.Connection, store: Optional[SectionStore] = None):
        self.db = db
        self.store = store or SectionStore(db)
        self.repo = VersionRepository(db)

    async def append_version(
        self,
        section_id: str,
        content: str,
        change_type: ChangeType,
        author: str = "",
        summary: str = "",
        commit: bool = True,
    ) -> SectionVersion:
        """Append the next version (max + 1, starting at 1).

        Raises:
            ConcurrencyConflict: another writer claimed the same number first
        """
        current_max = await self.repo.max_version_number(section_id)
        version = SectionVersion(
            section_id=section_id,
            version_number=current_max + 1,
            content=content,
            change_type=change_type,
            changed_by=author,
            change_summary=summary,
        )
        await self.repo.insert_version(version, commit=commit)
        return version

    async def list_versions(self, section_id: str) -> List[SectionVersion]:
        """All versions of a section, newest first."""
        versions = await self.repo.list_versions(section_id)
        return list(reversed(versions))

    async def get_version(self, section_id: str, version_number: int) -> SectionVersion:
        version = await self.repo.get_version(section_id, version_number)
        if version is None:
            raise VersionNotFound(section_id, version_number)
        return version

    async def has_versions(self, section_id: str) -> bool:
        return await self.repo.max_version_number(section_id) > 0

    async def record_change(
        self,
        document_id: str,
        section_key: str,
        patch: PatchLike,
        change_type: ChangeType,
        author: str = "",
        summary: str = "",
        after_write: Optional[AfterWrite] = None,
    ) -> Tuple[Section, SectionVersion]:
        """Upsert the section then append a version, atomically.

        A version-number race is retried once with a fresh read of the current
        maximum; a second conflict propagates. ``after_write`` runs inside the
        same transaction, so anything it writes commits or rolls back with the
        section and version. It must pass ``commit=False`` to repository
        writes: the connection's write lock is already held.
        """
        section: Optional[Section] = None
        version: Optional[SectionVersion] = None
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(2),
            retry=retry_if_exception_type(ConcurrencyConflict),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                async with transaction(self.db):
                    section = await self.store.upsert_section(
                        document_id, section_key, patch, commit=False
                    )
                    version = await self.append_version(
                        section.section_id,
                        section.content,
                        change_type,
                        author=author,
                        summary=summary,
                        commit=False,
                    )
                    if after_write is not None:
                        await after_write(section, version)

        log_section_event(
            "recorded",
            section.section_id,
            section_key=section_key,
            version_number=version.version_number,
            change_type=version.change_type.value,
            status=section.status.value,
            author=author or None,
        )
        return section, version

    async def update_status(
        self,
        document_id: str,
        section_key: str,
        patch: PatchLike,
    ) -> Section:
        """Status-only update: no version is written. ``patch`` must not touch content."""
        if not isinstance(patch, SectionPatch):
            patch = SectionPatch(**patch)
        if "content" in patch.changes():
            raise ValueError("status-only updates cannot change content")
        async with transaction(self.db):
            return await self.store.upsert_section(document_id, section_key, patch, commit=False)

    async def restore_version(
        self,
        section_id: str,
        version_number: int,
        author: str = "",
    ) -> Section:
        """Make version N current again and record that as a new version.

        Intervening history is left alone.
        """
        target = await self.get_version(section_id, version_number)
        current = await self.store.get_section_by_id(section_id)
        section, version = await self.record_change(
            current.document_id,
            current.section_key,
            SectionPatch(content=target.content, status=SectionStatus.REVIEWED),
            ChangeType.RESTORED_FROM_HISTORY,
            author=author,
            summary=f"Restored from version {version_number}",
        )
        logger.info(
            "Restored %s to version %d as version %d",
            current.section_key,
            version_number,
            version.version_number,
        )
        return section
