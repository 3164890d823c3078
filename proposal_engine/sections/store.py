"""Current-snapshot store for sections."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

import aiosqlite

from proposal_engine.db.repositories import SectionRepository
from proposal_engine.exceptions import NotFound, SectionNotFound
from proposal_engine.models import Section, SectionPatch
from proposal_engine.utils.logging_config import get_logger

logger = get_logger(__name__)

PatchLike = Union[SectionPatch, Dict[str, Any]]


class SectionStore:
    """Holds exactly one current row per (document_id, section_key).

    ``upsert_section`` never writes a version; callers that change content go
    through ``VersionLedger.record_change`` so the ledger stays in step.
    """

    def __init__(self, db: aiosqlite.Connection):
        self.db = db
        self.repo = SectionRepository(db)

    async def get_section(self, document_id: str, section_key: str) -> Section:
        section = await self.repo.get_section(document_id, section_key)
        if section is None:
            raise SectionNotFound(document_id, section_key)
        return section

    async def find_section(self, document_id: str, section_key: str) -> Optional[Section]:
        return await self.repo.get_section(document_id, section_key)

    async def get_section_by_id(self, section_id: str) -> Section:
        section = await self.repo.get_section_by_id(section_id)
        if section is None:
            raise NotFound(f"Section {section_id} not found")
        return section

    async def list_sections(self, document_id: str) -> List[Section]:
        return await self.repo.list_sections(document_id)

    async def upsert_section(
        self,
        document_id: str,
        section_key: str,
        patch: PatchLike,
        commit: bool = True,
    ) -> Section:
        """Create the section on first write, otherwise apply the patch. Last writer wins."""
        if not isinstance(patch, SectionPatch):
            patch = SectionPatch(**patch)
        changes = patch.changes()
        now = datetime.now(timezone.utc)

        existing = await self.repo.get_section(document_id, section_key)
        if existing is None:
            section = Section(
                document_id=document_id,
                section_key=section_key,
                created_at=now,
                updated_at=now,
                **{k: v for k, v in changes.items() if v is not None},
            )
            await self.repo.insert_section(section, commit=commit)
            logger.debug("Created section %s (%s)", section_key, section.section_id)
            return section

        data = existing.model_dump()
        data.update(changes)
        data["updated_at"] = now
        # re-validate so word_count follows the patched content
        section = Section.model_validate(data)
        await self.repo.update_section(section, commit=commit)
        return section
