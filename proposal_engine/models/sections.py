"""Section and version records."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from proposal_engine.models.enums import ChangeType, SectionStatus
from proposal_engine.utils.text import count_words


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Section(BaseModel):
    """Current snapshot of one section. ``word_count`` always follows ``content``."""

    section_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    document_id: str = Field(min_length=1)
    section_key: str = Field(min_length=1)
    section_name: str = ""
    section_type: str = ""
    content: str = ""
    word_count: int = 0
    status: SectionStatus = SectionStatus.DRAFT
    order: int = 0
    ai_reference_sources: List[Dict[str, Any]] = Field(default_factory=list)
    ai_context_summary: Optional[str] = None
    marked_for_review_by: Optional[str] = None
    marked_for_review_date: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _derive_fields(self) -> "Section":
        self.word_count = count_words(self.content)
        if not self.section_type:
            self.section_type = self.section_key
        if not self.section_name:
            self.section_name = self.section_key.replace("_", " ").title()
        return self


class SectionPatch(BaseModel):
    """Partial update for ``SectionStore.upsert_section``. Unset fields are left alone.

    There is no ``word_count`` field: it is recomputed whenever ``content`` is set.
    """

    content: Optional[str] = None
    status: Optional[SectionStatus] = None
    section_name: Optional[str] = None
    section_type: Optional[str] = None
    order: Optional[int] = None
    ai_reference_sources: Optional[List[Dict[str, Any]]] = None
    ai_context_summary: Optional[str] = None
    marked_for_review_by: Optional[str] = None
    marked_for_review_date: Optional[datetime] = None

    model_config = {"extra": "forbid"}

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class SectionVersion(BaseModel):
    """Immutable snapshot in the version ledger."""

    version_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    section_id: str = Field(min_length=1)
    version_number: int = Field(ge=1)
    content: str
    word_count: int = 0
    change_type: ChangeType
    changed_by: str = ""
    change_summary: str = ""
    created_at: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": True}

    @model_validator(mode="before")
    @classmethod
    def _derive_word_count(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            data["word_count"] = count_words(data.get("content"))
        return data
