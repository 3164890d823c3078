"""Reuse suggestion records and the ranking judgment schema."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from proposal_engine.models.documents import Document
from proposal_engine.models.enums import ConfidenceLevel, SimilarityType, SuggestionStatus
from proposal_engine.models.sections import Section


class ReuseSuggestion(BaseModel):
    suggestion_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    run_id: str
    target_section_id: str
    target_document_id: str
    source_section_id: str
    source_document_id: str
    relevance_score: float = Field(ge=0.0, le=100.0)
    similarity_type: SimilarityType
    match_reasons: List[str] = Field(min_length=1)
    suggested_modifications: str = ""
    confidence_level: ConfidenceLevel
    status: SuggestionStatus = SuggestionStatus.PENDING
    was_used: bool = False
    user_feedback: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    resolved_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _cross_document_only(self) -> "ReuseSuggestion":
        if self.source_document_id == self.target_document_id:
            raise ValueError("source section must come from a different document than the target")
        if self.source_section_id == self.target_section_id:
            raise ValueError("a section cannot be suggested for itself")
        return self


class ReuseCandidate(BaseModel):
    """A section from another document paired with its parent document."""

    section: Section
    document: Document


class RankedCandidate(BaseModel):
    """One item of the structured judgment returned by the ranking oracle."""

    candidate_id: str
    relevance_score: float = Field(ge=0, le=100)
    similarity_type: SimilarityType
    match_reasons: List[str] = Field(min_length=1)
    suggested_modifications: str = ""
    confidence_level: Optional[ConfidenceLevel] = None


class ReuseJudgment(BaseModel):
    rankings: List[RankedCandidate] = Field(default_factory=list)
