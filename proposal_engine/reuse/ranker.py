"""Explainable reuse suggestions drawn from other documents' sections.

The pool is gated before anything reaches the judge: other documents only,
quality outcomes only, same section type only, non-empty content only. Judge
output is parsed item by item; an item that cannot explain itself is dropped.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import aiosqlite
from pydantic import ValidationError

from proposal_engine.db.repositories import DocumentRepository, SectionRepository, SuggestionRepository
from proposal_engine.exceptions import (
    DocumentNotFound,
    InvalidTransition,
    OracleFailure,
    SuggestionNotFound,
)
from proposal_engine.generation.prompts import build_ranking_prompt
from proposal_engine.llm.oracle import JudgmentOracle
from proposal_engine.models import (
    ChangeType,
    ConfidenceLevel,
    RankedCandidate,
    ReuseCandidate,
    ReuseConfig,
    ReuseJudgment,
    ReuseSuggestion,
    Section,
    SectionPatch,
    SectionVersion,
    SuggestionStatus,
)
from proposal_engine.sections.ledger import VersionLedger
from proposal_engine.utils.logging_config import get_logger
from proposal_engine.utils.structured_log import log_suggestion_event
from proposal_engine.utils.text import strip_html

logger = get_logger(__name__)

PARAGRAPH_BREAK = "<p><br></p>"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def confidence_from_score(score: float) -> ConfidenceLevel:
    if score >= 75:
        return ConfidenceLevel.HIGH
    if score >= 50:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def _outcome_time(candidate: ReuseCandidate) -> datetime:
    outcome = candidate.document.outcome_date
    if outcome is None:
        return _EPOCH
    if outcome.tzinfo is None:
        return outcome.replace(tzinfo=timezone.utc)
    return outcome


def parse_rankings(raw: Dict[str, Any], known_ids: Sequence[str]) -> List[RankedCandidate]:
    """Validate judge items one at a time; malformed or unknown items are skipped."""
    items = raw.get("rankings")
    if not isinstance(items, list):
        raise OracleFailure("Judgment output has no 'rankings' list")
    known = set(known_ids)
    ranked: List[RankedCandidate] = []
    for item in items:
        try:
            candidate = RankedCandidate.model_validate(item)
        except ValidationError as e:
            logger.warning("Dropping malformed ranking item: %s", e.errors()[0].get("msg", e))
            continue
        if candidate.candidate_id not in known:
            logger.warning("Dropping ranking for unknown candidate %s", candidate.candidate_id)
            continue
        reasons = [r.strip() for r in candidate.match_reasons if r and r.strip()]
        if not reasons:
            logger.warning("Dropping ranking without reasons for %s", candidate.candidate_id)
            continue
        ranked.append(candidate.model_copy(update={"match_reasons": reasons}))
    return ranked


class ReuseRanker:
    def __init__(
        self,
        db: aiosqlite.Connection,
        oracle: Optional[JudgmentOracle] = None,
        config: Optional[ReuseConfig] = None,
        ledger: Optional[VersionLedger] = None,
    ):
        self.db = db
        self.oracle = oracle
        self.config = config or ReuseConfig()
        self.ledger = ledger or VersionLedger(db)
        self.store = self.ledger.store
        self.documents = DocumentRepository(db)
        self.sections = SectionRepository(db)
        self.suggestions = SuggestionRepository(db)

    async def build_candidate_pool(
        self,
        target: Section,
        organization_id: Optional[str] = None,
    ) -> List[ReuseCandidate]:
        """Qualifying sections from other documents, most recent outcome first."""
        rows = await self.sections.list_reuse_pool(
            exclude_document_id=target.document_id,
            section_type=target.section_type,
            statuses=self.config.quality_outcomes,
            limit=self.config.max_candidates * 5 if organization_id else self.config.max_candidates,
        )
        pool = [ReuseCandidate(section=s, document=d) for s, d in rows]
        if organization_id:
            pool = [c for c in pool if c.document.organization_id == organization_id]
        return self.filter_pool(target, pool)

    def filter_pool(self, target: Section, pool: Sequence[ReuseCandidate]) -> List[ReuseCandidate]:
        """Apply the reuse gates to any pool, including caller-supplied ones."""
        outcomes = set(self.config.quality_outcomes)
        seen = set()
        kept: List[ReuseCandidate] = []
        for candidate in pool:
            section = candidate.section
            if section.section_id in seen:
                continue
            if section.document_id != candidate.document.document_id:
                continue
            if section.document_id == target.document_id or section.section_id == target.section_id:
                continue
            if section.section_type != target.section_type:
                continue
            if candidate.document.status not in outcomes:
                continue
            if not strip_html(section.content):
                continue
            seen.add(section.section_id)
            kept.append(candidate)
        kept.sort(key=_outcome_time, reverse=True)
        return kept[: self.config.max_candidates]

    async def rank(
        self,
        target_document_id: str,
        target_section_key: str,
        candidate_pool: Optional[Sequence[ReuseCandidate]] = None,
    ) -> List[ReuseSuggestion]:
        """Score the pool against the target section and persist the top suggestions.

        Every call is a new run: earlier suggestions for the same target are
        kept, and the new rows share one ``run_id``.
        """
        target = await self.store.get_section(target_document_id, target_section_key)
        target_document = await self.documents.get_document(target_document_id)
        if target_document is None:
            raise DocumentNotFound(target_document_id)

        if candidate_pool is None:
            candidate_pool = await self.build_candidate_pool(target)
        pool = self.filter_pool(target, candidate_pool)
        if not pool:
            logger.info("No reuse candidates for %s", target_section_key)
            return []

        if self.oracle is None:
            raise OracleFailure("No judgment oracle configured for ranking")
        by_id = {c.section.section_id: c for c in pool}
        prompt = build_ranking_prompt(
            target,
            target_document.name,
            target_document.agency_name,
            pool,
            preview_chars=self.config.preview_chars,
            max_suggestions=self.config.max_suggestions,
        )
        raw = await self.oracle.judge(
            prompt,
            ReuseJudgment,
            document_id=target_document_id,
            section_key=target_section_key,
        )
        ranked = parse_rankings(raw, list(by_id))

        best: Dict[str, RankedCandidate] = {}
        for item in ranked:
            current = best.get(item.candidate_id)
            if current is None or item.relevance_score > current.relevance_score:
                best[item.candidate_id] = item
        ordered = sorted(
            best.values(),
            key=lambda r: (-r.relevance_score, -_outcome_time(by_id[r.candidate_id]).timestamp()),
        )[: self.config.max_suggestions]

        run_id = str(uuid.uuid4())
        created_at = datetime.now(timezone.utc)
        suggestions = [
            ReuseSuggestion(
                run_id=run_id,
                target_section_id=target.section_id,
                target_document_id=target.document_id,
                source_section_id=item.candidate_id,
                source_document_id=by_id[item.candidate_id].document.document_id,
                relevance_score=item.relevance_score,
                similarity_type=item.similarity_type,
                match_reasons=item.match_reasons,
                suggested_modifications=item.suggested_modifications,
                confidence_level=item.confidence_level or confidence_from_score(item.relevance_score),
                created_at=created_at,
            )
            for item in ordered
        ]
        if suggestions:
            await self.suggestions.save_suggestions(suggestions)
        log_suggestion_event(
            "ranked",
            run_id,
            target_section_id=target.section_id,
            candidates=len(pool),
            suggestions=len(suggestions),
        )
        logger.info(
            "Ranked %d candidates for %s: %d suggestions",
            len(pool),
            target_section_key,
            len(suggestions),
        )
        return suggestions

    async def list_suggestions(
        self,
        target_document_id: str,
        target_section_key: str,
        latest_run_only: bool = True,
    ) -> List[ReuseSuggestion]:
        target = await self.store.get_section(target_document_id, target_section_key)
        return await self.suggestions.list_for_section(target.section_id, latest_run_only)

    async def _pending(self, suggestion_id: str, requested: SuggestionStatus) -> ReuseSuggestion:
        suggestion = await self.suggestions.get_suggestion(suggestion_id)
        if suggestion is None:
            raise SuggestionNotFound(suggestion_id)
        if suggestion.status != SuggestionStatus.PENDING:
            raise InvalidTransition("suggestion", suggestion.status.value, requested.value)
        return suggestion

    async def accept_suggestion(self, suggestion_id: str, author: str = "") -> ReuseSuggestion:
        """Append the source content to the target section and mark the suggestion used.

        The content change, its version and the status flip commit together.
        """
        suggestion = await self._pending(suggestion_id, SuggestionStatus.ACCEPTED)
        source = await self.store.get_section_by_id(suggestion.source_section_id)
        target = await self.store.get_section_by_id(suggestion.target_section_id)
        source_document = await self.documents.get_document(suggestion.source_document_id)
        source_name = source_document.name if source_document else suggestion.source_document_id

        merged = f"{target.content}{PARAGRAPH_BREAK}{source.content}" if strip_html(target.content) else source.content
        resolved_at = datetime.now(timezone.utc)

        async def _mark_accepted(section: Section, version: SectionVersion) -> None:
            changed = await self.suggestions.resolve(
                suggestion_id,
                SuggestionStatus.ACCEPTED,
                resolved_at,
                was_used=True,
                commit=False,
            )
            if changed != 1:
                raise InvalidTransition("suggestion", "resolved", SuggestionStatus.ACCEPTED.value)

        await self.ledger.record_change(
            target.document_id,
            target.section_key,
            SectionPatch(content=merged),
            ChangeType.USER_EDIT,
            author=author,
            summary=f"Inserted reused content from {source_name}",
            after_write=_mark_accepted,
        )
        log_suggestion_event("accepted", suggestion_id, author=author or None)
        return suggestion.model_copy(
            update={"status": SuggestionStatus.ACCEPTED, "was_used": True, "resolved_at": resolved_at}
        )

    async def reject_suggestion(self, suggestion_id: str, feedback: Optional[str] = None) -> ReuseSuggestion:
        suggestion = await self._pending(suggestion_id, SuggestionStatus.REJECTED)
        resolved_at = datetime.now(timezone.utc)
        changed = await self.suggestions.resolve(
            suggestion_id,
            SuggestionStatus.REJECTED,
            resolved_at,
            user_feedback=feedback,
        )
        if changed != 1:
            raise InvalidTransition("suggestion", "resolved", SuggestionStatus.REJECTED.value)
        log_suggestion_event("rejected", suggestion_id, feedback=feedback)
        return suggestion.model_copy(
            update={
                "status": SuggestionStatus.REJECTED,
                "user_feedback": feedback,
                "resolved_at": resolved_at,
            }
        )
