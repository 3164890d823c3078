"""Create-or-regenerate orchestration for a single section."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import aiosqlite
from pydantic import BaseModel, Field

from proposal_engine.exceptions import GenerationInProgress, OracleFailure, ValidationFailure
from proposal_engine.generation.context_builder import ContextAssembler, format_context_block
from proposal_engine.generation.prompts import build_generation_prompt
from proposal_engine.llm.oracle import TextOracle
from proposal_engine.models import (
    ChangeType,
    ContextBundle,
    ContextConfig,
    GenerationConfig,
    GenerationOutcome,
    GenerationState,
    ReadingLevel,
    Reviewer,
    Section,
    SectionPatch,
    SectionStatus,
    SectionVersion,
    Tone,
)
from proposal_engine.sections.editor import SectionEditor
from proposal_engine.sections.ledger import VersionLedger
from proposal_engine.utils.logging_config import get_logger
from proposal_engine.utils.structured_log import log_section_event
from proposal_engine.utils.text import strip_html, truncate_text

logger = get_logger(__name__)

GENERATED_SUMMARY = "AI generated section"
REGENERATED_SUMMARY = "AI regenerated section (improved existing content)"
MAX_REFERENCE_FILES = 10


class GenerationOptions(BaseModel):
    is_regenerate: bool = False
    author: str = ""
    section_name: Optional[str] = None
    tone: Optional[Tone] = None
    reading_level: Optional[ReadingLevel] = None
    word_count_target: Optional[int] = Field(default=None, ge=50, le=10000)
    additional_context: Optional[str] = None
    mark_for_review: bool = False
    reviewers: List[Reviewer] = Field(default_factory=list)


class GeneratedResult(BaseModel):
    section: Section
    version: SectionVersion
    context: ContextBundle
    metadata: Dict[str, Any] = Field(default_factory=dict)


class GenerationStatus(BaseModel):
    state: GenerationState = GenerationState.IDLE
    last_outcome: Optional[GenerationOutcome] = None
    last_error: Optional[str] = None
    updated_at: Optional[datetime] = None


class GenerationOrchestrator:
    """Runs at most one generation per (document, section key) at a time.

    A failure anywhere before the final write leaves the section and its
    history exactly as they were; failed oracle calls are not retried.
    """

    def __init__(
        self,
        db: aiosqlite.Connection,
        oracle: TextOracle,
        config: Optional[GenerationConfig] = None,
        context_config: Optional[ContextConfig] = None,
        ledger: Optional[VersionLedger] = None,
        editor: Optional[SectionEditor] = None,
    ):
        self.db = db
        self.oracle = oracle
        self.config = config or GenerationConfig()
        self.ledger = ledger or VersionLedger(db)
        self.store = self.ledger.store
        self.assembler = ContextAssembler(db, context_config)
        self.editor = editor or SectionEditor(db, ledger=self.ledger)
        self._status: Dict[Tuple[str, str], GenerationStatus] = {}

    def state_of(self, document_id: str, section_key: str) -> GenerationStatus:
        return self._status.get((document_id, section_key), GenerationStatus()).model_copy()

    def _set(self, key: Tuple[str, str], **fields: Any) -> None:
        current = self._status.get(key, GenerationStatus())
        self._status[key] = current.model_copy(
            update={**fields, "updated_at": datetime.now(timezone.utc)}
        )

    def _existing_for_prompt(self, content: str) -> str:
        limit = self.config.existing_content_chars
        if limit <= 0 or len(content) <= limit:
            return content
        return truncate_text(content, limit)

    async def generate(
        self,
        document_id: str,
        section_key: str,
        options: Optional[GenerationOptions] = None,
    ) -> GeneratedResult:
        """Draft or improve a section through the text oracle and record the result.

        Raises:
            GenerationInProgress: a generation for the same key is running
            ValidationFailure: regenerate requested with nothing to improve
            OracleFailure: the oracle failed or returned no content
        """
        options = options or GenerationOptions()
        key = (document_id, section_key)
        if self._status.get(key, GenerationStatus()).state == GenerationState.GENERATING:
            raise GenerationInProgress(document_id, section_key)
        self._set(key, state=GenerationState.GENERATING)

        try:
            result = await self._generate(document_id, section_key, options)
        except Exception as e:
            self._set(
                key,
                state=GenerationState.IDLE,
                last_outcome=GenerationOutcome.FAILED,
                last_error=str(e) or type(e).__name__,
            )
            logger.error("Generation failed for %s: %s", section_key, e)
            raise
        except BaseException:
            self._set(key, state=GenerationState.IDLE)
            raise

        self._set(
            key,
            state=GenerationState.IDLE,
            last_outcome=GenerationOutcome.SUCCEEDED,
            last_error=None,
        )
        return result

    async def _generate(
        self,
        document_id: str,
        section_key: str,
        options: GenerationOptions,
    ) -> GeneratedResult:
        existing = await self.store.find_section(document_id, section_key)
        existing_content = existing.content if existing else ""
        if options.is_regenerate and not strip_html(existing_content):
            raise ValidationFailure(
                f"Cannot regenerate '{section_key}': the section has no content to improve"
            )

        bundle = await self.assembler.build_context(document_id, section_key)
        section_name = (
            options.section_name
            or (existing.section_name if existing else None)
            or section_key.replace("_", " ").title()
        )
        prompt = build_generation_prompt(
            section_name,
            format_context_block(bundle),
            tone=options.tone or self.config.default_tone,
            reading_level=options.reading_level or self.config.reading_level,
            word_count_target=options.word_count_target or self.config.default_word_count,
            request_citations=self.config.request_citations,
            existing_content=self._existing_for_prompt(existing_content) if options.is_regenerate else None,
            additional_context=options.additional_context,
        )
        reference_urls = [f.file_url for f in bundle.reference_files][:MAX_REFERENCE_FILES]

        logger.info(
            "%s %s (%d context sources, %d reference files)",
            "Regenerating" if options.is_regenerate else "Generating",
            section_key,
            len(bundle.sources),
            len(reference_urls),
        )
        generated = await self.oracle.generate_text(
            prompt,
            reference_urls,
            document_id=document_id,
            section_key=section_key,
            user_email=options.author or None,
        )
        if not strip_html(generated.content):
            raise OracleFailure(f"Oracle returned empty content for '{section_key}'")

        metadata = dict(generated.metadata or {})
        reference_sources = metadata.get("reference_sources") or bundle.sources
        context_summary = metadata.get("context_summary") or bundle.summary

        patch_fields: Dict[str, Any] = {
            "content": generated.content,
            "status": SectionStatus.AI_GENERATED,
            "ai_reference_sources": reference_sources,
            "ai_context_summary": context_summary,
        }
        if options.section_name:
            patch_fields["section_name"] = options.section_name
        change_type = ChangeType.AI_REGENERATED if options.is_regenerate else ChangeType.AI_GENERATED
        section, version = await self.ledger.record_change(
            document_id,
            section_key,
            SectionPatch(**patch_fields),
            change_type,
            author=options.author,
            summary=REGENERATED_SUMMARY if options.is_regenerate else GENERATED_SUMMARY,
        )
        log_section_event(
            "generated",
            section.section_id,
            section_key=section_key,
            version_number=version.version_number,
            change_type=change_type.value,
            author=options.author or None,
        )
        logger.info(
            "Generated %s: %d words, version %d",
            section_key,
            section.word_count,
            version.version_number,
        )

        if options.mark_for_review:
            section = await self.editor.mark_for_review(
                document_id, section_key, options.author, options.reviewers
            )
        return GeneratedResult(section=section, version=version, context=bundle, metadata=metadata)
