"""Text-generation and structured-judgment oracles.

Both are thin contracts over an ``LLMBackend``. Every provider error is
surfaced as ``OracleFailure``; nothing here retries on top of the client's
own transient-error backoff.
"""

from __future__ import annotations

import json
import time
from typing import Any, Dict, List, Optional, Protocol, Sequence, Type, Union, runtime_checkable

import aiosqlite
from pydantic import BaseModel, Field, ValidationError

from proposal_engine.exceptions import OracleFailure
from proposal_engine.llm.base_client import LLMBackend, UsageReportingBackend
from proposal_engine.llm.provider import AgentRuntimeConfig, LLMProvider
from proposal_engine.models import UsageRecord
from proposal_engine.utils.logging_config import get_logger
from proposal_engine.utils.structured_log import log_oracle_call

logger = get_logger(__name__)

WRITER_AGENT = "writer"
RANKER_AGENT = "ranker"


class DraftOutput(BaseModel):
    """Schema the writer model fills in."""

    content: str = Field(description="Section body as HTML paragraphs")
    reference_sources: List[str] = Field(
        default_factory=list,
        description="Labels of the context items the draft relied on",
    )
    context_summary: str = Field(default="", description="One sentence on what context was used")


class GeneratedText(BaseModel):
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


@runtime_checkable
class TextOracle(Protocol):
    async def generate_text(
        self,
        prompt: str,
        reference_files: Sequence[str] = (),
        **call_context: Any,
    ) -> GeneratedText: ...


@runtime_checkable
class JudgmentOracle(Protocol):
    async def judge(
        self,
        prompt: str,
        output_schema: Union[Type[BaseModel], Dict[str, Any]],
        **call_context: Any,
    ) -> Dict[str, Any]: ...


def estimate_tokens(text: str) -> int:
    return max(1, len(text) // 4) if text else 0


def _schema_dict(output_schema: Union[Type[BaseModel], Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(output_schema, dict):
        return output_schema
    return output_schema.model_json_schema()


class LLMOracle:
    """Both oracles backed by one provider and one backend.

    The writer agent produces drafts; the ranker agent produces judgments.
    """

    def __init__(
        self,
        provider: LLMProvider,
        backend: LLMBackend,
        writer_agent: str = WRITER_AGENT,
        ranker_agent: str = RANKER_AGENT,
    ):
        self.provider = provider
        self.backend = backend
        self.writer_agent = writer_agent
        self.ranker_agent = ranker_agent

    async def _call(
        self,
        agent_name: str,
        feature: str,
        prompt: str,
        json_schema: Optional[Dict[str, Any]],
        reference_files: Sequence[str],
        document_id: Optional[str],
        section_key: Optional[str],
        user_email: Optional[str],
    ) -> str:
        config: Optional[AgentRuntimeConfig] = None
        start = time.monotonic()
        try:
            config = await self.provider.reserve_call_slot(agent_name)
            start = time.monotonic()
            if isinstance(self.backend, UsageReportingBackend):
                text, tokens_in, tokens_out = await self.backend.complete_with_usage(
                    prompt,
                    model=config.model,
                    temperature=config.temperature,
                    json_schema=json_schema,
                    reference_files=reference_files,
                )
            else:
                text = await self.backend.complete(
                    prompt,
                    model=config.model,
                    temperature=config.temperature,
                    json_schema=json_schema,
                    reference_files=reference_files,
                )
                tokens_in, tokens_out = estimate_tokens(prompt), estimate_tokens(text)
        except Exception as exc:
            latency_ms = int((time.monotonic() - start) * 1000)
            model = config.model if config is not None else agent_name
            log_oracle_call(
                feature,
                "error",
                model=model,
                section_key=section_key,
                latency_ms=latency_ms,
                error=str(exc),
            )
            logger.error("%s call to %s failed: %s", feature, model, exc)
            raise OracleFailure(f"{feature} call failed: {exc}") from exc

        latency_ms = int((time.monotonic() - start) * 1000)
        cost = self.provider.estimate_cost_usd(config.model, tokens_in, tokens_out)
        log_oracle_call(
            feature,
            "success",
            model=config.model,
            section_key=section_key,
            latency_ms=latency_ms,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            cost_usd=cost,
        )
        usage = UsageRecord(
            model=config.model,
            feature=feature,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            cost_usd=cost,
            latency_ms=latency_ms,
            document_id=document_id,
            section_key=section_key,
            user_email=user_email,
        )
        try:
            await self.provider.log_usage(usage)
        except aiosqlite.Error as exc:
            logger.warning("Could not record %s usage for %s: %s", feature, config.model, exc)
        return text

    async def generate_text(
        self,
        prompt: str,
        reference_files: Sequence[str] = (),
        *,
        document_id: Optional[str] = None,
        section_key: Optional[str] = None,
        user_email: Optional[str] = None,
    ) -> GeneratedText:
        raw = await self._call(
            self.writer_agent,
            "section_generation",
            prompt,
            DraftOutput.model_json_schema(),
            list(reference_files)[:10],
            document_id,
            section_key,
            user_email,
        )
        try:
            draft = DraftOutput.model_validate_json(raw)
        except ValidationError as exc:
            raise OracleFailure(f"Generation returned malformed output: {exc}") from exc
        if not draft.content.strip():
            raise OracleFailure("Generation returned empty content")

        metadata: Dict[str, Any] = {}
        if draft.reference_sources:
            metadata["reference_sources"] = [{"label": s} for s in draft.reference_sources]
        if draft.context_summary:
            metadata["context_summary"] = draft.context_summary
        return GeneratedText(content=draft.content, metadata=metadata)

    async def judge(
        self,
        prompt: str,
        output_schema: Union[Type[BaseModel], Dict[str, Any]],
        *,
        document_id: Optional[str] = None,
        section_key: Optional[str] = None,
        user_email: Optional[str] = None,
    ) -> Dict[str, Any]:
        raw = await self._call(
            self.ranker_agent,
            "reuse_ranking",
            prompt,
            _schema_dict(output_schema),
            (),
            document_id,
            section_key,
            user_email,
        )
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise OracleFailure(f"Judgment returned non-JSON output: {exc}") from exc
        if not isinstance(parsed, dict):
            raise OracleFailure("Judgment output is not a JSON object")
        return parsed
