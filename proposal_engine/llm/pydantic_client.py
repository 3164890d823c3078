"""PydanticAI-backed LLM client implementing the LLMBackend protocol.

The provider is inferred from the model string prefix in config/settings.yaml
("google-gla:", "anthropic:", "openai:", ...). Gemini models get native
response-schema enforcement; other providers enforce the schema through tool
calling. Reference files are attached as document URLs.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from typing import Any, Sequence

from pydantic_ai import Agent, DocumentUrl, NativeOutput, StructuredDict
from pydantic_ai.settings import ModelSettings

logger = logging.getLogger(__name__)

_GEMINI_PREFIXES = ("google-gla:", "google-vertex:")

_MAX_RETRIES = 5
_BASE_DELAY = 2.0  # seconds
_MAX_DELAY = 90.0  # seconds cap

# transient provider conditions
_RETRYABLE_CODES = {"429", "502", "503", "504"}
_RETRYABLE_MSGS = {"unavailable", "resource_exhausted", "rate limit", "rate_limit", "overloaded", "gateway", "quota"}


def _is_gemini(model: str) -> bool:
    return model.startswith(_GEMINI_PREFIXES)


def _is_retryable(exc: BaseException) -> bool:
    s = str(exc).lower()
    return any(c in s for c in _RETRYABLE_CODES) or any(m in s for m in _RETRYABLE_MSGS)


def _build_user_prompt(prompt: str, reference_files: Sequence[str]) -> Any:
    if not reference_files:
        return prompt
    return [prompt, *(DocumentUrl(url=url) for url in reference_files)]


def _output_type(model: str, json_schema: dict | None) -> Any:
    if json_schema is None:
        return str
    if _is_gemini(model):
        return NativeOutput(StructuredDict(json_schema))
    return StructuredDict(json_schema)


async def _run_with_retry(agent: Agent[Any, Any], user_prompt: Any, *, model_settings: ModelSettings) -> Any:
    """Run *agent*, backing off exponentially on transient provider errors.

    Auth failures, schema errors and anything else non-transient are raised on
    the first occurrence.
    """
    for attempt in range(_MAX_RETRIES):
        try:
            return await agent.run(user_prompt, model_settings=model_settings)
        except Exception as exc:
            if not _is_retryable(exc) or attempt == _MAX_RETRIES - 1:
                raise
            delay = min(_BASE_DELAY * (2**attempt) + random.uniform(0, 1), _MAX_DELAY)
            logger.warning(
                "LLM transient error (attempt %d/%d), retrying in %.1fs: %s",
                attempt + 1,
                _MAX_RETRIES,
                delay,
                exc,
            )
            await asyncio.sleep(delay)
    raise RuntimeError("unreachable")  # pragma: no cover


class PydanticAIClient:
    """Provider-agnostic client backed by a PydanticAI ``Agent`` per call.

    Switching the model is a change in config/settings.yaml only.
    """

    async def complete(
        self,
        prompt: str,
        *,
        model: str,
        temperature: float,
        json_schema: dict | None = None,
        reference_files: Sequence[str] = (),
    ) -> str:
        text, _, _ = await self.complete_with_usage(
            prompt,
            model=model,
            temperature=temperature,
            json_schema=json_schema,
            reference_files=reference_files,
        )
        return text

    async def complete_with_usage(
        self,
        prompt: str,
        *,
        model: str,
        temperature: float,
        json_schema: dict | None = None,
        reference_files: Sequence[str] = (),
    ) -> tuple[str, int, int]:
        """Run one completion and return (text, input_tokens, output_tokens).

        Token counts come from the provider's usage object.
        """
        settings = ModelSettings(temperature=temperature)
        agent: Agent = Agent(model, output_type=_output_type(model, json_schema))  # type: ignore[arg-type]
        result = await _run_with_retry(
            agent,
            _build_user_prompt(prompt, reference_files),
            model_settings=settings,
        )
        output = result.output
        text = json.dumps(output) if isinstance(output, dict) else str(output)
        usage = result.usage()
        return text, usage.input_tokens or 0, usage.output_tokens or 0
