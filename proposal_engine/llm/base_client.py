"""Provider-agnostic LLM backend protocol used by the oracles."""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable


@runtime_checkable
class LLMBackend(Protocol):
    """Anything that can turn a prompt into text or schema-conforming JSON.

    ``reference_files`` are document URLs the model may read alongside the
    prompt. Implementors apply their own backoff on transient provider errors.
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
        """Return the response text, or a JSON string when ``json_schema`` is given."""
        ...


@runtime_checkable
class UsageReportingBackend(LLMBackend, Protocol):
    """Backend that also reports provider token usage."""

    async def complete_with_usage(
        self,
        prompt: str,
        *,
        model: str,
        temperature: float,
        json_schema: dict | None = None,
        reference_files: Sequence[str] = (),
    ) -> tuple[str, int, int]:
        """Return (text, input_tokens, output_tokens)."""
        ...
