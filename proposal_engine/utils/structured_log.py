"""Structured logging for a machine-parseable audit trail of section writes and oracle calls."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
from structlog.processors import JSONRenderer
from structlog.typing import Processor

_configured = False
_logger: structlog.BoundLogger | None = None


def configure_run_logging(log_dir: str) -> None:
    """One-time setup. Writes JSON lines to {log_dir}/audit.jsonl."""
    global _configured, _logger
    if _configured:
        return
    audit_path = Path(log_dir) / "audit.jsonl"
    audit_path.parent.mkdir(parents=True, exist_ok=True)
    file_handle = open(audit_path, "a", encoding="utf-8")

    def _file_logger_factory(*args: Any, **kwargs: Any) -> structlog.PrintLogger:
        return structlog.PrintLogger(file_handle)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        JSONRenderer(),
    ]
    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=_file_logger_factory,
        cache_logger_on_first_use=True,
    )
    _configured = True
    _logger = structlog.get_logger()


def bind_document(document_id: str, user_email: str | None = None) -> None:
    """Bind document context so every event includes document_id (and the acting user)."""
    context: dict[str, Any] = {"document_id": document_id}
    if user_email:
        context["user_email"] = user_email
    structlog.contextvars.bind_contextvars(**context)


def log_oracle_call(
    feature: str,
    status: str,
    *,
    model: str | None = None,
    section_key: str | None = None,
    latency_ms: int | None = None,
    tokens_in: int | None = None,
    tokens_out: int | None = None,
    cost_usd: float | None = None,
    error: str | None = None,
) -> None:
    """Log one generation or judgment call."""
    payload: dict[str, Any] = {"feature": feature, "status": status}
    if model is not None:
        payload["model"] = model
    if section_key is not None:
        payload["section_key"] = section_key
    if latency_ms is not None:
        payload["latency_ms"] = latency_ms
    if tokens_in is not None:
        payload["tokens_in"] = tokens_in
    if tokens_out is not None:
        payload["tokens_out"] = tokens_out
    if cost_usd is not None:
        payload["cost_usd"] = cost_usd
    if error is not None:
        payload["error"] = error[:500]
    if _logger is not None:
        _logger.info("oracle_call", **payload)


def log_section_event(
    action: str,
    section_id: str,
    *,
    section_key: str | None = None,
    version_number: int | None = None,
    change_type: str | None = None,
    status: str | None = None,
    author: str | None = None,
) -> None:
    """Log a section write (action: saved|generated|restored|autosaved|marked_for_review|approved|sent_back)."""
    payload: dict[str, Any] = {"action": action, "section_id": section_id}
    if section_key is not None:
        payload["section_key"] = section_key
    if version_number is not None:
        payload["version_number"] = version_number
    if change_type is not None:
        payload["change_type"] = change_type
    if status is not None:
        payload["status"] = status
    if author is not None:
        payload["author"] = author
    if _logger is not None:
        _logger.info("section_event", **payload)


def log_suggestion_event(action: str, suggestion_id: str, **details: Any) -> None:
    """Log a reuse suggestion lifecycle event (action: ranked|accepted|rejected)."""
    if _logger is not None:
        _logger.info("suggestion_event", action=action, suggestion_id=suggestion_id, **details)


def log_rate_limit_wait(tier: str, slots_used: int, limit: int) -> None:
    """Log rate limit wait event."""
    if _logger is not None:
        _logger.info("rate_limit_wait", tier=tier, slots_used=slots_used, limit=limit)
