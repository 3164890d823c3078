"""Periodic reconciliation of in-memory edit buffers into the section store."""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

import aiosqlite
from pydantic import BaseModel, Field

from proposal_engine.models import AutoSaveConfig, ChangeType, SectionPatch, SectionStatus
from proposal_engine.sections.ledger import VersionLedger
from proposal_engine.utils.logging_config import get_logger
from proposal_engine.utils.structured_log import log_section_event
from proposal_engine.utils.text import is_blank

logger = get_logger(__name__)

AUTOSAVE_SUMMARY = "Auto-saved"


class EditBuffer:
    """The editing surface's ``{section_key: content}`` map."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._entries: Dict[str, str] = dict(initial or {})

    def update(self, section_key: str, content: str) -> None:
        self._entries[section_key] = content

    def discard(self, section_key: str) -> None:
        self._entries.pop(section_key, None)

    def snapshot(self) -> Dict[str, str]:
        return dict(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, section_key: object) -> bool:
        return section_key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))


class AutoSaveReport(BaseModel):
    saved: List[str] = Field(default_factory=list)
    unchanged: List[str] = Field(default_factory=list)
    skipped_empty: List[str] = Field(default_factory=list)
    errors: Dict[str, str] = Field(default_factory=dict)
    versions: Dict[str, int] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


class AutoSaveReconciler:
    """Syncs buffered edits on a fixed interval.

    Each key is handled on its own: one failed persist is reported in
    ``AutoSaveReport.errors`` and the remaining keys are still saved.
    """

    def __init__(
        self,
        db: aiosqlite.Connection,
        config: Optional[AutoSaveConfig] = None,
        ledger: Optional[VersionLedger] = None,
    ):
        self.db = db
        self.config = config or AutoSaveConfig()
        self.ledger = ledger or VersionLedger(db)
        self.store = self.ledger.store

    async def _reconcile_key(
        self,
        document_id: str,
        section_key: str,
        content: str,
        author: str,
        report: AutoSaveReport,
    ) -> None:
        existing = await self.store.find_section(document_id, section_key)
        if existing is not None and existing.content == content:
            report.unchanged.append(section_key)
            return
        first = existing is None or not await self.ledger.has_versions(existing.section_id)
        section, version = await self.ledger.record_change(
            document_id,
            section_key,
            SectionPatch(content=content, status=SectionStatus.DRAFT),
            ChangeType.INITIAL_CREATION if first else ChangeType.USER_EDIT,
            author=author,
            summary=AUTOSAVE_SUMMARY,
        )
        report.saved.append(section_key)
        report.versions[section_key] = version.version_number
        log_section_event(
            "autosaved",
            section.section_id,
            section_key=section_key,
            version_number=version.version_number,
            author=author,
        )

    async def reconcile_once(
        self,
        document_id: str,
        buffer: EditBuffer,
        author: Optional[str] = None,
    ) -> AutoSaveReport:
        author = author or self.config.author
        report = AutoSaveReport()
        for section_key, content in buffer.snapshot().items():
            if is_blank(content):
                report.skipped_empty.append(section_key)
                continue
            try:
                await self._reconcile_key(document_id, section_key, content, author, report)
            except Exception as e:
                logger.error("Auto-save failed for %s: %s", section_key, e)
                report.errors[section_key] = str(e) or type(e).__name__

        if report.saved or report.errors:
            logger.info(
                "Auto-save: %d saved, %d unchanged, %d failed",
                len(report.saved),
                len(report.unchanged),
                len(report.errors),
            )
        return report

    async def run(
        self,
        document_id: str,
        buffer: EditBuffer,
        author: Optional[str] = None,
        stop_event: Optional[asyncio.Event] = None,
        on_report: Optional[Callable[[AutoSaveReport], Any]] = None,
        flush_on_stop: bool = True,
    ) -> int:
        """Reconcile every ``interval_seconds`` until ``stop_event`` is set.

        The next tick is only scheduled once the previous one has finished, so
        ticks never overlap. Returns the number of ticks run.
        """
        stop_event = stop_event or asyncio.Event()
        ticks = 0
        while True:
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.config.interval_seconds)
                break
            except asyncio.TimeoutError:
                pass
            await self._tick(document_id, buffer, author, on_report)
            ticks += 1

        if flush_on_stop:
            await self._tick(document_id, buffer, author, on_report)
            ticks += 1
        return ticks

    async def _tick(self, document_id, buffer, author, on_report) -> AutoSaveReport:
        report = await self.reconcile_once(document_id, buffer, author)
        if on_report is not None:
            result = on_report(report)
            if inspect.isawaitable(result):
                await result
        return report
