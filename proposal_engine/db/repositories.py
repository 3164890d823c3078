"""Typed repositories for section, version, suggestion and reference persistence."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from typing import Any, List, Optional, Sequence, Tuple

import aiosqlite

from proposal_engine.db.database import transaction
from proposal_engine.exceptions import ConcurrencyConflict
from proposal_engine.models import (
    ComplianceRequirement,
    Document,
    DocumentStatus,
    PartnerCapability,
    PastPerformanceRecord,
    ReferenceFile,
    ReviewNotification,
    Section,
    SectionVersion,
    StageTransitionRequest,
    SuggestionStatus,
    UsageRecord,
    WinTheme,
)
from proposal_engine.models.reuse import ReuseSuggestion


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _json_list(raw: Any) -> list:
    if isinstance(raw, str) and raw:
        return json.loads(raw)
    return list(raw or [])


async def _write(db: aiosqlite.Connection, sql: str, params: Sequence[Any], commit: bool = True) -> aiosqlite.Cursor:
    async with transaction(db, commit):
        return await db.execute(sql, params)


async def _write_many(db: aiosqlite.Connection, sql: str, rows: List[Sequence[Any]], commit: bool = True) -> None:
    async with transaction(db, commit):
        await db.executemany(sql, rows)


def _is_unique_violation(exc: sqlite3.IntegrityError) -> bool:
    return "UNIQUE" in str(exc).upper()


_SECTION_COLUMNS = """
    section_id, document_id, section_key, section_name, section_type, content,
    word_count, status, display_order, ai_reference_sources, ai_context_summary,
    marked_for_review_by, marked_for_review_date, created_at, updated_at
"""

_SECTION_COLUMN_COUNT = len(_SECTION_COLUMNS.split(","))

_DOCUMENT_COLUMNS = """
    document_id, organization_id, name, project_title, project_type, agency_name,
    solicitation_number, contract_value, status, outcome_date, workflow_stage
"""


def _row_to_section(row: sqlite3.Row) -> Section:
    """Convert a sections table row to Section."""
    return Section(
        section_id=row["section_id"],
        document_id=row["document_id"],
        section_key=row["section_key"],
        section_name=row["section_name"],
        section_type=row["section_type"],
        content=row["content"] or "",
        status=row["status"],
        order=int(row["display_order"] or 0),
        ai_reference_sources=_json_list(row["ai_reference_sources"]),
        ai_context_summary=row["ai_context_summary"],
        marked_for_review_by=row["marked_for_review_by"],
        marked_for_review_date=row["marked_for_review_date"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_document(row: sqlite3.Row, offset: int = 0) -> Document:
    try:
        status = DocumentStatus(str(row[offset + 8]))
    except ValueError:
        status = DocumentStatus.DRAFT
    return Document(
        document_id=row[offset],
        organization_id=row[offset + 1],
        name=row[offset + 2],
        project_title=row[offset + 3],
        project_type=row[offset + 4],
        agency_name=row[offset + 5],
        solicitation_number=row[offset + 6],
        contract_value=row[offset + 7],
        status=status,
        outcome_date=row[offset + 9],
        workflow_stage=row[offset + 10],
    )


def _row_to_version(row: sqlite3.Row) -> SectionVersion:
    return SectionVersion(
        version_id=row["version_id"],
        section_id=row["section_id"],
        version_number=int(row["version_number"]),
        content=row["content"],
        change_type=row["change_type"],
        changed_by=row["changed_by"] or "",
        change_summary=row["change_summary"] or "",
        created_at=row["created_at"],
    )


def _row_to_suggestion(row: sqlite3.Row) -> ReuseSuggestion:
    return ReuseSuggestion(
        suggestion_id=row["suggestion_id"],
        run_id=row["run_id"],
        target_section_id=row["target_section_id"],
        target_document_id=row["target_document_id"],
        source_section_id=row["source_section_id"],
        source_document_id=row["source_document_id"],
        relevance_score=float(row["relevance_score"]),
        similarity_type=row["similarity_type"],
        match_reasons=_json_list(row["match_reasons"]),
        suggested_modifications=row["suggested_modifications"] or "",
        confidence_level=row["confidence_level"],
        status=row["status"],
        was_used=bool(row["was_used"]),
        user_feedback=row["user_feedback"],
        created_at=row["created_at"],
        resolved_at=row["resolved_at"],
    )


class DocumentRepository:
    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def save_document(self, document: Document, commit: bool = True) -> None:
        await _write(
            self.db,
            f"""
            INSERT INTO documents ({_DOCUMENT_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(document_id) DO UPDATE SET
                organization_id=excluded.organization_id,
                name=excluded.name,
                project_title=excluded.project_title,
                project_type=excluded.project_type,
                agency_name=excluded.agency_name,
                solicitation_number=excluded.solicitation_number,
                contract_value=excluded.contract_value,
                status=excluded.status,
                outcome_date=excluded.outcome_date,
                workflow_stage=excluded.workflow_stage
            """,
            (
                document.document_id,
                document.organization_id,
                document.name,
                document.project_title,
                document.project_type,
                document.agency_name,
                document.solicitation_number,
                document.contract_value,
                document.status.value,
                _iso(document.outcome_date),
                document.workflow_stage,
            ),
            commit,
        )

    async def get_document(self, document_id: str) -> Optional[Document]:
        cursor = await self.db.execute(
            f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE document_id = ?",
            (document_id,),
        )
        row = await cursor.fetchone()
        return _row_to_document(row) if row else None

    async def update_workflow_stage(self, document_id: str, stage: str, commit: bool = True) -> None:
        await _write(
            self.db,
            "UPDATE documents SET workflow_stage = ? WHERE document_id = ?",
            (stage, document_id),
            commit,
        )


class SectionRepository:
    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def get_section(self, document_id: str, section_key: str) -> Optional[Section]:
        cursor = await self.db.execute(
            f"SELECT {_SECTION_COLUMNS} FROM sections WHERE document_id = ? AND section_key = ?",
            (document_id, section_key),
        )
        row = await cursor.fetchone()
        return _row_to_section(row) if row else None

    async def get_section_by_id(self, section_id: str) -> Optional[Section]:
        cursor = await self.db.execute(
            f"SELECT {_SECTION_COLUMNS} FROM sections WHERE section_id = ?",
            (section_id,),
        )
        row = await cursor.fetchone()
        return _row_to_section(row) if row else None

    async def list_sections(self, document_id: str) -> List[Section]:
        cursor = await self.db.execute(
            f"""
            SELECT {_SECTION_COLUMNS} FROM sections
            WHERE document_id = ?
            ORDER BY display_order, created_at
            """,
            (document_id,),
        )
        rows = await cursor.fetchall()
        return [_row_to_section(r) for r in rows]

    async def list_recent_sections(
        self,
        document_id: str,
        exclude_key: str,
        limit: int,
    ) -> List[Section]:
        """Most recently updated non-empty sections of a document, newest first."""
        if limit <= 0:
            return []
        cursor = await self.db.execute(
            f"""
            SELECT {_SECTION_COLUMNS} FROM sections
            WHERE document_id = ? AND section_key != ? AND TRIM(content) != ''
            ORDER BY updated_at DESC
            LIMIT ?
            """,
            (document_id, exclude_key, limit),
        )
        rows = await cursor.fetchall()
        return [_row_to_section(r) for r in rows]

    async def insert_section(self, section: Section, commit: bool = True) -> None:
        try:
            await _write(
                self.db,
                f"""
                INSERT INTO sections ({_SECTION_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                self._section_params(section),
                commit,
            )
        except sqlite3.IntegrityError as exc:
            if _is_unique_violation(exc):
                raise ConcurrencyConflict(section.section_id) from exc
            raise

    async def update_section(self, section: Section, commit: bool = True) -> None:
        await _write(
            self.db,
            """
            UPDATE sections SET
                section_name = ?, section_type = ?, content = ?, word_count = ?,
                status = ?, display_order = ?, ai_reference_sources = ?,
                ai_context_summary = ?, marked_for_review_by = ?,
                marked_for_review_date = ?, updated_at = ?
            WHERE section_id = ?
            """,
            (
                section.section_name,
                section.section_type,
                section.content,
                section.word_count,
                section.status.value,
                section.order,
                json.dumps(section.ai_reference_sources),
                section.ai_context_summary,
                section.marked_for_review_by,
                _iso(section.marked_for_review_date),
                _iso(section.updated_at),
                section.section_id,
            ),
            commit,
        )

    async def list_reuse_pool(
        self,
        exclude_document_id: str,
        section_type: str,
        statuses: Sequence[DocumentStatus],
        limit: int,
    ) -> List[Tuple[Section, Document]]:
        """Non-empty sections of the same type from other documents with a qualifying outcome.

        Ordered by the parent document's outcome date, most recent first.
        """
        if not statuses or limit <= 0:
            return []
        placeholders = ", ".join("?" for _ in statuses)
        doc_cols = ", ".join(f"d.{c.strip()}" for c in _DOCUMENT_COLUMNS.split(","))
        sec_cols = ", ".join(f"s.{c.strip()}" for c in _SECTION_COLUMNS.split(","))
        cursor = await self.db.execute(
            f"""
            SELECT {sec_cols}, {doc_cols}
            FROM sections s
            JOIN documents d ON d.document_id = s.document_id
            WHERE s.document_id != ?
              AND s.section_type = ?
              AND TRIM(s.content) != ''
              AND d.status IN ({placeholders})
            ORDER BY COALESCE(d.outcome_date, '') DESC, s.updated_at DESC
            LIMIT ?
            """,
            (exclude_document_id, section_type, *[s.value for s in statuses], limit),
        )
        rows = await cursor.fetchall()
        pool: List[Tuple[Section, Document]] = []
        for row in rows:
            section = _row_to_section(row)
            document = _row_to_document(row, offset=_SECTION_COLUMN_COUNT)
            pool.append((section, document))
        return pool

    @staticmethod
    def _section_params(section: Section) -> Tuple[Any, ...]:
        return (
            section.section_id,
            section.document_id,
            section.section_key,
            section.section_name,
            section.section_type,
            section.content,
            section.word_count,
            section.status.value,
            section.order,
            json.dumps(section.ai_reference_sources),
            section.ai_context_summary,
            section.marked_for_review_by,
            _iso(section.marked_for_review_date),
            _iso(section.created_at),
            _iso(section.updated_at),
        )


class VersionRepository:
    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def max_version_number(self, section_id: str) -> int:
        cursor = await self.db.execute(
            "SELECT COALESCE(MAX(version_number), 0) FROM section_versions WHERE section_id = ?",
            (section_id,),
        )
        row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def insert_version(self, version: SectionVersion, commit: bool = True) -> None:
        try:
            await _write(
                self.db,
                """
                INSERT INTO section_versions (
                    version_id, section_id, version_number, content, word_count,
                    change_type, changed_by, change_summary, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    version.version_id,
                    version.section_id,
                    version.version_number,
                    version.content,
                    version.word_count,
                    version.change_type.value,
                    version.changed_by,
                    version.change_summary,
                    _iso(version.created_at),
                ),
                commit,
            )
        except sqlite3.IntegrityError as exc:
            if _is_unique_violation(exc):
                raise ConcurrencyConflict(version.section_id, version.version_number) from exc
            raise

    async def list_versions(self, section_id: str) -> List[SectionVersion]:
        cursor = await self.db.execute(
            """
            SELECT version_id, section_id, version_number, content, word_count,
                   change_type, changed_by, change_summary, created_at
            FROM section_versions
            WHERE section_id = ?
            ORDER BY version_number
            """,
            (section_id,),
        )
        rows = await cursor.fetchall()
        return [_row_to_version(r) for r in rows]

    async def get_version(self, section_id: str, version_number: int) -> Optional[SectionVersion]:
        cursor = await self.db.execute(
            """
            SELECT version_id, section_id, version_number, content, word_count,
                   change_type, changed_by, change_summary, created_at
            FROM section_versions
            WHERE section_id = ? AND version_number = ?
            """,
            (section_id, version_number),
        )
        row = await cursor.fetchone()
        return _row_to_version(row) if row else None


class SuggestionRepository:
    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def save_suggestions(self, suggestions: List[ReuseSuggestion], commit: bool = True) -> None:
        await _write_many(
            self.db,
            """
            INSERT INTO reuse_suggestions (
                suggestion_id, run_id, target_section_id, target_document_id,
                source_section_id, source_document_id, relevance_score, similarity_type,
                match_reasons, suggested_modifications, confidence_level, status,
                was_used, user_feedback, created_at, resolved_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    s.suggestion_id,
                    s.run_id,
                    s.target_section_id,
                    s.target_document_id,
                    s.source_section_id,
                    s.source_document_id,
                    s.relevance_score,
                    s.similarity_type.value,
                    json.dumps(s.match_reasons),
                    s.suggested_modifications,
                    s.confidence_level.value,
                    s.status.value,
                    1 if s.was_used else 0,
                    s.user_feedback,
                    _iso(s.created_at),
                    _iso(s.resolved_at),
                )
                for s in suggestions
            ],
            commit,
        )

    async def get_suggestion(self, suggestion_id: str) -> Optional[ReuseSuggestion]:
        cursor = await self.db.execute(
            "SELECT * FROM reuse_suggestions WHERE suggestion_id = ?",
            (suggestion_id,),
        )
        row = await cursor.fetchone()
        return _row_to_suggestion(row) if row else None

    async def list_for_section(
        self,
        target_section_id: str,
        latest_run_only: bool = True,
    ) -> List[ReuseSuggestion]:
        if latest_run_only:
            cursor = await self.db.execute(
                """
                SELECT * FROM reuse_suggestions
                WHERE target_section_id = ?
                  AND run_id = (
                      SELECT run_id FROM reuse_suggestions
                      WHERE target_section_id = ?
                      ORDER BY created_at DESC, rowid DESC
                      LIMIT 1
                  )
                ORDER BY relevance_score DESC, rowid
                """,
                (target_section_id, target_section_id),
            )
        else:
            cursor = await self.db.execute(
                """
                SELECT * FROM reuse_suggestions
                WHERE target_section_id = ?
                ORDER BY created_at DESC, relevance_score DESC
                """,
                (target_section_id,),
            )
        rows = await cursor.fetchall()
        return [_row_to_suggestion(r) for r in rows]

    async def resolve(
        self,
        suggestion_id: str,
        status: SuggestionStatus,
        resolved_at: datetime,
        was_used: bool = False,
        user_feedback: Optional[str] = None,
        commit: bool = True,
    ) -> int:
        """Move a pending suggestion to a terminal status. Returns the number of rows changed."""
        cursor = await _write(
            self.db,
            """
            UPDATE reuse_suggestions
            SET status = ?, was_used = ?, user_feedback = ?, resolved_at = ?
            WHERE suggestion_id = ? AND status = ?
            """,
            (
                status.value,
                1 if was_used else 0,
                user_feedback,
                _iso(resolved_at),
                suggestion_id,
                SuggestionStatus.PENDING.value,
            ),
            commit,
        )
        return cursor.rowcount


class ReferenceRepository:
    """Read side of the collections that feed generation context."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def list_compliance_items(self, document_id: str) -> List[ComplianceRequirement]:
        cursor = await self.db.execute(
            """
            SELECT requirement_id, document_id, requirement_text, section_keys,
                   is_mandatory, source_reference
            FROM compliance_requirements
            WHERE document_id = ?
            ORDER BY is_mandatory DESC, created_at
            """,
            (document_id,),
        )
        rows = await cursor.fetchall()
        return [
            ComplianceRequirement(
                requirement_id=r[0],
                document_id=r[1],
                requirement_text=r[2],
                section_keys=_json_list(r[3]),
                is_mandatory=bool(r[4]),
                source_reference=r[5],
            )
            for r in rows
        ]

    async def list_win_themes(self, document_id: str) -> List[WinTheme]:
        cursor = await self.db.execute(
            """
            SELECT theme_id, document_id, title, statement, status, is_primary
            FROM win_themes
            WHERE document_id = ?
            ORDER BY is_primary DESC, created_at
            """,
            (document_id,),
        )
        rows = await cursor.fetchall()
        return [
            WinTheme(
                theme_id=r[0],
                document_id=r[1],
                title=r[2],
                statement=r[3] or "",
                status=r[4],
                is_primary=bool(r[5]),
            )
            for r in rows
        ]

    async def list_past_performance(self, organization_id: str, limit: int) -> List[PastPerformanceRecord]:
        cursor = await self.db.execute(
            """
            SELECT record_id, organization_id, project_name, client_name, description,
                   contract_value, completed_at
            FROM past_performance
            WHERE organization_id = ?
            ORDER BY COALESCE(completed_at, '') DESC
            LIMIT ?
            """,
            (organization_id, limit),
        )
        rows = await cursor.fetchall()
        return [
            PastPerformanceRecord(
                record_id=r[0],
                organization_id=r[1],
                project_name=r[2],
                client_name=r[3],
                description=r[4] or "",
                contract_value=r[5],
                completed_at=r[6],
            )
            for r in rows
        ]

    async def list_partners(self, document_id: str, limit: int) -> List[PartnerCapability]:
        cursor = await self.db.execute(
            """
            SELECT partner_id, document_id, partner_name, role, capabilities
            FROM partner_capabilities
            WHERE document_id = ?
            ORDER BY created_at
            LIMIT ?
            """,
            (document_id, limit),
        )
        rows = await cursor.fetchall()
        return [
            PartnerCapability(
                partner_id=r[0],
                document_id=r[1],
                partner_name=r[2],
                role=r[3],
                capabilities=_json_list(r[4]),
            )
            for r in rows
        ]

    async def list_reference_files(self, document_id: str, limit: int) -> List[ReferenceFile]:
        cursor = await self.db.execute(
            """
            SELECT file_id, document_id, file_name, file_url, document_type
            FROM reference_files
            WHERE document_id = ?
            ORDER BY created_at
            LIMIT ?
            """,
            (document_id, limit),
        )
        rows = await cursor.fetchall()
        return [
            ReferenceFile(
                file_id=r[0],
                document_id=r[1],
                file_name=r[2],
                file_url=r[3],
                document_type=r[4],
            )
            for r in rows
        ]

    async def save_compliance_item(self, item: ComplianceRequirement) -> None:
        await _write(
            self.db,
            """
            INSERT OR REPLACE INTO compliance_requirements (
                requirement_id, document_id, requirement_text, section_keys,
                is_mandatory, source_reference
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                item.requirement_id,
                item.document_id,
                item.requirement_text,
                json.dumps(item.section_keys),
                1 if item.is_mandatory else 0,
                item.source_reference,
            ),
        )

    async def save_win_theme(self, theme: WinTheme) -> None:
        await _write(
            self.db,
            """
            INSERT OR REPLACE INTO win_themes (
                theme_id, document_id, title, statement, status, is_primary
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                theme.theme_id,
                theme.document_id,
                theme.title,
                theme.statement,
                theme.status,
                1 if theme.is_primary else 0,
            ),
        )

    async def save_past_performance(self, record: PastPerformanceRecord) -> None:
        await _write(
            self.db,
            """
            INSERT OR REPLACE INTO past_performance (
                record_id, organization_id, project_name, client_name, description,
                contract_value, completed_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.record_id,
                record.organization_id,
                record.project_name,
                record.client_name,
                record.description,
                record.contract_value,
                _iso(record.completed_at),
            ),
        )

    async def save_partner(self, partner: PartnerCapability) -> None:
        await _write(
            self.db,
            """
            INSERT OR REPLACE INTO partner_capabilities (
                partner_id, document_id, partner_name, role, capabilities
            ) VALUES (?, ?, ?, ?, ?)
            """,
            (
                partner.partner_id,
                partner.document_id,
                partner.partner_name,
                partner.role,
                json.dumps(partner.capabilities),
            ),
        )

    async def save_reference_file(self, ref: ReferenceFile) -> None:
        await _write(
            self.db,
            """
            INSERT OR REPLACE INTO reference_files (
                file_id, document_id, file_name, file_url, document_type
            ) VALUES (?, ?, ?, ?, ?)
            """,
            (ref.file_id, ref.document_id, ref.file_name, ref.file_url, ref.document_type),
        )


class ActivityRepository:
    """Usage accounting, review notifications and stage transition requests."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def save_usage_record(self, record: UsageRecord) -> None:
        await _write(
            self.db,
            """
            INSERT INTO usage_records (
                model, feature, tokens_in, tokens_out, cost_usd, latency_ms,
                document_id, section_key, user_email, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.model,
                record.feature,
                record.tokens_in,
                record.tokens_out,
                record.cost_usd,
                record.latency_ms,
                record.document_id,
                record.section_key,
                record.user_email,
                _iso(record.timestamp),
            ),
        )

    async def count_usage_records(self, feature: Optional[str] = None) -> int:
        if feature is None:
            cursor = await self.db.execute("SELECT COUNT(*) FROM usage_records")
        else:
            cursor = await self.db.execute(
                "SELECT COUNT(*) FROM usage_records WHERE feature = ?", (feature,)
            )
        row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def save_notifications(self, notifications: List[ReviewNotification], commit: bool = True) -> None:
        await _write_many(
            self.db,
            """
            INSERT INTO review_notifications (
                notification_id, document_id, section_id, recipient_email,
                notification_type, title, message, link_url, priority, from_email,
                created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    n.notification_id,
                    n.document_id,
                    n.section_id,
                    n.recipient_email,
                    n.notification_type.value,
                    n.title,
                    n.message,
                    n.link_url,
                    n.priority,
                    n.from_email,
                    _iso(n.created_at),
                )
                for n in notifications
            ],
            commit,
        )

    async def list_notifications(self, recipient_email: str) -> List[ReviewNotification]:
        cursor = await self.db.execute(
            """
            SELECT notification_id, document_id, section_id, recipient_email,
                   notification_type, title, message, link_url, priority, from_email,
                   created_at
            FROM review_notifications
            WHERE recipient_email = ?
            ORDER BY created_at
            """,
            (recipient_email,),
        )
        rows = await cursor.fetchall()
        return [
            ReviewNotification(
                notification_id=r[0],
                document_id=r[1],
                section_id=r[2],
                recipient_email=r[3],
                notification_type=r[4],
                title=r[5],
                message=r[6],
                link_url=r[7] or "",
                priority=r[8],
                from_email=r[9],
                created_at=r[10],
            )
            for r in rows
        ]

    async def save_stage_request(self, request: StageTransitionRequest, commit: bool = True) -> None:
        await _write(
            self.db,
            """
            INSERT INTO stage_transition_requests (
                request_id, document_id, target_stage, requested_by, reason, created_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                request.request_id,
                request.document_id,
                request.target_stage,
                request.requested_by,
                request.reason,
                _iso(request.created_at),
            ),
            commit,
        )

    async def list_stage_requests(self, document_id: str) -> List[StageTransitionRequest]:
        cursor = await self.db.execute(
            """
            SELECT request_id, document_id, target_stage, requested_by, reason, created_at
            FROM stage_transition_requests
            WHERE document_id = ?
            ORDER BY created_at
            """,
            (document_id,),
        )
        rows = await cursor.fetchall()
        return [
            StageTransitionRequest(
                request_id=r[0],
                document_id=r[1],
                target_stage=r[2],
                requested_by=r[3],
                reason=r[4] or "",
                created_at=r[5],
            )
            for r in rows
        ]
