"""
Builders for documents, sections and reference rows used across tests.
"""

from datetime import datetime, timezone
from typing import Optional

import aiosqlite

from proposal_engine.db.repositories import DocumentRepository
from proposal_engine.models import Document, DocumentStatus, Section, SectionPatch, SectionStatus
from proposal_engine.sections.store import SectionStore


def make_document(
    document_id: str = "doc-1",
    name: str = "Harbor Modernization Proposal",
    status: DocumentStatus = DocumentStatus.DRAFT,
    outcome_date: Optional[datetime] = None,
    **overrides,
) -> Document:
    fields = {
        "document_id": document_id,
        "organization_id": "org-1",
        "name": name,
        "project_title": "Harbor Modernization",
        "project_type": "infrastructure_services",
        "agency_name": "Port Authority",
        "solicitation_number": "PA-2026-001",
        "contract_value": 2500000.0,
        "status": status,
        "outcome_date": outcome_date,
    }
    fields.update(overrides)
    return Document(**fields)


def won_on(year: int, month: int = 1, day: int = 1) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


async def save_document(db: aiosqlite.Connection, **kwargs) -> Document:
    document = make_document(**kwargs)
    await DocumentRepository(db).save_document(document)
    return document


async def seed_section(
    db: aiosqlite.Connection,
    document_id: str,
    section_key: str,
    content: str,
    status: SectionStatus = SectionStatus.DRAFT,
    section_type: Optional[str] = None,
) -> Section:
    """Write a section row directly, with no version history."""
    patch = SectionPatch(content=content, status=status)
    if section_type:
        patch = SectionPatch(content=content, status=status, section_type=section_type)
    return await SectionStore(db).upsert_section(document_id, section_key, patch)
