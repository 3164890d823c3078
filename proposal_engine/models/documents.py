"""Parent document and the reference collections read during context assembly."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from proposal_engine.models.enums import DocumentStatus


class Document(BaseModel):
    document_id: str
    organization_id: Optional[str] = None
    name: str
    project_title: Optional[str] = None
    project_type: Optional[str] = None
    agency_name: Optional[str] = None
    solicitation_number: Optional[str] = None
    contract_value: Optional[float] = None
    status: DocumentStatus = DocumentStatus.DRAFT
    outcome_date: Optional[datetime] = None
    workflow_stage: Optional[str] = None


class ComplianceRequirement(BaseModel):
    requirement_id: str
    document_id: str
    requirement_text: str
    section_keys: List[str] = Field(default_factory=list)
    is_mandatory: bool = False
    source_reference: Optional[str] = None


class WinTheme(BaseModel):
    theme_id: str
    document_id: str
    title: str
    statement: str = ""
    status: str = "draft"
    is_primary: bool = False


class PastPerformanceRecord(BaseModel):
    record_id: str
    organization_id: Optional[str] = None
    project_name: str
    client_name: Optional[str] = None
    description: str = ""
    contract_value: Optional[float] = None
    completed_at: Optional[datetime] = None


class PartnerCapability(BaseModel):
    partner_id: str
    document_id: str
    partner_name: str
    role: Optional[str] = None
    capabilities: List[str] = Field(default_factory=list)


class ReferenceFile(BaseModel):
    file_id: str
    document_id: str
    file_name: str
    file_url: str
    document_type: str = "reference"


class ContextBundle(BaseModel):
    """Bounded prompt context for one generation request.

    Every collection may be empty; ``unavailable`` names the collections that
    could not be read.
    """

    document_id: str
    section_key: str
    document: Optional[Document] = None
    prior_sections: List[Dict[str, str]] = Field(default_factory=list)
    partners: List[PartnerCapability] = Field(default_factory=list)
    compliance_items: List[ComplianceRequirement] = Field(default_factory=list)
    win_themes: List[WinTheme] = Field(default_factory=list)
    past_performance: List[PastPerformanceRecord] = Field(default_factory=list)
    reference_files: List[ReferenceFile] = Field(default_factory=list)
    sources: List[Dict[str, Any]] = Field(default_factory=list)
    summary: str = ""
    unavailable: List[str] = Field(default_factory=list)
    truncated: bool = False
