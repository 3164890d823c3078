"""Build the bounded context block that grounds every generation prompt.

Every collection is read on its own with a fixed cap, so the prompt stays
roughly the same size no matter how large the document grows. A collection
that cannot be read becomes an empty list plus an entry in
``ContextBundle.unavailable``; assembly itself never fails on a read.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Dict, List, Optional

import aiosqlite

from proposal_engine.db.repositories import DocumentRepository, ReferenceRepository, SectionRepository
from proposal_engine.models import (
    ComplianceRequirement,
    ContextBundle,
    ContextConfig,
    Document,
    WinTheme,
)
from proposal_engine.utils.logging_config import get_logger
from proposal_engine.utils.text import truncate_text

logger = get_logger(__name__)

NOT_SPECIFIED = "Not specified"
NONE_ON_FILE = "None on file"

APPROVED_THEME_STATUSES = {"approved", "final"}


def _label(raw: Optional[str]) -> str:
    return raw.replace("_", " ").strip() if raw else ""


def select_compliance_items(
    items: List[ComplianceRequirement],
    section_key: str,
    cap: int,
) -> List[ComplianceRequirement]:
    """Items tagged for ``section_key`` (or a parent key of it) first, then mandatory ones."""

    def _tagged(item: ComplianceRequirement) -> bool:
        return any(k == section_key or section_key.startswith(f"{k}_") for k in item.section_keys)

    tagged = [i for i in items if _tagged(i)]
    tagged_ids = {i.requirement_id for i in tagged}
    mandatory = [i for i in items if i.is_mandatory and i.requirement_id not in tagged_ids]
    return (tagged + mandatory)[:cap]


def select_win_themes(themes: List[WinTheme], cap: int) -> List[WinTheme]:
    chosen = [t for t in themes if t.is_primary or t.status.lower() in APPROVED_THEME_STATUSES]
    chosen.sort(key=lambda t: not t.is_primary)
    return chosen[:cap]


class ContextAssembler:
    def __init__(self, db: aiosqlite.Connection, config: Optional[ContextConfig] = None):
        self.db = db
        self.config = config or ContextConfig()
        self.documents = DocumentRepository(db)
        self.sections = SectionRepository(db)
        self.references = ReferenceRepository(db)

    async def _fetch(self, name: str, call: Awaitable[Any], bundle: ContextBundle, default: Any) -> Any:
        try:
            return await call
        except Exception as e:
            logger.warning("Context collection '%s' unavailable: %s", name, e)
            bundle.unavailable.append(name)
            return default

    async def build_context(self, document_id: str, section_key: str) -> ContextBundle:
        cfg = self.config
        bundle = ContextBundle(document_id=document_id, section_key=section_key)

        bundle.document = await self._fetch(
            "document", self.documents.get_document(document_id), bundle, None
        )
        org_id = bundle.document.organization_id if bundle.document else None

        async def _past_performance() -> list:
            if not org_id:
                return []
            return await self.references.list_past_performance(org_id, cfg.max_past_performance)

        # one connection serializes the reads anyway; gather keeps the fan-out explicit
        prior, compliance, themes, past, partners, files = await asyncio.gather(
            self._fetch(
                "prior_sections",
                self.sections.list_recent_sections(document_id, section_key, cfg.max_prior_sections),
                bundle,
                [],
            ),
            self._fetch(
                "compliance_items", self.references.list_compliance_items(document_id), bundle, []
            ),
            self._fetch("win_themes", self.references.list_win_themes(document_id), bundle, []),
            self._fetch("past_performance", _past_performance(), bundle, []),
            self._fetch(
                "partners", self.references.list_partners(document_id, cfg.max_partners), bundle, []
            ),
            self._fetch(
                "reference_files",
                self.references.list_reference_files(document_id, cfg.max_reference_files),
                bundle,
                [],
            ),
        )

        for section in prior[: cfg.max_prior_sections]:
            excerpt = truncate_text(section.content, cfg.prior_section_chars)
            if len(excerpt) > cfg.prior_section_chars:
                bundle.truncated = True
            bundle.prior_sections.append(
                {"section_key": section.section_key, "section_name": section.section_name, "excerpt": excerpt}
            )
        bundle.compliance_items = select_compliance_items(
            compliance, section_key, cfg.max_compliance_items
        )
        bundle.win_themes = select_win_themes(themes, cfg.max_win_themes)
        bundle.past_performance = list(past)[: cfg.max_past_performance]
        bundle.partners = list(partners)[: cfg.max_partners]
        bundle.reference_files = list(files)[: cfg.max_reference_files]

        bundle.sources = self._collect_sources(bundle)
        bundle.summary = self._summarize(bundle)
        logger.debug("Context for %s/%s: %s", document_id, section_key, bundle.summary)
        return bundle

    @staticmethod
    def _collect_sources(bundle: ContextBundle) -> List[Dict[str, Any]]:
        sources: List[Dict[str, Any]] = []
        for prior in bundle.prior_sections:
            sources.append({"type": "section", "id": prior["section_key"], "label": prior["section_name"]})
        for item in bundle.compliance_items:
            sources.append(
                {"type": "compliance", "id": item.requirement_id, "label": truncate_text(item.requirement_text, 80)}
            )
        for theme in bundle.win_themes:
            sources.append({"type": "win_theme", "id": theme.theme_id, "label": theme.title})
        for record in bundle.past_performance:
            sources.append({"type": "past_performance", "id": record.record_id, "label": record.project_name})
        for partner in bundle.partners:
            sources.append({"type": "partner", "id": partner.partner_id, "label": partner.partner_name})
        for ref in bundle.reference_files:
            sources.append({"type": "reference_file", "id": ref.file_id, "label": ref.file_name})
        return sources

    @staticmethod
    def _summarize(bundle: ContextBundle) -> str:
        counts = [
            ("prior sections", len(bundle.prior_sections)),
            ("compliance items", len(bundle.compliance_items)),
            ("win themes", len(bundle.win_themes)),
            ("past performance records", len(bundle.past_performance)),
            ("partners", len(bundle.partners)),
            ("reference files", len(bundle.reference_files)),
        ]
        parts = [f"{n} {label}" for label, n in counts if n]
        if not parts:
            return "Used 0 sources"
        return f"Used {len(bundle.sources)} sources: " + ", ".join(parts)


def _document_lines(document: Optional[Document]) -> List[str]:
    doc = document
    contract_value = f"${doc.contract_value:,.0f}" if doc and doc.contract_value else NOT_SPECIFIED
    return [
        "PROPOSAL DETAILS:",
        f"- Name: {doc.name if doc else NOT_SPECIFIED}",
        f"- Type: {_label(doc.project_type) if doc and doc.project_type else NOT_SPECIFIED}",
        f"- Agency: {doc.agency_name if doc and doc.agency_name else NOT_SPECIFIED}",
        f"- Project: {doc.project_title if doc and doc.project_title else NOT_SPECIFIED}",
        f"- Solicitation number: {doc.solicitation_number if doc and doc.solicitation_number else NOT_SPECIFIED}",
        f"- Contract value: {contract_value}",
    ]


def format_context_block(bundle: ContextBundle) -> str:
    """Render the bundle as the prompt's context section."""
    lines = _document_lines(bundle.document)

    lines += ["", "PREVIOUSLY WRITTEN SECTIONS (excerpts):"]
    if bundle.prior_sections:
        lines += [f"- {p['section_name']}: {p['excerpt']}" for p in bundle.prior_sections]
    else:
        lines.append(f"- {NONE_ON_FILE}")

    lines += ["", "COMPLIANCE REQUIREMENTS FOR THIS SECTION:"]
    if bundle.compliance_items:
        for item in bundle.compliance_items:
            tag = " (mandatory)" if item.is_mandatory else ""
            lines.append(f"- {item.requirement_text}{tag}")
    else:
        lines.append(f"- {NONE_ON_FILE}")

    lines += ["", "WIN THEMES:"]
    if bundle.win_themes:
        for theme in bundle.win_themes:
            statement = f": {theme.statement}" if theme.statement else ""
            lines.append(f"- {theme.title}{statement}")
    else:
        lines.append(f"- {NONE_ON_FILE}")

    lines += ["", "PAST PERFORMANCE:"]
    if bundle.past_performance:
        for record in bundle.past_performance:
            client = f" for {record.client_name}" if record.client_name else ""
            lines.append(f"- {record.project_name}{client}: {truncate_text(record.description, 200)}")
    else:
        lines.append(f"- {NONE_ON_FILE}")

    lines += ["", "TEAMING PARTNERS:"]
    if bundle.partners:
        for partner in bundle.partners:
            role = f" ({partner.role})" if partner.role else ""
            caps = ", ".join(partner.capabilities) or NOT_SPECIFIED
            lines.append(f"- {partner.partner_name}{role}: {caps}")
    else:
        lines.append(f"- {NONE_ON_FILE}")

    if bundle.reference_files:
        lines += ["", "REFERENCE DOCUMENTS (attached):"]
        lines += [f"- {ref.file_name}" for ref in bundle.reference_files]
    return "\n".join(lines)
