"""
Unit tests for section generation and regeneration.
"""

import asyncio

import pytest

from proposal_engine.db.database import get_db
from proposal_engine.db.repositories import ReferenceRepository
from proposal_engine.exceptions import GenerationInProgress, OracleFailure, ValidationFailure
from proposal_engine.generation.section_generator import GenerationOptions, GenerationOrchestrator
from proposal_engine.models import (
    ChangeType,
    GenerationOutcome,
    GenerationState,
    ReferenceFile,
    SectionStatus,
    Tone,
    WinTheme,
)
from proposal_engine.sections.editor import SectionEditor

from tests.fixtures.fake_oracle import FakeTextOracle
from tests.fixtures.proposals import save_document


@pytest.mark.asyncio
async def test_generate_creates_first_version(db_path) -> None:
    async with get_db(db_path) as db:
        await save_document(db)
        oracle = FakeTextOracle(content="<p>Our team delivers on time.</p>")
        orchestrator = GenerationOrchestrator(db, oracle)
        result = await orchestrator.generate(
            "doc-1",
            "executive_summary",
            GenerationOptions(author="writer@example.com", tone=Tone.CONFIDENT, word_count_target=300),
        )
        assert result.section.status == SectionStatus.AI_GENERATED
        assert result.section.word_count == 5
        assert result.version.version_number == 1
        assert result.version.change_type == ChangeType.AI_GENERATED

        prompt = oracle.prompts[0]
        assert 'Write the "Executive Summary" section' in prompt
        assert "Target word count: 300 words" in prompt
        assert "Harbor Modernization Proposal" in prompt
        assert "EXISTING CONTENT TO IMPROVE" not in prompt
        assert oracle.call_context[0]["user_email"] == "writer@example.com"
        assert orchestrator.state_of("doc-1", "executive_summary").last_outcome == GenerationOutcome.SUCCEEDED


@pytest.mark.asyncio
async def test_regenerate_improves_existing_content(db_path) -> None:
    async with get_db(db_path) as db:
        editor = SectionEditor(db)
        await editor.save_section("doc-1", "technical_approach", "<p>Rough plan v1</p>", author="w")
        await editor.save_section("doc-1", "technical_approach", "<p>Rough plan v2</p>", author="w")
        section = await editor.store.get_section("doc-1", "technical_approach")
        before = await editor.ledger.list_versions(section.section_id)

        oracle = FakeTextOracle(content="<p>Detailed three phase plan</p>")
        orchestrator = GenerationOrchestrator(db, oracle, ledger=editor.ledger)
        result = await orchestrator.generate(
            "doc-1", "technical_approach", GenerationOptions(is_regenerate=True, author="w")
        )

        assert result.version.version_number == 3
        assert result.version.change_type == ChangeType.AI_REGENERATED
        assert result.section.status == SectionStatus.AI_GENERATED
        assert "EXISTING CONTENT TO IMPROVE" in oracle.prompts[0]
        assert "<p>Rough plan v2</p>" in oracle.prompts[0]
        after = await editor.ledger.list_versions(section.section_id)
        assert after[1:] == before


@pytest.mark.asyncio
async def test_regenerate_without_content_fails_before_oracle(db_path) -> None:
    async with get_db(db_path) as db:
        oracle = FakeTextOracle()
        orchestrator = GenerationOrchestrator(db, oracle)
        with pytest.raises(ValidationFailure):
            await orchestrator.generate("doc-1", "pricing", GenerationOptions(is_regenerate=True))
        assert oracle.prompts == []
        assert await orchestrator.store.find_section("doc-1", "pricing") is None


@pytest.mark.asyncio
async def test_oracle_failure_leaves_section_untouched(db_path) -> None:
    async with get_db(db_path) as db:
        editor = SectionEditor(db)
        saved = await editor.save_section("doc-1", "k", "<p>keep me</p>", author="w")
        orchestrator = GenerationOrchestrator(
            db, FakeTextOracle(error=OracleFailure("quota exceeded")), ledger=editor.ledger
        )
        with pytest.raises(OracleFailure):
            await orchestrator.generate("doc-1", "k", GenerationOptions(is_regenerate=True))

        current = await editor.store.get_section("doc-1", "k")
        assert current.content == "<p>keep me</p>"
        assert current.status == SectionStatus.DRAFT
        assert len(await editor.ledger.list_versions(saved.section.section_id)) == 1
        status = orchestrator.state_of("doc-1", "k")
        assert status.state == GenerationState.IDLE
        assert status.last_outcome == GenerationOutcome.FAILED
        assert "quota exceeded" in status.last_error


@pytest.mark.asyncio
async def test_blank_oracle_output_is_a_failure(db_path) -> None:
    async with get_db(db_path) as db:
        orchestrator = GenerationOrchestrator(db, FakeTextOracle(content="<p> </p>"))
        with pytest.raises(OracleFailure):
            await orchestrator.generate("doc-1", "k")
        assert await orchestrator.store.find_section("doc-1", "k") is None


@pytest.mark.asyncio
async def test_second_generation_for_same_key_is_refused(db_path) -> None:
    async with get_db(db_path) as db:
        gate = asyncio.Event()
        oracle = FakeTextOracle(gate=gate)
        orchestrator = GenerationOrchestrator(db, oracle)

        first = asyncio.create_task(orchestrator.generate("doc-1", "k"))
        await asyncio.wait_for(oracle.started.wait(), timeout=5)
        assert orchestrator.state_of("doc-1", "k").state == GenerationState.GENERATING
        with pytest.raises(GenerationInProgress):
            await orchestrator.generate("doc-1", "k")

        gate.set()
        result = await first
        assert result.version.version_number == 1
        assert orchestrator.state_of("doc-1", "k").state == GenerationState.IDLE


@pytest.mark.asyncio
async def test_metadata_falls_back_to_context_sources(db_path) -> None:
    async with get_db(db_path) as db:
        await save_document(db)
        await ReferenceRepository(db).save_win_theme(
            WinTheme(theme_id="t1", document_id="doc-1", title="Proven delivery", is_primary=True)
        )
        plain = await GenerationOrchestrator(db, FakeTextOracle()).generate("doc-1", "a")
        assert plain.section.ai_reference_sources == [
            {"type": "win_theme", "id": "t1", "label": "Proven delivery"}
        ]
        assert plain.section.ai_context_summary == "Used 1 sources: 1 win themes"

        described = await GenerationOrchestrator(
            db,
            FakeTextOracle(
                metadata={"reference_sources": [{"label": "RFP"}], "context_summary": "Used the RFP"}
            ),
        ).generate("doc-1", "b")
        assert described.section.ai_reference_sources == [{"label": "RFP"}]
        assert described.section.ai_context_summary == "Used the RFP"


@pytest.mark.asyncio
async def test_reference_files_are_passed_to_oracle(db_path) -> None:
    async with get_db(db_path) as db:
        refs = ReferenceRepository(db)
        for i in range(12):
            await refs.save_reference_file(
                ReferenceFile(
                    file_id=f"f-{i:02d}",
                    document_id="doc-1",
                    file_name=f"part_{i}.pdf",
                    file_url=f"https://files.example.com/part_{i}.pdf",
                )
            )
        oracle = FakeTextOracle()
        await GenerationOrchestrator(db, oracle).generate("doc-1", "k")
        assert len(oracle.reference_files[0]) == 10
        assert all(url.startswith("https://files.example.com/") for url in oracle.reference_files[0])


@pytest.mark.asyncio
async def test_generate_and_mark_for_review(db_path, reviewers) -> None:
    async with get_db(db_path) as db:
        orchestrator = GenerationOrchestrator(db, FakeTextOracle())
        result = await orchestrator.generate(
            "doc-1",
            "k",
            GenerationOptions(author="writer@example.com", mark_for_review=True, reviewers=reviewers),
        )
        assert result.section.status == SectionStatus.PENDING_REVIEW
        assert result.version.change_type == ChangeType.AI_GENERATED
