"""
Unit tests for the LLM-backed text and judgment oracles.
"""

import aiosqlite
import pytest

from proposal_engine.db.database import get_db
from proposal_engine.db.repositories import ActivityRepository
from proposal_engine.exceptions import OracleFailure
from proposal_engine.llm.oracle import JudgmentOracle, LLMOracle, TextOracle, estimate_tokens
from proposal_engine.llm.provider import LLMProvider
from proposal_engine.models import ReuseJudgment

from tests.fixtures.fake_oracle import FakeBackend, FakeUsageBackend


def _oracle(settings, db, backend) -> LLMOracle:
    return LLMOracle(LLMProvider(settings, ActivityRepository(db)), backend)


@pytest.mark.asyncio
async def test_generate_text_parses_draft_and_records_usage(settings, db_path) -> None:
    async with get_db(db_path) as db:
        backend = FakeBackend(
            {"content": "<p>Body</p>", "reference_sources": ["RFP Section L"], "context_summary": "Used the RFP"}
        )
        oracle = _oracle(settings, db, backend)
        result = await oracle.generate_text(
            "Write it", ["https://files.example.com/a.pdf"], document_id="doc-1", section_key="k"
        )

        assert result.content == "<p>Body</p>"
        assert result.metadata == {
            "reference_sources": [{"label": "RFP Section L"}],
            "context_summary": "Used the RFP",
        }
        call = backend.calls[0]
        assert call["model"] == "google-gla:gemini-2.5-flash"
        assert call["temperature"] == 0.4
        assert call["reference_files"] == ["https://files.example.com/a.pdf"]
        assert "content" in call["json_schema"]["properties"]

        activity = ActivityRepository(db)
        assert await activity.count_usage_records("section_generation") == 1
        cursor = await db.execute("SELECT tokens_in, document_id, section_key FROM usage_records")
        row = await cursor.fetchone()
        assert row[0] == estimate_tokens("Write it")
        assert (row[1], row[2]) == ("doc-1", "k")


@pytest.mark.asyncio
async def test_provider_token_counts_are_preferred(settings, db_path) -> None:
    async with get_db(db_path) as db:
        oracle = _oracle(settings, db, FakeUsageBackend({"rankings": []}, tokens_in=1500, tokens_out=20))
        assert await oracle.judge("Rank these", ReuseJudgment) == {"rankings": []}
        cursor = await db.execute("SELECT model, feature, tokens_in, tokens_out, cost_usd FROM usage_records")
        row = await cursor.fetchone()
        assert row[0] == "google-gla:gemini-2.5-flash-lite"
        assert row[1] == "reuse_ranking"
        assert (row[2], row[3]) == (1500, 20)
        assert row[4] >= 0.0


@pytest.mark.asyncio
async def test_backend_errors_become_oracle_failures(settings, db_path) -> None:
    async with get_db(db_path) as db:
        oracle = _oracle(settings, db, FakeBackend(error=RuntimeError("invalid api key")))
        with pytest.raises(OracleFailure, match="invalid api key"):
            await oracle.generate_text("Write it")
        assert await ActivityRepository(db).count_usage_records() == 0


@pytest.mark.asyncio
async def test_unknown_agent_is_an_oracle_failure(settings, db_path) -> None:
    async with get_db(db_path) as db:
        backend = FakeBackend({"content": "<p>Body</p>"})
        oracle = LLMOracle(LLMProvider(settings, ActivityRepository(db)), backend, writer_agent="editor")
        with pytest.raises(OracleFailure, match="editor"):
            await oracle.generate_text("Write it")
        assert backend.calls == []


@pytest.mark.asyncio
async def test_usage_write_failure_does_not_fail_the_call(settings, db_path, monkeypatch) -> None:
    async with get_db(db_path) as db:
        activity = ActivityRepository(db)

        async def locked(record) -> None:
            raise aiosqlite.OperationalError("database is locked")

        monkeypatch.setattr(activity, "save_usage_record", locked)
        oracle = LLMOracle(LLMProvider(settings, activity), FakeBackend({"content": "<p>Body</p>"}))
        result = await oracle.generate_text("Write it")
        assert result.content == "<p>Body</p>"
        assert await ActivityRepository(db).count_usage_records() == 0


@pytest.mark.asyncio
async def test_malformed_outputs_are_failures(settings, db_path) -> None:
    async with get_db(db_path) as db:
        with pytest.raises(OracleFailure):
            await _oracle(settings, db, FakeBackend("not json")).generate_text("Write it")
        with pytest.raises(OracleFailure):
            await _oracle(settings, db, FakeBackend({"content": "   "})).generate_text("Write it")
        with pytest.raises(OracleFailure):
            await _oracle(settings, db, FakeBackend("Sure! Here are rankings")).judge("Rank", ReuseJudgment)
        with pytest.raises(OracleFailure):
            await _oracle(settings, db, FakeBackend([1, 2])).judge("Rank", {"type": "object"})


def test_llm_oracle_satisfies_both_protocols(settings) -> None:
    oracle = LLMOracle(LLMProvider(settings), FakeBackend())
    assert isinstance(oracle, TextOracle)
    assert isinstance(oracle, JudgmentOracle)


def test_estimate_tokens() -> None:
    assert estimate_tokens("") == 0
    assert estimate_tokens("abc") == 1
    assert estimate_tokens("a" * 400) == 100
