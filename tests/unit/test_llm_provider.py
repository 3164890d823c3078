"""Unit tests for model selection and cost estimation."""

import pytest

from proposal_engine.db.database import get_db
from proposal_engine.db.repositories import ActivityRepository
from proposal_engine.llm.provider import LLMProvider
from proposal_engine.models import LLMRateLimitConfig, UsageRecord


def test_parse_model_ref() -> None:
    assert LLMProvider._parse_model_ref("google-gla:gemini-2.5-flash") == ("gemini-2.5-flash", "google")
    assert LLMProvider._parse_model_ref("anthropic:claude-sonnet-4-5") == ("claude-sonnet-4-5", "anthropic")
    assert LLMProvider._parse_model_ref("local-model") == ("local-model", None)


def test_tier_from_model() -> None:
    assert LLMProvider._tier_from_model("google-gla:gemini-2.5-flash-lite") == "flash-lite"
    assert LLMProvider._tier_from_model("google-gla:gemini-2.5-flash") == "flash"
    assert LLMProvider._tier_from_model("google-gla:gemini-2.5-pro") == "pro"
    assert LLMProvider._tier_from_model("openai:gpt-4.1") == "pro"


def test_unknown_model_costs_nothing() -> None:
    assert LLMProvider.estimate_cost_usd("made-up:model-x", 1000, 1000) == 0.0


def test_agent_config_lookup(settings) -> None:
    provider = LLMProvider(settings)
    writer = provider.get_agent_config("writer")
    assert writer.tier == "flash"
    assert writer.temperature == 0.4
    with pytest.raises(KeyError, match="critic"):
        provider.get_agent_config("critic")


def test_rate_limits_come_from_settings(settings) -> None:
    settings.llm = LLMRateLimitConfig(flash_rpm=42, flash_lite_rpm=43, pro_rpm=4)
    provider = LLMProvider(settings)
    assert provider.rate_limiter.limit_for("flash") == 42
    assert provider.rate_limiter.limit_for("pro") == 4


@pytest.mark.asyncio
async def test_log_usage_persists_when_repository_given(settings, db_path) -> None:
    record = UsageRecord(
        model="google-gla:gemini-2.5-flash",
        feature="section_generation",
        tokens_in=10,
        tokens_out=5,
        cost_usd=0.25,
        latency_ms=120,
    )
    await LLMProvider(settings).log_usage(record)
    async with get_db(db_path) as db:
        repo = ActivityRepository(db)
        await LLMProvider(settings, repo).log_usage(record)
        assert await repo.count_usage_records() == 1
        cursor = await db.execute("SELECT cost_usd FROM usage_records")
        assert (await cursor.fetchone())[0] == pytest.approx(0.25)
