"""Model selection, rate limiting and usage accounting for oracle calls."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from genai_prices import Usage as GPUsage
from genai_prices import calc_price

from proposal_engine.db.repositories import ActivityRepository
from proposal_engine.llm.rate_limiter import RateLimiter
from proposal_engine.models import SettingsConfig, UsageRecord

_log = logging.getLogger(__name__)


@dataclass
class AgentRuntimeConfig:
    model: str
    temperature: float
    tier: str


class LLMProvider:
    # pydantic-ai model-string prefix -> genai-prices provider_id
    _PROVIDER_ID_MAP: dict[str, str] = {
        "google-gla:": "google",
        "google-vertex:": "google",
        "anthropic:": "anthropic",
        "openai:": "openai",
        "groq:": "groq",
        "mistral:": "mistral",
        "cohere:": "cohere",
    }

    def __init__(
        self,
        settings: SettingsConfig,
        repository: ActivityRepository | None = None,
        on_waiting: Callable[[str, int, int], None] | None = None,
    ):
        self.settings = settings
        self.repository = repository
        llm_cfg = settings.llm
        self.rate_limiter = RateLimiter(
            flash_rpm=llm_cfg.flash_rpm if llm_cfg else 10,
            flash_lite_rpm=llm_cfg.flash_lite_rpm if llm_cfg else 15,
            pro_rpm=llm_cfg.pro_rpm if llm_cfg else 5,
            on_waiting=on_waiting,
        )

    @classmethod
    def _parse_model_ref(cls, model: str) -> tuple[str, str | None]:
        """Split 'google-gla:gemini-2.5-flash' into ('gemini-2.5-flash', 'google')."""
        for prefix, provider_id in cls._PROVIDER_ID_MAP.items():
            if model.startswith(prefix):
                return model[len(prefix):], provider_id
        return model, None

    @classmethod
    def estimate_cost_usd(cls, model: str, tokens_in: int, tokens_out: int) -> float:
        """Cost in USD from genai-prices; 0.0 for models it does not know."""
        model_ref, provider_id = cls._parse_model_ref(model)
        try:
            price = calc_price(
                GPUsage(input_tokens=tokens_in, output_tokens=tokens_out),
                model_ref,
                provider_id=provider_id,
            )
            return float(price.total_price)
        except Exception as exc:
            _log.debug("genai-prices: unknown model %r (%s) - cost set to 0.0", model, exc)
            return 0.0

    @staticmethod
    def _tier_from_model(model: str) -> str:
        lowered = model.lower()
        if "flash-lite" in lowered:
            return "flash-lite"
        if "flash" in lowered:
            return "flash"
        # everything else is limited as the slowest tier
        return "pro"

    def get_agent_config(self, agent_name: str) -> AgentRuntimeConfig:
        try:
            agent = self.settings.agents[agent_name]
        except KeyError:
            raise KeyError(f"No agent named '{agent_name}' in settings.agents") from None
        return AgentRuntimeConfig(
            model=agent.model,
            temperature=agent.temperature,
            tier=self._tier_from_model(agent.model),
        )

    async def reserve_call_slot(self, agent_name: str) -> AgentRuntimeConfig:
        config = self.get_agent_config(agent_name)
        await self.rate_limiter.acquire(config.tier)
        return config

    async def log_usage(self, record: UsageRecord) -> None:
        if self.repository is None:
            return
        await self.repository.save_usage_record(record)
