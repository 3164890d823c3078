"""Configuration models loaded from YAML."""

from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, Field

from proposal_engine.models.enums import DocumentStatus, ReadingLevel, Tone


class AgentConfig(BaseModel):
    model: str
    temperature: float = Field(ge=0.0, le=1.0, default=0.2)


class AutoSaveConfig(BaseModel):
    interval_seconds: float = Field(gt=0, default=30.0)
    author: str = "autosave"


class ContextConfig(BaseModel):
    """Caps that keep every generation prompt roughly constant-size."""

    max_prior_sections: int = Field(ge=0, default=5)
    prior_section_chars: int = Field(ge=0, default=300)
    max_compliance_items: int = Field(ge=0, default=10)
    max_win_themes: int = Field(ge=0, default=5)
    max_past_performance: int = Field(ge=0, default=5)
    max_partners: int = Field(ge=0, default=5)
    max_reference_files: int = Field(ge=0, le=10, default=10)


class GenerationConfig(BaseModel):
    default_tone: Tone = Tone.CLEAR
    reading_level: ReadingLevel = ReadingLevel.GOVERNMENT_PLAIN
    default_word_count: int = Field(ge=50, le=10000, default=500)
    request_citations: bool = True
    existing_content_chars: int = Field(
        ge=0,
        default=6000,
        description="Plain-text budget for the existing content included when regenerating.",
    )


class ReuseConfig(BaseModel):
    max_suggestions: int = Field(ge=1, le=20, default=5)
    max_candidates: int = Field(ge=1, le=50, default=10)
    preview_chars: int = Field(ge=50, default=500)
    quality_outcomes: List[DocumentStatus] = Field(
        default_factory=lambda: [DocumentStatus.WON, DocumentStatus.SUBMITTED]
    )


class LLMRateLimitConfig(BaseModel):
    flash_rpm: int = Field(ge=1, le=1000, default=10)
    flash_lite_rpm: int = Field(ge=1, le=1000, default=15)
    pro_rpm: int = Field(ge=1, le=500, default=5)


class DatabaseConfig(BaseModel):
    path: str = "data/proposals.db"


class LoggingConfig(BaseModel):
    level: str = "normal"
    log_dir: str = "logs"
    structured: bool = True


class SettingsConfig(BaseModel):
    agents: Dict[str, AgentConfig]
    autosave: AutoSaveConfig = Field(default_factory=AutoSaveConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    reuse: ReuseConfig = Field(default_factory=ReuseConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    llm: LLMRateLimitConfig | None = None
