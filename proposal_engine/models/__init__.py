"""Model exports for the section engine boundaries."""

from proposal_engine.models.additional import UsageRecord
from proposal_engine.models.config import (
    AgentConfig,
    AutoSaveConfig,
    ContextConfig,
    DatabaseConfig,
    GenerationConfig,
    LLMRateLimitConfig,
    LoggingConfig,
    ReuseConfig,
    SettingsConfig,
)
from proposal_engine.models.documents import (
    ComplianceRequirement,
    ContextBundle,
    Document,
    PartnerCapability,
    PastPerformanceRecord,
    ReferenceFile,
    WinTheme,
)
from proposal_engine.models.enums import (
    ChangeType,
    ConfidenceLevel,
    DocumentStatus,
    GenerationOutcome,
    GenerationState,
    NotificationType,
    ReadingLevel,
    SectionStatus,
    SimilarityType,
    SuggestionStatus,
    Tone,
)
from proposal_engine.models.reuse import (
    RankedCandidate,
    ReuseCandidate,
    ReuseJudgment,
    ReuseSuggestion,
)
from proposal_engine.models.review import Reviewer, ReviewNotification, StageTransitionRequest
from proposal_engine.models.sections import Section, SectionPatch, SectionVersion

__all__ = [
    "AgentConfig",
    "AutoSaveConfig",
    "ChangeType",
    "ComplianceRequirement",
    "ConfidenceLevel",
    "ContextBundle",
    "ContextConfig",
    "DatabaseConfig",
    "Document",
    "DocumentStatus",
    "GenerationConfig",
    "GenerationOutcome",
    "GenerationState",
    "LLMRateLimitConfig",
    "LoggingConfig",
    "NotificationType",
    "PartnerCapability",
    "PastPerformanceRecord",
    "RankedCandidate",
    "ReadingLevel",
    "ReferenceFile",
    "ReuseCandidate",
    "ReuseConfig",
    "ReuseJudgment",
    "ReuseSuggestion",
    "ReviewNotification",
    "Reviewer",
    "Section",
    "SectionPatch",
    "SectionStatus",
    "SectionVersion",
    "SettingsConfig",
    "SimilarityType",
    "StageTransitionRequest",
    "SuggestionStatus",
    "Tone",
    "UsageRecord",
    "WinTheme",
]
