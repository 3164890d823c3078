"""Enum definitions for typed section, version and suggestion records."""

from enum import Enum


class SectionStatus(str, Enum):
    DRAFT = "draft"
    AI_GENERATED = "ai_generated"
    AI_REGENERATED = "ai_regenerated"
    REVIEWED = "reviewed"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"


class ChangeType(str, Enum):
    INITIAL_CREATION = "initial_creation"
    USER_EDIT = "user_edit"
    AI_GENERATED = "ai_generated"
    AI_REGENERATED = "ai_regenerated"
    RESTORED_FROM_HISTORY = "restored_from_history"


class SimilarityType(str, Enum):
    EXACT_MATCH = "exact_match"
    AGENCY_MATCH = "agency_match"
    TOPIC_MATCH = "topic_match"
    KEYWORD_MATCH = "keyword_match"
    SEMANTIC_MATCH = "semantic_match"


class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SuggestionStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class DocumentStatus(str, Enum):
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    WON = "won"
    LOST = "lost"
    ARCHIVED = "archived"


class GenerationState(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"


class GenerationOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class NotificationType(str, Enum):
    REVIEW_REQUEST = "review_request"
    SECTION_APPROVED = "section_approved"
    STATUS_CHANGE = "status_change"


class Tone(str, Enum):
    CLEAR = "clear"
    FORMAL = "formal"
    CONCISE = "concise"
    COURTEOUS = "courteous"
    CONFIDENT = "confident"
    PERSUASIVE = "persuasive"
    PROFESSIONAL = "professional"
    HUMANIZED = "humanized"
    CONVERSATIONAL = "conversational"


class ReadingLevel(str, Enum):
    GOVERNMENT_PLAIN = "government_plain"
    FLESCH_60 = "flesch_60"
    FLESCH_70 = "flesch_70"
