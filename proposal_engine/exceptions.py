"""
Custom exceptions for section content and version operations.
"""

from typing import Optional


class ProposalEngineError(Exception):
    """Base exception for section engine errors."""

    pass


class NotFound(ProposalEngineError):
    """Raised when a lookup misses. Callers may treat it as create-on-first-write."""

    pass


class SectionNotFound(NotFound):
    """Raised when no section exists for a document/key pair."""

    def __init__(self, document_id: str, section_key: str):
        self.document_id = document_id
        self.section_key = section_key
        super().__init__(f"Section '{section_key}' not found in document {document_id}")


class VersionNotFound(NotFound):
    """Raised when a section has no version with the requested number."""

    def __init__(self, section_id: str, version_number: int):
        self.section_id = section_id
        self.version_number = version_number
        super().__init__(f"Version {version_number} not found for section {section_id}")


class DocumentNotFound(NotFound):
    """Raised when a parent document does not exist."""

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document {document_id} not found")


class SuggestionNotFound(NotFound):
    """Raised when a reuse suggestion id is unknown."""

    def __init__(self, suggestion_id: str):
        self.suggestion_id = suggestion_id
        super().__init__(f"Reuse suggestion {suggestion_id} not found")


class ConcurrencyConflict(ProposalEngineError):
    """Raised when two appends race for the same version number."""

    def __init__(self, section_id: str, version_number: Optional[int] = None):
        self.section_id = section_id
        self.version_number = version_number
        if version_number is None:
            message = f"Section {section_id} was created by a concurrent write"
        else:
            message = f"Version {version_number} of section {section_id} was claimed by a concurrent write"
        super().__init__(message)


class OracleFailure(ProposalEngineError):
    """Raised when a generation or judgment call fails or returns malformed output."""

    pass


class ValidationFailure(ProposalEngineError):
    """Raised when a request is rejected before any store mutation."""

    pass


class InvalidTransition(ValidationFailure):
    """Raised when a status change is not allowed by the state machine."""

    def __init__(self, entity: str, current: str, requested: str):
        self.entity = entity
        self.current = current
        self.requested = requested
        super().__init__(f"{entity} cannot move from '{current}' to '{requested}'")


class GenerationInProgress(ProposalEngineError):
    """Raised when a generation is already running for the same section key."""

    def __init__(self, document_id: str, section_key: str):
        self.document_id = document_id
        self.section_key = section_key
        super().__init__(
            f"Generation already in progress for '{section_key}' in document {document_id}"
        )
