"""Section Generation Module."""

from .context_builder import ContextAssembler, format_context_block
from .section_generator import GeneratedResult, GenerationOptions, GenerationOrchestrator

__all__ = [
    "ContextAssembler",
    "GeneratedResult",
    "GenerationOptions",
    "GenerationOrchestrator",
    "format_context_block",
]
