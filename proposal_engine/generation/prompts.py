"""Prompt templates for section drafting and reuse ranking."""

from __future__ import annotations

from typing import List, Optional, Sequence

from proposal_engine.models import ReadingLevel, ReuseCandidate, Section, Tone
from proposal_engine.utils.text import truncate_text

TONE_INSTRUCTIONS: dict[Tone, str] = {
    Tone.CLEAR: "Write in clear, straightforward language that is easy to understand.",
    Tone.FORMAL: "Use formal, professional language appropriate for government contracting.",
    Tone.CONCISE: "Be brief and to the point, avoiding unnecessary words.",
    Tone.COURTEOUS: "Use respectful and courteous language throughout.",
    Tone.CONFIDENT: "Write with confidence, emphasizing capabilities and experience.",
    Tone.PERSUASIVE: "Use persuasive language that convinces the reader of the offer's value.",
    Tone.PROFESSIONAL: "Maintain a professional tone throughout.",
    Tone.HUMANIZED: "Write in a warm, human tone while staying professional.",
    Tone.CONVERSATIONAL: "Use a conversational style that engages the reader.",
}

READING_LEVEL_INSTRUCTIONS: dict[ReadingLevel, str] = {
    ReadingLevel.GOVERNMENT_PLAIN: (
        "Follow Government Plain Language standards: clear, concise and well organized."
    ),
    ReadingLevel.FLESCH_60: "Target Flesch Reading Ease 60+ (about grade 10).",
    ReadingLevel.FLESCH_70: "Target Flesch Reading Ease 70+ (about grade 8).",
}

PROHIBITED_PHRASES = (
    "NEVER open with 'Of course', 'Here is', 'Certainly', 'In this section' or any other "
    "conversational preamble. Do NOT repeat the section heading. "
    "Output must be suitable for direct insertion into the proposal."
)

_FORMAT_RULE = (
    "Return the section body as HTML using only <p>, <h3>, <ul>, <li> and <strong> tags."
)

_IMPROVE_RULE = (
    "IMPROVE-IN-PLACE RULES:\n"
    "1. Keep the strong, specific passages of the existing content.\n"
    "2. Strengthen weak or vague passages with concrete detail from the context.\n"
    "3. Do not drop facts, commitments or figures that appear in the existing content.\n"
    "4. Do not start over from scratch."
)


def tone_instruction(tone: Optional[Tone]) -> str:
    return TONE_INSTRUCTIONS.get(Tone(tone) if tone else Tone.CLEAR, TONE_INSTRUCTIONS[Tone.CLEAR])


def reading_level_instruction(level: Optional[ReadingLevel]) -> str:
    if not level:
        return READING_LEVEL_INSTRUCTIONS[ReadingLevel.GOVERNMENT_PLAIN]
    return READING_LEVEL_INSTRUCTIONS[ReadingLevel(level)]


def build_generation_prompt(
    section_name: str,
    context_block: str,
    *,
    tone: Optional[Tone] = None,
    reading_level: Optional[ReadingLevel] = None,
    word_count_target: int = 500,
    request_citations: bool = True,
    existing_content: Optional[str] = None,
    additional_context: Optional[str] = None,
) -> str:
    """Assemble the full drafting prompt.

    When ``existing_content`` is given the model is asked to improve it rather
    than write a fresh draft.
    """
    regenerate = bool(existing_content)
    task = (
        f'Improve the existing "{section_name}" section of this proposal.'
        if regenerate
        else f'Write the "{section_name}" section of this proposal.'
    )
    lines: List[str] = [
        "You are an expert proposal writer for government contracts.",
        task,
        "",
        context_block,
        "",
        "WRITING INSTRUCTIONS:",
        f"- Target word count: {word_count_target} words",
        f"- Tone: {tone_instruction(tone)}",
        f"- Reading level: {reading_level_instruction(reading_level)}",
        "- Be specific, use active voice, and focus on benefits to the agency.",
        "- Address every compliance requirement listed for this section.",
    ]
    if request_citations:
        lines.append(
            "- Cite sources in [Source: Document Name] format when using specific information."
        )
    if additional_context:
        lines += ["", "ADDITIONAL CONTEXT:", additional_context.strip()]
    if regenerate:
        lines += ["", "EXISTING CONTENT TO IMPROVE:", existing_content or "", "", _IMPROVE_RULE]
    lines += [
        "",
        PROHIBITED_PHRASES,
        _FORMAT_RULE,
        "Also list the labels of the context items you relied on in reference_sources "
        "and summarize the context you used in one sentence in context_summary.",
    ]
    return "\n".join(lines)


def _describe_candidate(candidate: ReuseCandidate, preview_chars: int) -> str:
    doc = candidate.document
    outcome = doc.status.value
    if doc.outcome_date:
        outcome += f" ({doc.outcome_date.date().isoformat()})"
    return "\n".join(
        [
            f"CANDIDATE {candidate.section.section_id}",
            f"- Document: {doc.name}",
            f"- Agency: {doc.agency_name or 'Not specified'}",
            f"- Project type: {doc.project_type or 'Not specified'}",
            f"- Outcome: {outcome}",
            f"- Section: {candidate.section.section_name}",
            f"- Content preview: {truncate_text(candidate.section.content, preview_chars)}",
        ]
    )


def build_ranking_prompt(
    target: Section,
    target_document_name: str,
    target_agency: Optional[str],
    candidates: Sequence[ReuseCandidate],
    preview_chars: int = 500,
    max_suggestions: int = 5,
) -> str:
    """Ask the judge to score each candidate for reuse in ``target``."""
    candidate_blocks = "\n\n".join(_describe_candidate(c, preview_chars) for c in candidates)
    current = truncate_text(target.content, preview_chars) or "(empty)"
    return "\n".join(
        [
            "You rank past proposal sections for reuse in a new proposal.",
            "",
            "TARGET SECTION:",
            f"- Document: {target_document_name}",
            f"- Agency: {target_agency or 'Not specified'}",
            f"- Section: {target.section_name} (type: {target.section_type})",
            f"- Current draft: {current}",
            "",
            "CANDIDATES:",
            candidate_blocks,
            "",
            "For each useful candidate return candidate_id (exactly as given), relevance_score "
            "(0-100), similarity_type (exact_match, agency_match, topic_match, keyword_match or "
            "semantic_match), match_reasons (at least one short reason: agency match, topic "
            "overlap, keyword overlap, outcome quality), suggested_modifications, and "
            "confidence_level (high, medium or low).",
            f"Return at most {max_suggestions} rankings, best first. Omit candidates with no "
            "meaningful relevance.",
        ]
    )
