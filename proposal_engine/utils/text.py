"""
Text Utilities

Plain-text views of rich section content: tag stripping, word counts and
bounded previews for prompts.
"""

import html
import re
from typing import Optional

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")


def strip_html(text: Optional[str]) -> str:
    """
    Remove HTML tags and unescape entities.

    Tags are replaced by a space so adjacent block elements do not merge
    their words ("<p>a</p><p>b</p>" reads as "a b").

    Args:
        text: Rich text that may contain HTML

    Returns:
        Plain text with collapsed whitespace
    """
    if not text:
        return ""
    plain = _TAG_RE.sub(" ", text)
    plain = html.unescape(plain)
    return _WS_RE.sub(" ", plain).strip()


def count_words(text: Optional[str]) -> int:
    """Count whitespace-separated tokens of the plain-text view of ``text``."""
    plain = strip_html(text)
    if not plain:
        return 0
    return len([token for token in plain.split(" ") if token])


def truncate_text(text: Optional[str], max_chars: int, marker: str = "...") -> str:
    """
    Return the plain-text view of ``text`` cut to ``max_chars`` characters.

    The marker is appended only when something was cut and does not count
    against the budget.
    """
    plain = strip_html(text)
    if max_chars <= 0:
        return ""
    if len(plain) <= max_chars:
        return plain
    return plain[:max_chars].rstrip() + marker


def is_blank(text: Optional[str]) -> bool:
    """True when ``text`` is None, empty, or whitespace only."""
    return not (text or "").strip()


def compose_section_key(parent: str, child: Optional[str] = None) -> str:
    """Build a section key: top-level keys stay as-is, subsections are ``{parent}_{child}``."""
    if not parent:
        raise ValueError("parent section key is required")
    if not child:
        return parent
    return f"{parent}_{child}"
