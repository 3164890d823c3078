"""
Unit tests for plain-text helpers.
"""

import pytest

from proposal_engine.utils.text import compose_section_key, count_words, strip_html, truncate_text


def test_count_words_ignores_markup() -> None:
    assert count_words("<p>Executive summary draft</p>") == 3


def test_adjacent_blocks_do_not_merge_words() -> None:
    assert strip_html("<p>alpha</p><p>beta</p>") == "alpha beta"
    assert count_words("<p>alpha</p><p>beta</p>") == 2


def test_count_words_empty_and_markup_only() -> None:
    assert count_words(None) == 0
    assert count_words("") == 0
    assert count_words("<p><br></p>") == 0


def test_strip_html_unescapes_entities() -> None:
    assert strip_html("<p>Fish &amp; Chips&nbsp;Co</p>") == "Fish & Chips Co"


def test_truncate_text_marks_cut() -> None:
    text = "<p>" + "a" * 400 + "</p>"
    out = truncate_text(text, 300)
    assert out.endswith("...")
    assert len(out) == 303


def test_truncate_text_short_input_untouched() -> None:
    assert truncate_text("<p>short</p>", 300) == "short"


def test_compose_section_key() -> None:
    assert compose_section_key("technical_approach") == "technical_approach"
    assert compose_section_key("technical_approach", "staffing") == "technical_approach_staffing"
    with pytest.raises(ValueError):
        compose_section_key("")
