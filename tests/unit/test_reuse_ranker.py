"""
Unit tests for reuse ranking and suggestion resolution.
"""

import pytest

from proposal_engine.db.database import get_db
from proposal_engine.exceptions import InvalidTransition, OracleFailure, SuggestionNotFound
from proposal_engine.models import (
    ChangeType,
    ConfidenceLevel,
    DocumentStatus,
    ReuseCandidate,
    SuggestionStatus,
)
from proposal_engine.reuse.ranker import PARAGRAPH_BREAK, ReuseRanker, confidence_from_score, parse_rankings
from proposal_engine.sections.store import SectionStore

from tests.fixtures.fake_oracle import FakeJudgmentOracle
from tests.fixtures.proposals import make_document, save_document, won_on

KEY = "technical_approach"


async def _seed(db) -> dict:
    """Target draft plus a spread of past documents. Returns section ids by label."""
    store = SectionStore(db)
    await save_document(db, document_id="doc-target", name="New Harbor Bid")
    target = await store.upsert_section("doc-target", KEY, {"content": "<p>Draft approach</p>"})
    ids = {"target": target.section_id}

    past = [
        ("won-2025", DocumentStatus.WON, won_on(2025)),
        ("won-2024", DocumentStatus.WON, won_on(2024)),
        ("submitted", DocumentStatus.SUBMITTED, won_on(2023)),
        ("lost", DocumentStatus.LOST, won_on(2025, 6)),
        ("draft", DocumentStatus.DRAFT, None),
    ]
    for label, status, outcome in past:
        await save_document(db, document_id=f"doc-{label}", name=f"Proposal {label}", status=status, outcome_date=outcome)
        section = await store.upsert_section(
            f"doc-{label}", KEY, {"content": f"<p>Approach used in {label}</p>"}
        )
        ids[label] = section.section_id

    other_type = await store.upsert_section("doc-won-2025", "past_performance", {"content": "<p>PP</p>"})
    ids["other-type"] = other_type.section_id
    await save_document(db, document_id="doc-empty", name="Empty", status=DocumentStatus.WON, outcome_date=won_on(2022))
    empty = await store.upsert_section("doc-empty", KEY, {"content": "<p><br></p>"})
    ids["empty"] = empty.section_id
    return ids


def _ranking(candidate_id: str, score: float, **extra) -> dict:
    item = {
        "candidate_id": candidate_id,
        "relevance_score": score,
        "similarity_type": "agency_match",
        "match_reasons": ["Same agency", "Outcome quality: won"],
        "suggested_modifications": "Update staffing numbers",
    }
    item.update(extra)
    return item


@pytest.mark.asyncio
async def test_pool_only_holds_quality_outcomes_of_same_type(db_path) -> None:
    async with get_db(db_path) as db:
        ids = await _seed(db)
        ranker = ReuseRanker(db)
        target = await ranker.store.get_section("doc-target", KEY)
        pool = await ranker.build_candidate_pool(target)
        assert [c.section.section_id for c in pool] == [ids["won-2025"], ids["won-2024"], ids["submitted"]]


@pytest.mark.asyncio
async def test_rank_persists_explainable_suggestions(db_path) -> None:
    async with get_db(db_path) as db:
        ids = await _seed(db)
        oracle = FakeJudgmentOracle(
            {
                "rankings": [
                    _ranking(ids["submitted"], 55),
                    _ranking(ids["won-2025"], 82, confidence_level="medium"),
                    _ranking(ids["lost"], 99),
                    _ranking("made-up-id", 90),
                    _ranking(ids["won-2024"], 70, match_reasons=[]),
                    {"candidate_id": ids["won-2024"], "relevance_score": "high"},
                ]
            }
        )
        ranker = ReuseRanker(db, oracle)
        suggestions = await ranker.rank("doc-target", KEY)

        assert [s.source_section_id for s in suggestions] == [ids["won-2025"], ids["submitted"]]
        assert suggestions[0].confidence_level == ConfidenceLevel.MEDIUM
        assert suggestions[1].confidence_level == ConfidenceLevel.MEDIUM
        assert all(s.match_reasons for s in suggestions)
        assert all(s.status == SuggestionStatus.PENDING for s in suggestions)
        assert len({s.run_id for s in suggestions}) == 1

        prompt = oracle.prompts[0]
        assert ids["won-2025"] in prompt
        assert ids["lost"] not in prompt
        assert ids["other-type"] not in prompt
        assert ids["empty"] not in prompt


@pytest.mark.asyncio
async def test_ties_go_to_most_recent_outcome_and_list_is_capped(db_path) -> None:
    async with get_db(db_path) as db:
        store = SectionStore(db)
        await save_document(db, document_id="doc-target")
        await store.upsert_section("doc-target", KEY, {"content": "<p>Draft</p>"})
        ids = []
        for year in range(2018, 2025):
            await save_document(
                db, document_id=f"doc-{year}", status=DocumentStatus.WON, outcome_date=won_on(year)
            )
            section = await store.upsert_section(f"doc-{year}", KEY, {"content": f"<p>{year}</p>"})
            ids.append(section.section_id)

        oracle = FakeJudgmentOracle({"rankings": [_ranking(i, 70) for i in ids]})
        suggestions = await ReuseRanker(db, oracle).rank("doc-target", KEY)
        assert len(suggestions) == 5
        assert [s.source_section_id for s in suggestions] == list(reversed(ids))[:5]


@pytest.mark.asyncio
async def test_empty_pool_skips_the_judge(db_path) -> None:
    async with get_db(db_path) as db:
        await save_document(db, document_id="doc-target")
        await SectionStore(db).upsert_section("doc-target", KEY, {"content": "<p>Draft</p>"})
        oracle = FakeJudgmentOracle()
        assert await ReuseRanker(db, oracle).rank("doc-target", KEY) == []
        assert oracle.prompts == []


@pytest.mark.asyncio
async def test_caller_supplied_pool_is_filtered(db_path) -> None:
    async with get_db(db_path) as db:
        ids = await _seed(db)
        ranker = ReuseRanker(db, FakeJudgmentOracle({"rankings": []}))
        store = ranker.store
        same_doc = await store.upsert_section("doc-target", "technical_approach_copy", {"content": "<p>x</p>"})
        pool = [
            ReuseCandidate(
                section=(await store.get_section_by_id(ids["lost"])),
                document=make_document(document_id="doc-lost", status=DocumentStatus.LOST),
            ),
            ReuseCandidate(
                section=same_doc.model_copy(update={"section_type": KEY}),
                document=make_document(document_id="doc-target", status=DocumentStatus.WON),
            ),
            ReuseCandidate(
                section=(await store.get_section_by_id(ids["won-2024"])),
                document=make_document(
                    document_id="doc-won-2024", status=DocumentStatus.WON, outcome_date=won_on(2024)
                ),
            ),
        ]
        target = await store.get_section("doc-target", KEY)
        kept = ranker.filter_pool(target, pool)
        assert [c.section.section_id for c in kept] == [ids["won-2024"]]


@pytest.mark.asyncio
async def test_each_rank_is_a_new_run(db_path) -> None:
    async with get_db(db_path) as db:
        ids = await _seed(db)
        ranker = ReuseRanker(db, FakeJudgmentOracle({"rankings": [_ranking(ids["won-2025"], 80)]}))
        first = await ranker.rank("doc-target", KEY)
        second = await ranker.rank("doc-target", KEY)
        assert first[0].run_id != second[0].run_id

        latest = await ranker.list_suggestions("doc-target", KEY)
        assert [s.suggestion_id for s in latest] == [second[0].suggestion_id]
        everything = await ranker.list_suggestions("doc-target", KEY, latest_run_only=False)
        assert len(everything) == 2


@pytest.mark.asyncio
async def test_accept_appends_content_and_marks_used(db_path) -> None:
    async with get_db(db_path) as db:
        ids = await _seed(db)
        ranker = ReuseRanker(db, FakeJudgmentOracle({"rankings": [_ranking(ids["won-2025"], 80)]}))
        [suggestion] = await ranker.rank("doc-target", KEY)

        accepted = await ranker.accept_suggestion(suggestion.suggestion_id, author="writer@example.com")
        assert accepted.status == SuggestionStatus.ACCEPTED
        assert accepted.was_used

        section = await ranker.store.get_section("doc-target", KEY)
        assert section.content == f"<p>Draft approach</p>{PARAGRAPH_BREAK}<p>Approach used in won-2025</p>"
        newest = (await ranker.ledger.list_versions(section.section_id))[0]
        assert newest.change_type == ChangeType.USER_EDIT
        assert newest.change_summary == "Inserted reused content from Proposal won-2025"

        stored = await ranker.suggestions.get_suggestion(suggestion.suggestion_id)
        assert stored.status == SuggestionStatus.ACCEPTED
        assert stored.was_used
        assert stored.resolved_at is not None

        with pytest.raises(InvalidTransition):
            await ranker.accept_suggestion(suggestion.suggestion_id)
        with pytest.raises(InvalidTransition):
            await ranker.reject_suggestion(suggestion.suggestion_id)


@pytest.mark.asyncio
async def test_reject_records_feedback_without_touching_content(db_path) -> None:
    async with get_db(db_path) as db:
        ids = await _seed(db)
        ranker = ReuseRanker(db, FakeJudgmentOracle({"rankings": [_ranking(ids["submitted"], 60)]}))
        [suggestion] = await ranker.rank("doc-target", KEY)

        rejected = await ranker.reject_suggestion(suggestion.suggestion_id, feedback="Wrong agency")
        assert rejected.status == SuggestionStatus.REJECTED
        stored = await ranker.suggestions.get_suggestion(suggestion.suggestion_id)
        assert stored.user_feedback == "Wrong agency"
        assert not stored.was_used
        assert (await ranker.store.get_section("doc-target", KEY)).content == "<p>Draft approach</p>"

        with pytest.raises(SuggestionNotFound):
            await ranker.reject_suggestion("nope")


@pytest.mark.asyncio
async def test_rejected_suggestion_cannot_be_accepted(db_path) -> None:
    async with get_db(db_path) as db:
        ids = await _seed(db)
        ranker = ReuseRanker(db, FakeJudgmentOracle({"rankings": [_ranking(ids["won-2024"], 70)]}))
        [suggestion] = await ranker.rank("doc-target", KEY)
        await ranker.reject_suggestion(suggestion.suggestion_id, feedback="Too old")
        versions_before = await ranker.ledger.list_versions(ids["target"])

        with pytest.raises(InvalidTransition):
            await ranker.accept_suggestion(suggestion.suggestion_id, author="writer@example.com")

        section = await ranker.store.get_section("doc-target", KEY)
        assert section.content == "<p>Draft approach</p>"
        assert await ranker.ledger.list_versions(ids["target"]) == versions_before
        stored = await ranker.suggestions.get_suggestion(suggestion.suggestion_id)
        assert stored.status == SuggestionStatus.REJECTED
        assert not stored.was_used
        assert stored.user_feedback == "Too old"


@pytest.mark.asyncio
async def test_missing_oracle_with_candidates_is_a_failure(db_path) -> None:
    async with get_db(db_path) as db:
        await _seed(db)
        with pytest.raises(OracleFailure):
            await ReuseRanker(db).rank("doc-target", KEY)


def test_parse_rankings_requires_a_list() -> None:
    with pytest.raises(OracleFailure):
        parse_rankings({"results": []}, ["a"])
    assert parse_rankings({"rankings": ["junk", _ranking("a", 10)]}, ["a"])[0].candidate_id == "a"


def test_confidence_from_score() -> None:
    assert confidence_from_score(90) == ConfidenceLevel.HIGH
    assert confidence_from_score(75) == ConfidenceLevel.HIGH
    assert confidence_from_score(50) == ConfidenceLevel.MEDIUM
    assert confidence_from_score(49.9) == ConfidenceLevel.LOW
