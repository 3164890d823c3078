"""
Unit tests for writers from different components sharing one connection.
"""

import asyncio

import pytest

from proposal_engine.db.database import get_db, write_lock
from proposal_engine.db.repositories import ActivityRepository
from proposal_engine.models import ChangeType, UsageRecord
from proposal_engine.sections.autosave import AutoSaveReconciler, EditBuffer
from proposal_engine.sections.editor import SectionEditor


async def _failing_after_write(section, version) -> None:
    await asyncio.sleep(0.01)
    raise RuntimeError("downstream write failed")


@pytest.mark.asyncio
@pytest.mark.parametrize("editor_first", [True, False])
async def test_one_components_rollback_keeps_anothers_save(db_path, editor_first) -> None:
    async with get_db(db_path) as db:
        editor = SectionEditor(db)
        reconciler = AutoSaveReconciler(db)

        failing = editor.ledger.record_change(
            "doc-1",
            "a",
            {"content": "<p>A text</p>"},
            ChangeType.USER_EDIT,
            after_write=_failing_after_write,
        )
        autosave = reconciler.reconcile_once("doc-1", EditBuffer({"b": "<p>B text</p>"}))
        jobs = [failing, autosave] if editor_first else [autosave, failing]
        results = await asyncio.gather(*jobs, return_exceptions=True)

        report = results[1] if editor_first else results[0]
        assert report.saved == ["b"]
        assert report.errors == {}
        assert isinstance(results[0] if editor_first else results[1], RuntimeError)

        saved = await reconciler.store.get_section("doc-1", "b")
        assert len(await reconciler.ledger.list_versions(saved.section_id)) == 1
        assert await editor.store.find_section("doc-1", "a") is None


@pytest.mark.asyncio
async def test_unrelated_commit_waits_for_open_transaction(db_path) -> None:
    async with get_db(db_path) as db:
        editor = SectionEditor(db)
        activity = ActivityRepository(db)
        record = UsageRecord(
            model="google-gla:gemini-2.5-flash",
            feature="section_generation",
            tokens_in=120,
            tokens_out=40,
            cost_usd=0.0,
            latency_ms=15,
        )

        async def usage_after_transaction_opens() -> None:
            await asyncio.sleep(0.001)
            await activity.save_usage_record(record)

        results = await asyncio.gather(
            editor.ledger.record_change(
                "doc-1",
                "a",
                {"content": "<p>A text</p>"},
                ChangeType.USER_EDIT,
                after_write=_failing_after_write,
            ),
            usage_after_transaction_opens(),
            return_exceptions=True,
        )

        assert isinstance(results[0], RuntimeError)
        assert results[1] is None
        assert await editor.store.find_section("doc-1", "a") is None
        assert await activity.count_usage_records() == 1
        assert not write_lock(db).locked()


@pytest.mark.asyncio
async def test_each_connection_has_its_own_lock(tmp_path) -> None:
    async with get_db(str(tmp_path / "one.db")) as first, get_db(str(tmp_path / "two.db")) as second:
        assert write_lock(first) is write_lock(first)
        assert write_lock(first) is not write_lock(second)
