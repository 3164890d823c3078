"""SQLite connection, migration and transaction helpers."""

from __future__ import annotations

import asyncio
import weakref
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

SCHEMA_PATH = Path(__file__).with_name("schema.sql")

# one lock per connection: sqlite transactions belong to the connection, not the caller
_write_locks: "weakref.WeakKeyDictionary[aiosqlite.Connection, asyncio.Lock]" = weakref.WeakKeyDictionary()


async def _init_connection(db: aiosqlite.Connection) -> None:
    await db.execute("PRAGMA journal_mode = WAL")
    await db.execute("PRAGMA synchronous = NORMAL")
    await db.execute("PRAGMA foreign_keys = ON")
    await db.execute("PRAGMA busy_timeout = 5000")
    await db.execute("PRAGMA temp_store = MEMORY")


async def run_migrations(db: aiosqlite.Connection) -> None:
    schema_sql = SCHEMA_PATH.read_text(encoding="utf-8")
    async with write_lock(db):
        await db.executescript(schema_sql)
        await db.commit()


@asynccontextmanager
async def get_db(db_path: str = "data/proposals.db") -> AsyncIterator[aiosqlite.Connection]:
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(path))
    try:
        db.row_factory = aiosqlite.Row
        await _init_connection(db)
        await run_migrations(db)
        yield db
    finally:
        await db.close()


def write_lock(db: aiosqlite.Connection) -> asyncio.Lock:
    """The lock every committing writer on ``db`` holds while its transaction is open."""
    lock = _write_locks.get(db)
    if lock is None:
        lock = asyncio.Lock()
        _write_locks[db] = lock
    return lock


@asynccontextmanager
async def transaction(db: aiosqlite.Connection, commit: bool = True) -> AsyncIterator[aiosqlite.Connection]:
    """Commit everything written inside the block, or roll all of it back.

    The connection's write lock is held for the whole block, so two callers
    sharing a connection never end up in the same transaction. With
    ``commit=False`` the block joins a transaction the caller already owns
    and neither locks nor commits. Repository calls made inside a committing
    block must pass ``commit=False``; the lock is not reentrant.
    """
    if not commit:
        yield db
        return
    async with write_lock(db):
        try:
            yield db
        except BaseException:
            await db.rollback()
            raise
        else:
            await db.commit()
