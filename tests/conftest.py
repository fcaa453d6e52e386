from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from pseudotx.db.memory import MemoryBackend


WALLETS_DDL = """
    CREATE TABLE wallets (
        id INTEGER PRIMARY KEY,
        user_id VARCHAR(64) NOT NULL UNIQUE,
        balance INTEGER NOT NULL CHECK (balance >= 0)
    )
"""

LEDGER_DDL = """
    CREATE TABLE transactions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id VARCHAR(64) NOT NULL,
        recipient_id VARCHAR(64) NULL,
        type VARCHAR(16) NOT NULL,
        amount INTEGER NOT NULL,
        status VARCHAR(16) NOT NULL,
        description VARCHAR(255) NULL,
        metadata TEXT NULL
    )
"""


def seeded_wallets() -> list[dict]:
    return [
        {"id": 1, "user_id": "alice", "balance": 500},
        {"id": 2, "user_id": "bob", "balance": 200},
        {"id": 3, "user_id": "carol", "balance": 0},
    ]


@pytest.fixture
def backend() -> MemoryBackend:
    """
    Non-transactional in-memory backend with three wallets:
    alice=500, bob=200, carol=0.
    """
    b = MemoryBackend()
    b.seed("wallets", seeded_wallets())
    return b


@pytest.fixture
def transactional_backend() -> MemoryBackend:
    """Same wallets, but markers snapshot/restore the store."""
    b = MemoryBackend(transactional=True)
    b.seed("wallets", seeded_wallets())
    return b


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    """
    Per-test SQLite file database with the wallets/transactions schema.

    A file (not :memory:) so every pooled connection sees the same data.
    """
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'pseudotx.db'}")
    async with eng.begin() as conn:
        await conn.exec_driver_sql(WALLETS_DDL)
        await conn.exec_driver_sql(LEDGER_DDL)
        for wallet in seeded_wallets():
            await conn.execute(
                text("INSERT INTO wallets (id, user_id, balance) VALUES (:id, :user_id, :balance)"),
                wallet,
            )

    yield eng
    await eng.dispose()


@pytest.fixture
def fetch_all(engine: AsyncEngine) -> Callable[[str], Awaitable[list[dict]]]:
    """Run a SELECT outside any backend and return rows as dicts."""

    async def _fetch(sql: str) -> list[dict]:
        async with engine.connect() as conn:
            result = await conn.execute(text(sql))
            return [dict(row) for row in result.mappings()]

    return _fetch
