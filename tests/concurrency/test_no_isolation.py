from __future__ import annotations

import asyncio

import pytest

from pseudotx.coordinator import TransactionCoordinator
from pseudotx.db.memory import MemoryBackend
from pseudotx.db.models import UpdateOp
from pseudotx.wallets import WalletService


class YieldingBackend(MemoryBackend):
    """MemoryBackend that yields to the event loop on every round-trip, like a network client."""

    async def read(self, collection, filter):
        await asyncio.sleep(0)
        return await super().read(collection, filter)

    async def write(self, op):
        await asyncio.sleep(0)
        return await super().write(op)


@pytest.fixture
def yielding_backend() -> YieldingBackend:
    b = YieldingBackend()
    b.seed("wallets", [
        {"id": 1, "user_id": "alice", "balance": 500},
        {"id": 2, "user_id": "bob", "balance": 0},
    ])
    return b


@pytest.mark.asyncio
async def test_concurrent_transfers_both_pass_the_funds_check(yielding_backend: YieldingBackend) -> None:
    service = WalletService(yielding_backend)

    first, second = await asyncio.gather(
        service.transfer("alice", "bob", 400),
        service.transfer("alice", "bob", 400),
    )

    # Lost update: both succeed against the same starting balances
    assert first.success and second.success
    balances = {w["user_id"]: w["balance"] for w in yielding_backend.rows("wallets")}
    assert balances == {"alice": 100, "bob": 400}
    assert len(yielding_backend.rows("transactions")) == 2


@pytest.mark.asyncio
async def test_concurrent_withdrawal_requests_both_pass_the_funds_check(yielding_backend: YieldingBackend) -> None:
    service = WalletService(yielding_backend)

    first, second = await asyncio.gather(
        service.withdraw("alice", 400),
        service.withdraw("alice", 400),
    )

    # 800 requested against 500; nothing reserves the funds
    assert first.success and second.success
    pending = [r for r in yielding_backend.rows("transactions") if r["status"] == "pending"]
    assert sum(r["amount"] for r in pending) == 800


@pytest.mark.asyncio
async def test_concurrent_batches_interleave(yielding_backend: YieldingBackend) -> None:
    coordinator = TransactionCoordinator(yielding_backend)

    await asyncio.gather(
        coordinator.execute([UpdateOp("wallets", {"balance": 1}, match={"user_id": "alice"})]),
        coordinator.execute([UpdateOp("wallets", {"balance": 2}, match={"user_id": "alice"})]),
    )

    names = [name for name, _ in yielding_backend.calls]
    # The second batch begins before the first one commits
    assert names.index("begin_marker", 1) < names.index("commit_marker")
