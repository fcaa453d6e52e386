from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional

from .coordinator import TransactionCoordinator
from .db.backend import DataBackend
from .db.models import BatchResult, InsertOp, Operation, UpdateOp
from .errors import InsufficientFundsError, PseudoTxError

logger = logging.getLogger(__name__)


def check_funds(balance: float, amount: float) -> None:
    """Raise InsufficientFundsError if balance does not cover amount."""
    if balance < amount:
        raise InsufficientFundsError("insufficient funds")


class WalletService:
    """
    Deposits, withdrawal requests and transfers expressed as coordinator batches.

    Business checks (positive amount, wallet exists, sufficient balance)
    run here, before any batch is built; the coordinator only sequences and
    compensates the writes it is given. The balance read and the debit are
    separate round-trips, so two concurrent transfers can both pass the
    check.
    """

    def __init__(
        self,
        backend: DataBackend,
        coordinator: Optional[TransactionCoordinator] = None,
        wallets: str = "wallets",
        ledger: str = "transactions",
        profiles: str = "profiles",
    ) -> None:
        self.backend = backend
        self.coordinator = coordinator or TransactionCoordinator(backend)
        self.wallets = wallets
        self.ledger = ledger
        self.profiles = profiles

    async def _wallet(self, user_id: Any) -> dict[str, Any]:
        wallet = await self.backend.read(self.wallets, {"user_id": user_id})
        if wallet is None:
            raise PseudoTxError("wallet not found")
        return wallet

    async def find_user_by_email(self, email: str) -> dict[str, Any] | None:
        return await self.backend.read(self.profiles, {"email": email})

    def _ledger_row(
        self,
        user_id: Any,
        tx_type: str,
        amount: float,
        recipient_id: Any = None,
        description: Optional[str] = None,
        metadata: Optional[Mapping[str, Any]] = None,
        status: str = "completed",
    ) -> InsertOp:
        payload: dict[str, Any] = {
            "user_id": user_id,
            "recipient_id": recipient_id,
            "type": tx_type,
            "amount": amount,
            "status": status,
            "description": description,
        }
        if metadata is not None:
            # Stored as JSON text so SQL drivers can bind it
            payload["metadata"] = json.dumps(dict(metadata), sort_keys=True)
        return InsertOp(self.ledger, payload)

    async def _run(
        self,
        action: str,
        build: Callable[[], Awaitable[list[Operation]]],
    ) -> BatchResult:
        try:
            operations = await build()
        except PseudoTxError as exc:
            logger.info("%s rejected: %s", action, exc)
            return BatchResult.failed(str(exc))
        return await self.coordinator.execute(operations)

    async def deposit(
        self,
        user_id: Any,
        amount: float,
        description: Optional[str] = None,
    ) -> BatchResult:
        async def build() -> list[Operation]:
            _require_positive(amount)
            wallet = await self._wallet(user_id)
            return [
                UpdateOp(self.wallets, {"balance": wallet["balance"] + amount}, match={"user_id": user_id}),
                self._ledger_row(user_id, "deposit", amount, description=description),
            ]

        return await self._run("deposit", build)

    async def withdraw(
        self,
        user_id: Any,
        amount: float,
        description: Optional[str] = None,
        metadata: Optional[Mapping[str, Any]] = None,
        status: str = "pending",
    ) -> BatchResult:
        """
        Record a withdrawal request.

        Only the ledger row is written; the balance is left alone until the
        request is approved. The balance must still cover the amount.
        """
        async def build() -> list[Operation]:
            _require_positive(amount)
            wallet = await self._wallet(user_id)
            check_funds(wallet["balance"], amount)
            return [
                self._ledger_row(
                    user_id,
                    "withdraw",
                    amount,
                    description=description or "Withdrawal request",
                    metadata=metadata,
                    status=status,
                ),
            ]

        return await self._run("withdraw", build)

    async def transfer(
        self,
        sender_id: Any,
        recipient_id: Any,
        amount: float,
        description: Optional[str] = None,
        recipient_email: Optional[str] = None,
    ) -> BatchResult:
        """
        Debit sender, credit recipient, record a ``send`` ledger row.

        The recipient is given by id, or by ``recipient_email`` looked up in
        the profiles collection (which wins when both are given). The debit
        is applied first, so a failing credit restores the sender's balance
        from its pre-image.
        """
        async def build() -> list[Operation]:
            _require_positive(amount)
            target = recipient_id
            if recipient_email:
                profile = await self.find_user_by_email(recipient_email)
                if profile is None:
                    raise PseudoTxError("recipient not found")
                target = profile["id"]
            if target is None:
                raise PseudoTxError("recipient not specified")
            if sender_id == target:
                raise PseudoTxError("cannot transfer to the same wallet")
            sender = await self._wallet(sender_id)
            check_funds(sender["balance"], amount)
            recipient = await self._wallet(target)
            return [
                UpdateOp(self.wallets, {"balance": sender["balance"] - amount}, match={"user_id": sender_id}),
                UpdateOp(self.wallets, {"balance": recipient["balance"] + amount}, match={"user_id": target}),
                self._ledger_row(sender_id, "send", amount, recipient_id=target, description=description),
            ]

        return await self._run("transfer", build)


def _require_positive(amount: float) -> None:
    if amount <= 0:
        raise PseudoTxError("amount must be positive")
