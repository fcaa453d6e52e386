from __future__ import annotations

import logging
import time
from typing import Sequence

from .config import CompletionMarker, CoordinatorConfig
from .db.backend import DataBackend
from .db.metrics import (
    observe_batch,
    observe_compensation,
    observe_marker_failure,
    observe_operation,
    observe_rollback,
)
from .db.models import BatchResult, CompensationRecord, Operation
from .errors import BackendWriteError

logger = logging.getLogger(__name__)


class TransactionCoordinator:
    """
    Executes an ordered batch of operations with best-effort atomicity.

    The batch is bracketed by the backend's begin/commit markers. Before
    each write the coordinator reads the record the operation targets and
    keeps its pre-image; if any write fails, the pre-images are written back
    in reverse order.

    This is NOT a transaction unless the backend makes the markers one:
    - concurrent readers can observe every intermediate write
    - concurrent batches on the same records interleave freely
    - records created by an insert are not removed on rollback
    - a deleted record is "restored" by an update that matches nothing

    Markers are best-effort. A failing begin or commit marker is logged and
    the batch still succeeds, unless the backend is ``atomic`` (its markers
    are a real transaction), where a failed commit fails the batch.

    After the compensation replay the completion marker is commit by
    default (see ``CoordinatorConfig.rollback_completion_marker``). A restore
    that reports an error is logged and skipped; the rollback marker is only
    the fallback when the replay raises.

    Usage:
        coordinator = TransactionCoordinator(backend)
        result = await coordinator.execute([
            UpdateOp("wallets", {"balance": 400}, match={"user_id": "a"}),
            UpdateOp("wallets", {"balance": 600}, match={"user_id": "b"}),
            InsertOp("transactions", {"user_id": "a", "amount": 100}),
        ])
        if not result.success:
            ...  # result.error holds the first failure
    """

    def __init__(
        self,
        backend: DataBackend,
        config: CoordinatorConfig | None = None,
    ) -> None:
        self.backend = backend
        self.config = config or CoordinatorConfig()

    async def execute(self, operations: Sequence[Operation]) -> BatchResult:
        """
        Run operations strictly in order and report the batch outcome.

        Never raises (cancellation aside): every failure, including a
        malformed operation, comes back as ``BatchResult(success=False)``
        carrying the first error message. Rollback failures are logged only.

        Args:
            operations: Non-empty ordered sequence of operations

        Returns:
            BatchResult
        """
        ops = list(operations)
        if not ops:
            return BatchResult.failed("Operation batch is empty")

        start_time = time.monotonic()
        status = "error"
        # Per-call log; nothing survives the call
        compensations: list[CompensationRecord] = []

        try:
            await self._begin()

            for op in ops:
                record = await self._capture(op)
                await self._apply(op)
                if record is not None:
                    compensations.append(record)

            await self._commit()

            status = "success"
            logger.info("Batch of %d operations committed", len(ops))
            return BatchResult.ok()
        except Exception as exc:
            error = str(exc) or "Transaction failed"
            logger.warning(
                "Batch of %d operations failed, rolling back %d compensations: %s",
                len(ops),
                len(compensations),
                error,
            )
            await self._rollback(compensations)
            return BatchResult.failed(error)
        finally:
            # Metrics must not mask the batch outcome
            try:
                observe_batch(status, time.monotonic() - start_time)
            except Exception:
                pass

    async def _begin(self) -> None:
        # Best-effort marker: a backend without it still gets the writes
        try:
            await self.backend.begin_marker()
        except Exception as exc:
            observe_marker_failure("begin")
            logger.warning("Begin marker failed; continuing without it: %s", exc)

    async def _commit(self) -> None:
        try:
            await self.backend.commit_marker()
        except Exception as exc:
            observe_marker_failure("commit")
            # Only a backend whose markers are a real transaction can lose
            # the writes at commit
            if getattr(self.backend, "atomic", False):
                raise
            logger.warning("Commit marker failed; writes already applied: %s", exc)

    async def _capture(self, op: Operation) -> CompensationRecord | None:
        pre_image = await self.backend.read(op.collection, op.capture_filter)
        if pre_image is None:
            return None

        id_column = self.config.id_column
        if id_column not in pre_image:
            logger.warning(
                "Pre-image from %s has no %r column and cannot be restored",
                op.collection,
                id_column,
            )
            return None

        return CompensationRecord.capture(op, pre_image, id_column)

    async def _apply(self, op: Operation) -> None:
        result = await self.backend.write(op)
        if not result.ok:
            observe_operation(op.collection, op.kind.value, "error")
            raise BackendWriteError(result.error)
        observe_operation(op.collection, op.kind.value, "success")

    async def _rollback(self, compensations: list[CompensationRecord]) -> None:
        failed = 0
        try:
            for record in reversed(compensations):
                restore = record.restore
                result = await self.backend.write(restore)
                if not result.ok:
                    # Keep going; older records can still be restored
                    failed += 1
                    observe_compensation(restore.collection, "error")
                    logger.error(
                        "Restore of %s %s failed: %s",
                        restore.collection,
                        dict(restore.match),
                        result.error,
                    )
                    continue
                observe_compensation(restore.collection, "success")

            if self.config.rollback_completion_marker == CompletionMarker.COMMIT:
                await self.backend.commit_marker()
            else:
                await self.backend.rollback_marker()
        except Exception:
            logger.exception("Rollback failed")
            observe_rollback("error")
            try:
                await self.backend.rollback_marker()
            except Exception:
                observe_marker_failure("rollback")
                logger.exception("Rollback marker failed")
            return

        observe_rollback("partial" if failed else "success")
        logger.info(
            "Rolled back %d of %d compensations", len(compensations) - failed, len(compensations)
        )
