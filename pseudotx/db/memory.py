from __future__ import annotations

import copy
from collections import defaultdict
from typing import Any, Callable, Mapping

from .models import DeleteOp, InsertOp, Operation, UpdateOp, WriteResult


def _matches(record: Mapping[str, Any], filter: Mapping[str, Any]) -> bool:
    return all(record.get(col) == val for col, val in filter.items())


class MemoryBackend:
    """
    In-memory DataBackend, mainly for tests and local wiring.

    Records are plain dicts held in per-collection lists. Every marker and
    write is appended to ``calls`` as ``(name, detail)`` so callers can assert
    ordering.

    With ``transactional=False`` (default) the markers are recorded no-ops,
    like a hosted backend without client transactions. With
    ``transactional=True`` the store is snapshotted on ``begin_marker`` and
    restored on ``rollback_marker``.

    Usage:
        backend = MemoryBackend()
        backend.seed("wallets", [{"id": 1, "user_id": "u1", "balance": 500}])
        backend.fail_when(lambda op: op.collection == "ledger", "constraint violation")
    """

    def __init__(self, transactional: bool = False, id_column: str = "id") -> None:
        self.transactional = transactional
        self.atomic = transactional
        self.id_column = id_column
        self.collections: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.calls: list[tuple[str, Any]] = []
        self._failures: list[tuple[Callable[[Operation], bool], str]] = []
        self._snapshot: dict[str, list[dict[str, Any]]] | None = None

    def seed(self, collection: str, records: list[dict[str, Any]]) -> None:
        for record in records:
            self.collections[collection].append(dict(record))

    def rows(self, collection: str) -> list[dict[str, Any]]:
        return [dict(r) for r in self.collections.get(collection, [])]

    def _next_id(self, records: list[dict[str, Any]]) -> int:
        ids = [r[self.id_column] for r in records if isinstance(r.get(self.id_column), int)]
        return max(ids, default=0) + 1

    def fail_when(self, predicate: Callable[[Operation], bool], message: str) -> None:
        """Report ``message`` as the write error for every op matching predicate."""
        self._failures.append((predicate, message))

    @property
    def marker_calls(self) -> list[str]:
        return [name for name, _ in self.calls if name.endswith("_marker")]

    @property
    def writes(self) -> list[Operation]:
        return [detail for name, detail in self.calls if name == "write"]

    async def begin_marker(self) -> None:
        self.calls.append(("begin_marker", None))
        if self.transactional:
            self._snapshot = copy.deepcopy(dict(self.collections))

    async def commit_marker(self) -> None:
        self.calls.append(("commit_marker", None))
        self._snapshot = None

    async def rollback_marker(self) -> None:
        self.calls.append(("rollback_marker", None))
        if self.transactional and self._snapshot is not None:
            self.collections = defaultdict(list, self._snapshot)
            self._snapshot = None

    async def read(
        self,
        collection: str,
        filter: Mapping[str, Any],
    ) -> dict[str, Any] | None:
        self.calls.append(("read", (collection, dict(filter))))
        found = [r for r in self.collections.get(collection, []) if _matches(r, filter)]
        if len(found) != 1:
            return None
        return dict(found[0])

    async def write(self, op: Operation) -> WriteResult:
        self.calls.append(("write", op))
        for predicate, message in self._failures:
            if predicate(op):
                return WriteResult(error=message)

        records = self.collections[op.collection]
        if isinstance(op, InsertOp):
            record = dict(op.payload)
            if self.id_column not in record:
                record[self.id_column] = self._next_id(records)
            records.append(record)
            return WriteResult(rowcount=1)

        targets = [r for r in records if _matches(r, op.match)]
        if isinstance(op, UpdateOp):
            for record in targets:
                record.update(op.payload)
        elif isinstance(op, DeleteOp):
            self.collections[op.collection] = [r for r in records if not _matches(r, op.match)]
        else:
            raise TypeError(f"Unsupported operation: {op!r}")
        return WriteResult(rowcount=len(targets))
