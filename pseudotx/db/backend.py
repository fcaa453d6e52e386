from __future__ import annotations

from typing import Any, Mapping, Protocol

from .models import Operation, WriteResult


class DataBackend(Protocol):
    """
    Protocol for the data layer the coordinator writes through.

    The markers bracket a logical batch. Whether they isolate anything is up
    to the backend: a hosted backend may treat them as no-ops, in which case
    concurrent readers observe every intermediate write.

    ``atomic`` is True only when the markers are a real transaction; then a
    failing commit marker means the writes are lost and the batch fails.
    """

    atomic: bool

    async def begin_marker(self) -> None:
        """Signal that a logical batch is starting."""
        ...

    async def commit_marker(self) -> None:
        """Signal that a logical batch completed."""
        ...

    async def rollback_marker(self) -> None:
        """Signal that a logical batch is being abandoned."""
        ...

    async def read(
        self,
        collection: str,
        filter: Mapping[str, Any],
    ) -> dict[str, Any] | None:
        """Return the single record matching filter, or None for 0 or >1 matches."""
        ...

    async def write(self, op: Operation) -> WriteResult:
        """Perform one insert/update/delete. Backend errors go in WriteResult.error."""
        ...
