from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncTransaction

from ..config import MarkerConfig, MarkerMode
from ..errors import BackendWriteError
from .helpers import build_rpc, build_select, build_write
from .models import Operation, WriteResult

logger = logging.getLogger(__name__)


async def _fetch_single(
    conn: AsyncConnection, collection: str, filter: Mapping[str, Any]
) -> dict[str, Any] | None:
    stmt, params = build_select(collection, filter)
    result = await conn.execute(stmt, params)
    rows = [dict(row) for row in result.mappings()]
    if len(rows) != 1:
        if rows:
            logger.debug(
                "Pre-image lookup on %s matched more than one record; treating as no match",
                collection,
            )
        return None
    return rows[0]


def _error_message(exc: SQLAlchemyError) -> str:
    # Prefer the driver's own message over SQLAlchemy's wrapper text
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


async def _apply(conn: AsyncConnection, op: Operation) -> int:
    stmt, params = build_write(op)
    result = await conn.execute(stmt, params)
    return result.rowcount if result.rowcount is not None else 0


class SqlBackend:
    """
    DataBackend over a SQLAlchemy AsyncEngine without a shared transaction.

    Every read and write runs in its own short transaction, the way a hosted
    REST backend applies each request. Markers are either no-ops
    (``MarkerMode.NONE``) or calls to parameterless stored functions
    (``MarkerMode.RPC``); in neither case are the writes scoped to them
    unless the database implements that server-side. A failing marker is
    raised as BackendWriteError with the driver message; the coordinator
    logs it and carries on because this backend is not ``atomic``.

    Usage:
        engine = create_async_engine("postgresql+asyncpg://...")
        backend = SqlBackend(engine, MarkerConfig(mode=MarkerMode.RPC))
        result = await TransactionCoordinator(backend).execute(ops)
    """

    atomic = False

    def __init__(self, engine: AsyncEngine, config: MarkerConfig | None = None) -> None:
        self.engine = engine
        self.config = config or MarkerConfig()

    async def _call_marker(self, function_name: str) -> None:
        if self.config.mode == MarkerMode.NONE:
            return
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(build_rpc(function_name))
                result.close()
        except SQLAlchemyError as exc:
            raise BackendWriteError(_error_message(exc)) from exc

    async def begin_marker(self) -> None:
        await self._call_marker(self.config.begin_rpc)

    async def commit_marker(self) -> None:
        await self._call_marker(self.config.commit_rpc)

    async def rollback_marker(self) -> None:
        await self._call_marker(self.config.rollback_rpc)

    async def read(
        self,
        collection: str,
        filter: Mapping[str, Any],
    ) -> dict[str, Any] | None:
        async with self.engine.connect() as conn:
            return await _fetch_single(conn, collection, filter)

    async def write(self, op: Operation) -> WriteResult:
        try:
            async with self.engine.begin() as conn:
                rowcount = await _apply(conn, op)
        except SQLAlchemyError as exc:
            message = _error_message(exc)
            logger.warning(
                "%s on %s failed: %s", op.kind.value, op.collection, message
            )
            return WriteResult(error=message)
        return WriteResult(rowcount=rowcount)


class NativeSqlBackend:
    """
    DataBackend that maps the markers onto a real database transaction.

    ``begin_marker`` opens a connection and begins a transaction; reads and
    writes go through it; ``commit_marker`` commits and ``rollback_marker``
    rolls back. The connection is closed after either.

    ⚠️ One batch at a time per instance. Create one backend per concurrent
    coordinator call.
    """

    atomic = True

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self._conn: AsyncConnection | None = None
        self._tx: AsyncTransaction | None = None

    @property
    def in_transaction(self) -> bool:
        return self._tx is not None

    def _connection(self) -> AsyncConnection:
        if self._conn is None:
            raise RuntimeError("NativeSqlBackend has no open transaction; call begin_marker() first")
        return self._conn

    async def _close(self) -> None:
        conn = self._conn
        self._conn = None
        self._tx = None
        if conn is not None:
            await conn.close()

    async def begin_marker(self) -> None:
        if self._conn is not None:
            raise RuntimeError("NativeSqlBackend already has an open transaction; nested batches are not allowed")
        conn = await self.engine.connect()
        try:
            self._tx = await conn.begin()
        except Exception:
            await conn.close()
            raise
        self._conn = conn

    async def commit_marker(self) -> None:
        if self._tx is None:
            raise RuntimeError("NativeSqlBackend has no open transaction to commit")
        try:
            await self._tx.commit()
        except SQLAlchemyError as exc:
            raise BackendWriteError(_error_message(exc)) from exc
        finally:
            await self._close()

    async def rollback_marker(self) -> None:
        if self._tx is None:
            logger.debug("rollback_marker called with no open transaction")
            return
        try:
            await self._tx.rollback()
        finally:
            await self._close()

    async def read(
        self,
        collection: str,
        filter: Mapping[str, Any],
    ) -> dict[str, Any] | None:
        return await _fetch_single(self._connection(), collection, filter)

    async def write(self, op: Operation) -> WriteResult:
        conn = self._connection()
        try:
            rowcount = await _apply(conn, op)
        except SQLAlchemyError as exc:
            message = _error_message(exc)
            logger.warning(
                "%s on %s failed: %s", op.kind.value, op.collection, message
            )
            return WriteResult(error=message)
        return WriteResult(rowcount=rowcount)
