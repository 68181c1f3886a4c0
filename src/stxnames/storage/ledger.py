"""DuckDB-backed Ledger Store.

`DuckDBLedgerStore` implements `ILedgerStore` over an embedded DuckDB
database (a file path or ``":memory:"``).

Every public method runs one statement on its own cursor in a worker
thread (`asyncio.to_thread`), so the event loop never blocks on I/O and
concurrent callers never share a cursor. Any `duckdb.Error` is re-raised
as `LedgerStoreError`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

import duckdb

from stxnames.core.errors import LedgerStoreError
from stxnames.core.interfaces import ILedgerStore
from stxnames.core.models import RecentEvent, ReleaseRecord, TransferRecord, UsernameRecord
from stxnames.storage import sql_queries

logger = logging.getLogger(__name__)

Row = tuple[Any, ...]


def _username_from_row(row: Row | None) -> UsernameRecord | None:
    if row is None:
        return None
    username, owner, registered_at, tx_id, block_height = row
    return UsernameRecord(
        username=username,
        owner=owner,
        registered_at=int(registered_at),
        tx_id=tx_id,
        block_height=int(block_height),
    )


class DuckDBLedgerStore(ILedgerStore):
    """Ledger Store over one DuckDB database.

    Parameters
    ----------
    path : str
        Database file, or ``":memory:"`` for a throwaway store.
    cascade_history_on_release : bool
        When True, deleting a username also deletes its transfer and release
        rows (the history of a released name is lost). Default keeps history.
    """

    def __init__(self, path: str = ":memory:", *, cascade_history_on_release: bool = False) -> None:
        self.path = path
        self.cascade_history_on_release = cascade_history_on_release
        try:
            self._con = duckdb.connect(path)
        except duckdb.Error as e:
            raise LedgerStoreError(f"cannot open ledger at {path}: {e}") from e

    # ---- low-level helpers (run in worker threads) ----

    def _run(self, sql: str, params: Sequence[Any] = (), *, fetch: str | None = None) -> Any:
        try:
            with self._con.cursor() as cur:
                cur.execute(sql, list(params))
                if fetch == "one":
                    return cur.fetchone()
                if fetch == "all":
                    return cur.fetchall()
                return None
        except duckdb.Error as e:
            raise LedgerStoreError(f"{type(e).__name__}: {e}") from e

    async def _exec(self, sql: str, params: Sequence[Any] = ()) -> None:
        await asyncio.to_thread(self._run, sql, params)

    async def _one(self, sql: str, params: Sequence[Any] = ()) -> Row | None:
        return await asyncio.to_thread(self._run, sql, params, fetch="one")

    async def _all(self, sql: str, params: Sequence[Any] = ()) -> list[Row]:
        return await asyncio.to_thread(self._run, sql, params, fetch="all")

    # ---- lifecycle ----

    def create_schema(self) -> None:
        """Create tables, sequences and indexes (idempotent)."""
        for stmt in sql_queries.SCHEMA_STATEMENTS:
            self._run(stmt)
        logger.debug("ledger schema ready at %s", self.path)

    async def initialize(self) -> None:
        await asyncio.to_thread(self.create_schema)

    def close(self) -> None:
        self._con.close()

    # ---- usernames ----

    async def upsert_username(self, record: UsernameRecord) -> UsernameRecord:
        await self._exec(
            sql_queries.UPSERT_USERNAME,
            [record.username, record.owner, record.registered_at, record.tx_id, record.block_height],
        )
        return record

    async def get_username(self, username: str) -> UsernameRecord | None:
        return _username_from_row(await self._one(sql_queries.GET_USERNAME, [username]))

    async def get_username_by_owner(self, owner: str) -> UsernameRecord | None:
        return _username_from_row(await self._one(sql_queries.GET_USERNAME_BY_OWNER, [owner]))

    async def list_usernames(self, limit: int = 100, offset: int = 0) -> list[UsernameRecord]:
        rows = await self._all(sql_queries.LIST_USERNAMES, [limit, offset])
        return [_username_from_row(r) for r in rows]

    async def count_usernames(self) -> int:
        row = await self._one(sql_queries.COUNT_USERNAMES)
        return int(row[0]) if row else 0

    async def update_owner(
        self,
        username: str,
        new_owner: str,
        *,
        tx_id: str | None = None,
        block_height: int | None = None,
    ) -> UsernameRecord | None:
        row = await self._one(sql_queries.UPDATE_OWNER, [new_owner, tx_id, block_height, username])
        return _username_from_row(row)

    def _delete_username(self, username: str) -> Row | None:
        if not self.cascade_history_on_release:
            return self._run(sql_queries.DELETE_USERNAME, [username], fetch="one")
        try:
            with self._con.cursor() as cur:
                cur.execute("BEGIN TRANSACTION")
                try:
                    cur.execute(sql_queries.DELETE_USERNAME, [username])
                    row = cur.fetchone()
                    cur.execute(sql_queries.DELETE_TRANSFERS_FOR, [username])
                    cur.execute(sql_queries.DELETE_RELEASES_FOR, [username])
                    cur.execute("COMMIT")
                except duckdb.Error:
                    cur.execute("ROLLBACK")
                    raise
                return row
        except duckdb.Error as e:
            raise LedgerStoreError(f"{type(e).__name__}: {e}") from e

    async def delete_username(self, username: str) -> UsernameRecord | None:
        row = await asyncio.to_thread(self._delete_username, username)
        return _username_from_row(row)

    # ---- history ----

    async def insert_transfer(self, record: TransferRecord) -> None:
        await self._exec(
            sql_queries.INSERT_TRANSFER,
            [
                record.username,
                record.from_owner,
                record.to_owner,
                record.tx_id,
                record.block_height,
                record.timestamp,
            ],
        )

    async def insert_release(self, record: ReleaseRecord) -> None:
        await self._exec(
            sql_queries.INSERT_RELEASE,
            [record.username, record.previous_owner, record.tx_id, record.block_height, record.timestamp],
        )

    async def list_transfers(self, username: str) -> list[TransferRecord]:
        rows = await self._all(sql_queries.LIST_TRANSFERS, [username])
        return [
            TransferRecord(
                username=u, from_owner=f, to_owner=t, tx_id=tx, block_height=int(h), timestamp=int(ts)
            )
            for u, f, t, tx, h, ts in rows
        ]

    async def list_releases(self, username: str) -> list[ReleaseRecord]:
        rows = await self._all(sql_queries.LIST_RELEASES, [username])
        return [
            ReleaseRecord(username=u, previous_owner=p, tx_id=tx, block_height=int(h), timestamp=int(ts))
            for u, p, tx, h, ts in rows
        ]

    async def list_recent(self, limit: int = 50) -> list[RecentEvent]:
        rows = await self._all(sql_queries.LIST_RECENT, [limit])
        return [
            RecentEvent(
                event_type=et, username=u, event_owner=o, tx_id=tx, block_height=int(h), timestamp=int(ts)
            )
            for et, u, o, tx, h, ts in rows
        ]

    # ---- dedup ----

    async def has_transaction(self, tx_id: str) -> bool:
        row = await self._one(sql_queries.HAS_TRANSACTION, [tx_id] * 4)
        return bool(row and row[0])

    async def mark_transaction(self, tx_id: str) -> None:
        await self._exec(sql_queries.MARK_TRANSACTION, [tx_id])
