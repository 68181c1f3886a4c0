from __future__ import annotations

from typing import List, Protocol, runtime_checkable

from stxnames.core.models import RecentEvent, ReleaseRecord, TransferRecord, UsernameRecord
from stxnames.normalization.envelope import ApiTransaction


# ---------------------------------------------------------------------------
# ILedgerStore
# ---------------------------------------------------------------------------

@runtime_checkable
class ILedgerStore(Protocol):
    """
    Persistence port for username ownership and its history.

    Domain expectations:
    - Every method is a single statement against the backing store, except a
      cascading `delete_username`, which runs as one transaction.
    - Faults surface as `LedgerStoreError` and are never retried here.
    """

    async def upsert_username(self, record: UsernameRecord) -> UsernameRecord:
        """
        Insert `record`, or replace owner/registered_at/tx_id/block_height
        when the username already exists (last writer wins).
        """
        ...

    async def get_username(self, username: str) -> UsernameRecord | None:
        ...

    async def get_username_by_owner(self, owner: str) -> UsernameRecord | None:
        ...

    async def update_owner(
        self,
        username: str,
        new_owner: str,
        *,
        tx_id: str | None = None,
        block_height: int | None = None,
    ) -> UsernameRecord | None:
        """
        Point `username` at `new_owner` and return the updated record
        (None when the username does not exist).
        """
        ...

    async def delete_username(self, username: str) -> UsernameRecord | None:
        """Delete the active record and return it (None when absent)."""
        ...

    async def insert_transfer(self, record: TransferRecord) -> None:
        ...

    async def insert_release(self, record: ReleaseRecord) -> None:
        ...

    async def list_recent(self, limit: int = 50) -> List[RecentEvent]:
        """
        Union of registrations, transfers and releases, newest first.
        """
        ...

    async def count_usernames(self) -> int:
        ...

    async def has_transaction(self, tx_id: str) -> bool:
        """
        True when `tx_id` was marked processed or any ledger table records it.

        Implementations:
        - Used by durable deduplication (survives restarts)
        """
        ...

    async def mark_transaction(self, tx_id: str) -> None:
        """Record `tx_id` as processed (idempotent)."""
        ...


# ---------------------------------------------------------------------------
# ITransactionsProvider
# ---------------------------------------------------------------------------

@runtime_checkable
class ITransactionsProvider(Protocol):
    """
    Abstract source of recent transactions for one contract (poll mode).

    Domain expectations:
    - Returns transactions newest first, as the indexing API lists them.
    - Raises `UpstreamError` on any transport or protocol failure.
    """

    async def recent_transactions(
        self,
        contract_id: str,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> List[ApiTransaction]:
        ...


# ---------------------------------------------------------------------------
# ISeenTransactions
# ---------------------------------------------------------------------------

@runtime_checkable
class ISeenTransactions(Protocol):
    """
    Set of transaction ids already driven through the engine.

    Implementations:
    - In-memory set (process lifetime only)
    - Memory set backed by the ledger's stored tx ids
    """

    async def contains(self, tx_id: str) -> bool:
        ...

    async def add(self, tx_id: str) -> None:
        ...
