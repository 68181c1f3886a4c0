from __future__ import annotations

from stxnames.core.interfaces import ILedgerStore, ISeenTransactions


class InMemorySeenTransactions(ISeenTransactions):
    """Process-scoped seen-set: starts empty, only grows, lost on restart."""

    def __init__(self) -> None:
        self._ids: set[str] = set()

    async def contains(self, tx_id: str) -> bool:
        return tx_id in self._ids

    async def add(self, tx_id: str) -> None:
        self._ids.add(tx_id)

    def __len__(self) -> int:
        return len(self._ids)


class LedgerSeenTransactions(InMemorySeenTransactions):
    """Seen-set that also consults the ledger, so it survives restarts."""

    def __init__(self, store: ILedgerStore) -> None:
        super().__init__()
        self._store = store

    async def contains(self, tx_id: str) -> bool:
        if await super().contains(tx_id):
            return True
        if await self._store.has_transaction(tx_id):
            await super().add(tx_id)
            return True
        return False

    async def add(self, tx_id: str) -> None:
        await self._store.mark_transaction(tx_id)
        await super().add(tx_id)
