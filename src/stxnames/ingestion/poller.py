"""Pull-mode front door: periodically list recent contract transactions.

Each tick:
1) fetch one page of recent transactions (upstream failure → empty tick),
2) keep successful register/transfer/release calls not seen before,
3) apply them oldest first, one at a time.

A storage fault aborts only the transaction it happened on; that
transaction stays unseen and is retried next tick. Ticks never overlap.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from stxnames.core.errors import LedgerStoreError, UpstreamError
from stxnames.core.interfaces import ISeenTransactions, ITransactionsProvider
from stxnames.core.use_cases.reconcile import ReconcileStats, ReconciliationEngine
from stxnames.ingestion.dedup import InMemorySeenTransactions
from stxnames.normalization.envelope import ApiTransaction
from stxnames.normalization.normalizer import is_candidate, normalize_transaction

logger = logging.getLogger(__name__)


@dataclass(kw_only=True)
class PollStats(ReconcileStats):
    """Per-tick counters (adds upstream-level numbers)."""

    fetched: int = 0
    upstream_failed: bool = False


def chain_order(txs: list[ApiTransaction]) -> list[ApiTransaction]:
    """Oldest first: reverse the newest-first listing, then stable-sort by height."""
    return sorted(reversed(txs), key=lambda t: t.block_height or 0)


class TransactionPoller:
    """Recurring poller for one contract.

    Parameters
    ----------
    provider : ITransactionsProvider
        Source of recent transactions (e.g. `StacksAPI`).
    engine : ReconciliationEngine
        Applies each event to the ledger.
    contract_id : str
        `<address>.<name>` of the monitored contract.
    limit : int
        Page size requested per tick.
    seen : ISeenTransactions | None
        Processed transaction ids; defaults to a process-scoped set.
    """

    def __init__(
        self,
        provider: ITransactionsProvider,
        engine: ReconciliationEngine,
        *,
        contract_id: str,
        limit: int = 50,
        seen: ISeenTransactions | None = None,
    ) -> None:
        self.provider = provider
        self.engine = engine
        self.contract_id = contract_id
        self.limit = limit
        self.seen = seen if seen is not None else InMemorySeenTransactions()
        self._tick_lock = asyncio.Lock()

    async def fetch(self) -> list[ApiTransaction] | None:
        """One page of transactions, or None when the upstream call failed."""
        try:
            return await self.provider.recent_transactions(self.contract_id, limit=self.limit)
        except UpstreamError as e:
            logger.error("fetching transactions for %s failed: %s", self.contract_id, e)
            return None

    async def _process(self, tx: ApiTransaction, stats: PollStats) -> None:
        event = normalize_transaction(tx, contract_id=self.contract_id)
        if event is None:
            # decoding cannot improve on a retry
            await self.seen.add(tx.tx_id)
            stats.skipped += 1
            return
        stats.events += 1
        try:
            outcome = await self.engine.apply(event)
        except LedgerStoreError:
            stats.failed += 1
            logger.exception("storage error applying tx %s; will retry next tick", tx.tx_id)
            return
        stats.record(outcome)
        await self.seen.add(tx.tx_id)

    async def poll_once(self) -> PollStats | None:
        """Run one tick; returns None if the previous tick is still running."""
        if self._tick_lock.locked():
            logger.warning("previous poll still running; skipping tick")
            return None

        async with self._tick_lock:
            stats = PollStats()
            txs = await self.fetch()
            if txs is None:
                stats.upstream_failed = True
                return stats
            stats.fetched = len(txs)

            for tx in chain_order(txs):
                if not is_candidate(tx, contract_id=self.contract_id):
                    continue
                if not tx.tx_id:
                    logger.warning("skip %s call without tx_id", tx.function_name)
                    stats.skipped += 1
                    continue
                if await self.seen.contains(tx.tx_id):
                    stats.duplicates += 1
                    continue
                await self._process(tx, stats)

            if stats.events or stats.skipped or stats.failed:
                logger.info(
                    "poll: fetched=%d applied=%d skipped=%d failed=%d",
                    stats.fetched, stats.applied, stats.skipped, stats.failed,
                )
            else:
                logger.info("poll: fetched=%d, no new transactions", stats.fetched)
            return stats

    async def run(
        self,
        *,
        interval_s: float,
        stop: asyncio.Event | None = None,
        max_ticks: int | None = None,
    ) -> int:
        """Poll every `interval_s` until `stop` is set (or `max_ticks` ran).

        Returns the number of ticks executed.
        """
        stop = stop or asyncio.Event()
        ticks = 0
        while not stop.is_set():
            try:
                await self.poll_once()
            except Exception:
                logger.exception("poll tick crashed; continuing on next tick")
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval_s)
            except asyncio.TimeoutError:
                pass
        return ticks
