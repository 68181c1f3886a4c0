from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from stxnames.core.interfaces import ILedgerStore
from stxnames.core.models import (
    NormalizedEvent,
    RegisterEvent,
    ReleaseEvent,
    ReleaseRecord,
    TransferEvent,
    TransferRecord,
    UsernameRecord,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Outcome
# ---------------------------------------------------------------------------


class Outcome(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"  # no active record to transfer/release


@dataclass(kw_only=True)
class ReconcileStats:
    """
    Counters for one unit of work (an envelope or a poll tick).

    Mutated by the front doors as events flow through the engine.
    """

    events: int = 0
    applied: int = 0
    skipped: int = 0
    duplicates: int = 0
    failed: int = 0

    def record(self, outcome: Outcome) -> None:
        if outcome is Outcome.APPLIED:
            self.applied += 1
        else:
            self.skipped += 1


# ---------------------------------------------------------------------------
# Domain service – ReconciliationEngine
# ---------------------------------------------------------------------------


class ReconciliationEngine:
    """
    Apply normalized events to the ledger.

    Rules
    -----
    - register: upsert keyed by username (last writer wins), so a redelivered
      register converges to the same state.
    - transfer: read the active record; absent → skip. Otherwise write the
      history row first, then move the owner pointer. A crash in between
      leaves correct history and a stale pointer, never the reverse.
    - release: read the active record; absent → skip. Otherwise write the
      release row first, then delete the active record.

    Transfer and release are not idempotent on their own; callers deduplicate
    by tx_id before calling `apply`. Storage errors propagate unchanged.
    """

    def __init__(self, store: ILedgerStore) -> None:
        self._store = store

    async def apply(self, event: NormalizedEvent) -> Outcome:
        match event:
            case RegisterEvent():
                return await self._register(event)
            case TransferEvent():
                return await self._transfer(event)
            case ReleaseEvent():
                return await self._release(event)
        raise RuntimeError(f"Unsupported event type {type(event).__name__}")

    async def _register(self, ev: RegisterEvent) -> Outcome:
        await self._store.upsert_username(
            UsernameRecord(
                username=ev.username,
                owner=ev.sender,
                registered_at=ev.timestamp,
                tx_id=ev.tx_id,
                block_height=ev.block_height,
            )
        )
        logger.info("registered %s -> %s (tx %s, block %d)", ev.username, ev.sender, ev.tx_id, ev.block_height)
        return Outcome.APPLIED

    async def _transfer(self, ev: TransferEvent) -> Outcome:
        current = await self._store.get_username(ev.username)
        if current is None:
            logger.warning("skip transfer of %s (tx %s): no active record", ev.username, ev.tx_id)
            return Outcome.SKIPPED

        await self._store.insert_transfer(
            TransferRecord(
                username=ev.username,
                from_owner=current.owner,
                to_owner=ev.new_owner,
                tx_id=ev.tx_id,
                block_height=ev.block_height,
                timestamp=ev.timestamp,
            )
        )
        await self._store.update_owner(
            ev.username,
            ev.new_owner,
            tx_id=ev.tx_id,
            block_height=ev.block_height,
        )
        logger.info(
            "transferred %s %s -> %s (tx %s, block %d)",
            ev.username, current.owner, ev.new_owner, ev.tx_id, ev.block_height,
        )
        return Outcome.APPLIED

    async def _release(self, ev: ReleaseEvent) -> Outcome:
        current = await self._store.get_username(ev.username)
        if current is None:
            logger.warning("skip release of %s (tx %s): no active record", ev.username, ev.tx_id)
            return Outcome.SKIPPED

        await self._store.insert_release(
            ReleaseRecord(
                username=ev.username,
                previous_owner=current.owner,
                tx_id=ev.tx_id,
                block_height=ev.block_height,
                timestamp=ev.timestamp,
            )
        )
        await self._store.delete_username(ev.username)
        logger.info(
            "released %s (previous owner %s, tx %s, block %d)",
            ev.username, current.owner, ev.tx_id, ev.block_height,
        )
        return Outcome.APPLIED
