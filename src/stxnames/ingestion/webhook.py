"""Push-mode front door: one webhook body → normalized events → ledger.

The HTTP handler calls `WebhookIngestor.ingest` synchronously inside the
request. Success is reported only after every event in the envelope was
applied or individually skipped; any exception escapes so the handler can
answer 5xx and the upstream redelivers (at-least-once).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from stxnames.core.errors import InvalidEnvelopeError
from stxnames.core.interfaces import ISeenTransactions
from stxnames.core.use_cases.reconcile import ReconcileStats, ReconciliationEngine
from stxnames.ingestion.dedup import InMemorySeenTransactions
from stxnames.normalization.envelope import Envelope
from stxnames.normalization.normalizer import normalize

logger = logging.getLogger(__name__)


def parse_envelope(payload: Any) -> Envelope:
    """Validate a webhook body (`{"event": envelope}` or a bare envelope)."""
    if not isinstance(payload, Mapping):
        raise InvalidEnvelopeError(f"expected a JSON object, got {type(payload).__name__}")
    body = payload.get("event") or payload
    try:
        return Envelope.model_validate(body)
    except ValidationError as e:
        raise InvalidEnvelopeError(str(e)) from e


class WebhookIngestor:
    """Drive webhook envelopes through normalization and reconciliation.

    Parameters
    ----------
    engine : ReconciliationEngine
        Applies each event to the ledger.
    seen : ISeenTransactions | None
        Transactions already applied; redelivered ones are skipped.
    contract_id : str | None
        Monitored contract; operations naming another contract are ignored.
    """

    def __init__(
        self,
        engine: ReconciliationEngine,
        *,
        seen: ISeenTransactions | None = None,
        contract_id: str | None = None,
    ) -> None:
        self.engine = engine
        self.seen = seen if seen is not None else InMemorySeenTransactions()
        self.contract_id = contract_id

    async def ingest(self, payload: Any) -> ReconcileStats:
        envelope = parse_envelope(payload)
        return await self.ingest_envelope(envelope)

    async def ingest_envelope(self, envelope: Envelope) -> ReconcileStats:
        stats = ReconcileStats()
        in_this_envelope: set[str] = set()

        for event in normalize(envelope, contract_id=self.contract_id):
            stats.events += 1
            if event.tx_id not in in_this_envelope and await self.seen.contains(event.tx_id):
                logger.debug("duplicate delivery of tx %s ignored", event.tx_id)
                stats.duplicates += 1
                continue
            try:
                outcome = await self.engine.apply(event)
            except Exception:
                stats.failed += 1
                logger.exception("failed to apply %s for %s (tx %s)", event.kind.value, event.username, event.tx_id)
                raise
            stats.record(outcome)
            in_this_envelope.add(event.tx_id)
            await self.seen.add(event.tx_id)

        logger.info(
            "envelope processed: events=%d applied=%d skipped=%d duplicates=%d",
            stats.events, stats.applied, stats.skipped, stats.duplicates,
        )
        return stats
