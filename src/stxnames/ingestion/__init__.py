"""Ingestion front doors.

This package provides:
- WebhookIngestor: push mode (one envelope per request)
- TransactionPoller: pull mode (recurring listing of recent transactions)
- Seen-transaction sets used to deduplicate deliveries
"""

from stxnames.ingestion.dedup import InMemorySeenTransactions, LedgerSeenTransactions
from stxnames.ingestion.poller import PollStats, TransactionPoller
from stxnames.ingestion.webhook import WebhookIngestor, parse_envelope

__all__ = [
    "InMemorySeenTransactions",
    "LedgerSeenTransactions",
    "PollStats",
    "TransactionPoller",
    "WebhookIngestor",
    "parse_envelope",
]
