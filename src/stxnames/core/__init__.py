"""Core data models, configuration, ports and use cases.

This package provides:
- Data models (UsernameRecord, TransferRecord, ReleaseRecord, NormalizedEvent)
- Configuration (IndexerConfig)
- Ports (ILedgerStore, ITransactionsProvider, ISeenTransactions)
- Error hierarchy (StxNamesError and subclasses)
"""

from stxnames.core.config import IndexerConfig
from stxnames.core.errors import InvalidEnvelopeError, LedgerStoreError, StxNamesError, UpstreamError
from stxnames.core.models import (
    EventKind,
    RecentEvent,
    RegisterEvent,
    ReleaseEvent,
    ReleaseRecord,
    TransferEvent,
    TransferRecord,
    UsernameRecord,
)

__all__ = [
    "IndexerConfig",
    "StxNamesError",
    "LedgerStoreError",
    "UpstreamError",
    "InvalidEnvelopeError",
    "EventKind",
    "RecentEvent",
    "RegisterEvent",
    "TransferEvent",
    "ReleaseEvent",
    "UsernameRecord",
    "TransferRecord",
    "ReleaseRecord",
]
