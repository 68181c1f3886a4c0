from __future__ import annotations

from .core.models import (
    EventKind,
    NormalizedEvent,
    RegisterEvent,
    ReleaseEvent,
    ReleaseRecord,
    TransferEvent,
    TransferRecord,
    UsernameRecord,
)
from .core.use_cases.reconcile import Outcome, ReconciliationEngine
from .decoding.clarity import decode_from_blob, decode_typed
from .normalization.normalizer import normalize, normalize_transaction

__all__ = [
    "EventKind",
    "NormalizedEvent",
    "RegisterEvent",
    "TransferEvent",
    "ReleaseEvent",
    "UsernameRecord",
    "TransferRecord",
    "ReleaseRecord",
    "ReconciliationEngine",
    "Outcome",
    "decode_typed",
    "decode_from_blob",
    "normalize",
    "normalize_transaction",
]
