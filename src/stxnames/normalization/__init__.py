"""Upstream payload models and the envelope normalizer.

This package provides:
- Lenient pydantic models for webhook envelopes and API transactions
- `normalize` / `normalize_transaction` producing canonical events
"""

from stxnames.normalization.envelope import ApiTransaction, Envelope
from stxnames.normalization.normalizer import normalize, normalize_transaction

__all__ = [
    "ApiTransaction",
    "Envelope",
    "normalize",
    "normalize_transaction",
]
