"""Exception hierarchy shared by the ingestion pipeline.

Decode problems are never exceptions (the decoder returns None); only
storage faults, upstream failures and unreadable webhook bodies are.
"""

from __future__ import annotations


class StxNamesError(Exception):
    """Base class for all indexer errors."""


class LedgerStoreError(StxNamesError):
    """A Ledger Store statement failed (connectivity, constraint, SQL)."""


class UpstreamError(StxNamesError):
    """The indexing API failed, timed out, or returned an unusable body."""


class InvalidEnvelopeError(StxNamesError):
    """A webhook body could not be validated as an envelope."""
