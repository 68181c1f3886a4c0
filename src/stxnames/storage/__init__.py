"""Ledger persistence.

This package provides:
- DuckDBLedgerStore: ILedgerStore over an embedded DuckDB database
"""

from stxnames.storage.ledger import DuckDBLedgerStore

__all__ = [
    "DuckDBLedgerStore",
]
