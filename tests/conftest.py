from unittest.mock import AsyncMock

import pytest

from stxnames.core.use_cases.reconcile import ReconciliationEngine
from stxnames.storage.ledger import DuckDBLedgerStore


@pytest.fixture
def store():
    ledger = DuckDBLedgerStore(":memory:")
    ledger.create_schema()
    yield ledger
    ledger.close()


@pytest.fixture
def cascade_store():
    ledger = DuckDBLedgerStore(":memory:", cascade_history_on_release=True)
    ledger.create_schema()
    yield ledger
    ledger.close()


@pytest.fixture
def engine(store: DuckDBLedgerStore) -> ReconciliationEngine:
    return ReconciliationEngine(store)


@pytest.fixture
def mock_provider():
    provider = AsyncMock()
    provider.recent_transactions = AsyncMock(return_value=[])
    return provider
