import asyncio
from pathlib import Path

import duckdb

from stxnames.clients.hiro import StacksAPI
from stxnames.core.config import IndexerConfig
from stxnames.core.use_cases.reconcile import ReconciliationEngine
from stxnames.ingestion.poller import TransactionPoller
from stxnames.log import configure_logging
from stxnames.storage.ledger import DuckDBLedgerStore

EXAMPLES_ROOT = Path(__file__).parent
assert EXAMPLES_ROOT.name == "examples"
OUT_ROOT = EXAMPLES_ROOT.parent / "data_examples"
OUT_ROOT.mkdir(exist_ok=True)

config = IndexerConfig(
    database_path=str(OUT_ROOT / "username-registry-v2.duckdb"),
    poll_limit=50,
)


async def fetch_data():
    store = DuckDBLedgerStore(config.database_path)
    await store.initialize()
    try:
        async with StacksAPI(config.api_url, timeout_s=config.request_timeout_s) as api:
            poller = TransactionPoller(
                api,
                ReconciliationEngine(store),
                contract_id=config.contract_id,
                limit=config.poll_limit,
            )
            return await poller.poll_once()
    finally:
        store.close()


async def main():
    configure_logging("INFO")
    stats = await fetch_data()
    print(stats)

    # Read the ledger back with plain duckdb
    con = duckdb.connect(config.database_path, read_only=True)
    print(con.execute("SELECT COUNT(*) FROM usernames").fetchone()[0])

    q = """
    SELECT username, owner, block_height
    FROM usernames
    ORDER BY registered_at DESC
    LIMIT 10
    """
    for row in con.execute(q).fetchall():
        print(row)

    q = """
    SELECT username, from_owner, to_owner, block_height
    FROM transfers
    ORDER BY block_height DESC
    LIMIT 10
    """
    for row in con.execute(q).fetchall():
        print(row)
    con.close()


asyncio.run(main())
