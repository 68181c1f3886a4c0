import pytest
from fastapi.testclient import TestClient

from stxnames.core.config import IndexerConfig
from stxnames.core.errors import InvalidEnvelopeError, LedgerStoreError
from stxnames.core.use_cases.reconcile import ReconciliationEngine
from stxnames.api.server import create_app
from stxnames.ingestion.dedup import InMemorySeenTransactions, LedgerSeenTransactions
from stxnames.ingestion.webhook import WebhookIngestor, parse_envelope
from stxnames.storage.ledger import DuckDBLedgerStore

from payloads import (
    ALICE,
    BOB,
    CONTRACT_ID,
    block,
    envelope,
    register_tx,
    release_tx,
    transfer_tx,
    wrapped,
)


def lifecycle_envelope():
    return envelope(
        block(100, register_tx("alice", ALICE, "0xt1")),
        block(101, transfer_tx("alice", ALICE, BOB, "0xt2")),
    )


@pytest.fixture
def ingestor(engine: ReconciliationEngine) -> WebhookIngestor:
    return WebhookIngestor(engine, contract_id=CONTRACT_ID)


# ---- parse_envelope ----


def test_parse_envelope_accepts_bare_and_wrapped() -> None:
    bare = parse_envelope(lifecycle_envelope())
    inner = parse_envelope(wrapped(lifecycle_envelope()))

    assert len(bare.apply) == len(inner.apply) == 2


@pytest.mark.parametrize("payload", [[1, 2], "text", None, {"apply": "nope"}])
def test_parse_envelope_rejects_malformed(payload) -> None:
    with pytest.raises(InvalidEnvelopeError):
        parse_envelope(payload)


# ---- ingestor ----


@pytest.mark.asyncio
async def test_ingest_applies_in_order(ingestor: WebhookIngestor, store: DuckDBLedgerStore) -> None:
    stats = await ingestor.ingest(wrapped(lifecycle_envelope()))

    assert (stats.events, stats.applied, stats.skipped, stats.duplicates) == (2, 2, 0, 0)
    record = await store.get_username("alice")
    assert record is not None and record.owner == BOB


@pytest.mark.asyncio
async def test_redelivery_is_ignored(ingestor: WebhookIngestor, store: DuckDBLedgerStore) -> None:
    await ingestor.ingest(lifecycle_envelope())

    stats = await ingestor.ingest(lifecycle_envelope())

    assert (stats.applied, stats.duplicates) == (0, 2)
    assert len(await store.list_transfers("alice")) == 1


@pytest.mark.asyncio
async def test_skipped_transfer_is_counted(ingestor: WebhookIngestor, store: DuckDBLedgerStore) -> None:
    stats = await ingestor.ingest(envelope(block(101, transfer_tx("ghost", ALICE, BOB, "0xt2"))))

    assert (stats.applied, stats.skipped) == (0, 1)


@pytest.mark.asyncio
async def test_storage_error_escapes_and_retry_succeeds(
    ingestor: WebhookIngestor, store: DuckDBLedgerStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    real_insert = store.insert_transfer

    async def broken(record):
        raise LedgerStoreError("disk full")

    monkeypatch.setattr(store, "insert_transfer", broken)
    with pytest.raises(LedgerStoreError):
        await ingestor.ingest(lifecycle_envelope())

    # register applied, transfer not marked seen: redelivery finishes the job
    monkeypatch.setattr(store, "insert_transfer", real_insert)
    stats = await ingestor.ingest(lifecycle_envelope())

    assert (stats.applied, stats.duplicates) == (1, 1)
    record = await store.get_username("alice")
    assert record is not None and record.owner == BOB


@pytest.mark.asyncio
async def test_durable_dedup_survives_new_ingestor(engine: ReconciliationEngine, store: DuckDBLedgerStore) -> None:
    first = WebhookIngestor(engine, seen=LedgerSeenTransactions(store))
    await first.ingest(lifecycle_envelope())

    second = WebhookIngestor(engine, seen=LedgerSeenTransactions(store))
    stats = await second.ingest(lifecycle_envelope())

    assert (stats.applied, stats.duplicates) == (0, 2)
    assert len(await store.list_transfers("alice")) == 1


@pytest.mark.asyncio
async def test_durable_dedup_remembers_skipped_transactions(
    engine: ReconciliationEngine, store: DuckDBLedgerStore
) -> None:
    payload = envelope(block(101, release_tx("ghost", ALICE, "0xrel")))
    await WebhookIngestor(engine, seen=LedgerSeenTransactions(store)).ingest(payload)

    stats = await WebhookIngestor(engine, seen=LedgerSeenTransactions(store)).ingest(payload)

    assert stats.duplicates == 1


@pytest.mark.asyncio
async def test_in_memory_seen_set() -> None:
    seen = InMemorySeenTransactions()
    assert not await seen.contains("0xt1")

    await seen.add("0xt1")
    await seen.add("0xt1")

    assert await seen.contains("0xt1")
    assert len(seen) == 1


# ---- HTTP ----


@pytest.fixture
def client(store: DuckDBLedgerStore):
    app = create_app(IndexerConfig(), store=store)
    with TestClient(app) as c:
        yield c


def test_health(client: TestClient) -> None:
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_webhook_then_reads(client: TestClient) -> None:
    r = client.post("/api/chainhooks/register", json=wrapped(lifecycle_envelope()))

    assert r.status_code == 200
    assert r.json() == {"success": True, "events": 2, "applied": 2, "skipped": 0, "duplicates": 0}

    assert client.get("/api/usernames/alice").json()["owner"] == BOB
    assert client.get(f"/api/usernames/owner/{BOB}").json()["username"] == "alice"

    history = client.get("/api/usernames/alice/history").json()
    assert [t["tx_id"] for t in history["transfers"]] == ["0xt2"]
    assert history["releases"] == []

    listing = client.get("/api/usernames", params={"limit": 10}).json()
    assert listing["total"] == 1
    assert [u["username"] for u in listing["results"]] == ["alice"]

    recent = client.get("/api/events/recent").json()
    assert [e["event_type"] for e in recent["results"]] == ["transfer", "registration"]

    assert client.get("/api/stats").json() == {"totalUsernames": 1}


def test_redelivered_webhook_reports_duplicates(client: TestClient) -> None:
    client.post("/api/chainhooks", json=lifecycle_envelope())
    r = client.post("/api/chainhooks", json=lifecycle_envelope())

    assert r.status_code == 200
    assert r.json()["duplicates"] == 2


def test_unknown_username_is_404(client: TestClient) -> None:
    assert client.get("/api/usernames/ghost").status_code == 404
    assert client.get(f"/api/usernames/owner/{ALICE}").status_code == 404


def test_malformed_bodies_are_400(client: TestClient) -> None:
    r = client.post("/api/chainhooks", content=b"not json", headers={"content-type": "application/json"})
    assert r.status_code == 400

    r = client.post("/api/chainhooks", json=[1, 2, 3])
    assert r.status_code == 400
    assert "error" in r.json()


def test_storage_failure_is_500(client: TestClient, store: DuckDBLedgerStore, monkeypatch: pytest.MonkeyPatch) -> None:
    async def broken(record):
        raise LedgerStoreError("disk full")

    monkeypatch.setattr(store, "upsert_username", broken)

    r = client.post("/api/chainhooks", json=lifecycle_envelope())

    assert r.status_code == 500
    assert "disk full" in r.json()["error"]


def test_malformed_transaction_costs_only_itself(client: TestClient) -> None:
    payload = envelope(
        {"timestamp": 1_700_000_000_000, "block_identifier": {}, "transactions": [register_tx("bob", BOB, "0xb")]},
        block(100, {"transaction_identifier": {}}, register_tx("alice", ALICE, "0xt1")),
    )

    r = client.post("/api/chainhooks", json=payload)

    assert r.status_code == 200
    assert r.json()["applied"] == 1
    assert client.get("/api/usernames/alice").json()["owner"] == ALICE
    assert client.get("/api/usernames/bob").status_code == 404
