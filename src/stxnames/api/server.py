"""FastAPI application: webhook receiver (push mode) and read API.

Routes
------
POST /api/chainhooks                    webhook envelope (any operation)
POST /api/chainhooks/{operation}        per-operation hook URLs
GET  /api/usernames                     paginated list
GET  /api/usernames/owner/{owner}       lookup by owner address
GET  /api/usernames/{username}          lookup by name
GET  /api/usernames/{username}/history  transfers + releases
GET  /api/events/recent                 merged activity feed
GET  /api/stats                         totals
GET  /health
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from stxnames.core.config import IndexerConfig
from stxnames.core.errors import InvalidEnvelopeError
from stxnames.core.use_cases.reconcile import ReconciliationEngine
from stxnames.ingestion.dedup import InMemorySeenTransactions, LedgerSeenTransactions
from stxnames.ingestion.webhook import WebhookIngestor
from stxnames.storage.ledger import DuckDBLedgerStore

logger = logging.getLogger(__name__)


def build_ingestor(store: DuckDBLedgerStore, config: IndexerConfig) -> WebhookIngestor:
    seen = LedgerSeenTransactions(store) if config.durable_dedup else InMemorySeenTransactions()
    return WebhookIngestor(ReconciliationEngine(store), seen=seen, contract_id=config.contract_id)


def create_app(config: IndexerConfig | None = None, store: DuckDBLedgerStore | None = None) -> FastAPI:
    """Build the app. A store passed in is used as-is and left open on shutdown."""
    config = config or IndexerConfig.from_env()
    owns_store = store is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ledger = store or DuckDBLedgerStore(
            config.database_path,
            cascade_history_on_release=config.cascade_history_on_release,
        )
        await ledger.initialize()
        app.state.store = ledger
        app.state.ingestor = build_ingestor(ledger, config)
        logger.info("serving %s (%s), ledger at %s", config.contract_id, config.network, ledger.path)
        try:
            yield
        finally:
            if owns_store:
                ledger.close()

    app = FastAPI(title="stxnames indexer", lifespan=lifespan)

    # ---- webhooks ----

    async def _handle_webhook(request: Request, operation: str | None) -> JSONResponse:
        try:
            payload = await request.json()
        except ValueError:
            return JSONResponse(status_code=400, content={"error": "body is not valid JSON"})

        logger.info("received %s webhook", operation or "chainhook")
        try:
            stats = await request.app.state.ingestor.ingest(payload)
        except InvalidEnvelopeError as e:
            logger.warning("rejected malformed envelope: %s", e)
            return JSONResponse(status_code=400, content={"error": str(e)})
        except Exception as e:
            logger.error("error processing %s webhook: %s", operation or "chainhook", e)
            return JSONResponse(status_code=500, content={"error": str(e)})

        return JSONResponse(
            content={
                "success": True,
                "events": stats.events,
                "applied": stats.applied,
                "skipped": stats.skipped,
                "duplicates": stats.duplicates,
            }
        )

    @app.post("/api/chainhooks")
    async def chainhook(request: Request) -> JSONResponse:
        return await _handle_webhook(request, None)

    @app.post("/api/chainhooks/{operation}")
    async def chainhook_operation(operation: str, request: Request) -> JSONResponse:
        return await _handle_webhook(request, operation)

    # ---- reads ----

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/api/usernames")
    async def list_usernames(
        request: Request,
        limit: int = Query(100, ge=1, le=1000),
        offset: int = Query(0, ge=0),
    ) -> dict[str, Any]:
        ledger: DuckDBLedgerStore = request.app.state.store
        rows = await ledger.list_usernames(limit, offset)
        total = await ledger.count_usernames()
        return {"results": [r.to_dict() for r in rows], "total": total, "limit": limit, "offset": offset}

    # registered before /{username} so "owner" is not captured as a name
    @app.get("/api/usernames/owner/{owner}")
    async def get_by_owner(owner: str, request: Request) -> dict[str, Any]:
        record = await request.app.state.store.get_username_by_owner(owner)
        if record is None:
            raise HTTPException(status_code=404, detail="No username found for this owner")
        return record.to_dict()

    @app.get("/api/usernames/{username}")
    async def get_username(username: str, request: Request) -> dict[str, Any]:
        record = await request.app.state.store.get_username(username)
        if record is None:
            raise HTTPException(status_code=404, detail="Username not found")
        return record.to_dict()

    @app.get("/api/usernames/{username}/history")
    async def get_history(username: str, request: Request) -> dict[str, Any]:
        ledger: DuckDBLedgerStore = request.app.state.store
        transfers = await ledger.list_transfers(username)
        releases = await ledger.list_releases(username)
        return {
            "username": username,
            "transfers": [t.to_dict() for t in transfers],
            "releases": [r.to_dict() for r in releases],
        }

    @app.get("/api/events/recent")
    async def recent_events(request: Request, limit: int = Query(50, ge=1, le=500)) -> dict[str, Any]:
        events = await request.app.state.store.list_recent(limit)
        return {"results": [e.to_dict() for e in events], "total": len(events)}

    @app.get("/api/stats")
    async def stats(request: Request) -> dict[str, Any]:
        return {"totalUsernames": await request.app.state.store.count_usernames()}

    return app
