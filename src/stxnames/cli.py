import asyncio
import json
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from stxnames.core.config import IndexerConfig
from stxnames.log import configure_logging

console = Console()


def _config(ctx: click.Context) -> IndexerConfig:
    return ctx.obj["config"]


def _open_store(config: IndexerConfig):
    from stxnames.storage.ledger import DuckDBLedgerStore

    return DuckDBLedgerStore(config.database_path, cascade_history_on_release=config.cascade_history_on_release)


@click.group()
@click.option("--env-file", type=click.Path(dir_okay=False), default=".env", show_default=True)
@click.option("--db", "database_path", type=str, default=None, help="Ledger database path (overrides DATABASE_PATH)")
@click.option("--log-level", default="INFO", show_default=True)
@click.pass_context
def cli(ctx: click.Context, env_file: str, database_path: str | None, log_level: str) -> None:
    """stxnames: username-registry event indexer."""
    load_dotenv(env_file)
    configure_logging(log_level, console=console)
    try:
        config = IndexerConfig.from_env()
    except ValueError as e:
        raise click.UsageError(str(e)) from e
    if database_path:
        from dataclasses import replace

        config = replace(config, database_path=database_path)
    ctx.obj = {"config": config}


@cli.command("setup-db")
@click.pass_context
def setup_db_cmd(ctx: click.Context) -> None:
    """Create the ledger schema."""
    config = _config(ctx)
    store = _open_store(config)
    try:
        store.create_schema()
    finally:
        store.close()
    console.print(f"[bold]schema ready[/]: {config.database_path}")


@cli.command("serve")
@click.option("--host", default=None, help="Bind address (overrides HOST)")
@click.option("--port", type=int, default=None, help="Bind port (overrides PORT)")
@click.pass_context
def serve_cmd(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Run the webhook receiver and read API (push mode)."""
    import uvicorn

    from stxnames.api.server import create_app

    config = _config(ctx)
    console.print(f"[bold]contract[/]: {config.contract_id} • [bold]network[/]: {config.network}")
    uvicorn.run(create_app(config), host=host or config.host, port=port or config.port, log_config=None)


@cli.command("poll")
@click.option("--interval", type=float, default=None, help="Seconds between polls (overrides POLL_INTERVAL)")
@click.option("--limit", type=int, default=None, help="Transactions per poll (overrides POLL_LIMIT)")
@click.option("--once/--forever", default=False, show_default=True, help="Run a single tick and exit")
@click.option(
    "--durable-dedup/--memory-dedup",
    default=None,
    help="Consult the ledger for already-processed tx ids (survives restarts)",
)
@click.pass_context
def poll_cmd(
    ctx: click.Context,
    interval: float | None,
    limit: int | None,
    once: bool,
    durable_dedup: bool | None,
) -> None:
    """Poll the indexing API for new registry transactions (pull mode)."""
    from stxnames.clients.hiro import StacksAPI
    from stxnames.core.use_cases.reconcile import ReconciliationEngine
    from stxnames.ingestion.dedup import InMemorySeenTransactions, LedgerSeenTransactions
    from stxnames.ingestion.poller import TransactionPoller

    config = _config(ctx)
    interval_s = interval if interval is not None else config.poll_interval_s
    durable = config.durable_dedup if durable_dedup is None else durable_dedup

    async def run() -> None:
        store = _open_store(config)
        await store.initialize()
        seen = LedgerSeenTransactions(store) if durable else InMemorySeenTransactions()
        try:
            async with StacksAPI(config.api_url, api_key=config.api_key, timeout_s=config.request_timeout_s) as api:
                poller = TransactionPoller(
                    api,
                    ReconciliationEngine(store),
                    contract_id=config.contract_id,
                    limit=limit or config.poll_limit,
                    seen=seen,
                )
                console.print(f"[bold]polling[/] {config.contract_id} every {interval_s:g}s")
                await poller.run(interval_s=interval_s, max_ticks=1 if once else None)
        finally:
            store.close()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("[yellow]stopped[/]")


@cli.command("ingest")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def ingest_cmd(ctx: click.Context, files: tuple[Path, ...]) -> None:
    """Feed saved webhook bodies (JSON files) through the push pipeline."""
    from stxnames.api.server import build_ingestor
    from stxnames.core.errors import StxNamesError

    config = _config(ctx)

    async def run() -> None:
        store = _open_store(config)
        await store.initialize()
        ingestor = build_ingestor(store, config)
        try:
            for path in files:
                stats = await ingestor.ingest(json.loads(path.read_text()))
                console.print(
                    f"{path.name}: [green]applied[/]={stats.applied}  "
                    f"[yellow]skipped[/]={stats.skipped}  duplicates={stats.duplicates}"
                )
        finally:
            store.close()

    try:
        asyncio.run(run())
    except (StxNamesError, json.JSONDecodeError) as e:
        raise click.ClickException(str(e)) from e


@cli.command("stats")
@click.option("--limit", type=int, default=20, show_default=True, help="Recent events to show")
@click.pass_context
def stats_cmd(ctx: click.Context, limit: int) -> None:
    """Print the username count and the most recent events."""
    config = _config(ctx)

    async def run():
        store = _open_store(config)
        await store.initialize()
        try:
            return await store.count_usernames(), await store.list_recent(limit)
        finally:
            store.close()

    total, events = asyncio.run(run())
    console.print(f"[bold]usernames[/]: {total:,}")

    table = Table(title="recent events")
    for col in ("type", "username", "owner", "block", "tx"):
        table.add_column(col)
    for ev in events:
        table.add_row(ev.event_type, ev.username, ev.event_owner, str(ev.block_height), ev.tx_id[:12])
    console.print(table)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
