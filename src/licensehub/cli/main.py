"""
CLI: serve, init-db, reconcile.
Settings come from the environment (API_KEY, DATABASE_URL, HOST, PORT, LOG_LEVEL, ...).
"""
import asyncio
import logging
from typing import Optional

import typer

from licensehub.agents.application import ReconcileBalances, ReconcileBalancesHandler
from licensehub.agents.infrastructure import LedgerStore
from licensehub.core.config import Settings
from licensehub.core.errors import AppError, ConfigError
from licensehub.db import Database

app = typer.Typer(help="License API: serve, bootstrap the schema, check ledger balances.")


def _settings() -> Settings:
    try:
        settings = Settings.from_env()
    except ConfigError as exc:
        typer.echo(f"Configuration error: {exc.message}", err=True)
        raise typer.Exit(2)
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return settings


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default: HOST or 0.0.0.0)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default: PORT or 3000)"),
) -> None:
    """Validate settings and run the HTTP server."""
    from licensehub.main import create_app

    settings = _settings()
    try:
        settings.validate()
    except ConfigError as exc:
        typer.echo(f"Refusing to start: {exc.message}", err=True)
        raise typer.Exit(2)
    create_app(settings).run(
        host=host or settings.host,
        port=port or settings.port,
        log_level=settings.log_level.lower(),
    )


@app.command("init-db")
def init_db() -> None:
    """Create missing tables and indexes."""
    settings = _settings()

    async def run() -> None:
        database = Database(settings.database_url)
        try:
            await database.create_all()
        finally:
            await database.dispose()

    asyncio.run(run())
    typer.echo("Schema ready")


@app.command()
def reconcile(
    agent_id: Optional[int] = typer.Option(None, "--agent", "-a", help="Check a single agent"),
) -> None:
    """Recompute every balance from ledger rows; exit 1 on drift."""
    settings = _settings()

    async def run() -> dict:
        database = Database(settings.database_url)
        try:
            handler = ReconcileBalancesHandler(database, LedgerStore())
            return await handler(ReconcileBalances(agent_id=agent_id))
        finally:
            await database.dispose()

    try:
        report = asyncio.run(run())
    except AppError as exc:
        typer.echo(exc.message, err=True)
        raise typer.Exit(2)
    for row in report["drift"]:
        typer.echo(
            f"agent {row['agentId']}: balance {row['balance']} != earned {row['earned']} - paid {row['paid']}"
            f" ({row['derivedBalance']})"
        )
    if not report["consistent"]:
        raise typer.Exit(1)
    typer.echo(f"{report['checked']} agent(s) consistent")


def main() -> None:
    """Entry point for the licensehub console command."""
    app()


if __name__ == "__main__":
    main()
