"""
wagate CLI.

Development and production servers plus database bootstrap commands.
"""

import asyncio
import json
import subprocess
import sys
from pathlib import Path

import typer
from pydantic import ValidationError as PydanticValidationError

from wagate.core.config.settings import settings
from wagate.database.repository import SQLGatewayRepository
from wagate.database.session_manager import DatabaseSessionManager
from wagate.domain.models import Customer, Template, Tenant

app = typer.Typer(help="wagate WhatsApp messaging gateway CLI")

APP_FACTORY = "wagate.api.app:create_app"


def _uvicorn_command(host: str, port: int, *extra: str) -> list[str]:
    return [
        sys.executable,
        "-m",
        "uvicorn",
        APP_FACTORY,
        "--factory",
        "--host",
        host,
        "--port",
        str(port),
        *extra,
    ]


def _run_server(cmd: list[str], label: str, port: int) -> None:
    try:
        subprocess.run(cmd, check=True)
    except subprocess.CalledProcessError as e:
        typer.echo(f"❌ {label} server failed to start (exit code: {e.returncode})", err=True)
        typer.echo("", err=True)
        typer.echo("Common issues:", err=True)
        typer.echo(f"• Port {port} already in use (try --port)", err=True)
        typer.echo("• DATABASE_URL or REDIS_URL unreachable", err=True)
        typer.echo("• WEBHOOK_SIGNATURE_STRICT=false with ENVIRONMENT=PROD", err=True)
        raise typer.Exit(1) from e
    except KeyboardInterrupt:
        typer.echo(f"👋 {label} server stopped")


@app.command()
def dev(
    host: str = typer.Option("0.0.0.0", "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(settings.port, "--port", "-p", help="Port to bind to"),
):
    """
    Run development server with auto-reload.

    Examples:
        wagate dev
        wagate dev --port 8080
    """
    typer.echo("🚀 Starting wagate development server...")
    typer.echo(f"🌐 Server: http://{host}:{port}")
    typer.echo(f"📝 Docs: http://{host}:{port}/docs")
    typer.echo("💡 Press CTRL+C to stop")
    typer.echo()
    _run_server(_uvicorn_command(host, port, "--reload"), "Development", port)


@app.command()
def run(
    host: str = typer.Option("0.0.0.0", "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(settings.port, "--port", "-p", help="Port to bind to"),
    workers: int = typer.Option(
        1, "--workers", "-w", help="Number of worker processes"
    ),
):
    """
    Run production server (no auto-reload).

    Examples:
        wagate run --workers 4
    """
    typer.echo("🚀 Starting wagate production server...")
    typer.echo(f"🌐 Server: http://{host}:{port}")
    typer.echo(f"👥 Workers: {workers}")
    typer.echo()
    _run_server(
        _uvicorn_command(host, port, "--workers", str(workers)), "Production", port
    )


async def _init_db(database_url: str) -> None:
    db = DatabaseSessionManager(database_url)
    try:
        await db.initialize()
        await db.create_schema()
    finally:
        await db.cleanup()


@app.command("init-db")
def init_db(
    database_url: str = typer.Option(
        settings.database_url, "--database-url", help="SQLAlchemy async URL"
    ),
):
    """Create the gateway tables."""
    asyncio.run(_init_db(database_url))
    typer.echo(f"✅ Schema ready at {database_url}")


async def _seed(database_url: str, data: dict) -> dict[str, int]:
    db = DatabaseSessionManager(database_url)
    counts = {"tenants": 0, "customers": 0, "templates": 0}
    try:
        await db.initialize()
        await db.create_schema()
        repository = SQLGatewayRepository(db)
        for raw in data.get("tenants", []):
            await repository.save_tenant(Tenant.model_validate(raw))
            counts["tenants"] += 1
        for raw in data.get("customers", []):
            await repository.save_customer(Customer.model_validate(raw))
            counts["customers"] += 1
        for raw in data.get("templates", []):
            await repository.save_template(Template.model_validate(raw))
            counts["templates"] += 1
    finally:
        await db.cleanup()
    return counts


@app.command()
def seed(
    file_path: Path = typer.Argument(..., help="JSON file with tenants, customers, templates"),
    database_url: str = typer.Option(
        settings.database_url, "--database-url", help="SQLAlchemy async URL"
    ),
):
    """
    Load tenants, customers and templates from a JSON file.

    Examples:
        wagate seed fixtures.json
    """
    if not file_path.exists():
        typer.echo(f"❌ File not found: {file_path}", err=True)
        raise typer.Exit(1)

    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
        counts = asyncio.run(_seed(database_url, data))
    except (json.JSONDecodeError, PydanticValidationError) as e:
        typer.echo(f"❌ Invalid seed file: {e}", err=True)
        raise typer.Exit(1) from e

    typer.echo(
        f"✅ Seeded {counts['tenants']} tenant(s), {counts['customers']} customer(s), "
        f"{counts['templates']} template(s)"
    )


if __name__ == "__main__":
    app()
