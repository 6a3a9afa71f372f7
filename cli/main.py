"""Newsletter admin CLI - Main Entry Point"""

import asyncio
from pathlib import Path
from typing import Optional

import httpx
import typer
from rich.console import Console
from rich.panel import Panel

from api.config.settings import get_settings
from api.infra.database import Database
from api.v1.core.exceptions import NewsletterServiceException
from api.v1.newsletter.service import NewsletterService

from .utils.formatting import create_newsletters_table, print_error, print_info, print_success

console = Console()

app = typer.Typer(
    name="newsletter-admin",
    help="📰 Newsletter service admin CLI",
    rich_markup_mode="rich",
)


async def _init_db() -> None:
    database = Database(get_settings())
    try:
        await database.create_all()
    finally:
        await database.close()


async def _publish(title: str, summary: str, body: str):
    settings = get_settings()
    database = Database(settings)
    try:
        async with database.SessionLocal() as session:
            return await NewsletterService(settings).create_newsletter(
                session, title=title, body=body, summary=summary
            )
    finally:
        await database.close()


async def _list_newsletters():
    settings = get_settings()
    database = Database(settings)
    try:
        async with database.SessionLocal() as session:
            return await NewsletterService(settings).get_newsletters(session)
    finally:
        await database.close()


@app.command("init-db")
def init_db():
    """🗄  Create the database tables"""
    asyncio.run(_init_db())
    print_success("Database tables created")


@app.command()
def publish(
    title: str = typer.Option(..., "--title", "-t", help="Newsletter title"),
    body_file: Path = typer.Option(
        ..., "--body-file", "-b", exists=True, dir_okay=False, help="File with the newsletter body"
    ),
    summary: str = typer.Option("", "--summary", "-s", help="Short summary"),
):
    """📝 Publish a newsletter"""
    body = body_file.read_text(encoding="utf-8")

    try:
        newsletter = asyncio.run(_publish(title, summary, body))
    except NewsletterServiceException as e:
        print_error(e.message)
        raise typer.Exit(1)

    print_success(f"Published '{newsletter.title}' ({newsletter.id})")


@app.command("list")
def list_newsletters():
    """📚 List published newsletters"""
    try:
        newsletters = asyncio.run(_list_newsletters())
    except NewsletterServiceException as e:
        print_error(e.message)
        raise typer.Exit(1)

    if not newsletters:
        print_info("No newsletters published yet")
        return

    console.print(create_newsletters_table(newsletters))


@app.command()
def status(
    base_url: Optional[str] = typer.Option(
        None, "--url", help="API base URL (defaults to BASE_URL)"
    ),
):
    """📊 Check service health and job queue status"""
    base_url = (base_url or get_settings().base_url).rstrip("/")
    print_info(f"Checking connection to: {base_url}")

    try:
        response = httpx.get(f"{base_url}/v1/healthz", timeout=10)
        response.raise_for_status()
        health = response.json()["data"]
    except (httpx.HTTPError, KeyError, ValueError) as e:
        print_error(f"Failed to connect: {e}")
        console.print(Panel(
            f"🚫 [red]Connection Failed[/red]\n\n"
            f"Make sure the newsletter service is running at:\n"
            f"[blue]{base_url}[/blue]",
            title="Connection Error",
            border_style="red"
        ))
        raise typer.Exit(1)

    queue = health.get("queue", {})
    console.print(Panel(
        f"🚀 [green]Connected Successfully![/green]\n\n"
        f"• Version: [cyan]{health.get('version', 'unknown')}[/cyan]\n"
        f"• Environment: [yellow]{health.get('environment', 'unknown')}[/yellow]\n"
        f"• Database: [cyan]{'up' if health.get('database', {}).get('connected') else 'down'}[/cyan]\n"
        f"• Queue depth: [cyan]{queue.get('queue_depth', '?')}[/cyan], "
        f"succeeded: [green]{queue.get('succeeded', '?')}[/green], "
        f"failed: [red]{queue.get('failed', '?')}[/red]",
        title="System Status",
        border_style="green"
    ))


if __name__ == "__main__":
    app()
