"""
CLI for persistent-memoize.

Commands:
    pmemo show KEY - Print one cache entry's header and a payload preview (--raw for bytes only)
    pmemo config - Show current configuration
    pmemo version - Print version
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Annotated, Any, Optional

import orjson
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from pmemo import __version__
from pmemo.config import Settings, clear_settings_cache, get_settings
from pmemo.exceptions import PMError
from pmemo.logging import setup_logging
from pmemo.record import CacheRecordEngine
from pmemo.store import create_store
from pmemo.streams import ByteStream
from pmemo.types import CacheHit

app = typer.Typer(
    name="pmemo",
    help="persistent-memoize - inspect and manage a persistent memoization cache",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

PREVIEW_BYTES = 2048


def _get_settings_safe() -> Settings | None:
    """Get settings, returning None if configuration is invalid."""
    try:
        clear_settings_cache()
        return get_settings()
    except ValidationError:
        return None


def _preview(value: Any, raw: bytes | None) -> str:
    if raw is not None:
        text = raw[:PREVIEW_BYTES].decode("utf-8", errors="replace")
        suffix = f"\n... ({len(raw)} bytes total)" if len(raw) > PREVIEW_BYTES else ""
        return text + suffix
    return orjson.dumps(value, option=orjson.OPT_INDENT_2).decode("utf-8")


async def _load(settings: Settings, key: str, max_age: float | None) -> tuple[CacheHit | None, bytes | None]:
    store = create_store(settings)
    try:
        result = await CacheRecordEngine(store).get(key, max_age=max_age)
        if not isinstance(result, CacheHit):
            return None, None
        raw: bytes | None = None
        if isinstance(result.value, ByteStream):
            raw = await result.value.read()
        elif isinstance(result.value, bytes):
            raw = result.value
        return result, raw
    finally:
        await store.close()


@app.command()
def show(
    key: Annotated[str, typer.Argument(help="Full cache key")],
    max_age: Annotated[
        Optional[float],
        typer.Option("--max-age", "-m", help="Max age in seconds used to report expiry"),
    ] = None,
    raw_output: Annotated[
        bool,
        typer.Option("--raw", help="Write only the payload bytes to stdout"),
    ] = False,
) -> None:
    """Show one cache entry.

    Prints the envelope header, whether the entry is expired for the given
    max age, and a preview of the payload.
    """
    settings = _get_settings_safe()
    if settings is None:
        error_console.print(
            "[red]Error:[/red] Configuration is invalid. "
            "Run 'pmemo config' to see what's wrong."
        )
        raise typer.Exit(1)
    setup_logging(settings.LOG_LEVEL)

    effective_max_age = max_age if max_age is not None else settings.MAX_AGE
    try:
        hit, raw = asyncio.run(_load(settings, key, effective_max_age))
    except PMError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if hit is None:
        console.print(f"[yellow]Cache miss:[/yellow] {key}")
        raise typer.Exit(2)

    if raw_output:
        typer.echo(raw if raw is not None else orjson.dumps(hit.value), nl=False)
        return

    table = Table(title="Header", show_header=True)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    for field, value in hit.metadata.items():
        display = value.isoformat() if isinstance(value, datetime) else str(value)
        table.add_row(field, display)

    console.print()
    console.print(table)
    status = "[red]expired[/red]" if hit.expired else "[green]fresh[/green]"
    console.print(f"[bold]Status:[/bold] {status}")
    console.print(
        Panel(
            _preview(hit.value, raw),
            title=f"[bold cyan]Payload ({hit.metadata.get('type')})[/bold cyan]",
            border_style="cyan",
        )
    )


@app.command()
def config() -> None:
    """Show current configuration."""
    console.print()
    console.print("[bold]persistent-memoize configuration[/bold]")
    console.print()

    settings = _get_settings_safe()
    if settings is None:
        error_console.print("[red]Configuration is invalid or incomplete.[/red]")
        error_console.print()
        error_console.print("Check the PMEMO_* environment variables, for example:")
        error_console.print("  - PMEMO_STORE_BACKEND (memory, filesystem or sqlite)")
        error_console.print("  - PMEMO_MAX_AGE (non-negative seconds)")
        raise typer.Exit(1)

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for key, value in settings.redacted_display().items():
        display_value = str(value) if value is not None else "[dim]not set[/dim]"
        table.add_row(key, display_value)

    console.print(table)
    console.print()


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"persistent-memoize version {__version__}")
