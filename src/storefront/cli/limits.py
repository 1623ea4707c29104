"""CLI commands for inspecting and resetting rate limits.

Usage:
    storefront limits check 203.0.113.7
    storefront limits clear
    storefront limits clear --prefix rl:auth:
"""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from storefront.cache.keys import CacheKeys
from storefront.config import settings
from storefront.context import CacheContext
from storefront.errors import ConfigurationError

app = typer.Typer(help="Inspect and reset rate limit counters", no_args_is_help=True)

console = Console()


def _open_context() -> CacheContext:
    try:
        return CacheContext.from_settings(settings)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(code=1) from e


@app.command("check")
def check(
    ip: str = typer.Argument(..., help="Client IP to inspect"),
) -> None:
    """Show the remaining quota of a client under every policy."""
    asyncio.run(_check(ip))


async def _check(ip: str) -> None:
    context = _open_context()
    try:
        if not await context.store.ensure_connection():
            console.print("[yellow]Cache store unavailable, showing local counters only[/yellow]")
        quotas = await context.rate_limiter.quotas(ip)
    finally:
        await context.close()

    table = Table(title=f"Rate limits for {ip}")
    table.add_column("Policy", style="cyan")
    table.add_column("Remaining", style="green")
    table.add_column("Total")
    table.add_column("Resets in", style="yellow")
    for name, quota in quotas.items():
        table.add_row(name, str(quota.remaining), str(quota.total), f"{quota.reset_in}s")
    console.print(table)


@app.command("clear")
def clear(
    prefix: str = typer.Option(
        f"{CacheKeys.RATE_LIMIT}:",
        "--prefix",
        "-p",
        help="Only clear counters under this key prefix",
    ),
) -> None:
    """Delete rate limit counters."""
    asyncio.run(_clear(prefix))


async def _clear(prefix: str) -> None:
    context = _open_context()
    try:
        cleared = await context.rate_limiter.clear_all(prefix)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=2) from e
    finally:
        await context.close()

    if cleared is None:
        console.print("[red]Cache store unavailable, counters not cleared[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]Cleared {cleared} rate limit counters[/green]")
