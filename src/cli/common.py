"""Helpers shared by the CLI commands."""

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer
from rich.console import Console

from src.core.accounts.models import LinkedAccount
from src.core.accounts.registry import AccountRegistry, SqlKeyValueStore
from src.core.errors import MeshfolioError
from src.core.mesh.client import MeshClient

console = Console()

T = TypeVar("T")


def get_registry() -> AccountRegistry:
    """Registry backed by the local SQLite database."""
    return AccountRegistry(SqlKeyValueStore())


def run_with_client(func: Callable[[MeshClient], Awaitable[T]]) -> T:
    """Run ``func`` with a fresh Mesh client on a new event loop.

    Known errors are printed and end the command with exit code 1.
    """

    async def runner() -> T:
        async with MeshClient() as client:
            return await func(client)

    try:
        return asyncio.run(runner())
    except MeshfolioError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)


def require_account(registry: AccountRegistry, account_id: str) -> LinkedAccount:
    """Linked account by any of its ids, or exit with an error."""
    account = registry.get(account_id)
    if not account:
        console.print(f"[red]Error:[/red] Account {account_id} not found")
        console.print("Run [bold]meshfolio accounts list[/bold] to see linked accounts.")
        raise typer.Exit(1)
    return account


def format_usd(value: Optional[float]) -> str:
    return f"${value:,.2f}" if value is not None else "-"


def short(value: Any, length: int = 12) -> str:
    """Shorten ids and addresses for table cells."""
    text = str(value) if value is not None else "-"
    return text if len(text) <= length else text[:length] + "..."
