"""Linked account CLI commands."""

import json
from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from src.cli.common import console, get_registry, require_account, run_with_client, short
from src.core.addresses import address_of, resolve_deposit_address
from src.core.credentials import account_tokens, normalize_wallet_address, parse_connection, transfer_token
from src.core.errors import InvalidTokenError, MeshfolioError

app = typer.Typer()


@app.command("list")
def list_accounts():
    """List linked accounts."""
    registry = get_registry()
    accounts = registry.list()

    if not accounts:
        console.print("[yellow]No linked accounts.[/yellow]")
        console.print("\nTo link an account:")
        console.print("  1. Create a link token (POST /api/linktoken) and complete Mesh Link")
        console.print("  2. Save the success payload and run: meshfolio accounts link payload.json")
        return

    table = Table(title="Linked Accounts")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Tokens", justify="right")
    table.add_column("Wallet Address")

    for account in accounts:
        table.add_row(
            short(account.account_id, 16),
            account.name,
            account.broker_type,
            str(len(account_tokens(account))),
            account.wallet_address or "-",
        )

    console.print(table)
    if registry.wallet_address:
        console.print(f"\n[bold]App wallet:[/bold] {registry.wallet_address}")


@app.command("link")
def link_account(
    payload_file: Path = typer.Argument(..., help="JSON file with the Mesh Link success payload"),
):
    """Link an account from a Mesh Link success payload."""
    if not payload_file.exists():
        console.print(f"[red]Error:[/red] File not found: {payload_file}")
        raise typer.Exit(1)

    try:
        payload = json.loads(payload_file.read_text())
    except ValueError as e:
        console.print(f"[red]Error:[/red] {payload_file} is not valid JSON: {e}")
        raise typer.Exit(1)

    try:
        account = parse_connection(payload)
    except MeshfolioError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)

    stored = get_registry().add(account)
    if stored is not account:
        console.print(f"[yellow]Already linked:[/yellow] {stored.name} ({stored.account_id})")
        console.print("Run [bold]meshfolio accounts refresh[/bold] to renew its token, or remove it first.")
        return

    console.print(f"[green]Linked:[/green] {account.name} ({account.broker_type})")
    console.print(f"  Account ID: {account.account_id}")
    if account.network_tokens:
        console.print(f"  Network tokens: {len(account.network_tokens)}")
    if account.wallet_address:
        console.print(f"  Wallet address: {account.wallet_address}")


@app.command("remove")
def remove_account(
    account_id: str = typer.Argument(..., help="Account ID to unlink"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Unlink an account."""
    registry = get_registry()
    account = require_account(registry, account_id)

    if not force:
        if not typer.confirm(f"Unlink {account.name} ({account.account_id})?"):
            console.print("[yellow]Cancelled.[/yellow]")
            raise typer.Exit(0)

    registry.remove(account_id)
    console.print("[green]Account unlinked.[/green]")


@app.command("clear")
def clear_accounts(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Unlink every account and forget the cached token."""
    if not force and not typer.confirm("Unlink all accounts?"):
        console.print("[yellow]Cancelled.[/yellow]")
        raise typer.Exit(0)

    get_registry().clear()
    console.print("[green]All accounts unlinked.[/green]")


@app.command("refresh")
def refresh_account(
    account_id: str = typer.Argument(..., help="Account ID"),
):
    """Exchange the account's refresh token for a new access token."""
    registry = get_registry()
    account = require_account(registry, account_id)

    if not account.refresh_token:
        console.print(f"[red]Error:[/red] {account.name} has no refresh token. Link it again instead.")
        raise typer.Exit(1)

    response = run_with_client(lambda client: client.refresh_token(account.refresh_token))
    content = response.get("content") if isinstance(response, dict) else None
    if not isinstance(content, dict):
        content = response if isinstance(response, dict) else {}

    new_token = content.get("accessToken")
    if not new_token:
        console.print("[red]Error:[/red] Mesh did not return a new access token")
        raise typer.Exit(1)

    account.transfer_token = new_token
    account.holdings_token = new_token
    account.refresh_token = content.get("refreshToken") or account.refresh_token
    registry.update(account)
    console.print(f"[green]Token refreshed for {account.name}.[/green]")


@app.command("address")
def account_address(
    account_id: str = typer.Argument(..., help="Account ID"),
    symbol: str = typer.Option("ETH", "--symbol", "-s", help="Asset symbol"),
    network: Optional[str] = typer.Option(None, "--network", "-n", help="Mesh network ID"),
):
    """Show the deposit address of a linked account."""
    registry = get_registry()
    account = require_account(registry, account_id)

    try:
        token = transfer_token(account)
    except InvalidTokenError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)

    response = run_with_client(
        lambda client: resolve_deposit_address(client, token, account.broker_type, symbol=symbol, network_id=network)
    )
    address = address_of(response)
    if not address:
        console.print("[yellow]Mesh returned no address.[/yellow]")
        raise typer.Exit(1)

    console.print(f"[bold]{account.name}[/bold] deposit address: {address}")
    if account.is_wallet and normalize_wallet_address(address):
        registry.update_wallet_address(address)
        console.print("[dim]Saved as app wallet address.[/dim]")
