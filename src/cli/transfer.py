"""Managed transfer CLI commands."""

from datetime import datetime
from typing import Any, Dict, List, Optional

import typer
from rich.table import Table

from src.cli.common import console, get_registry, require_account, run_with_client, short
from src.core.credentials import transfer_token
from src.core.errors import InvalidTokenError, MfaRequiredError
from src.core.mesh.client import MeshClient
from src.core.transfers import TransferRequest, TransferWorkflow

app = typer.Typer()

MAX_MFA_ATTEMPTS = 3


def _preview_details(response: Any) -> Dict[str, Any]:
    """Scalar fields of a preview result worth showing before confirming."""
    content = response.get("content") if isinstance(response, dict) else None
    result = content.get("previewResult") if isinstance(content, dict) else None
    if not isinstance(result, dict):
        result = content if isinstance(content, dict) else {}
    return {k: v for k, v in result.items() if isinstance(v, (str, int, float)) and not isinstance(v, bool)}


@app.command("run")
def run_transfer(
    account_id: str = typer.Option(..., "--account", "-a", help="Linked account to send from"),
    to_address: str = typer.Option(..., "--to", "-t", help="Destination address"),
    symbol: str = typer.Option(..., "--symbol", "-s", help="Asset symbol (e.g. USDC)"),
    network_id: str = typer.Option(..., "--network", "-n", help="Mesh network ID"),
    amount: Optional[float] = typer.Option(None, "--amount", help="Amount in asset units"),
    fiat: Optional[float] = typer.Option(None, "--fiat", help="Amount in USD"),
    mfa_code: Optional[str] = typer.Option(None, "--mfa", help="MFA code, if already known"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Execute without confirming the preview"),
):
    """Configure, preview and execute a managed transfer."""
    if amount is None and fiat is None:
        console.print("[red]Error:[/red] Pass --amount or --fiat")
        raise typer.Exit(1)
    if any(value is not None and value <= 0 for value in (amount, fiat)):
        console.print("[red]Error:[/red] Amounts must be positive")
        raise typer.Exit(1)

    account = require_account(get_registry(), account_id)
    request = TransferRequest(
        from_account_id=account.account_id,
        to_address=to_address,
        symbol=symbol,
        network_id=network_id,
        amount=amount,
        amount_in_fiat=fiat,
        from_type=account.broker_type,
    )

    raw_token = account.transfer_token or account.holdings_token

    async def configure_and_preview(client: MeshClient):
        workflow = TransferWorkflow(client, raw_token)
        console.print("[bold]1/3[/bold] Configuring transfer...")
        await workflow.configure(request)
        console.print("[bold]2/3[/bold] Previewing...")
        return await workflow.preview()

    preview = run_with_client(configure_and_preview)
    table = Table(title=f"Preview {short(preview.transfer_id, 20)}", show_header=False)
    table.add_column("Field", style="dim")
    table.add_column("Value")
    for key, value in _preview_details(preview.response).items():
        table.add_row(key, str(value))
    console.print(table)

    if not yes and not typer.confirm("Execute this transfer?"):
        console.print("[yellow]Cancelled.[/yellow]")
        raise typer.Exit(0)

    async def execute(client: MeshClient, code: Optional[str], last_attempt: bool):
        workflow = TransferWorkflow(client, raw_token, transfer_id=preview.transfer_id)
        try:
            return await workflow.execute(mfa_code=code)
        except MfaRequiredError:
            if last_attempt:
                raise
            return None

    console.print("[bold]3/3[/bold] Executing...")
    code = mfa_code
    outcome = None
    for attempt in range(MAX_MFA_ATTEMPTS):
        last_attempt = attempt == MAX_MFA_ATTEMPTS - 1
        outcome = run_with_client(lambda client: execute(client, code, last_attempt))
        if outcome is not None:
            break
        code = typer.prompt("MFA code required. Enter code")

    status = "-"
    if isinstance(outcome.response, dict):
        content = outcome.response.get("content")
        if isinstance(content, dict):
            status = content.get("status") or status
    console.print(f"[green]Transfer submitted.[/green] ID: {outcome.transfer_id}  Status: {status}")


def _transfer_items(response: Any) -> List[Dict[str, Any]]:
    content = response.get("content") if isinstance(response, dict) else None
    if isinstance(content, list):
        return [t for t in content if isinstance(t, dict)]
    if isinstance(content, dict):
        for key in ("transfers", "items"):
            if isinstance(content.get(key), list):
                return [t for t in content[key] if isinstance(t, dict)]
    return []


def _timestamp(value: Any) -> str:
    if isinstance(value, (int, float)) and value > 0:
        seconds = value / 1000 if value > 1e11 else value
        return datetime.fromtimestamp(seconds).strftime("%Y-%m-%d %H:%M")
    return str(value) if value else "-"


@app.command("history")
def transfer_history(
    account_id: Optional[str] = typer.Option(
        None,
        "--account",
        "-a",
        help="Linked account (default: all transfers initiated through Mesh)",
    ),
    count: int = typer.Option(20, "--count", "-c", help="Maximum transfers to show"),
):
    """Show past transfers."""
    if account_id:
        account = require_account(get_registry(), account_id)
        try:
            token = transfer_token(account)
        except InvalidTokenError as e:
            console.print(f"[red]Error:[/red] {e.message}")
            raise typer.Exit(1)
        response = run_with_client(lambda client: client.get_transfers_list(token))
        title = f"Transfers - {account.name}"
    else:
        response = run_with_client(lambda client: client.get_mesh_transfers({"count": count}))
        title = "Transfers initiated through Mesh"

    transfers = _transfer_items(response)[:count]
    if not transfers:
        console.print("[yellow]No transfers found.[/yellow]")
        return

    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Status")
    table.add_column("Amount", justify="right")
    table.add_column("Symbol")
    table.add_column("Hash", style="dim")
    table.add_column("Created")

    for item in transfers:
        table.add_row(
            short(item.get("id") or item.get("transferId"), 14),
            str(item.get("status") or "-"),
            str(item.get("amount") or item.get("amountInFiat") or "-"),
            str(item.get("symbol") or "-"),
            short(item.get("hash") or item.get("txHash"), 14),
            _timestamp(item.get("createdTimestamp") or item.get("createdAt")),
        )

    console.print(table)
