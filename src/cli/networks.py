"""Managed transfer network CLI commands."""

import typer
from rich.table import Table

from src.cli.common import console, run_with_client

app = typer.Typer()


@app.command("list")
def list_networks():
    """List networks supported by Managed Transfers."""
    response = run_with_client(lambda client: client.get_networks())

    content = response.get("content") if isinstance(response, dict) else None
    networks = content.get("networks") if isinstance(content, dict) else content
    if not isinstance(networks, list) or not networks:
        console.print("[yellow]No networks returned.[/yellow]")
        return

    table = Table(title="Networks")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Chain ID")
    table.add_column("Tokens")

    for network in networks:
        if not isinstance(network, dict):
            continue
        tokens = network.get("supportedTokens") or []
        table.add_row(
            str(network.get("id", "-")),
            str(network.get("name", "-")),
            str(network.get("chainId") or "-"),
            ", ".join(str(t) for t in tokens[:8]) + (" ..." if len(tokens) > 8 else ""),
        )

    console.print(table)
