"""Portfolio CLI commands."""

import json

import typer
from rich.table import Table

from src.cli.common import console, format_usd, get_registry, run_with_client, short
from src.core.portfolio import PortfolioAggregator

app = typer.Typer()


@app.command("show")
def show_portfolio(
    as_json: bool = typer.Option(False, "--json", help="Print the raw summary as JSON"),
):
    """Show holdings across all linked accounts."""
    accounts = get_registry().list()
    if not accounts:
        console.print("[yellow]No linked accounts.[/yellow] Link one with: meshfolio accounts link payload.json")
        raise typer.Exit(1)

    console.print(f"Fetching holdings for {len(accounts)} account(s)...")
    summary = run_with_client(lambda client: PortfolioAggregator(client).aggregate(accounts))

    if as_json:
        console.print_json(json.dumps(summary.model_dump(by_alias=True)))
        return

    if not summary.holdings:
        console.print("[yellow]No holdings found.[/yellow]")
    else:
        table = Table(title="Holdings")
        table.add_column("Symbol", style="bold")
        table.add_column("Name")
        table.add_column("Amount", justify="right")
        table.add_column("Price", justify="right")
        table.add_column("Value", justify="right")
        table.add_column("Account")
        table.add_column("Source")

        for holding in sorted(summary.holdings, key=lambda h: h.value, reverse=True):
            table.add_row(
                holding.symbol,
                holding.name or "-",
                f"{holding.amount:,.6f}".rstrip("0").rstrip("."),
                format_usd(holding.price) if holding.price else "-",
                format_usd(holding.value),
                holding.account_name,
                holding.source,
            )
        console.print(table)

    accounts_table = Table(title="Accounts")
    accounts_table.add_column("ID", style="dim")
    accounts_table.add_column("Name")
    accounts_table.add_column("Assets", justify="right")
    accounts_table.add_column("Value", justify="right")
    accounts_table.add_column("Status")

    for account in summary.accounts:
        status = f"[red]{short(account.error, 40)}[/red]" if account.error else "[green]OK[/green]"
        accounts_table.add_row(
            short(account.account_id, 16),
            account.name,
            str(account.asset_count),
            format_usd(account.total_value),
            status,
        )
    console.print(accounts_table)

    console.print(
        f"\n[bold]Total:[/bold] {format_usd(summary.total_value)} "
        f"across {summary.total_accounts} account(s), {summary.total_assets} asset(s)"
    )
