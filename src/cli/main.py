"""Main CLI entry point using Typer."""

import typer
from rich.console import Console

from src.db.database import init_db
from src.config import PRODUCT_NAME, PRODUCT_TAGLINE, PRODUCT_VERSION, configure_logging, get_settings

console = Console()
app = typer.Typer(
    name="meshfolio",
    help=f"{PRODUCT_NAME}: {PRODUCT_TAGLINE}",
    add_completion=False,
)


@app.callback()
def main_callback():
    """Set up logging and the local registry database."""
    configure_logging(get_settings().log_level)
    init_db()


# Import and add subcommands
from src.cli.accounts import app as accounts_app
from src.cli.portfolio import app as portfolio_app
from src.cli.transfer import app as transfer_app
from src.cli.networks import app as networks_app

app.add_typer(accounts_app, name="accounts", help="Link, list and remove accounts")
app.add_typer(portfolio_app, name="portfolio", help="Aggregated holdings across accounts")
app.add_typer(transfer_app, name="transfer", help="Managed transfers and history")
app.add_typer(networks_app, name="networks", help="Managed transfer networks")


ASCII_BANNER = """
[bold #10B981]███╗   ███╗███████╗███████╗██╗  ██╗███████╗ ██████╗ ██╗     ██╗ ██████╗
████╗ ████║██╔════╝██╔════╝██║  ██║██╔════╝██╔═══██╗██║     ██║██╔═══██╗
██╔████╔██║█████╗  ███████╗███████║█████╗  ██║   ██║██║     ██║██║   ██║
██║╚██╔╝██║██╔══╝  ╚════██║██╔══██║██╔══╝  ██║   ██║██║     ██║██║   ██║
██║ ╚═╝ ██║███████╗███████║██║  ██║██║     ╚██████╔╝███████╗██║╚██████╔╝
╚═╝     ╚═╝╚══════╝╚══════╝╚═╝  ╚═╝╚═╝      ╚═════╝ ╚══════╝╚═╝ ╚═════╝[/]

[bold #3B82F6]        Every exchange and wallet, one portfolio.[/]
"""


@app.command()
def version():
    """Show version information with ASCII banner."""
    settings = get_settings()
    console.print(ASCII_BANNER)
    console.print(f"[bold]Version:[/] {PRODUCT_VERSION}")
    console.print(f"[bold]Tagline:[/] {PRODUCT_TAGLINE}")
    console.print(f"[bold]Mesh API:[/] {settings.mesh_api_url}{' (sandbox key)' if settings.is_sandbox_key else ''}")


if __name__ == "__main__":
    app()
