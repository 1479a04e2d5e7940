"""CLI for split-ledger."""

import typer
from rich.console import Console

from . import __version__
from .ledger.cli import app as ledger_app

app = typer.Typer(
    name="split-ledger",
    help="Exact shared-expense splitting and balances",
)

app.add_typer(ledger_app, name="ledger", help="Record expenses and show balances")


@app.command()
def version():
    """Show the installed version."""
    Console().print(f"split-ledger {__version__}")


if __name__ == "__main__":
    app()
