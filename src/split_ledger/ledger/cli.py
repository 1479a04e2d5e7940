"""CLI commands for the shared-expense ledger."""

import logging
import sys
import uuid
from decimal import Decimal
from enum import Enum
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from ..adapters.entities import EntitySnapshot, to_records
from ..config import load_settings
from ..db import Database
from ..exceptions import InvalidSplitError, SplitLedgerError
from ..models import (
    AdjustmentSplit,
    EqualSplit,
    ExpenseRecord,
    FixedSplit,
    LedgerConfig,
    LedgerSummary,
    PartialAggregation,
    PercentageSplit,
    SharesSplit,
    SplitMethod,
)
from ..money import MoneyAmount, to_exact_decimal
from .aggregator import aggregate_balances_partial, summarize_ledger
from .classifier import classify_balance, reminder_candidates
from .splitter import compute_split
from .ui import confirm_split, prompt_amount, prompt_participants, prompt_person

app = typer.Typer(
    name="ledger",
    help="Split shared expenses and track who owes whom",
)

console = Console()


class SplitKind(str, Enum):
    EQUAL = "equal"
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    SHARES = "shares"
    ADJUSTMENT = "adjustment"


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def parse_assignments(assignments: list[str]) -> dict[str, str]:
    """Parse ``ID=VALUE`` pairs from the command line."""
    parsed: dict[str, str] = {}
    for item in assignments:
        person_id, sep, value = item.partition("=")
        if not sep or not person_id.strip() or not value.strip():
            raise InvalidSplitError(f"Expected ID=VALUE, got {item!r}")
        parsed[person_id.strip()] = value.strip()
    return parsed


def build_split_method(kind: SplitKind, assignments: list[str]) -> SplitMethod:
    """
    Build a split method from ``--set ID=VALUE`` options.

    Values are percentages, weights, fixed amounts or adjustments depending on
    ``kind``. An equal split takes no values.
    """
    values = parse_assignments(assignments)

    match kind:
        case SplitKind.EQUAL:
            if values:
                raise InvalidSplitError("An equal split takes no --set values")
            return EqualSplit()
        case SplitKind.PERCENTAGE:
            return PercentageSplit(
                percentages={k: to_exact_decimal(v) for k, v in values.items()}
            )
        case SplitKind.SHARES:
            return SharesSplit(
                weights={k: to_exact_decimal(v) for k, v in values.items()}
            )
        case SplitKind.FIXED:
            return FixedSplit(
                amounts={k: MoneyAmount.parse(v) for k, v in values.items()}
            )
        case SplitKind.ADJUSTMENT:
            return AdjustmentSplit(
                adjustments={k: MoneyAmount.parse(v) for k, v in values.items()}
            )
    raise InvalidSplitError(f"Unknown split kind: {kind}")


def format_money(
    amount: MoneyAmount, config: LedgerConfig | None = None, use_color: bool = True
) -> str:
    """
    Format money in accounting style with alignment.

    Negative amounts use parentheses: ($85.02)
    Positive amounts have spaces:      $85.02
    The spaces ensure decimal points align in tables.
    """
    text = abs(amount).formatted(config)
    if amount.is_negative:
        return f"([red]{text}[/red])" if use_color else f"({text})"
    return f" [green]{text}[/green] " if use_color else f" {text} "


def display_split(
    total: MoneyAmount, shares: dict[str, MoneyAmount], config: LedgerConfig
):
    """Display a computed split in a table."""
    table = Table(title="Split", show_header=True, header_style="bold magenta")
    table.add_column("Participant", style="cyan")
    table.add_column("Share", justify="right")

    for person_id, share in shares.items():
        table.add_row(person_id, format_money(share, config))

    console.print(table)
    console.print(f"  Total: {format_money(total, config)}")


def display_summary(
    summary: LedgerSummary, config: LedgerConfig, user_id: str, history: bool = False
):
    """Display per-person balances with their classification."""
    balances = summary.historical if history else summary.outstanding
    title = "Historical Totals" if history else "Outstanding Balances"

    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Person", style="cyan")
    table.add_column("Paid", justify="right")
    table.add_column("Owed", justify="right")
    table.add_column("Net", justify="right")
    if not history:
        table.add_column("Status", style="yellow")

    for person_id, balance in balances.items():
        name = f"{person_id} (you)" if person_id == user_id else person_id
        row = [
            name,
            format_money(balance.gross_paid, config, use_color=False),
            format_money(balance.gross_owed, config, use_color=False),
            format_money(balance.net, config),
        ]
        if not history:
            row.append(summary.classifications[person_id].describe(config))
        table.add_row(*row)

    console.print(table)
    console.print(f"  Records: {summary.record_count}")

    if not history:
        candidates = reminder_candidates(summary)
        if candidates:
            console.print(f"  [dim]Reminder candidates: {', '.join(candidates)}[/dim]")


def display_partial(result: PartialAggregation, config: LedgerConfig):
    """Display balances from a partial aggregation, plus what was skipped."""
    table = Table(
        title="Outstanding Balances (partial)",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Person", style="cyan")
    table.add_column("Net", justify="right")
    table.add_column("Status", style="yellow")

    for person_id, balance in result.balances.items():
        classification = classify_balance(balance.net, config.balance_epsilon)
        table.add_row(
            person_id,
            format_money(balance.net, config),
            classification.describe(config),
        )

    console.print(table)
    for failure in result.failures:
        console.print(
            f"  [yellow]⚠️  Skipped {failure.record_id}: {failure.message}[/yellow]"
        )


def _existing_people(db: Database) -> list[str]:
    people: set[str] = set()
    for record in db.get_latest_records():
        people.add(record.payer_id)
        people.update(record.participant_ids)
    return sorted(people)


def _upsert(db: Database, record: ExpenseRecord) -> str:
    """Save a new record, or a new version if the stored one differs."""
    existing = db.get_record(record.id)
    if existing is None:
        db.save_record(record)
        return "added"

    comparable = {"version", "settled", "timestamp"}
    if existing.model_dump(exclude=comparable) == record.model_dump(exclude=comparable):
        if existing.settled != record.settled:
            db.set_settled(record.id, record.settled)
            return "settled" if record.settled else "reopened"
        return "unchanged"

    changes = record.model_dump(exclude={"id", "version"})
    db.save_record(existing.revised(**changes))
    return "revised"


@app.command()
def split(
    total: str = typer.Argument(..., help="Amount to split, e.g. 100.00"),
    participants: list[str] | None = typer.Option(
        None, "--participant", "-p", help="Participant id (repeat, in order)"
    ),
    method: SplitKind = typer.Option(SplitKind.EQUAL, "--method", "-m"),
    assignments: list[str] | None = typer.Option(
        None, "--set", "-s", help="ID=VALUE for percentage/shares/fixed/adjustment"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Preview a split without saving anything.

    Example: split-ledger ledger split 100.00 -p alice -p bob -p carol
    """
    setup_logging(verbose)

    try:
        config = load_settings().ledger_config()
        amount = MoneyAmount.parse(total)
        split_method = build_split_method(method, assignments or [])
        shares = compute_split(
            amount,
            participants or [],
            split_method,
            minor_unit_scale=config.minor_unit_scale,
        )
        display_split(amount, shares, config)

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)


@app.command()
def add(
    total: str | None = typer.Option(None, "--total", "-t", help="Amount paid"),
    payer: str | None = typer.Option(None, "--payer", help="Who paid"),
    participants: list[str] | None = typer.Option(
        None, "--participant", "-p", help="Participant id (repeat, in order)"
    ),
    method: SplitKind = typer.Option(SplitKind.EQUAL, "--method", "-m"),
    assignments: list[str] | None = typer.Option(
        None, "--set", "-s", help="ID=VALUE for percentage/shares/fixed/adjustment"
    ),
    description: str = typer.Option("", "--description", "-d"),
    record_id: str | None = typer.Option(None, "--id", help="Record id (generated)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Save without confirming"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Record a shared expense.

    Anything not given as an option (total, payer, participants) is asked for
    interactively, with completion over people already in the ledger.
    """
    setup_logging(verbose)

    try:
        settings = load_settings()
        config = settings.ledger_config()
        db = Database(settings.database_path)
        people = _existing_people(db)

        amount = MoneyAmount.parse(total) if total else prompt_amount()
        if amount is None:
            console.print("[yellow]No amount entered.[/yellow]")
            return

        payer_id = payer or prompt_person(people, "Paid by", default=settings.user_id)
        if payer_id is None:
            console.print("[yellow]No payer entered.[/yellow]")
            return

        participant_ids = participants or prompt_participants(people, payer_id)
        if not participant_ids:
            console.print("[yellow]No participants entered.[/yellow]")
            return

        record = ExpenseRecord(
            id=record_id or uuid.uuid4().hex[:12],
            total_amount=amount,
            payer_id=payer_id,
            participant_ids=tuple(participant_ids),
            split_method=build_split_method(method, assignments or []),
            description=description,
        )
        shares = compute_split(
            record.total_amount,
            record.participant_ids,
            record.split_method,
            minor_unit_scale=config.minor_unit_scale,
        )

        if not yes and not confirm_split(shares, config):
            console.print("[yellow]Not saved.[/yellow]")
            return

        db.save_record(record)
        display_split(record.total_amount, shares, config)
        console.print(f"\n[bold green]✓ Saved expense {record.id}[/bold green]")

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def settle(
    record_id: str = typer.Argument(..., help="Record to mark settled"),
    undo: bool = typer.Option(False, "--undo", help="Mark outstanding again"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Mark an expense settled; its amounts stay in the historical totals."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        record = db.set_settled(record_id, settled=not undo)
        state = "settled" if record.settled else "outstanding"
        console.print(f"[bold green]✓ {record.id} is now {state}[/bold green]")

    except SplitLedgerError as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if "db" in locals():
            db.close()


@app.command(name="import")
def import_snapshot(
    snapshot_path: Path = typer.Argument(..., help="JSON snapshot of app entities"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Import a snapshot of app entities (transactions, group expenses, split
    bills, shared subscriptions).

    Unchanged records are skipped; changed ones are stored as a new version.
    """
    setup_logging(verbose)

    try:
        settings = load_settings()
        snapshot = EntitySnapshot.model_validate_json(snapshot_path.read_text())
        records = to_records(snapshot)

        db = Database(settings.database_path)
        outcomes: dict[str, int] = {}
        for record in records:
            outcome = _upsert(db, record)
            outcomes[outcome] = outcomes.get(outcome, 0) + 1

        counts = ", ".join(f"{n} {name}" for name, n in sorted(outcomes.items()))
        console.print(
            f"[bold green]✓ Imported {len(records)} records[/bold green] "
            f"({counts or 'none'})"
        )

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def balances(
    history: bool = typer.Option(
        False, "--history", help="Show historical totals (settled records included)"
    ),
    partial: bool = typer.Option(
        False, "--partial", help="Skip records that fail to split instead of stopping"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show every person's balance and whether they owe or are owed."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        config = settings.ledger_config()
        db = Database(settings.database_path)
        records = db.get_latest_records()

        if not records:
            console.print("[yellow]No expenses recorded yet.[/yellow]")
            return

        if partial:
            display_partial(
                aggregate_balances_partial(records, config, include_settled=history),
                config,
            )
        else:
            display_summary(
                summarize_ledger(records, config), config, settings.user_id, history
            )

    except SplitLedgerError as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def classify(
    net: str = typer.Argument(..., help="Net balance, e.g. 25.00"),
    epsilon: str | None = typer.Option(None, "--epsilon", help="Settled tolerance"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Classify a single net balance."""
    setup_logging(verbose)

    try:
        config = load_settings().ledger_config()
        tolerance = to_exact_decimal(epsilon) if epsilon else config.balance_epsilon
        classification = classify_balance(MoneyAmount.parse(net), Decimal(tolerance))
        console.print(f"{classification.kind}: {classification.describe(config)}")
    except SplitLedgerError as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)


@app.command()
def history(
    record_id: str = typer.Argument(..., help="Record id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show every stored version of a record."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        config = settings.ledger_config()
        db = Database(settings.database_path)
        versions = db.get_record_history(record_id)

        if not versions:
            console.print(f"[yellow]No record {record_id}.[/yellow]")
            sys.exit(1)

        table = Table(title=f"History of {record_id}", header_style="bold magenta")
        table.add_column("Version", justify="right")
        table.add_column("Total", justify="right")
        table.add_column("Paid by", style="cyan")
        table.add_column("Participants")
        table.add_column("Method")
        table.add_column("Settled", justify="center")

        for version in versions:
            table.add_row(
                str(version.version),
                format_money(version.total_amount, config, use_color=False),
                version.payer_id,
                ", ".join(version.participant_ids),
                version.split_method.kind,
                "✓" if version.settled else "",
            )

        console.print(table)

    except SplitLedgerError as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if "db" in locals():
            db.close()
