"""split-ledger - Exact expense splitting and balance tracking."""

__version__ = "0.1.0"

from .config import Settings, load_settings
from .db import Database
from .ledger.aggregator import (
    aggregate_balances,
    aggregate_balances_partial,
    summarize_ledger,
)
from .ledger.classifier import classify_balance, reminder_candidates
from .ledger.service import LedgerService
from .ledger.splitter import compute_split, split_record
from .models import (
    AdjustmentSplit,
    EqualSplit,
    ExpenseRecord,
    FixedSplit,
    LedgerConfig,
    OwedByUser,
    OwedToUser,
    PercentageSplit,
    PersonBalance,
    Settled,
    SharesSplit,
)
from .money import MoneyAmount, RoundingMode

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "aggregate_balances",
    "aggregate_balances_partial",
    "summarize_ledger",
    "classify_balance",
    "reminder_candidates",
    "LedgerService",
    "compute_split",
    "split_record",
    "AdjustmentSplit",
    "EqualSplit",
    "ExpenseRecord",
    "FixedSplit",
    "LedgerConfig",
    "OwedByUser",
    "OwedToUser",
    "PercentageSplit",
    "PersonBalance",
    "Settled",
    "SharesSplit",
    "MoneyAmount",
    "RoundingMode",
]
