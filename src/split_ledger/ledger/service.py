"""Service layer that keeps a record set and serves balances from it.

The ledger core (splitter, aggregator, classifier) is pure. This service adds
the state around it: the current record set and a cached ``LedgerSummary``.

Cache discipline: one lock guards every write and the snapshot swap. Any
record change bumps a generation counter and drops the cached summary.
Summaries are computed outside the lock from an immutable snapshot and only
published if no write happened in the meantime.
"""

import logging
import threading
from collections.abc import Iterable
from typing import Any

from ..exceptions import DuplicateRecordError, RecordNotFoundError
from ..models import (
    BalanceClassification,
    ExpenseRecord,
    LedgerConfig,
    LedgerSummary,
    PersonBalance,
    Settled,
)
from ..money import MoneyAmount
from .aggregator import summarize_ledger
from .classifier import reminder_candidates
from .splitter import split_record

logger = logging.getLogger(__name__)


class LedgerService:
    """In-memory ledger with a cached balance summary."""

    def __init__(
        self, config: LedgerConfig | None = None, records: Iterable[ExpenseRecord] = ()
    ):
        """Initialize the service with an optional starting record set."""
        self.config = config or LedgerConfig()
        self._lock = threading.Lock()
        self._records: dict[str, ExpenseRecord] = {}
        self._generation = 0
        self._summary: LedgerSummary | None = None

        for record in records:
            self.add_record(record)

    def _invalidate(self) -> None:
        # Caller holds the lock
        self._generation += 1
        self._summary = None

    # ========================================================================
    # Record operations
    # ========================================================================

    def add_record(self, record: ExpenseRecord) -> dict[str, MoneyAmount]:
        """
        Add a new record after checking that it splits cleanly.

        Returns:
            The record's split (participant id -> share)

        Raises:
            DuplicateRecordError: If the record id is already present
            SplitLedgerError: Whatever the split engine raises; nothing is stored
        """
        shares = split_record(record, self.config)

        with self._lock:
            if record.id in self._records:
                existing = self._records[record.id]
                raise DuplicateRecordError(record.id, existing.version)
            self._records[record.id] = record
            self._invalidate()

        logger.info(
            f"Added record {record.id}: {record.total_amount} paid by "
            f"{record.payer_id}, split {record.split_method.kind} among "
            f"{len(record.participant_ids)}"
        )
        return shares

    def revise_record(self, record_id: str, **changes: Any) -> ExpenseRecord:
        """
        Replace a record with its next version.

        The new version must split cleanly; otherwise the old one stays.
        """
        current = self.get_record(record_id)
        revised = current.revised(**changes)
        split_record(revised, self.config)

        with self._lock:
            if self._records.get(record_id) is not current:
                raise DuplicateRecordError(record_id, revised.version)
            self._records[record_id] = revised
            self._invalidate()

        logger.info(f"Revised record {record_id} to version {revised.version}")
        return revised

    def set_settled(self, record_id: str, settled: bool = True) -> ExpenseRecord:
        """Mark a record settled (or outstanding again)."""
        with self._lock:
            current = self._records.get(record_id)
            if current is None:
                raise RecordNotFoundError(record_id)
            updated = current.with_settled(settled)
            self._records[record_id] = updated
            self._invalidate()

        logger.info(
            f"Record {record_id} marked {'settled' if settled else 'outstanding'}"
        )
        return updated

    def remove_record(self, record_id: str) -> ExpenseRecord:
        """Drop a record from the ledger."""
        with self._lock:
            removed = self._records.pop(record_id, None)
            if removed is None:
                raise RecordNotFoundError(record_id)
            self._invalidate()

        logger.info(f"Removed record {record_id}")
        return removed

    def get_record(self, record_id: str) -> ExpenseRecord:
        """Get a record by id."""
        with self._lock:
            record = self._records.get(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record

    def records(self) -> list[ExpenseRecord]:
        """Snapshot of the current records, ordered by id."""
        with self._lock:
            return [self._records[record_id] for record_id in sorted(self._records)]

    # ========================================================================
    # Balances
    # ========================================================================

    def summary(self) -> LedgerSummary:
        """
        Current ledger summary, recomputed only after a record change.

        Raises:
            AggregationFailureError: If any record fails to split
        """
        with self._lock:
            if self._summary is not None:
                return self._summary
            generation = self._generation
            snapshot = list(self._records.values())

        summary = summarize_ledger(snapshot, self.config)

        with self._lock:
            if self._generation == generation:
                self._summary = summary
                logger.debug(f"Cached ledger summary (generation {generation})")

        return summary

    def balance_for(self, person_id: str) -> PersonBalance:
        """Outstanding balance for one person (zeros if they owe nothing)."""
        balance = self.summary().outstanding.get(person_id)
        return balance or PersonBalance(person_id=person_id)

    def classify(self, person_id: str) -> BalanceClassification:
        """Classification of a person's outstanding balance."""
        return self.summary().classifications.get(person_id, Settled())

    def reminder_candidates(self) -> list[str]:
        """People who should be offered a reminder."""
        return reminder_candidates(self.summary())
