"""Balance aggregation: fold expense records into per-person balances.

For every record folded in:
- the payer's gross_paid grows by the full total
- every participant's gross_owed grows by their share (the payer's own share
  included when the payer participates)

Remainders are settled inside each record's own split, and decimal addition is
exact, so the result does not depend on record order.

Failure policy: the plain entry points are fail-fast. One bad record raises
``AggregationFailureError`` and no balances are returned. Partial results are
only available through ``aggregate_balances_partial``.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable

from ..exceptions import (
    AggregationFailureError,
    DuplicateRecordError,
    SplitLedgerError,
)
from ..models import (
    ExpenseRecord,
    FailedRecord,
    LedgerConfig,
    LedgerSummary,
    PartialAggregation,
    PersonBalance,
)
from ..money import MoneyAmount
from .classifier import classify_balance
from .splitter import split_record

logger = logging.getLogger(__name__)


def latest_versions(records: Iterable[ExpenseRecord]) -> list[ExpenseRecord]:
    """
    Keep only the newest version of each record id.

    Returns:
        Records ordered by id

    Raises:
        DuplicateRecordError: If two different records share an id and version
    """
    latest: dict[str, ExpenseRecord] = {}
    for record in records:
        current = latest.get(record.id)
        if current is None or record.version > current.version:
            latest[record.id] = record
        elif record.version == current.version and record != current:
            raise DuplicateRecordError(record.id, record.version)
    return [latest[record_id] for record_id in sorted(latest)]


class _BalanceFold:
    """Accumulates gross paid/owed per person."""

    def __init__(self) -> None:
        self.paid: defaultdict[str, MoneyAmount] = defaultdict(MoneyAmount.zero)
        self.owed: defaultdict[str, MoneyAmount] = defaultdict(MoneyAmount.zero)

    def add(self, record: ExpenseRecord, shares: dict[str, MoneyAmount]) -> None:
        self.paid[record.payer_id] += record.total_amount
        for participant_id, share in shares.items():
            self.owed[participant_id] += share

    def balances(self) -> dict[str, PersonBalance]:
        people = sorted(set(self.paid) | set(self.owed))
        return {
            person_id: PersonBalance(
                person_id=person_id,
                gross_paid=self.paid.get(person_id, MoneyAmount.zero()),
                gross_owed=self.owed.get(person_id, MoneyAmount.zero()),
            )
            for person_id in people
        }


def _split_or_fail(
    record: ExpenseRecord, config: LedgerConfig
) -> dict[str, MoneyAmount]:
    try:
        return split_record(record, config)
    except SplitLedgerError as e:
        raise AggregationFailureError(record.id, e) from e


def aggregate_balances(
    records: Iterable[ExpenseRecord],
    config: LedgerConfig | None = None,
    *,
    include_settled: bool = False,
) -> dict[str, PersonBalance]:
    """
    Fold records into ``person_id -> PersonBalance``.

    Settled records are skipped unless ``include_settled`` is set, which gives
    historical gross totals instead of the outstanding balance.

    Raises:
        AggregationFailureError: On the first record whose split fails
        DuplicateRecordError: If the snapshot holds conflicting record versions
    """
    config = config or LedgerConfig()
    fold = _BalanceFold()

    for record in latest_versions(records):
        if record.settled and not include_settled:
            continue
        fold.add(record, _split_or_fail(record, config))

    return fold.balances()


def aggregate_balances_partial(
    records: Iterable[ExpenseRecord],
    config: LedgerConfig | None = None,
    *,
    include_settled: bool = False,
) -> PartialAggregation:
    """
    Like ``aggregate_balances``, but skips records whose split fails.

    The failures are listed in the result so callers can show them. Use this
    only where a visibly incomplete balance is acceptable.
    """
    config = config or LedgerConfig()
    fold = _BalanceFold()
    failures: list[FailedRecord] = []

    for record in latest_versions(records):
        if record.settled and not include_settled:
            continue
        try:
            shares = split_record(record, config)
        except SplitLedgerError as e:
            logger.warning(f"Skipping record {record.id}: {e}")
            failures.append(
                FailedRecord(
                    record_id=record.id,
                    error_type=type(e).__name__,
                    message=str(e),
                )
            )
            continue
        fold.add(record, shares)

    return PartialAggregation(balances=fold.balances(), failures=failures)


def summarize_ledger(
    records: Iterable[ExpenseRecord], config: LedgerConfig | None = None
) -> LedgerSummary:
    """
    Compute outstanding balances, historical totals and classifications.

    Each record is split once; unsettled records feed both totals, settled
    records only the historical one. Everyone who appears in any record gets a
    classification (``Settled`` when they have nothing outstanding).

    Raises:
        AggregationFailureError: On the first record whose split fails
    """
    config = config or LedgerConfig()
    current = latest_versions(records)
    outstanding = _BalanceFold()
    historical = _BalanceFold()

    for record in current:
        shares = _split_or_fail(record, config)
        historical.add(record, shares)
        if not record.settled:
            outstanding.add(record, shares)

    outstanding_balances = outstanding.balances()
    historical_balances = historical.balances()
    classifications = {
        person_id: classify_balance(
            outstanding_balances[person_id].net
            if person_id in outstanding_balances
            else MoneyAmount.zero(),
            config.balance_epsilon,
        )
        for person_id in historical_balances
    }

    logger.debug(
        f"Summarized {len(current)} records across {len(historical_balances)} people"
    )

    return LedgerSummary(
        outstanding=outstanding_balances,
        historical=historical_balances,
        classifications=classifications,
        record_count=len(current),
    )
