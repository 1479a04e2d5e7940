"""Translate the app's expense-like entities into ledger records.

The app stores amounts as binary floats. Every float crosses into the ledger
exactly once, here, through the named lossy-import functions; nothing past this
module sees a float.
"""

import logging
from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from typing import Literal, assert_never

from pydantic import BaseModel, Field

from ..models import (
    EqualSplit,
    ExpenseRecord,
    FixedSplit,
    PercentageSplit,
    SharesSplit,
    SplitMethod,
)
from ..money import MoneyAmount, decimal_from_float_lossy, exact_sum

logger = logging.getLogger(__name__)

# Float percentages within this of 100 are treated as proportions
PERCENT_TOLERANCE = Decimal("0.01")
HUNDRED = Decimal(100)

# ============================================================================
# App Entities (float-based snapshot shapes)
# ============================================================================


class TransactionEntity(BaseModel):
    """A personal transaction; recorded for history only."""

    id: str
    title: str = ""
    amount: float
    owner_id: str
    date: datetime = Field(default_factory=datetime.now)


class GroupExpenseEntity(BaseModel):
    """An expense inside a group, always split equally."""

    id: str
    title: str = ""
    amount: float
    paid_by: str
    split_between: list[str]
    date: datetime = Field(default_factory=datetime.now)
    is_settled: bool = False


class SplitParticipantEntity(BaseModel):
    """One participant's line on a split bill."""

    person_id: str
    amount: float = 0.0
    has_paid: bool = False
    percentage: float | None = None
    shares: int | None = None


class SplitBillEntity(BaseModel):
    """A bill split with friends using one of the app's split types."""

    id: str
    title: str = ""
    total_amount: float
    paid_by_id: str
    split_type: Literal[
        "Split Equally", "Exact Amounts", "Percentages", "Shares", "Adjustments"
    ]
    participants: list[SplitParticipantEntity]
    date: datetime = Field(default_factory=datetime.now)

    @property
    def is_fully_settled(self) -> bool:
        return bool(self.participants) and all(p.has_paid for p in self.participants)


class SharedSubscriptionEntity(BaseModel):
    """A subscription whose cost is shared with other people."""

    id: str
    name: str = ""
    price: float
    shared_by: str
    shared_with: list[str]
    cost_split: Literal["Split Equally", "By Percentage", "Fixed Amount", "Free Access"]
    percentages: dict[str, float] = Field(default_factory=dict)
    fixed_costs: dict[str, float] = Field(default_factory=dict)
    billing_date: datetime = Field(default_factory=datetime.now)
    is_settled: bool = False


class EntitySnapshot(BaseModel):
    """A read-only snapshot of every expense-like entity in the app."""

    transactions: list[TransactionEntity] = Field(default_factory=list)
    group_expenses: list[GroupExpenseEntity] = Field(default_factory=list)
    split_bills: list[SplitBillEntity] = Field(default_factory=list)
    shared_subscriptions: list[SharedSubscriptionEntity] = Field(default_factory=list)


# ============================================================================
# Translation
# ============================================================================


def record_from_transaction(entity: TransactionEntity) -> ExpenseRecord:
    """A personal spend: the owner pays and is the only participant."""
    return ExpenseRecord(
        id=f"transaction:{entity.id}",
        total_amount=MoneyAmount.from_float_lossy(entity.amount),
        payer_id=entity.owner_id,
        participant_ids=(entity.owner_id,),
        timestamp=entity.date,
        description=entity.title,
        source="transaction",
    )


def record_from_group_expense(entity: GroupExpenseEntity) -> ExpenseRecord:
    """Group expenses are split equally among ``split_between``."""
    return ExpenseRecord(
        id=f"group_expense:{entity.id}",
        total_amount=MoneyAmount.from_float_lossy(entity.amount),
        payer_id=entity.paid_by,
        participant_ids=tuple(entity.split_between),
        split_method=EqualSplit(),
        timestamp=entity.date,
        settled=entity.is_settled,
        description=entity.title,
        source="group_expense",
    )


def _imported_percentages(
    raw: dict[str, float], participant_ids: Sequence[str]
) -> SplitMethod:
    """
    Map the app's float percentages onto a split method.

    Floats like ``100 / 3`` three times add up to 100.000000000000008, not 100.
    When the sum is within ``PERCENT_TOLERANCE`` of 100 the values are used as
    share weights instead, which keeps their proportions and still sums to the
    total exactly. Anything further off stays a percentage split and fails there.
    """
    percentages = {
        person_id: decimal_from_float_lossy(value) for person_id, value in raw.items()
    }
    total = exact_sum(percentages.values())
    if total == HUNDRED or abs(total - HUNDRED) > PERCENT_TOLERANCE:
        return PercentageSplit(percentages=percentages)

    logger.debug(f"Imported percentages sum to {total}; using them as weights")
    # A missing weight would default to 1 share, a missing percentage is 0%
    weights = {person_id: Decimal(0) for person_id in participant_ids}
    weights.update(percentages)
    return SharesSplit(weights=weights)


def _split_bill_method(entity: SplitBillEntity) -> SplitMethod:
    match entity.split_type:
        case "Split Equally":
            return EqualSplit()
        case "Percentages":
            return _imported_percentages(
                {p.person_id: p.percentage or 0.0 for p in entity.participants},
                [p.person_id for p in entity.participants],
            )
        case "Shares":
            return SharesSplit(
                weights={
                    p.person_id: Decimal(p.shares if p.shares is not None else 1)
                    for p in entity.participants
                }
            )
        case "Exact Amounts" | "Adjustments":
            # Adjusted bills keep the per-person amounts the user confirmed
            return FixedSplit(
                amounts={
                    p.person_id: MoneyAmount.from_float_lossy(p.amount)
                    for p in entity.participants
                }
            )
        case _:
            assert_never(entity.split_type)


def record_from_split_bill(entity: SplitBillEntity) -> ExpenseRecord:
    """Split bills keep their split type; settled once everyone has paid."""
    return ExpenseRecord(
        id=f"split_bill:{entity.id}",
        total_amount=MoneyAmount.from_float_lossy(entity.total_amount),
        payer_id=entity.paid_by_id,
        participant_ids=tuple(p.person_id for p in entity.participants),
        split_method=_split_bill_method(entity),
        timestamp=entity.date,
        settled=entity.is_fully_settled,
        description=entity.title,
        source="split_bill",
    )


def record_from_shared_subscription(entity: SharedSubscriptionEntity) -> ExpenseRecord:
    """
    One billing period of a shared subscription.

    The sharer participates first, followed by ``shared_with``. Free access
    leaves the sharer as the only participant.
    """
    others = [
        person_id for person_id in entity.shared_with if person_id != entity.shared_by
    ]
    participants: tuple[str, ...] = (entity.shared_by, *others)
    method: SplitMethod

    match entity.cost_split:
        case "Split Equally":
            method = EqualSplit()
        case "By Percentage":
            method = _imported_percentages(entity.percentages, participants)
        case "Fixed Amount":
            method = FixedSplit(
                amounts={
                    person_id: MoneyAmount.from_float_lossy(value)
                    for person_id, value in entity.fixed_costs.items()
                }
            )
        case "Free Access":
            participants = (entity.shared_by,)
            method = EqualSplit()
        case _:
            assert_never(entity.cost_split)

    return ExpenseRecord(
        id=f"shared_subscription:{entity.id}",
        total_amount=MoneyAmount.from_float_lossy(entity.price),
        payer_id=entity.shared_by,
        participant_ids=participants,
        split_method=method,
        timestamp=entity.billing_date,
        settled=entity.is_settled,
        description=entity.name,
        source="shared_subscription",
    )


def to_records(snapshot: EntitySnapshot) -> list[ExpenseRecord]:
    """Translate a whole snapshot. The first entity that fails stops the import."""
    records = [
        *(record_from_transaction(t) for t in snapshot.transactions),
        *(record_from_group_expense(g) for g in snapshot.group_expenses),
        *(record_from_split_bill(b) for b in snapshot.split_bills),
        *(record_from_shared_subscription(s) for s in snapshot.shared_subscriptions),
    ]
    logger.info(f"Translated {len(records)} entities into ledger records")
    return records
