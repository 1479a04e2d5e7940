"""Pydantic domain models for split-ledger."""

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .exceptions import DuplicateParticipantError, EmptyParticipantSetError
from .money import ExactDecimal, MoneyAmount

# ============================================================================
# Configuration Models
# ============================================================================


class LedgerConfig(BaseModel):
    """Currency and tolerance settings passed explicitly into the ledger core."""

    model_config = ConfigDict(frozen=True)

    currency_code: str = "USD"
    currency_symbol: str = "$"
    minor_unit_scale: int = Field(default=2, ge=0, le=8)
    balance_epsilon: ExactDecimal = Field(default=Decimal("0.001"), ge=0)


# ============================================================================
# Split Methods
# ============================================================================


class EqualSplit(BaseModel):
    """Divide the total equally; leftover minor units go in participant order."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["equal"] = "equal"


class PercentageSplit(BaseModel):
    """Each participant pays a percentage of the total (must sum to 100)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["percentage"] = "percentage"
    percentages: dict[str, ExactDecimal]


class FixedSplit(BaseModel):
    """Each participant's share is given directly (must sum to the total)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["fixed"] = "fixed"
    amounts: dict[str, MoneyAmount]


class SharesSplit(BaseModel):
    """Shares proportional to weights, e.g. 2:1:1."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["shares"] = "shares"
    weights: dict[str, ExactDecimal]


class AdjustmentSplit(BaseModel):
    """Start from an equal split, then add per-participant adjustments."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["adjustment"] = "adjustment"
    adjustments: dict[str, MoneyAmount] = Field(default_factory=dict)


SplitMethod = Annotated[
    EqualSplit | PercentageSplit | FixedSplit | SharesSplit | AdjustmentSplit,
    Field(discriminator="kind"),
]


def validate_participants(participant_ids: Iterable[str]) -> tuple[str, ...]:
    """
    Check a participant list is non-empty and has no repeats.

    Returns:
        The participants as a tuple, order preserved

    Raises:
        EmptyParticipantSetError: If there are no participants
        DuplicateParticipantError: If an id appears more than once
    """
    ids = tuple(participant_ids)
    if not ids:
        raise EmptyParticipantSetError()

    seen: set[str] = set()
    for participant_id in ids:
        if participant_id in seen:
            raise DuplicateParticipantError(participant_id)
        seen.add(participant_id)
    return ids


# ============================================================================
# Ledger Records
# ============================================================================

RecordSource = Literal[
    "manual", "transaction", "group_expense", "split_bill", "shared_subscription"
]


class ExpenseRecord(BaseModel):
    """A shared expense in canonical ledger form.

    Participant order is fixed when the record is created; the equal-split
    remainder is handed out in that order. Edits go through ``revised`` and
    produce a new version instead of changing a stored split.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    total_amount: MoneyAmount
    payer_id: str
    participant_ids: tuple[str, ...]
    split_method: SplitMethod = Field(default_factory=EqualSplit)
    timestamp: datetime = Field(default_factory=datetime.now)
    settled: bool = False
    version: int = Field(default=1, ge=1)
    description: str = ""
    source: RecordSource = "manual"

    @field_validator("participant_ids")
    @classmethod
    def check_participants(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return validate_participants(value)

    @property
    def is_self_paid(self) -> bool:
        """True when the payer is the only participant (no net ledger effect)."""
        return self.participant_ids == (self.payer_id,)

    def revised(self, **changes: Any) -> "ExpenseRecord":
        """Return the next version of this record with ``changes`` applied."""
        data = self.model_dump()
        data.update(changes)
        data["version"] = self.version + 1
        return ExpenseRecord.model_validate(data)

    def with_settled(self, settled: bool = True) -> "ExpenseRecord":
        """Toggle settlement; amounts, participants and version are untouched."""
        return self.model_copy(update={"settled": settled})


# ============================================================================
# Balances
# ============================================================================


class PersonBalance(BaseModel):
    """Derived per-person totals. Always recomputed from records, never edited."""

    model_config = ConfigDict(frozen=True)

    person_id: str
    gross_paid: MoneyAmount = Field(default_factory=MoneyAmount.zero)
    gross_owed: MoneyAmount = Field(default_factory=MoneyAmount.zero)

    @property
    def net(self) -> MoneyAmount:
        """Paid minus owed. Positive means this person is owed money."""
        return self.gross_paid - self.gross_owed


class OwedToUser(BaseModel):
    """Net balance is positive: others owe this person ``amount``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["owed_to_user"] = "owed_to_user"
    amount: MoneyAmount

    @property
    def needs_reminder(self) -> bool:
        return True

    def describe(self, config: LedgerConfig | None = None) -> str:
        return f"is owed {self.amount.formatted(config)}"


class OwedByUser(BaseModel):
    """Net balance is negative: this person owes ``amount``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["owed_by_user"] = "owed_by_user"
    amount: MoneyAmount

    @property
    def needs_reminder(self) -> bool:
        return True

    def describe(self, config: LedgerConfig | None = None) -> str:
        return f"owes {self.amount.formatted(config)}"


class Settled(BaseModel):
    """Net balance is within epsilon of zero."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["settled"] = "settled"

    @property
    def needs_reminder(self) -> bool:
        return False

    def describe(self, config: LedgerConfig | None = None) -> str:
        return "settled up"


BalanceClassification = Annotated[
    OwedToUser | OwedByUser | Settled, Field(discriminator="kind")
]


class LedgerSummary(BaseModel):
    """Outstanding and historical balances for a record set.

    - outstanding: unsettled records only; drives classification and reminders
    - historical: every record, settled ones included
    """

    model_config = ConfigDict(frozen=True)

    outstanding: dict[str, PersonBalance]
    historical: dict[str, PersonBalance]
    classifications: dict[str, BalanceClassification]
    record_count: int = 0


class FailedRecord(BaseModel):
    """A record that could not be folded in partial aggregation mode."""

    record_id: str
    error_type: str
    message: str


class PartialAggregation(BaseModel):
    """Balances from the records that succeeded plus the ids that failed."""

    balances: dict[str, PersonBalance]
    failures: list[FailedRecord] = Field(default_factory=list)

    @property
    def failed_record_ids(self) -> list[str]:
        return [failure.record_id for failure in self.failures]

    @property
    def complete(self) -> bool:
        return not self.failures
