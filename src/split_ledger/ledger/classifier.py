"""Balance classification: owed to, owed by, or settled."""

from collections.abc import Mapping
from decimal import Decimal

from ..exceptions import InvalidAmountError
from ..models import (
    BalanceClassification,
    LedgerSummary,
    OwedByUser,
    OwedToUser,
    PersonBalance,
    Settled,
)
from ..money import MoneyAmount, to_exact_decimal

# Absorbs residue from long aggregation chains and lossy float imports
DEFAULT_EPSILON = Decimal("0.001")


def classify_balance(
    net: MoneyAmount, epsilon: Decimal | MoneyAmount = DEFAULT_EPSILON
) -> BalanceClassification:
    """
    Classify a net balance.

    - net > epsilon  -> OwedToUser(net)
    - net < -epsilon -> OwedByUser(abs(net))
    - otherwise      -> Settled

    Raises:
        InvalidAmountError: If epsilon is negative (or a float)
    """
    if isinstance(epsilon, MoneyAmount):
        tolerance = epsilon.value
    else:
        tolerance = to_exact_decimal(epsilon)
    if tolerance < 0:
        raise InvalidAmountError(epsilon, f"Epsilon must not be negative: {epsilon}")

    if net.value > tolerance:
        return OwedToUser(amount=net)
    if net.value < -tolerance:
        return OwedByUser(amount=abs(net))
    return Settled()


def classify_person(
    balances: Mapping[str, PersonBalance],
    person_id: str,
    epsilon: Decimal | MoneyAmount = DEFAULT_EPSILON,
) -> BalanceClassification:
    """Classify one person; someone with no balance entry is settled."""
    balance = balances.get(person_id)
    if balance is None:
        return Settled()
    return classify_balance(balance.net, epsilon)


def reminder_candidates(summary: LedgerSummary) -> list[str]:
    """People whose outstanding balance is not settled, ordered by id."""
    return sorted(
        person_id
        for person_id, classification in summary.classifications.items()
        if classification.needs_reminder
    )
