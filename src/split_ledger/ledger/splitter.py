"""Split engine: exact per-participant shares for every split method.

Every split is computed on integer counts of the split quantum (normally the
currency's minor unit) and the shares always add back up to the total exactly.

Steps for proportional splits (percentage / shares):
1. Compute each participant's exact rational share of the total
2. Floor every share to a whole number of units
3. Hand the leftover units, one each, to the participants with the largest
   fractional remainders (ties go to the earlier participant)

Negative totals (refunds) are split on their magnitude and the sign is put back
on every share, so a refund splits as the mirror image of the charge.
"""

import logging
import math
from collections.abc import Mapping, Sequence
from decimal import Decimal
from fractions import Fraction
from typing import assert_never

from ..exceptions import (
    DivisionByZeroError,
    InvalidSplitError,
    SplitMismatchError,
    UnknownParticipantError,
)
from ..models import (
    AdjustmentSplit,
    EqualSplit,
    ExpenseRecord,
    FixedSplit,
    LedgerConfig,
    PercentageSplit,
    SharesSplit,
    SplitMethod,
    validate_participants,
)
from ..money import MoneyAmount, exact_sum

logger = logging.getLogger(__name__)

HUNDRED = Decimal(100)


def split_places(minor_unit_scale: int, *amounts: MoneyAmount) -> int:
    """
    Decimal places of the split quantum.

    Normally the currency's minor unit. If an input carries finer precision
    (e.g. a lossy-imported 10.005 total), the quantum shrinks to match so the
    shares can still sum to the total exactly.
    """
    return max([minor_unit_scale, *(amount.decimal_places for amount in amounts)])


def _build_shares(
    participants: Sequence[str], units: Sequence[int], places: int, negative: bool
) -> dict[str, MoneyAmount]:
    direction = -1 if negative else 1
    return {
        participant_id: MoneyAmount.from_minor_units(direction * count, places)
        for participant_id, count in zip(participants, units, strict=True)
    }


def _check_known(participants: Sequence[str], keys: Mapping[str, object]) -> None:
    known = set(participants)
    for participant_id in keys:
        if participant_id not in known:
            raise UnknownParticipantError(participant_id)


def allocate_largest_remainder(magnitude: int, ratios: Sequence[Fraction]) -> list[int]:
    """
    Apportion ``magnitude`` whole units by ``ratios`` (which must sum to 1).

    Returns:
        Units per entry, in the same order as ``ratios``, summing to ``magnitude``
    """
    total_ratio = sum(ratios, Fraction(0))
    if total_ratio != 1:
        raise InvalidSplitError(f"Ratios must sum to exactly 1, got {total_ratio}")

    raw = [magnitude * ratio for ratio in ratios]
    units = [math.floor(share) for share in raw]
    leftover = magnitude - sum(units)

    # sorted() is stable, so equal remainders keep participant order
    ranking = sorted(range(len(raw)), key=lambda index: -(raw[index] - units[index]))
    for index in ranking[:leftover]:
        units[index] += 1

    if leftover:
        logger.debug(
            f"Distributed {leftover} leftover unit(s) to positions {ranking[:leftover]}"
        )
    return units


def equal_split(
    total: MoneyAmount, participant_ids: Sequence[str], *, minor_unit_scale: int = 2
) -> dict[str, MoneyAmount]:
    """
    Split ``total`` equally.

    The remainder is given out one minor unit at a time in participant order,
    so shares differ by at most one unit and $100.00 / 3 is always
    33.34, 33.33, 33.33.
    """
    participants = validate_participants(participant_ids)
    places = split_places(minor_unit_scale, total)
    magnitude = abs(total).to_minor_units(places)

    base, remainder = divmod(magnitude, len(participants))
    units = [
        base + (1 if index < remainder else 0) for index in range(len(participants))
    ]

    if remainder:
        logger.debug(
            f"Equal split of {total}: {remainder} extra unit(s) to "
            f"{list(participants[:remainder])}"
        )
    return _build_shares(participants, units, places, total.is_negative)


def percentage_split(
    total: MoneyAmount,
    participant_ids: Sequence[str],
    percentages: Mapping[str, Decimal],
    *,
    minor_unit_scale: int = 2,
) -> dict[str, MoneyAmount]:
    """
    Split by percentage. Participants missing from ``percentages`` get 0%.

    Raises:
        UnknownParticipantError: If a percentage names a non-participant
        InvalidSplitError: If a percentage is negative
        SplitMismatchError: If the percentages don't sum to exactly 100
    """
    participants = validate_participants(participant_ids)
    _check_known(participants, percentages)

    values = [
        percentages.get(participant_id, Decimal(0)) for participant_id in participants
    ]
    for participant_id, value in zip(participants, values, strict=True):
        if value < 0:
            raise InvalidSplitError(
                f"Percentage for {participant_id!r} is negative: {value}"
            )

    total_percent = exact_sum(values)
    if total_percent != HUNDRED:
        raise SplitMismatchError(expected=HUNDRED, actual=total_percent)

    places = split_places(minor_unit_scale, total)
    magnitude = abs(total).to_minor_units(places)
    ratios = [Fraction(value) / 100 for value in values]
    units = allocate_largest_remainder(magnitude, ratios)
    return _build_shares(participants, units, places, total.is_negative)


def shares_split(
    total: MoneyAmount,
    participant_ids: Sequence[str],
    weights: Mapping[str, Decimal],
    *,
    minor_unit_scale: int = 2,
) -> dict[str, MoneyAmount]:
    """
    Split in proportion to weights. Participants missing from ``weights`` get 1.

    Raises:
        UnknownParticipantError: If a weight names a non-participant
        InvalidSplitError: If a weight is negative
        DivisionByZeroError: If all weights are zero
    """
    participants = validate_participants(participant_ids)
    _check_known(participants, weights)

    values = [
        weights.get(participant_id, Decimal(1)) for participant_id in participants
    ]
    for participant_id, value in zip(participants, values, strict=True):
        if value < 0:
            raise InvalidSplitError(
                f"Weight for {participant_id!r} is negative: {value}"
            )

    total_weight = exact_sum(values)
    if total_weight == 0:
        raise DivisionByZeroError("Total share weight is zero")

    places = split_places(minor_unit_scale, total)
    magnitude = abs(total).to_minor_units(places)
    ratios = [Fraction(value) / Fraction(total_weight) for value in values]
    units = allocate_largest_remainder(magnitude, ratios)
    return _build_shares(participants, units, places, total.is_negative)


def fixed_split(
    total: MoneyAmount,
    participant_ids: Sequence[str],
    amounts: Mapping[str, MoneyAmount],
) -> dict[str, MoneyAmount]:
    """
    Use the given shares as-is. Participants missing from ``amounts`` owe zero.

    Raises:
        UnknownParticipantError: If an amount names a non-participant
        SplitMismatchError: If the amounts don't sum to the total exactly
    """
    participants = validate_participants(participant_ids)
    _check_known(participants, amounts)

    shares = {
        participant_id: amounts.get(participant_id, MoneyAmount.zero())
        for participant_id in participants
    }
    actual = sum(shares.values(), MoneyAmount.zero())
    if actual != total:
        raise SplitMismatchError(expected=total, actual=actual)
    return shares


def adjustment_split(
    total: MoneyAmount,
    participant_ids: Sequence[str],
    adjustments: Mapping[str, MoneyAmount],
    *,
    minor_unit_scale: int = 2,
) -> dict[str, MoneyAmount]:
    """
    Equal split of what's left after adjustments, then each adjustment added.

    Example: $90 among A, B, C with A +$15 -> base split of $75 is 25/25/25,
    so shares are A 40, B 25, C 25.

    Raises:
        UnknownParticipantError: If an adjustment names a non-participant
        InvalidSplitError: If a share ends up with the opposite sign of the total
    """
    participants = validate_participants(participant_ids)
    _check_known(participants, adjustments)

    deltas = [
        adjustments.get(participant_id, MoneyAmount.zero())
        for participant_id in participants
    ]
    places = split_places(minor_unit_scale, total, *deltas)
    remaining = total - sum(deltas, MoneyAmount.zero())
    base = equal_split(remaining, participants, minor_unit_scale=places)

    shares = {
        participant_id: base[participant_id] + delta
        for participant_id, delta in zip(participants, deltas, strict=True)
    }
    if not total.is_zero:
        for participant_id, share in shares.items():
            if share.sign == -total.sign:
                raise InvalidSplitError(
                    f"Adjustments leave {participant_id!r} with {share}, "
                    f"opposite in sign to the total {total}"
                )
    return shares


def compute_split(
    total: MoneyAmount,
    participant_ids: Sequence[str],
    method: SplitMethod,
    *,
    minor_unit_scale: int = 2,
) -> dict[str, MoneyAmount]:
    """
    Compute every participant's share of ``total``.

    Args:
        total: Amount to split (may be zero or negative)
        participant_ids: Ordered, unique participant ids
        method: How to split
        minor_unit_scale: Decimal places of the currency's minor unit

    Returns:
        participant id -> share, in participant order, summing exactly to total

    Raises:
        EmptyParticipantSetError: If there are no participants
        DuplicateParticipantError: If a participant is listed twice
        SplitMismatchError, InvalidSplitError, UnknownParticipantError,
        DivisionByZeroError: See the individual split functions
    """
    match method:
        case EqualSplit():
            return equal_split(
                total, participant_ids, minor_unit_scale=minor_unit_scale
            )
        case PercentageSplit():
            return percentage_split(
                total,
                participant_ids,
                method.percentages,
                minor_unit_scale=minor_unit_scale,
            )
        case FixedSplit():
            return fixed_split(total, participant_ids, method.amounts)
        case SharesSplit():
            return shares_split(
                total,
                participant_ids,
                method.weights,
                minor_unit_scale=minor_unit_scale,
            )
        case AdjustmentSplit():
            return adjustment_split(
                total,
                participant_ids,
                method.adjustments,
                minor_unit_scale=minor_unit_scale,
            )
        case _:
            assert_never(method)


def split_record(
    record: ExpenseRecord, config: LedgerConfig | None = None
) -> dict[str, MoneyAmount]:
    """Compute the shares of a single record."""
    scale = config.minor_unit_scale if config else 2
    return compute_split(
        record.total_amount,
        record.participant_ids,
        record.split_method,
        minor_unit_scale=scale,
    )
