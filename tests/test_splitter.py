"""Tests for the split engine."""

from decimal import Decimal
from fractions import Fraction

import pytest

from split_ledger.exceptions import (
    DivisionByZeroError,
    DuplicateParticipantError,
    EmptyParticipantSetError,
    InvalidSplitError,
    SplitMismatchError,
    UnknownParticipantError,
)
from split_ledger.ledger.splitter import (
    allocate_largest_remainder,
    compute_split,
    split_places,
    split_record,
)
from split_ledger.models import (
    AdjustmentSplit,
    EqualSplit,
    ExpenseRecord,
    FixedSplit,
    LedgerConfig,
    PercentageSplit,
    SharesSplit,
)
from split_ledger.money import MoneyAmount


def m(text: str) -> MoneyAmount:
    return MoneyAmount.parse(text)


def shares_of(result: dict[str, MoneyAmount]) -> list[str]:
    """Shares as strings, in participant order."""
    return [str(share) for share in result.values()]


class TestEqualSplit:
    """Equal splits hand leftover cents out in participant order."""

    def test_hundred_among_three(self):
        """$100.00 / 3 -> 33.34, 33.33, 33.33."""
        result = compute_split(m("100.00"), ["a", "b", "c"], EqualSplit())

        assert shares_of(result) == ["33.34", "33.33", "33.33"]
        assert sum(result.values()) == m("100.00")

    def test_participant_order_decides_who_gets_the_extra_cent(self):
        result = compute_split(m("100.00"), ["c", "b", "a"], EqualSplit())

        assert result["c"] == m("33.34")
        assert result["a"] == m("33.33")

    def test_payer_outside_participants(self):
        """$250.00 among P1..P3 -> 83.34, 83.33, 83.33."""
        result = compute_split(m("250.00"), ["P1", "P2", "P3"], EqualSplit())

        assert shares_of(result) == ["83.34", "83.33", "83.33"]

    def test_two_cents_over_three(self):
        result = compute_split(m("0.02"), ["a", "b", "c"], EqualSplit())

        assert shares_of(result) == ["0.01", "0.01", "0.00"]

    def test_single_participant_gets_everything(self):
        result = compute_split(m("12.34"), ["solo"], EqualSplit())

        assert result == {"solo": m("12.34")}

    def test_zero_total(self):
        result = compute_split(m("0"), ["a", "b"], EqualSplit())

        assert all(share.is_zero for share in result.values())

    def test_negative_total_mirrors_positive(self):
        """A refund splits as the mirror image of the charge."""
        charge = compute_split(m("100.00"), ["a", "b", "c"], EqualSplit())
        refund = compute_split(m("-100.00"), ["a", "b", "c"], EqualSplit())

        assert {k: -v for k, v in charge.items()} == refund
        assert sum(refund.values()) == m("-100.00")

    def test_sub_cent_total_uses_finer_quantum(self):
        """A total with more precision than the currency still sums exactly."""
        result = compute_split(m("10.005"), ["a", "b"], EqualSplit())

        assert sum(result.values()) == m("10.005")
        assert shares_of(result) == ["5.003", "5.002"]

    def test_zero_decimal_currency(self):
        result = compute_split(
            m("100"), ["a", "b", "c"], EqualSplit(), minor_unit_scale=0
        )

        assert shares_of(result) == ["34", "33", "33"]

    @pytest.mark.parametrize("cents", [1, 7, 99, 100, 101, 9999, 123457])
    @pytest.mark.parametrize("people", [1, 2, 3, 7])
    def test_shares_sum_to_total_and_differ_by_at_most_a_cent(self, cents, people):
        total = MoneyAmount.from_minor_units(cents)
        participants = [f"p{i}" for i in range(people)]

        result = compute_split(total, participants, EqualSplit())

        assert sum(result.values()) == total
        assert max(result.values()) - min(result.values()) <= m("0.01")


class TestPercentageSplit:
    """Percentage splits use largest-remainder apportionment."""

    def test_even_percentages(self):
        method = PercentageSplit(
            percentages={"a": Decimal("50"), "b": Decimal("30"), "c": Decimal("20")}
        )

        result = compute_split(m("80.00"), ["a", "b", "c"], method)

        assert shares_of(result) == ["40.00", "24.00", "16.00"]

    def test_fractional_percentages(self):
        """Half-percent values split exactly when the cents allow it."""
        method = PercentageSplit(
            percentages={"a": Decimal("33.5"), "b": Decimal("33.5"), "c": Decimal("33")}
        )

        result = compute_split(m("10.00"), ["a", "b", "c"], method)

        assert shares_of(result) == ["3.35", "3.35", "3.30"]

    def test_leftover_cent_to_largest_fraction(self):
        """Tied fractional remainders go to the earlier participant."""
        method = PercentageSplit(
            percentages={"a": Decimal("15"), "b": Decimal("15"), "c": Decimal("70")}
        )

        # 1.5, 1.5 and 7 cents before rounding; one cent left over
        result = compute_split(m("0.10"), ["a", "b", "c"], method)

        assert shares_of(result) == ["0.02", "0.01", "0.07"]
        assert sum(result.values()) == m("0.10")

    def test_missing_participant_gets_zero_percent(self):
        method = PercentageSplit(percentages={"a": Decimal("100")})

        result = compute_split(m("9.99"), ["a", "b"], method)

        assert result == {"a": m("9.99"), "b": m("0")}

    def test_must_sum_to_hundred(self):
        method = PercentageSplit(percentages={"a": Decimal("50"), "b": Decimal("49")})

        with pytest.raises(SplitMismatchError, match="expected 100, got 99"):
            compute_split(m("10.00"), ["a", "b"], method)

    def test_negative_percentage_rejected(self):
        method = PercentageSplit(percentages={"a": Decimal("110"), "b": Decimal("-10")})

        with pytest.raises(InvalidSplitError):
            compute_split(m("10.00"), ["a", "b"], method)

    def test_unknown_participant(self):
        method = PercentageSplit(percentages={"a": Decimal("50"), "z": Decimal("50")})

        with pytest.raises(UnknownParticipantError):
            compute_split(m("10.00"), ["a", "b"], method)


class TestSharesSplit:
    """Weighted splits."""

    def test_two_one_one(self):
        method = SharesSplit(
            weights={"a": Decimal(2), "b": Decimal(1), "c": Decimal(1)}
        )

        result = compute_split(m("100.00"), ["a", "b", "c"], method)

        assert shares_of(result) == ["50.00", "25.00", "25.00"]

    def test_missing_weight_defaults_to_one(self):
        method = SharesSplit(weights={"a": Decimal(2)})

        result = compute_split(m("90.00"), ["a", "b"], method)

        assert shares_of(result) == ["60.00", "30.00"]

    def test_remainder_by_largest_fraction(self):
        """$10.00 at 1:1:1 behaves like an equal split."""
        method = SharesSplit(weights={})

        result = compute_split(m("10.00"), ["a", "b", "c"], method)

        assert shares_of(result) == ["3.34", "3.33", "3.33"]

    def test_zero_weight_participant_owes_nothing(self):
        method = SharesSplit(weights={"a": Decimal(0), "b": Decimal(3)})

        result = compute_split(m("7.00"), ["a", "b"], method)

        assert result == {"a": m("0"), "b": m("7.00")}

    def test_all_zero_weights(self):
        method = SharesSplit(weights={"a": Decimal(0), "b": Decimal(0)})

        with pytest.raises(DivisionByZeroError):
            compute_split(m("7.00"), ["a", "b"], method)

    def test_negative_weight(self):
        method = SharesSplit(weights={"a": Decimal(-1)})

        with pytest.raises(InvalidSplitError):
            compute_split(m("7.00"), ["a", "b"], method)


class TestFixedSplit:
    """Fixed amounts must add up to the total."""

    def test_exact_amounts(self):
        method = FixedSplit(amounts={"a": m("12.50"), "b": m("7.50")})

        result = compute_split(m("20.00"), ["a", "b"], method)

        assert result == {"a": m("12.50"), "b": m("7.50")}

    def test_missing_amount_is_zero(self):
        method = FixedSplit(amounts={"a": m("20.00")})

        result = compute_split(m("20.00"), ["a", "b"], method)

        assert result["b"].is_zero

    def test_mismatch(self):
        method = FixedSplit(amounts={"a": m("12.50"), "b": m("7.49")})

        with pytest.raises(SplitMismatchError) as exc_info:
            compute_split(m("20.00"), ["a", "b"], method)

        assert exc_info.value.expected == m("20.00")
        assert exc_info.value.actual == m("19.99")


class TestAdjustmentSplit:
    """Equal split of the remainder plus per-person adjustments."""

    def test_adjusted_share(self):
        """$90 with A +$15: base 25 each, so A pays 40."""
        method = AdjustmentSplit(adjustments={"A": m("15.00")})

        result = compute_split(m("90.00"), ["A", "B", "C"], method)

        assert shares_of(result) == ["40.00", "25.00", "25.00"]

    def test_no_adjustments_is_equal_split(self):
        result = compute_split(m("100.00"), ["a", "b", "c"], AdjustmentSplit())

        assert shares_of(result) == ["33.34", "33.33", "33.33"]

    def test_negative_adjustment_gives_discount(self):
        method = AdjustmentSplit(adjustments={"b": m("-5.00")})

        result = compute_split(m("35.00"), ["a", "b"], method)

        assert shares_of(result) == ["20.00", "15.00"]
        assert sum(result.values()) == m("35.00")

    def test_adjustment_cannot_flip_a_share(self):
        method = AdjustmentSplit(adjustments={"a": m("30.00")})

        with pytest.raises(InvalidSplitError):
            compute_split(m("20.00"), ["a", "b"], method)


class TestParticipantValidation:
    """Participant list checks shared by every method."""

    def test_empty(self):
        with pytest.raises(EmptyParticipantSetError):
            compute_split(m("10.00"), [], EqualSplit())

    def test_duplicate(self):
        with pytest.raises(DuplicateParticipantError):
            compute_split(m("10.00"), ["a", "a"], EqualSplit())


class TestHelpers:
    """Apportionment helpers and record-level entry point."""

    def test_largest_remainder_ties_keep_order(self):
        thirds = [Fraction(1, 3)] * 3

        assert allocate_largest_remainder(100, thirds) == [34, 33, 33]

    def test_largest_remainder_prefers_biggest_fraction(self):
        ratios = [Fraction(1, 10), Fraction(3, 10), Fraction(6, 10)]

        # raw 0.5 / 1.5 / 3.0 -> floors 0/1/3, leftover 1; tie 0.5 vs 0.5 -> first
        assert allocate_largest_remainder(5, ratios) == [1, 1, 3]

    def test_split_places(self):
        assert split_places(2, m("1.5")) == 2
        assert split_places(2, m("1.505"), m("0.1")) == 3

    def test_split_record_uses_config_scale(self):
        record = ExpenseRecord(
            id="r1",
            total_amount=m("100"),
            payer_id="a",
            participant_ids=("a", "b", "c"),
        )

        result = split_record(record, LedgerConfig(minor_unit_scale=0))

        assert shares_of(result) == ["34", "33", "33"]


class TestRefunds:
    """Negative totals split as the mirror image of the matching charge."""

    @pytest.mark.parametrize(
        "method",
        [
            PercentageSplit(
                percentages={
                    "a": Decimal("33.3"),
                    "b": Decimal("33.3"),
                    "c": Decimal("33.4"),
                }
            ),
            PercentageSplit(percentages={"a": Decimal("12.5"), "b": Decimal("87.5")}),
            SharesSplit(weights={"a": Decimal("2"), "b": Decimal("1")}),
            SharesSplit(weights={"a": Decimal("0.7"), "c": Decimal("0")}),
            AdjustmentSplit(adjustments={"a": m("0.02")}),
            AdjustmentSplit(adjustments={"b": m("-0.01"), "c": m("0.03")}),
        ],
        ids=lambda method: method.kind,
    )
    @pytest.mark.parametrize("total", ["100.00", "0.07", "87.35"])
    def test_refund_mirrors_charge(self, method, total):
        refund_method = method
        if isinstance(method, AdjustmentSplit):
            refund_method = AdjustmentSplit(
                adjustments={k: -v for k, v in method.adjustments.items()}
            )
        charge = compute_split(m(total), ["a", "b", "c"], method)
        refund = compute_split(-m(total), ["a", "b", "c"], refund_method)

        assert refund == {k: -v for k, v in charge.items()}
        assert sum(refund.values()) == -m(total)


class TestPercentagesCoverTheTotal:
    """Percentages summing to exactly 100 always give shares summing to the total."""

    @pytest.mark.parametrize(
        "percentages",
        [
            ["100"],
            ["50", "50"],
            ["33.33", "33.33", "33.34"],
            ["0.01", "99.99"],
            ["12.5", "12.5", "25", "50"],
            ["14.2857"] * 6 + ["14.2858"],
            ["0", "100", "0"],
        ],
    )
    @pytest.mark.parametrize("total", ["0.01", "0.99", "10.00", "87.35", "-123456.78"])
    def test_shares_sum_to_total(self, percentages, total):
        participants = [f"p{i}" for i in range(len(percentages))]
        method = PercentageSplit(
            percentages={
                p: Decimal(value)
                for p, value in zip(participants, percentages, strict=True)
            }
        )

        result = compute_split(m(total), participants, method)

        assert sum(result.values()) == m(total)


class TestLargestRemainderRatios:
    """Apportionment needs ratios that add up to exactly one."""

    @pytest.mark.parametrize(
        "ratios",
        [
            [Fraction(1, 2)],
            [Fraction(1, 2), Fraction(1, 3)],
            [Fraction(2, 3), Fraction(2, 3)],
            [],
        ],
    )
    def test_ratios_not_summing_to_one(self, ratios):
        with pytest.raises(InvalidSplitError, match="sum to exactly 1"):
            allocate_largest_remainder(10, ratios)
