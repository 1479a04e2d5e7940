"""Exact decimal money type.

All ledger arithmetic goes through ``MoneyAmount``. Addition, subtraction and
scalar multiplication run in a decimal context that traps ``Inexact``, so a
committed value is never silently rounded. Rounding happens only when a caller
asks for it explicitly (``rounded`` / ``formatted``).

Binary floats are rejected everywhere except the explicitly named lossy import
functions (``MoneyAmount.from_float_lossy`` and ``decimal_from_float_lossy``).
"""

import math
from decimal import (
    ROUND_CEILING,
    ROUND_FLOOR,
    ROUND_HALF_EVEN,
    ROUND_HALF_UP,
    Context,
    Decimal,
    DivisionByZero,
    Inexact,
    InvalidOperation,
    Overflow,
)
from collections.abc import Callable, Iterable
from enum import Enum
from typing import TYPE_CHECKING, Annotated, Any

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    model_serializer,
    model_validator,
)

from .exceptions import DivisionByZeroError, InvalidAmountError

if TYPE_CHECKING:
    from .models import LedgerConfig

# Exact arithmetic: anything that would need rounding raises decimal.Inexact
EXACT_CONTEXT = Context(
    prec=100, traps=[InvalidOperation, DivisionByZero, Overflow, Inexact]
)

# Division is the one operation that may be inexact (decimal128 precision)
DIVISION_CONTEXT = Context(
    prec=34, traps=[InvalidOperation, DivisionByZero, Overflow]
)

# Used for explicit, caller-requested rounding
ROUNDING_CONTEXT = Context(prec=100, traps=[InvalidOperation, Overflow])

MAX_DIGITS = EXACT_CONTEXT.prec


class RoundingMode(str, Enum):
    """Rounding modes offered at presentation boundaries."""

    UP = "up"  # toward +infinity
    DOWN = "down"  # toward -infinity
    NEAREST = "nearest"  # half away from zero
    BANKERS = "bankers"  # half to even

    @property
    def decimal_rounding(self) -> str:
        return {
            RoundingMode.UP: ROUND_CEILING,
            RoundingMode.DOWN: ROUND_FLOOR,
            RoundingMode.NEAREST: ROUND_HALF_UP,
            RoundingMode.BANKERS: ROUND_HALF_EVEN,
        }[self]


def to_exact_decimal(raw: Any) -> Decimal:
    """
    Convert a raw value to a finite Decimal without going through binary floats.

    Accepts Decimal, int and decimal strings.

    Raises:
        InvalidAmountError: For floats, booleans, non-numeric strings, NaN and
            infinities, or any other type
    """
    if isinstance(raw, bool):
        raise InvalidAmountError(raw)
    if isinstance(raw, float):
        raise InvalidAmountError(
            raw,
            f"Binary floating point value {raw!r} is not an exact amount; "
            f"use the lossy import functions to convert it deliberately",
        )

    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, int):
        value = Decimal(raw)
    elif isinstance(raw, str):
        try:
            value = Decimal(raw.strip())
        except InvalidOperation as e:
            raise InvalidAmountError(raw) from e
    else:
        raise InvalidAmountError(raw)

    if not value.is_finite():
        raise InvalidAmountError(raw)
    if len(value.as_tuple().digits) > MAX_DIGITS:
        raise InvalidAmountError(
            raw, f"Amount has more than {MAX_DIGITS} significant digits"
        )
    return value


def _exact(operation: Callable[..., Decimal], *operands: Decimal) -> Decimal:
    """Run an exact-context operation; lost precision becomes InvalidAmountError."""
    try:
        return operation(*operands)
    except (Inexact, Overflow) as e:
        raise InvalidAmountError(
            operands,
            f"Result would need more than {MAX_DIGITS} significant digits",
        ) from e


def exact_sum(values: Iterable[Decimal]) -> Decimal:
    """Sum plain Decimals (percentages, weights) without silent rounding."""
    total = Decimal(0)
    for value in values:
        total = _exact(EXACT_CONTEXT.add, total, value)
    return total


def decimal_from_float_lossy(value: float | int) -> Decimal:
    """
    One-way import of a binary float into a Decimal.

    Uses the shortest repr that round-trips the float, so ``0.1`` becomes
    ``Decimal("0.1")`` rather than the float's full binary expansion. Whatever
    error the float already carried is kept; the balance classifier's epsilon
    is sized to absorb it.
    """
    if isinstance(value, bool):
        raise InvalidAmountError(value)
    if isinstance(value, int):
        return Decimal(value)
    if not isinstance(value, float) or not math.isfinite(value):
        raise InvalidAmountError(value)
    return Decimal(repr(value))


# Decimal field type that refuses floats (percentages, weights, epsilons)
ExactDecimal = Annotated[Decimal, BeforeValidator(to_exact_decimal)]


def _scalar(value: Any) -> Decimal | None:
    """Return the scalar as a Decimal, or None if it isn't a usable scalar."""
    if isinstance(value, bool) or isinstance(value, MoneyAmount):
        return None
    if isinstance(value, (int, Decimal, float)):
        return to_exact_decimal(value)
    return None


class MoneyAmount(BaseModel):
    """An exact base-10 money value (significand + scale, no currency code)."""

    model_config = ConfigDict(frozen=True)

    value: Decimal

    @model_validator(mode="before")
    @classmethod
    def coerce_raw_value(cls, data: Any) -> Any:
        if isinstance(data, MoneyAmount):
            return data
        if isinstance(data, dict):
            if "value" not in data:
                raise InvalidAmountError(data)
            raw = data["value"]
        else:
            raw = data
        return {"value": to_exact_decimal(raw)}

    @model_serializer
    def serialize_as_string(self) -> str:
        # Plain decimal string: exact, and never scientific notation
        return format(self.value, "f")

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def of(cls, value: Decimal | int) -> "MoneyAmount":
        """Build from an exact Decimal or an int number of whole units."""
        return cls(value=to_exact_decimal(value))

    @classmethod
    def parse(cls, text: str) -> "MoneyAmount":
        """Build from a decimal string such as ``"33.34"`` or ``"-5"``."""
        if not isinstance(text, str):
            raise InvalidAmountError(text)
        return cls(value=to_exact_decimal(text))

    @classmethod
    def from_minor_units(cls, units: int, scale: int = 2) -> "MoneyAmount":
        """Build from an integer count of minor units (e.g. cents at scale 2)."""
        if isinstance(units, bool) or not isinstance(units, int):
            raise InvalidAmountError(units)
        return cls(value=Decimal(units).scaleb(-scale, context=EXACT_CONTEXT))

    @classmethod
    def from_float_lossy(cls, value: float | int) -> "MoneyAmount":
        """Explicit lossy import from a binary float.

        See ``decimal_from_float_lossy``.
        """
        return cls(value=decimal_from_float_lossy(value))

    @classmethod
    def zero(cls) -> "MoneyAmount":
        return cls(value=Decimal(0))

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    @property
    def is_zero(self) -> bool:
        return self.value.is_zero()

    @property
    def is_positive(self) -> bool:
        return self.value > 0

    @property
    def is_negative(self) -> bool:
        return self.value < 0

    @property
    def sign(self) -> int:
        if self.value > 0:
            return 1
        if self.value < 0:
            return -1
        return 0

    @property
    def decimal_places(self) -> int:
        """Number of digits after the decimal point in the stored value."""
        exponent = self.value.as_tuple().exponent
        assert isinstance(exponent, int)
        return max(0, -exponent)

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def __add__(self, other: object) -> "MoneyAmount":
        if not isinstance(other, MoneyAmount):
            return NotImplemented
        return MoneyAmount(value=_exact(EXACT_CONTEXT.add, self.value, other.value))

    def __radd__(self, other: object) -> "MoneyAmount":
        # Lets sum() start from its default int 0
        if isinstance(other, int) and not isinstance(other, bool) and other == 0:
            return self
        return NotImplemented

    def __sub__(self, other: object) -> "MoneyAmount":
        if not isinstance(other, MoneyAmount):
            return NotImplemented
        return MoneyAmount(
            value=_exact(EXACT_CONTEXT.subtract, self.value, other.value)
        )

    def __neg__(self) -> "MoneyAmount":
        return MoneyAmount(value=_exact(EXACT_CONTEXT.minus, self.value))

    def __abs__(self) -> "MoneyAmount":
        return MoneyAmount(value=_exact(EXACT_CONTEXT.abs, self.value))

    def __mul__(self, scalar: object) -> "MoneyAmount":
        factor = _scalar(scalar)
        if factor is None:
            return NotImplemented
        return MoneyAmount(value=_exact(EXACT_CONTEXT.multiply, self.value, factor))

    __rmul__ = __mul__

    def divided_by(self, divisor: Decimal | int) -> "MoneyAmount":
        """
        Divide by a scalar.

        The quotient is computed to 34 significant digits; it is the only
        arithmetic operation on MoneyAmount that can be inexact. Use the split
        engine, not division, when shares must add back up to a total.

        Raises:
            DivisionByZeroError: If divisor is zero
        """
        factor = _scalar(divisor)
        if factor is None:
            raise InvalidAmountError(divisor)
        if factor.is_zero():
            raise DivisionByZeroError(f"Cannot divide {self} by zero")
        return MoneyAmount(value=DIVISION_CONTEXT.divide(self.value, factor))

    def __truediv__(self, divisor: object) -> "MoneyAmount":
        if _scalar(divisor) is None:
            return NotImplemented
        return self.divided_by(divisor)  # type: ignore[arg-type]

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MoneyAmount):
            return NotImplemented
        return self.value == other.value

    def __hash__(self) -> int:
        return hash(self.value)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, MoneyAmount):
            return NotImplemented
        return self.value < other.value

    def __le__(self, other: object) -> bool:
        if not isinstance(other, MoneyAmount):
            return NotImplemented
        return self.value <= other.value

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, MoneyAmount):
            return NotImplemented
        return self.value > other.value

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, MoneyAmount):
            return NotImplemented
        return self.value >= other.value

    # ------------------------------------------------------------------
    # Rounding & presentation
    # ------------------------------------------------------------------

    def rounded(
        self, scale: int, mode: RoundingMode = RoundingMode.NEAREST
    ) -> "MoneyAmount":
        """Return a new amount rounded to ``scale`` decimal places."""
        quantum = Decimal(1).scaleb(-scale)
        return MoneyAmount(
            value=self.value.quantize(
                quantum, rounding=mode.decimal_rounding, context=ROUNDING_CONTEXT
            )
        )

    def to_minor_units(self, scale: int = 2) -> int:
        """
        Convert to an integer count of minor units.

        Raises:
            InvalidAmountError: If the value has more precision than ``scale``
        """
        scaled = _exact(EXACT_CONTEXT.scaleb, self.value, Decimal(scale))
        if scaled != scaled.to_integral_value():
            raise InvalidAmountError(
                self.value,
                f"Amount {self} is not a whole number of minor units at scale {scale}",
            )
        return int(scaled)

    def formatted(
        self,
        config: "LedgerConfig | None" = None,
        mode: RoundingMode = RoundingMode.NEAREST,
    ) -> str:
        """
        Render for display, e.g. ``-$1,234.50``.

        The stored value is untouched; rounding applies to the rendered string only.
        """
        symbol = config.currency_symbol if config else "$"
        scale = config.minor_unit_scale if config else 2
        shown = self.rounded(scale, mode).value
        sign = "-" if shown < 0 else ""
        return f"{sign}{symbol}{abs(shown):,.{scale}f}"

    def __str__(self) -> str:
        return format(self.value, "f")

    def __repr__(self) -> str:
        return f"MoneyAmount('{self}')"
