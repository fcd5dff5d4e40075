"""Fixed-point decimal helpers (7 fractional digits, Stellar asset precision)."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from zyra_launchpad.errors import InvalidInputError

SCALE = 7
QUANTUM = Decimal(1).scaleb(-SCALE)  # 0.0000001
ZERO = Decimal(0)


def to_decimal(value: str | int | Decimal | None, field: str = "amount") -> Decimal:
    """Parse a decimal string (or int/Decimal) without going through float."""
    if value is None:
        raise InvalidInputError(f"{field} is required")
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidInputError(f"{field} must be a decimal string, not {type(value).__name__}")
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidInputError(f"Invalid {field}: {value!r}") from None
    if not d.is_finite():
        raise InvalidInputError(f"Invalid {field}: {value!r}")
    return d


def quantize(d: Decimal) -> Decimal:
    """Round half away from zero to 7 fractional digits."""
    return d.quantize(QUANTUM, rounding=ROUND_HALF_UP)


def fmt(d: Decimal) -> str:
    """Render as a fixed-point string with exactly 7 fractional digits."""
    q = quantize(d)
    if q == 0:
        q = abs(q)  # no "-0.0000000"
    return f"{q:.{SCALE}f}"


def parse_amount(value: str | int | Decimal | None, field: str = "amount") -> Decimal:
    """Parse a strictly positive amount with at most 7 fractional digits."""
    d = to_decimal(value, field)
    if d <= 0:
        raise InvalidInputError(f"{field} must be positive, got {value!r}")
    if d != d.quantize(QUANTUM, rounding=ROUND_HALF_UP):
        raise InvalidInputError(f"{field} has more than {SCALE} fractional digits: {value!r}")
    return d
