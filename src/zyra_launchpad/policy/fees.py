"""Payout fee policy - platform fee withheld from each dividend payout."""

from __future__ import annotations

from decimal import Decimal

from zyra_launchpad.errors import InvalidInputError
from zyra_launchpad.models.records import FeeResult
from zyra_launchpad.numeric import ZERO, fmt, quantize, to_decimal

DEFAULT_PAYOUT_FEE_RATE = "0.006"  # 0.6%


class PercentagePayoutFee:
    """Withholds a flat percentage of each gross payout.

    fee = round(gross * rate) and net = gross - fee, so net + fee always
    equals the rounded gross amount.
    """

    def __init__(self, rate: str | Decimal = DEFAULT_PAYOUT_FEE_RATE) -> None:
        self._rate = to_decimal(rate, "payout_fee_rate")
        if not ZERO <= self._rate < 1:
            raise InvalidInputError(
                f"payout_fee_rate must be in [0, 1), got {rate!r}"
            )

    @property
    def rate(self) -> Decimal:
        return self._rate

    def apply_payout_fee(self, gross_amount: str) -> FeeResult:
        gross = to_decimal(gross_amount, "gross_amount")
        if gross < 0:
            raise InvalidInputError(f"gross_amount must not be negative, got {gross_amount!r}")
        fee = quantize(gross * self._rate)
        net = quantize(gross) - fee
        return FeeResult(net_amount=fmt(net), fee_amount=fmt(fee))
