"""FeePolicy protocol - platform fee deducted from payouts."""

from __future__ import annotations

from typing import Protocol

from zyra_launchpad.models.records import FeeResult


class FeePolicy(Protocol):
    def apply_payout_fee(self, gross_amount: str) -> FeeResult:
        """Return the amount the holder receives and the fee withheld."""
        ...
