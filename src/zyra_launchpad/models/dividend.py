"""Dividend round and holder snapshot records."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from zyra_launchpad.models.launch import TokenAsset


class RoundStatus(str, Enum):
    PENDING = "pending"
    SNAPSHOT_DONE = "snapshot_done"
    PAYOUT_DONE = "payout_done"


@dataclass
class DividendRound:
    """One payout cycle for an equity-style launch."""

    id: str
    launch_id: str
    record_at: str  # ISO 8601 snapshot instant
    total_payout_amount: str
    payout_asset: TokenAsset  # always the launch's own token
    status: RoundStatus = RoundStatus.PENDING
    total_eligible_supply: str | None = None
    eligible_holders_count: int | None = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class DividendHolderSnapshot:
    """One holder's entitlement within one round."""

    round_id: str
    public_key: str
    token_balance: str
    share_of_supply: str
    payout_amount: str  # net of the payout fee
    id: int | None = None  # row id, used as the pagination cursor
    claimed_at: str | None = None
    tx_hash: str | None = None
