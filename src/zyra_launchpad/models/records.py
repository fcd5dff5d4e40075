"""Operation results and collaborator payloads."""

from __future__ import annotations

from dataclasses import dataclass, field

from zyra_launchpad.models.dividend import DividendHolderSnapshot
from zyra_launchpad.models.launch import Participation


@dataclass
class StakingData:
    """Answer of the staking data provider for one (launch, user)."""

    staked_pi: str
    sum_staked_pi: str
    qualifies_for_baseline: bool = False


@dataclass
class PiPowerInfo:
    pi_power: str
    staked_pi: str
    sum_staked_pi: str
    committed_pi: str
    max_commitment_allowed: str


@dataclass
class AllocationResult:
    """Aggregate of a Design 1 allocation run, for audit and display."""

    total_c: str
    p_list: str
    t_engage: str
    participations: list[Participation] = field(default_factory=list)


@dataclass
class SnapshotResult:
    total_eligible_supply: str
    eligible_holders_count: int


@dataclass
class AssetHolder:
    """An account holding the payout asset, as reported by the ledger."""

    account_id: str
    balance: str | None  # None if the account has no trustline for the asset


@dataclass
class HolderPage:
    """One page of ledger accounts holding an asset."""

    holders: list[AssetHolder]
    next_cursor: str | None = None


@dataclass
class SnapshotPage:
    """One page of stored holder snapshot rows."""

    records: list[DividendHolderSnapshot]
    next_cursor: str | None = None


@dataclass
class FeeResult:
    net_amount: str
    fee_amount: str


@dataclass
class ActivityRecord:
    """A single audit log entry."""

    id: int
    event_type: str
    launch_id: str | None
    round_id: str | None
    amount: str | None
    message: str
    created_at: str
