"""Launch, participation and engagement-event records."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class LaunchStatus(str, Enum):
    """Launch lifecycle. Transitions only move forward."""

    DRAFT = "draft"
    PARTICIPATION_OPEN = "participation_open"
    PARTICIPATION_CLOSED = "participation_closed"
    ALLOCATION_RUNNING = "allocation_running"
    TGE_OPEN = "tge_open"


VALID_TRANSITIONS: dict[LaunchStatus, tuple[LaunchStatus, ...]] = {
    LaunchStatus.DRAFT: (LaunchStatus.PARTICIPATION_OPEN,),
    LaunchStatus.PARTICIPATION_OPEN: (LaunchStatus.PARTICIPATION_CLOSED,),
    LaunchStatus.PARTICIPATION_CLOSED: (LaunchStatus.ALLOCATION_RUNNING,),
    LaunchStatus.ALLOCATION_RUNNING: (LaunchStatus.TGE_OPEN,),
    LaunchStatus.TGE_OPEN: (),
}


def can_transition(current: LaunchStatus, new: LaunchStatus) -> bool:
    return new in VALID_TRANSITIONS.get(current, ())


class EngagementTier(str, Enum):
    TOP = "top"
    MID = "mid"
    BOTTOM = "bottom"


@dataclass(frozen=True)
class TokenAsset:
    """Stellar credit asset (code + issuer account)."""

    code: str
    issuer: str

    def __str__(self) -> str:
        return f"{self.code}:{self.issuer}"


@dataclass
class Launch:
    """One token sale campaign."""

    id: str
    project_id: str
    token_asset: TokenAsset
    t_available: str  # decimal string, tokens reserved for the sale
    project_app_url: str | None = None
    stake_duration_days: int = 30
    allocation_design: int = 1
    status: LaunchStatus = LaunchStatus.DRAFT
    pi_power_baseline: str | None = None
    is_equity_style: bool = False
    participation_window_start: str | None = None  # ISO 8601
    participation_window_end: str | None = None
    engagement_snapshot_at: str | None = None
    listing_price: str | None = None
    pool_id: str | None = None
    tge_at: str | None = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Participation:
    """One user's position in one launch. Unique per (launch_id, user_id)."""

    launch_id: str
    user_id: str
    staked_pi: str = "0.0000000"
    committed_pi: str = "0.0000000"
    pi_power: str = "0.0000000"
    engagement_score: int = 0
    engagement_rank: int = 0  # 0 until the engagement snapshot runs
    tier: EngagementTier | None = None
    allocated_tokens: str = "0.0000000"
    effective_price: str = "0.0000000"
    created_at: str = ""
    updated_at: str = ""


@dataclass(frozen=True)
class EngagementEvent:
    """Append-only record of one scored activity."""

    id: int | None
    launch_id: str
    user_id: str
    event_type: str
    payload: dict = field(default_factory=dict)
    at: str = ""
