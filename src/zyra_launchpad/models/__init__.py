"""Data models for the launchpad engine."""

from zyra_launchpad.models.config import (
    DividendConfig,
    EngineConfig,
    LedgerConfig,
)
from zyra_launchpad.models.dividend import (
    DividendHolderSnapshot,
    DividendRound,
    RoundStatus,
)
from zyra_launchpad.models.launch import (
    EngagementEvent,
    EngagementTier,
    Launch,
    LaunchStatus,
    Participation,
    TokenAsset,
    can_transition,
)
from zyra_launchpad.models.records import (
    ActivityRecord,
    AllocationResult,
    AssetHolder,
    FeeResult,
    HolderPage,
    PiPowerInfo,
    SnapshotPage,
    SnapshotResult,
    StakingData,
)

__all__ = [
    "DividendConfig", "EngineConfig", "LedgerConfig",
    "DividendHolderSnapshot", "DividendRound", "RoundStatus",
    "EngagementEvent", "EngagementTier", "Launch", "LaunchStatus",
    "Participation", "TokenAsset", "can_transition",
    "ActivityRecord", "AllocationResult", "AssetHolder", "FeeResult",
    "HolderPage", "PiPowerInfo", "SnapshotPage", "SnapshotResult", "StakingData",
]
