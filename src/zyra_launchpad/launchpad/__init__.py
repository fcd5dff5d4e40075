"""Launch lifecycle, staking power, engagement and allocation."""

from zyra_launchpad.launchpad.allocation import AllocationService
from zyra_launchpad.launchpad.engagement import EngagementService
from zyra_launchpad.launchpad.launches import LaunchService
from zyra_launchpad.launchpad.orchestrator import LaunchpadOrchestrator
from zyra_launchpad.launchpad.staking import StakingService

__all__ = [
    "AllocationService",
    "EngagementService",
    "LaunchService",
    "LaunchpadOrchestrator",
    "StakingService",
]
