"""StakingDataProvider protocol - staked amounts behind PiPower."""

from __future__ import annotations

from typing import Protocol

from zyra_launchpad.models.records import StakingData


class StakingDataProvider(Protocol):
    """Supplies a user's staked amount and the cohort total for a launch."""

    async def get_staking_data(self, launch_id: str, user_id: str) -> StakingData:
        """Return staked_pi, sum_staked_pi and baseline qualification."""
        ...
