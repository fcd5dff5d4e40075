"""Staking data provider backed by the local stakes table."""

from __future__ import annotations

import logging

from zyra_launchpad.errors import InvalidInputError
from zyra_launchpad.interfaces.store import LaunchStore
from zyra_launchpad.models.records import StakingData
from zyra_launchpad.numeric import ZERO, fmt, quantize, to_decimal

log = logging.getLogger(__name__)


class StoredStakingProvider:
    """Serves staked amounts recorded with ``set_stake``.

    Used when the staking contract feed is not wired in; operators record
    each user's stake for a launch through the CLI.
    """

    def __init__(self, store: LaunchStore) -> None:
        self._store = store

    async def set_stake(
        self,
        launch_id: str,
        user_id: str,
        staked_pi: str,
        qualifies_for_baseline: bool = False,
    ) -> str:
        amount = to_decimal(staked_pi, "staked_pi")
        if amount < 0:
            raise InvalidInputError(f"staked_pi must not be negative, got {staked_pi!r}")
        if amount != quantize(amount):
            raise InvalidInputError(f"staked_pi has more than 7 fractional digits: {staked_pi!r}")
        staked = fmt(amount)
        async with self._store.transaction():
            await self._store.set_stake(launch_id, user_id, staked, qualifies_for_baseline)
            await self._store.log_activity(
                "stake_set", f"Stake of {user_id} set to {staked}",
                launch_id=launch_id, amount=staked,
            )
        log.info("Recorded stake of %s for %s in launch %s", staked, user_id, launch_id)
        return staked

    async def get_staking_data(self, launch_id: str, user_id: str) -> StakingData:
        stake = await self._store.get_stake(launch_id, user_id)
        staked, qualifies = stake if stake else ("0", False)
        total = sum(
            (to_decimal(a) for a in await self._store.list_stake_amounts(launch_id)), ZERO
        )
        return StakingData(
            staked_pi=fmt(to_decimal(staked)),
            sum_staked_pi=fmt(total),
            qualifies_for_baseline=qualifies,
        )
