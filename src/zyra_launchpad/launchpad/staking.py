"""PiPower computation and capped commitments."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal

from zyra_launchpad.errors import (
    CapExceededError,
    InvalidStateError,
    LaunchpadError,
    NotFoundError,
    ProviderUnavailableError,
)
from zyra_launchpad.interfaces.staking import StakingDataProvider
from zyra_launchpad.interfaces.store import LaunchStore
from zyra_launchpad.models.launch import Launch, LaunchStatus, Participation
from zyra_launchpad.models.records import PiPowerInfo, StakingData
from zyra_launchpad.numeric import ZERO, fmt, parse_amount, quantize, to_decimal

log = logging.getLogger(__name__)


def compute_pi_power(launch: Launch, data: StakingData) -> Decimal:
    """PiPower = T_available * (staked / sum_staked + baseline).

    A cohort total of 0 is treated as 1. The baseline only applies when the
    provider reports the user as qualifying.
    """
    total = to_decimal(launch.t_available, "t_available")
    staked = to_decimal(data.staked_pi, "staked_pi")
    cohort = to_decimal(data.sum_staked_pi, "sum_staked_pi")
    if cohort == 0:
        cohort = Decimal(1)
    baseline = ZERO
    if data.qualifies_for_baseline and launch.pi_power_baseline:
        baseline = to_decimal(launch.pi_power_baseline, "pi_power_baseline")
    return quantize(total * (staked / cohort + baseline))


class StakingService:
    """Turns staking data into PiPower and validates commitments against it."""

    def __init__(
        self,
        store: LaunchStore,
        provider: StakingDataProvider,
        timeout: float = 10,
    ) -> None:
        self._store = store
        self._provider = provider
        self._timeout = timeout

    async def _get_launch(self, launch_id: str) -> Launch:
        launch = await self._store.get_launch(launch_id)
        if launch is None:
            raise NotFoundError(f"Launch not found: {launch_id}")
        return launch

    async def _fetch_staking_data(self, launch_id: str, user_id: str) -> StakingData:
        try:
            return await asyncio.wait_for(
                self._provider.get_staking_data(launch_id, user_id), timeout=self._timeout
            )
        except asyncio.TimeoutError as exc:
            log.error("Staking provider timed out for %s in launch %s", user_id, launch_id)
            raise ProviderUnavailableError(
                "staking", f"no answer within {self._timeout}s"
            ) from exc
        except LaunchpadError:
            raise
        except Exception as exc:
            log.error("Staking provider failed for %s in launch %s: %s", user_id, launch_id, exc)
            raise ProviderUnavailableError("staking", str(exc)) from exc

    async def get_pi_power_for_user(self, launch_id: str, user_id: str) -> PiPowerInfo:
        launch = await self._get_launch(launch_id)
        data = await self._fetch_staking_data(launch_id, user_id)
        power = fmt(compute_pi_power(launch, data))
        participation = await self._store.get_participation(launch_id, user_id)
        committed = participation.committed_pi if participation else fmt(ZERO)
        return PiPowerInfo(
            pi_power=power,
            staked_pi=fmt(to_decimal(data.staked_pi, "staked_pi")),
            sum_staked_pi=fmt(to_decimal(data.sum_staked_pi, "sum_staked_pi")),
            committed_pi=committed,
            max_commitment_allowed=power,
        )

    async def commit_pi(self, launch_id: str, user_id: str, amount: str) -> Participation:
        """Add ``amount`` to the user's commitment, capped by fresh PiPower.

        The staking lookup happens first, outside the store lock. The status
        re-check, cap check and write then run as one transaction, so a
        rejected commitment leaves no trace.
        """
        launch = await self._get_launch(launch_id)
        if launch.status != LaunchStatus.PARTICIPATION_OPEN:
            raise InvalidStateError(
                f"Participation window is not open (launch is {launch.status.value})"
            )

        data = await self._fetch_staking_data(launch_id, user_id)
        power = compute_pi_power(launch, data)
        requested = parse_amount(amount, "amount")

        async with self._store.transaction():
            launch = await self._get_launch(launch_id)
            if launch.status != LaunchStatus.PARTICIPATION_OPEN:
                raise InvalidStateError(
                    f"Participation window is not open (launch is {launch.status.value})"
                )
            participation = await self._store.get_participation(launch_id, user_id)
            if participation is None:
                participation = Participation(launch_id=launch_id, user_id=user_id)

            existing = to_decimal(participation.committed_pi, "committed_pi")
            new_committed = existing + requested
            if new_committed > power:
                raise CapExceededError(
                    f"Commitment exceeds PiPower cap: {fmt(power)}",
                    pi_power=fmt(power),
                    committed_pi=fmt(existing),
                    requested=fmt(requested),
                )

            participation.committed_pi = fmt(new_committed)
            participation.staked_pi = fmt(to_decimal(data.staked_pi, "staked_pi"))
            participation.pi_power = fmt(power)
            await self._store.save_participation(participation)
            await self._store.log_activity(
                "commitment",
                f"{user_id} committed {fmt(requested)} (total {participation.committed_pi})",
                launch_id=launch_id,
                amount=fmt(requested),
            )

        log.info(
            "Commitment recorded: launch=%s user=%s amount=%s total=%s",
            launch_id, user_id, fmt(requested), participation.committed_pi,
        )
        return participation
