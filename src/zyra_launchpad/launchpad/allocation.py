"""Design 1 allocation - single clearing price plus tiered engagement bonus."""

from __future__ import annotations

import logging
from decimal import Decimal

from zyra_launchpad.errors import AlreadyDoneError, InvalidStateError, NotFoundError
from zyra_launchpad.interfaces.store import LaunchStore
from zyra_launchpad.launchpad.engagement import tier_for_position
from zyra_launchpad.models.launch import EngagementTier, LaunchStatus
from zyra_launchpad.models.records import AllocationResult
from zyra_launchpad.numeric import ZERO, fmt, to_decimal

log = logging.getLogger(__name__)

ENGAGEMENT_POOL_RATIO = Decimal("0.05")  # share of T_available paid as engagement bonus
TIER_COUNT = 3


class AllocationService:
    """Runs Design 1 once per launch.

    p_list = C / T is the single clearing price. Each participant buys
    c_i / p_list tokens and receives a bonus from 5% of T split into equal
    thirds per tier, shared within a tier by engagement score.
    """

    def __init__(self, store: LaunchStore) -> None:
        self._store = store

    async def run_design1(self, launch_id: str) -> AllocationResult:
        async with self._store.transaction():
            launch = await self._store.get_launch(launch_id)
            if launch is None:
                raise NotFoundError(f"Launch not found: {launch_id}")
            if launch.status in (LaunchStatus.ALLOCATION_RUNNING, LaunchStatus.TGE_OPEN):
                raise AlreadyDoneError(f"Allocation already ran for launch {launch_id}")
            if launch.status != LaunchStatus.PARTICIPATION_CLOSED:
                raise InvalidStateError(
                    f"Allocation requires status participation_closed, not {launch.status.value}"
                )
            if launch.engagement_snapshot_at is None:
                raise InvalidStateError("Allocation requires the engagement snapshot")

            t_total = to_decimal(launch.t_available, "t_available")
            if t_total <= 0:
                raise InvalidStateError("t_available must be positive")

            participations = await self._store.list_participations(launch_id, by_rank=True)
            total_c = sum((to_decimal(p.committed_pi) for p in participations), ZERO)
            if total_c <= 0:
                raise InvalidStateError("No committed Pi for allocation")

            if not await self._store.compare_and_set_launch_status(
                launch_id, LaunchStatus.PARTICIPATION_CLOSED, LaunchStatus.ALLOCATION_RUNNING
            ):
                raise AlreadyDoneError(f"Allocation already ran for launch {launch_id}")

            p_list = total_c / t_total
            t_engage = ENGAGEMENT_POOL_RATIO * t_total
            tier_share = t_engage / TIER_COUNT

            n = len(participations)
            tiers = [tier_for_position(i, n) for i in range(n)]
            tier_sums: dict[EngagementTier, int] = {tier: 0 for tier in EngagementTier}
            for p, tier in zip(participations, tiers):
                tier_sums[tier] += p.engagement_score

            price = fmt(p_list)
            for p, tier in zip(participations, tiers):
                purchased = to_decimal(p.committed_pi) / p_list
                bonus = ZERO
                if tier_sums[tier] > 0:
                    bonus = tier_share * p.engagement_score / tier_sums[tier]
                p.allocated_tokens = fmt(purchased + bonus)
                p.effective_price = price
                await self._store.save_participation(p)

            await self._store.update_launch(launch_id, listing_price=price)
            await self._store.log_activity(
                "allocation",
                f"Design 1 allocated {n} participants at p_list {price}",
                launch_id=launch_id,
                amount=fmt(total_c),
            )

        log.info(
            "Allocation Design 1: launch=%s totalC=%s p_list=%s T_engage=%s",
            launch_id, fmt(total_c), price, fmt(t_engage),
        )
        return AllocationResult(
            total_c=fmt(total_c),
            p_list=price,
            t_engage=fmt(t_engage),
            participations=participations,
        )
