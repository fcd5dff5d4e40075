"""Launchpad orchestrator - multi-step launch transitions run as one unit."""

from __future__ import annotations

import logging
from datetime import datetime

from zyra_launchpad.errors import InvalidStateError
from zyra_launchpad.interfaces.store import LaunchStore
from zyra_launchpad.launchpad.allocation import AllocationService
from zyra_launchpad.launchpad.engagement import EngagementService
from zyra_launchpad.launchpad.launches import LaunchService, now_iso
from zyra_launchpad.models.launch import Launch, LaunchStatus
from zyra_launchpad.models.records import AllocationResult

log = logging.getLogger(__name__)


class LaunchpadOrchestrator:
    """Chains the launch services so each step commits or rolls back whole.

    Nothing here runs on a timer; every step is triggered by an explicit call.
    """

    def __init__(
        self,
        store: LaunchStore,
        launches: LaunchService,
        engagement: EngagementService,
        allocation: AllocationService,
    ) -> None:
        self._store = store
        self._launches = launches
        self._engagement = engagement
        self._allocation = allocation

    async def close_participation_window(
        self, launch_id: str, now: datetime | None = None
    ) -> Launch:
        """Close the window and snapshot engagement in one transaction."""
        async with self._store.transaction():
            await self._launches.transition_status(
                launch_id, LaunchStatus.PARTICIPATION_CLOSED, now=now
            )
            await self._engagement.snapshot_engagement(launch_id, now=now)
        log.info("Participation window closed for launch %s", launch_id)
        return await self._launches.get(launch_id)

    async def close_expired_windows(self, now: datetime | None = None) -> list[Launch]:
        """Close every open launch whose window end has passed."""
        expired = await self._store.list_expired_open_launches(now_iso(now))
        closed: list[Launch] = []
        for launch in expired:
            closed.append(await self.close_participation_window(launch.id, now=now))
        if closed:
            log.info("Closed %d expired participation windows", len(closed))
        return closed

    async def run_allocation(
        self, launch_id: str, open_tge: bool = False, now: datetime | None = None
    ) -> AllocationResult:
        """Snapshot engagement if needed, run Design 1, optionally open TGE.

        All steps share one transaction, so a failure leaves the launch in
        participation_closed with no ranks or allocations written.
        """
        async with self._store.transaction():
            launch = await self._launches.get(launch_id)
            if launch.allocation_design != 1:
                raise InvalidStateError(
                    f"Only Design 1 allocation is implemented (launch uses {launch.allocation_design})"
                )
            if (
                launch.status == LaunchStatus.PARTICIPATION_CLOSED
                and launch.engagement_snapshot_at is None
            ):
                await self._engagement.snapshot_engagement(launch_id, now=now)
            result = await self._allocation.run_design1(launch_id)
            if open_tge:
                await self._launches.transition_status(launch_id, LaunchStatus.TGE_OPEN, now=now)
        log.info(
            "Launch %s allocation complete, status=%s",
            launch_id, "tge_open" if open_tge else "allocation_running",
        )
        return result

    async def open_tge(self, launch_id: str, now: datetime | None = None) -> Launch:
        return await self._launches.transition_status(launch_id, LaunchStatus.TGE_OPEN, now=now)
