"""Launch lifecycle - creation, listing and the status state machine."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone

from zyra_launchpad.errors import InvalidInputError, InvalidStateError, NotFoundError
from zyra_launchpad.interfaces.store import LaunchStore
from zyra_launchpad.models.launch import Launch, LaunchStatus, can_transition
from zyra_launchpad.numeric import fmt, parse_amount, to_decimal
from zyra_launchpad.stellar.assets import parse_token_asset

log = logging.getLogger(__name__)

MAX_LIST_LIMIT = 100
SUPPORTED_DESIGNS = (1,)


def now_iso(now: datetime | None = None) -> str:
    """UTC timestamp with fixed microsecond precision, so strings sort by time."""
    return (now or datetime.now(timezone.utc)).astimezone(timezone.utc).isoformat(
        timespec="microseconds"
    )


class LaunchService:
    """Creates launches and moves them through the status state machine.

    draft -> participation_open -> participation_closed
          -> allocation_running -> tge_open

    Transitions never regress. ``allocation_running`` is entered only by the
    allocation run itself.
    """

    def __init__(self, store: LaunchStore) -> None:
        self._store = store

    async def create(
        self,
        project_id: str,
        token_code: str,
        token_issuer: str,
        t_available: str,
        project_app_url: str | None = None,
        stake_duration_days: int = 30,
        allocation_design: int = 1,
        pi_power_baseline: str | None = None,
        is_equity_style: bool = False,
    ) -> Launch:
        if not project_id or not project_id.strip():
            raise InvalidInputError("project_id is required")
        if not project_app_url or not project_app_url.strip():
            raise InvalidInputError(
                "project_app_url is required: a launch must be tied to a project with a working app"
            )
        asset = parse_token_asset(token_code, token_issuer)
        total = parse_amount(t_available, "t_available")
        if allocation_design not in SUPPORTED_DESIGNS:
            raise InvalidInputError(f"Unsupported allocation design: {allocation_design}")
        if stake_duration_days < 1:
            raise InvalidInputError("stake_duration_days must be at least 1")
        baseline = None
        if pi_power_baseline is not None:
            b = to_decimal(pi_power_baseline, "pi_power_baseline")
            if b < 0:
                raise InvalidInputError("pi_power_baseline must not be negative")
            baseline = fmt(b)

        launch = Launch(
            id=uuid.uuid4().hex,
            project_id=project_id.strip(),
            token_asset=asset,
            t_available=fmt(total),
            project_app_url=project_app_url.strip(),
            stake_duration_days=stake_duration_days,
            allocation_design=allocation_design,
            pi_power_baseline=baseline,
            is_equity_style=is_equity_style,
            created_at=now_iso(),
        )
        launch.updated_at = launch.created_at
        async with self._store.transaction():
            await self._store.insert_launch(launch)
            await self._store.log_activity(
                "launch_created",
                f"Launch created for project {launch.project_id} selling {asset}",
                launch_id=launch.id,
                amount=launch.t_available,
            )
        log.info("Launch created: %s (%s %s)", launch.id, launch.t_available, asset.code)
        return launch

    async def get(self, launch_id: str) -> Launch:
        launch = await self._store.get_launch(launch_id)
        if launch is None:
            raise NotFoundError(f"Launch not found: {launch_id}")
        return launch

    async def list(self, limit: int = 50, status: LaunchStatus | None = None) -> list[Launch]:
        if limit < 1:
            raise InvalidInputError("limit must be positive")
        return await self._store.list_launches(min(limit, MAX_LIST_LIMIT), status)

    async def transition_status(
        self, launch_id: str, new_status: LaunchStatus, now: datetime | None = None
    ) -> Launch:
        """Move a launch one step forward, applying the step's side effects."""
        if new_status == LaunchStatus.ALLOCATION_RUNNING:
            raise InvalidStateError("allocation_running is entered only by running allocation")

        async with self._store.transaction():
            launch = await self.get(launch_id)
            current = launch.status
            if not can_transition(current, new_status):
                raise InvalidStateError(
                    f"Invalid transition from {current.value} to {new_status.value}"
                )

            stamp = now_iso(now)
            if new_status == LaunchStatus.PARTICIPATION_OPEN:
                if not launch.project_app_url:
                    raise InvalidStateError(
                        "project_app_url must be set before opening participation"
                    )
                if launch.participation_window_start is None:
                    start = datetime.fromisoformat(stamp)
                    end = start + timedelta(days=launch.stake_duration_days)
                    launch.participation_window_start = stamp
                    launch.participation_window_end = now_iso(end)
                    await self._store.update_launch(
                        launch_id,
                        participation_window_start=launch.participation_window_start,
                        participation_window_end=launch.participation_window_end,
                    )
            elif new_status == LaunchStatus.TGE_OPEN:
                if launch.listing_price is None:
                    raise InvalidStateError("listing_price must be set before opening TGE")
                launch.tge_at = stamp
                await self._store.update_launch(launch_id, tge_at=stamp)

            if not await self._store.compare_and_set_launch_status(launch_id, current, new_status):
                raise InvalidStateError(
                    f"Launch {launch_id} changed status concurrently; expected {current.value}"
                )
            launch.status = new_status
            await self._store.log_activity(
                "launch_transition",
                f"{current.value} -> {new_status.value}",
                launch_id=launch_id,
            )
        log.info("Launch %s transitioned to %s", launch_id, new_status.value)
        return launch

    # ── Trading gate ───────────────────────────────────────

    async def attach_pool(self, launch_id: str, pool_id: str) -> Launch:
        if not pool_id:
            raise InvalidInputError("pool_id is required")
        async with self._store.transaction():
            launch = await self.get(launch_id)
            other = await self._store.get_launch_by_pool(pool_id)
            if other is not None and other.id != launch_id:
                raise InvalidStateError(f"Pool {pool_id} is already tied to launch {other.id}")
            await self._store.update_launch(launch_id, pool_id=pool_id)
            await self._store.log_activity(
                "pool_attached", f"Pool {pool_id} tied to launch", launch_id=launch_id,
            )
        launch.pool_id = pool_id
        log.info("Pool %s attached to launch %s", pool_id, launch_id)
        return launch

    async def ensure_pool_tradable(self, pool_id: str) -> None:
        """Raise unless trading on ``pool_id`` is allowed.

        Pools not tied to a launch are always tradable; launch pools open
        once the launch reaches tge_open.
        """
        launch = await self._store.get_launch_by_pool(pool_id)
        if launch is None or launch.status == LaunchStatus.TGE_OPEN:
            return
        raise InvalidStateError(
            f"Trading on pool {pool_id} opens at TGE; launch {launch.id} is {launch.status.value}"
        )
