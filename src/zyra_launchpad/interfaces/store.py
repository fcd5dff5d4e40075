"""LaunchStore protocol - durable state for launches and dividend rounds."""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Protocol

from zyra_launchpad.models.dividend import (
    DividendHolderSnapshot,
    DividendRound,
    RoundStatus,
)
from zyra_launchpad.models.launch import (
    EngagementEvent,
    Launch,
    LaunchStatus,
    Participation,
)
from zyra_launchpad.models.records import ActivityRecord


class LaunchStore(Protocol):
    """Persists launches, participations, engagement and dividend state.

    Every method runs inside ``transaction()``; callers that open a
    transaction themselves get all nested calls committed (or rolled back)
    as one unit.
    """

    # ── Lifecycle ──────────────────────────────────────────

    async def initialize(self) -> None:
        ...

    async def close(self) -> None:
        ...

    def transaction(self) -> AbstractAsyncContextManager[None]:
        ...

    # ── Launches ───────────────────────────────────────────

    async def insert_launch(self, launch: Launch) -> None:
        ...

    async def get_launch(self, launch_id: str) -> Launch | None:
        ...

    async def list_launches(
        self, limit: int = 50, status: LaunchStatus | None = None
    ) -> list[Launch]:
        ...

    async def get_launch_by_pool(self, pool_id: str) -> Launch | None:
        ...

    async def list_expired_open_launches(self, now: str) -> list[Launch]:
        ...

    async def update_launch(
        self,
        launch_id: str,
        listing_price: str | None = None,
        pool_id: str | None = None,
        participation_window_start: str | None = None,
        participation_window_end: str | None = None,
        tge_at: str | None = None,
    ) -> None:
        ...

    async def compare_and_set_launch_status(
        self, launch_id: str, expected: LaunchStatus, new: LaunchStatus
    ) -> bool:
        """Move ``expected -> new`` atomically. False if the status was not ``expected``."""
        ...

    async def mark_engagement_snapshot(self, launch_id: str, at: str) -> bool:
        """Stamp the engagement snapshot once. False if already stamped."""
        ...

    # ── Participations ─────────────────────────────────────

    async def get_participation(self, launch_id: str, user_id: str) -> Participation | None:
        ...

    async def save_participation(self, participation: Participation) -> None:
        ...

    async def list_participations(
        self, launch_id: str, by_rank: bool = False
    ) -> list[Participation]:
        """First-commitment order, or engagement rank order with ``by_rank``."""
        ...

    # ── Engagement events ──────────────────────────────────

    async def append_engagement_event(self, event: EngagementEvent) -> int:
        ...

    async def list_engagement_events(
        self, launch_id: str, user_id: str
    ) -> list[EngagementEvent]:
        ...

    async def engagement_event_counts(self, launch_id: str) -> dict[str, dict[str, int]]:
        """user_id -> event_type -> number of events."""
        ...

    # ── Stakes ─────────────────────────────────────────────

    async def set_stake(
        self, launch_id: str, user_id: str, staked_pi: str, qualifies_for_baseline: bool
    ) -> None:
        ...

    async def get_stake(self, launch_id: str, user_id: str) -> tuple[str, bool] | None:
        ...

    async def list_stake_amounts(self, launch_id: str) -> list[str]:
        ...

    # ── Dividend rounds ────────────────────────────────────

    async def insert_round(self, round_: DividendRound) -> None:
        ...

    async def get_round(self, round_id: str) -> DividendRound | None:
        ...

    async def list_rounds(self, launch_id: str) -> list[DividendRound]:
        ...

    async def compare_and_set_round_status(
        self,
        round_id: str,
        expected: RoundStatus,
        new: RoundStatus,
        total_eligible_supply: str | None = None,
        eligible_holders_count: int | None = None,
    ) -> bool:
        ...

    # ── Holder snapshots ───────────────────────────────────

    async def replace_holder_snapshots(
        self, round_id: str, rows: list[DividendHolderSnapshot]
    ) -> None:
        ...

    async def get_holder_snapshot(
        self, round_id: str, public_key: str
    ) -> DividendHolderSnapshot | None:
        ...

    async def list_holder_snapshots(
        self, round_id: str, limit: int | None = None, after_id: int | None = None
    ) -> list[DividendHolderSnapshot]:
        ...

    async def count_unclaimed(self, round_id: str) -> int:
        ...

    async def mark_holder_claimed(
        self, round_id: str, public_key: str, claimed_at: str, tx_hash: str
    ) -> bool:
        """Set claim fields once. False if already claimed."""
        ...

    # ── Activity log ───────────────────────────────────────

    async def log_activity(
        self,
        event_type: str,
        message: str,
        launch_id: str | None = None,
        round_id: str | None = None,
        amount: str | None = None,
    ) -> None:
        ...

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        ...
