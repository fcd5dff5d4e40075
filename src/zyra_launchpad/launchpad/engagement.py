"""Engagement events, scores and top/mid/bottom tiering."""

from __future__ import annotations

import json
import logging
from datetime import datetime

from zyra_launchpad.errors import (
    AlreadyDoneError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from zyra_launchpad.interfaces.store import LaunchStore
from zyra_launchpad.launchpad.launches import now_iso
from zyra_launchpad.models.config import DEFAULT_ENGAGEMENT_WEIGHTS
from zyra_launchpad.models.launch import (
    EngagementEvent,
    EngagementTier,
    Launch,
    LaunchStatus,
    Participation,
)

log = logging.getLogger(__name__)

FALLBACK_EVENT_TYPE = "custom"


def tier_sizes(n: int) -> tuple[int, int, int]:
    """(top, mid, bottom) for ``n`` ranked participants.

    top = mid = ceil(n/3); bottom takes the remainder and is never negative.
    """
    top = mid = -(-n // 3)
    return top, mid, max(0, n - top - mid)


def tier_for_position(index: int, n: int) -> EngagementTier:
    """Tier of the participant at zero-based ``index`` in rank order."""
    top, mid, _ = tier_sizes(n)
    if index < top:
        return EngagementTier.TOP
    if index < top + mid:
        return EngagementTier.MID
    return EngagementTier.BOTTOM


class EngagementService:
    """Ingests engagement events and snapshots them into ranks and tiers."""

    def __init__(self, store: LaunchStore, weights: dict[str, int] | None = None) -> None:
        self._store = store
        self._weights = dict(weights or DEFAULT_ENGAGEMENT_WEIGHTS)

    def weight_of(self, event_type: str) -> int:
        if event_type in self._weights:
            return self._weights[event_type]
        return self._weights.get(FALLBACK_EVENT_TYPE, 1)

    async def _get_launch(self, launch_id: str) -> Launch:
        launch = await self._store.get_launch(launch_id)
        if launch is None:
            raise NotFoundError(f"Launch not found: {launch_id}")
        return launch

    async def ingest_event(
        self,
        launch_id: str,
        user_id: str,
        event_type: str,
        payload: dict | None = None,
        at: datetime | None = None,
    ) -> EngagementEvent:
        """Append one event. Duplicates are not detected and count again."""
        if not user_id:
            raise InvalidInputError("user_id is required")
        if not event_type or not event_type.strip():
            raise InvalidInputError("event_type is required")
        payload = payload or {}
        try:
            json.dumps(payload)
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"payload is not JSON serializable: {exc}") from exc

        event = EngagementEvent(
            id=None,
            launch_id=launch_id,
            user_id=user_id,
            event_type=event_type.strip(),
            payload=payload,
            at=now_iso(at),
        )
        async with self._store.transaction():
            launch = await self._get_launch(launch_id)
            if launch.status != LaunchStatus.PARTICIPATION_OPEN:
                raise InvalidStateError(
                    "Engagement events are only accepted while participation is open"
                )
            event_id = await self._store.append_engagement_event(event)
        log.debug("Engagement event: launch=%s user=%s type=%s", launch_id, user_id, event.event_type)
        return EngagementEvent(
            id=event_id,
            launch_id=event.launch_id,
            user_id=event.user_id,
            event_type=event.event_type,
            payload=event.payload,
            at=event.at,
        )

    async def compute_user_score(self, launch_id: str, user_id: str) -> int:
        events = await self._store.list_engagement_events(launch_id, user_id)
        return sum(self.weight_of(e.event_type) for e in events)

    def _score(self, counts: dict[str, int]) -> int:
        return sum(self.weight_of(event_type) * n for event_type, n in counts.items())

    async def snapshot_engagement(
        self, launch_id: str, now: datetime | None = None
    ) -> list[Participation]:
        """Freeze scores, ranks and tiers for every participation. Runs once.

        Ranks sort by score descending; equal scores keep first-commitment
        order, then user_id.
        """
        async with self._store.transaction():
            launch = await self._get_launch(launch_id)
            if launch.engagement_snapshot_at is not None:
                raise AlreadyDoneError(
                    f"Engagement snapshot already taken at {launch.engagement_snapshot_at}"
                )
            if launch.status != LaunchStatus.PARTICIPATION_CLOSED:
                raise InvalidStateError(
                    "Engagement snapshot requires the participation window to be closed"
                )

            participations = await self._store.list_participations(launch_id)
            counts = await self._store.engagement_event_counts(launch_id)
            for p in participations:
                p.engagement_score = self._score(counts.get(p.user_id, {}))
            participations.sort(key=lambda p: (-p.engagement_score, p.created_at, p.user_id))

            stamp = now_iso(now)
            if not await self._store.mark_engagement_snapshot(launch_id, stamp):
                raise AlreadyDoneError("Engagement snapshot already taken")

            n = len(participations)
            for index, p in enumerate(participations):
                p.engagement_rank = index + 1
                p.tier = tier_for_position(index, n)
                await self._store.save_participation(p)

            await self._store.log_activity(
                "engagement_snapshot",
                f"Ranked {n} participants",
                launch_id=launch_id,
            )

        log.info("Engagement snapshot: launch=%s participants=%d", launch_id, n)
        return participations
