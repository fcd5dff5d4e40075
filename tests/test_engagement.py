"""Engagement event ingestion, scoring and tier snapshots."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from zyra_launchpad.errors import (
    AlreadyDoneError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from zyra_launchpad.launchpad.engagement import EngagementService, tier_for_position, tier_sizes
from zyra_launchpad.models.launch import EngagementTier, LaunchStatus

from tests.factories import commit_cohort, create_open_launch

NOW = datetime(2026, 2, 1, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "n, expected",
    [
        (0, (0, 0, 0)),
        (1, (1, 1, 0)),
        (2, (1, 1, 0)),
        (3, (1, 1, 1)),
        (4, (2, 2, 0)),
        (5, (2, 2, 1)),
        (6, (2, 2, 2)),
        (10, (4, 4, 2)),
    ],
)
def test_tier_sizes(n, expected):
    assert tier_sizes(n) == expected


def test_tier_for_position_with_five():
    tiers = [tier_for_position(i, 5) for i in range(5)]
    assert tiers == [
        EngagementTier.TOP, EngagementTier.TOP,
        EngagementTier.MID, EngagementTier.MID,
        EngagementTier.BOTTOM,
    ]


def test_two_participants_fill_top_and_mid():
    assert [tier_for_position(i, 2) for i in range(2)] == [EngagementTier.TOP, EngagementTier.MID]


class TestIngest:

    async def test_appends_event_with_id(self, engine, engagement):
        launch = await create_open_launch(engine)

        event = await engagement.ingest_event(
            launch.id, "alice", "milestone", {"step": "kyc"}, at=NOW
        )
        assert event.id is not None
        assert event.payload == {"step": "kyc"}
        assert event.at == NOW.isoformat(timespec="microseconds")

    async def test_duplicates_count_again(self, engine, engagement):
        launch = await create_open_launch(engine)
        for _ in range(3):
            await engagement.ingest_event(launch.id, "alice", "registration")

        assert await engagement.compute_user_score(launch.id, "alice") == 3

    async def test_weights_applied(self, engine, engagement):
        launch = await create_open_launch(engine)
        await engagement.ingest_event(launch.id, "alice", "registration")
        await engagement.ingest_event(launch.id, "alice", "milestone")
        await engagement.ingest_event(launch.id, "alice", "something_new")

        # 1 + 2 + 1 (unknown types fall back to the custom weight)
        assert await engagement.compute_user_score(launch.id, "alice") == 4
        assert await engagement.compute_user_score(launch.id, "nobody") == 0

    async def test_custom_weights(self, store):
        service = EngagementService(store, {"referral": 5, "custom": 3})
        assert service.weight_of("referral") == 5
        assert service.weight_of("unknown") == 3
        assert EngagementService(store, {"referral": 5}).weight_of("unknown") == 1

    @pytest.mark.parametrize(
        "user_id, event_type, payload",
        [
            ("", "milestone", None),
            ("alice", "", None),
            ("alice", "   ", None),
            ("alice", "milestone", {"bad": object()}),
        ],
    )
    async def test_rejects_invalid_event(self, engine, engagement, user_id, event_type, payload):
        launch = await create_open_launch(engine)
        with pytest.raises(InvalidInputError):
            await engagement.ingest_event(launch.id, user_id, event_type, payload)

    async def test_requires_open_window(self, engine, engagement, launches):
        launch = await create_open_launch(engine)
        await launches.transition_status(launch.id, LaunchStatus.PARTICIPATION_CLOSED)

        with pytest.raises(InvalidStateError):
            await engagement.ingest_event(launch.id, "alice", "milestone")
        assert await engagement.compute_user_score(launch.id, "alice") == 0

    async def test_unknown_launch(self, engagement):
        with pytest.raises(NotFoundError):
            await engagement.ingest_event("missing", "alice", "milestone")


class TestSnapshot:

    async def _closed_launch(self, engine, mock_staking, users, events):
        launch = await create_open_launch(engine, t_available="100000")
        await commit_cohort(engine, mock_staking, launch.id, {u: "10" for u in users})
        for user, event_type, count in events:
            for _ in range(count):
                await engine.engagement.ingest_event(launch.id, user, event_type)
        await engine.launches.transition_status(launch.id, LaunchStatus.PARTICIPATION_CLOSED)
        return launch

    async def test_ranks_and_tiers_five_participants(self, engine, engagement, mock_staking, store):
        users = ["u1", "u2", "u3", "u4", "u5"]
        launch = await self._closed_launch(engine, mock_staking, users, [
            ("u3", "milestone", 3),   # 6
            ("u5", "milestone", 2),   # 4
            ("u1", "registration", 3),  # 3
            ("u4", "registration", 1),  # 1
        ])

        ranked = await engagement.snapshot_engagement(launch.id, now=NOW)

        assert [p.user_id for p in ranked] == ["u3", "u5", "u1", "u4", "u2"]
        assert [p.engagement_score for p in ranked] == [6, 4, 3, 1, 0]
        assert [p.engagement_rank for p in ranked] == [1, 2, 3, 4, 5]
        assert [p.tier for p in ranked] == [
            EngagementTier.TOP, EngagementTier.TOP,
            EngagementTier.MID, EngagementTier.MID,
            EngagementTier.BOTTOM,
        ]

        stored = await store.list_participations(launch.id, by_rank=True)
        assert [p.user_id for p in stored] == ["u3", "u5", "u1", "u4", "u2"]
        launch = await engine.launches.get(launch.id)
        assert launch.engagement_snapshot_at == NOW.isoformat(timespec="microseconds")

    async def test_ties_keep_first_commitment_order(self, engine, engagement, mock_staking):
        launch = await self._closed_launch(engine, mock_staking, ["zed", "amy", "bob"], [])

        ranked = await engagement.snapshot_engagement(launch.id)
        assert [p.user_id for p in ranked] == ["zed", "amy", "bob"]

    async def test_snapshot_runs_once(self, engine, engagement, mock_staking):
        launch = await self._closed_launch(engine, mock_staking, ["a", "b"], [])
        await engagement.snapshot_engagement(launch.id)

        with pytest.raises(AlreadyDoneError):
            await engagement.snapshot_engagement(launch.id)

    async def test_snapshot_requires_closed_window(self, engine, engagement):
        launch = await create_open_launch(engine)
        with pytest.raises(InvalidStateError):
            await engagement.snapshot_engagement(launch.id)
        assert (await engine.launches.get(launch.id)).engagement_snapshot_at is None

    async def test_snapshot_with_no_participants(self, engine, engagement, launches):
        launch = await create_open_launch(engine)
        await launches.transition_status(launch.id, LaunchStatus.PARTICIPATION_CLOSED)

        assert await engagement.snapshot_engagement(launch.id) == []
        assert (await launches.get(launch.id)).engagement_snapshot_at is not None
