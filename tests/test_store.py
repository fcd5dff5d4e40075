"""SQLiteLaunchStore: transactions, compare-and-set and pagination."""

from __future__ import annotations

import asyncio

import pytest

from zyra_launchpad.models.dividend import DividendHolderSnapshot, DividendRound, RoundStatus
from zyra_launchpad.models.launch import EngagementEvent, LaunchStatus, TokenAsset

from tests.factories import HOLDER_A, HOLDER_B, TEST_ISSUER, make_launch, make_participation


class _Boom(Exception):
    pass


async def test_launch_round_trip(store):
    launch = make_launch(pi_power_baseline="0.0100000", is_equity_style=True)
    await store.insert_launch(launch)

    loaded = await store.get_launch("launch-1")
    assert loaded == launch
    assert await store.get_launch("missing") is None


async def test_transaction_rolls_back_every_write(store):
    with pytest.raises(_Boom):
        async with store.transaction():
            await store.insert_launch(make_launch())
            await store.log_activity("launch_created", "created", launch_id="launch-1")
            raise _Boom()

    assert await store.get_launch("launch-1") is None
    assert await store.get_recent_activity() == []


async def test_nested_transaction_joins_outer(store):
    with pytest.raises(_Boom):
        async with store.transaction():
            async with store.transaction():
                await store.insert_launch(make_launch())
            # inner block exited cleanly but nothing is committed yet
            raise _Boom()

    assert await store.get_launch("launch-1") is None


async def test_concurrent_transactions_are_serialized(store):
    await store.insert_launch(make_launch())
    order: list[str] = []

    async def worker(name: str) -> None:
        async with store.transaction():
            order.append(f"{name}-start")
            await asyncio.sleep(0.01)
            order.append(f"{name}-end")

    await asyncio.gather(worker("a"), worker("b"))
    assert order in (
        ["a-start", "a-end", "b-start", "b-end"],
        ["b-start", "b-end", "a-start", "a-end"],
    )


async def test_compare_and_set_launch_status(store):
    await store.insert_launch(make_launch())

    assert await store.compare_and_set_launch_status(
        "launch-1", LaunchStatus.DRAFT, LaunchStatus.PARTICIPATION_OPEN
    )
    assert not await store.compare_and_set_launch_status(
        "launch-1", LaunchStatus.DRAFT, LaunchStatus.PARTICIPATION_OPEN
    )
    assert (await store.get_launch("launch-1")).status == LaunchStatus.PARTICIPATION_OPEN


async def test_mark_engagement_snapshot_only_once(store):
    await store.insert_launch(make_launch())

    assert await store.mark_engagement_snapshot("launch-1", "2026-01-02T00:00:00.000000+00:00")
    assert not await store.mark_engagement_snapshot("launch-1", "2026-01-03T00:00:00.000000+00:00")
    launch = await store.get_launch("launch-1")
    assert launch.engagement_snapshot_at == "2026-01-02T00:00:00.000000+00:00"


async def test_update_launch_only_touches_given_fields(store):
    await store.insert_launch(make_launch())
    await store.update_launch("launch-1", listing_price="1.0000000")
    await store.update_launch("launch-1", pool_id="pool-1")

    launch = await store.get_launch("launch-1")
    assert launch.listing_price == "1.0000000"
    assert launch.pool_id == "pool-1"
    assert (await store.get_launch_by_pool("pool-1")).id == "launch-1"


async def test_list_launches_filters_by_status(store):
    await store.insert_launch(make_launch("a", created_at="2026-01-01T00:00:00.000000+00:00"))
    await store.insert_launch(make_launch("b", created_at="2026-01-02T00:00:00.000000+00:00"))
    await store.compare_and_set_launch_status("a", LaunchStatus.DRAFT, LaunchStatus.PARTICIPATION_OPEN)

    assert [l.id for l in await store.list_launches()] == ["b", "a"]
    assert [l.id for l in await store.list_launches(status=LaunchStatus.DRAFT)] == ["b"]
    assert [l.id for l in await store.list_launches(limit=1)] == ["b"]


async def test_list_expired_open_launches(store):
    await store.insert_launch(make_launch(
        "old", status=LaunchStatus.PARTICIPATION_OPEN,
        participation_window_end="2026-01-05T00:00:00.000000+00:00",
    ))
    await store.insert_launch(make_launch(
        "new", status=LaunchStatus.PARTICIPATION_OPEN,
        participation_window_end="2026-02-05T00:00:00.000000+00:00",
    ))

    expired = await store.list_expired_open_launches("2026-01-10T00:00:00.000000+00:00")
    assert [l.id for l in expired] == ["old"]


async def test_save_participation_upserts_and_keeps_created_at(store):
    await store.insert_launch(make_launch())
    p = make_participation()
    await store.save_participation(p)
    created_at = p.created_at

    p.committed_pi = "150.0000000"
    await store.save_participation(p)

    rows = await store.list_participations("launch-1")
    assert len(rows) == 1
    assert rows[0].committed_pi == "150.0000000"
    assert rows[0].created_at == created_at


async def test_list_participations_orders(store):
    await store.insert_launch(make_launch())
    await store.save_participation(make_participation(user_id="first", engagement_rank=2))
    await store.save_participation(make_participation(user_id="second", engagement_rank=1))

    assert [p.user_id for p in await store.list_participations("launch-1")] == ["first", "second"]
    ranked = await store.list_participations("launch-1", by_rank=True)
    assert [p.user_id for p in ranked] == ["second", "first"]


async def test_engagement_events_and_counts(store):
    for event_type in ("registration", "milestone", "milestone"):
        await store.append_engagement_event(EngagementEvent(
            id=None, launch_id="launch-1", user_id="alice", event_type=event_type,
            payload={"step": 1},
        ))
    await store.append_engagement_event(EngagementEvent(
        id=None, launch_id="launch-1", user_id="bob", event_type="referral",
    ))

    events = await store.list_engagement_events("launch-1", "alice")
    assert [e.event_type for e in events] == ["registration", "milestone", "milestone"]
    assert events[0].payload == {"step": 1}
    assert await store.engagement_event_counts("launch-1") == {
        "alice": {"registration": 1, "milestone": 2},
        "bob": {"referral": 1},
    }


async def test_stakes_upsert(store):
    await store.set_stake("launch-1", "alice", "10.0000000", False)
    await store.set_stake("launch-1", "alice", "25.0000000", True)
    await store.set_stake("launch-1", "bob", "5.0000000", False)

    assert await store.get_stake("launch-1", "alice") == ("25.0000000", True)
    assert await store.get_stake("launch-1", "carol") is None
    assert sorted(await store.list_stake_amounts("launch-1")) == ["25.0000000", "5.0000000"]


async def _insert_round(store) -> DividendRound:
    await store.insert_launch(make_launch(is_equity_style=True))
    round_ = DividendRound(
        id="round-1",
        launch_id="launch-1",
        record_at="2026-03-01T00:00:00.000000+00:00",
        total_payout_amount="1000.0000000",
        payout_asset=TokenAsset("ZYRA", TEST_ISSUER),
    )
    await store.insert_round(round_)
    return round_


def _snapshot(public_key: str, balance: str) -> DividendHolderSnapshot:
    return DividendHolderSnapshot(
        round_id="round-1",
        public_key=public_key,
        token_balance=balance,
        share_of_supply="0.5000000",
        payout_amount=balance,
    )


async def test_round_compare_and_set_records_totals(store):
    await _insert_round(store)

    assert await store.compare_and_set_round_status(
        "round-1", RoundStatus.PENDING, RoundStatus.SNAPSHOT_DONE,
        total_eligible_supply="1000.0000000", eligible_holders_count=2,
    )
    assert not await store.compare_and_set_round_status(
        "round-1", RoundStatus.PENDING, RoundStatus.SNAPSHOT_DONE,
    )
    round_ = await store.get_round("round-1")
    assert round_.status == RoundStatus.SNAPSHOT_DONE
    assert round_.total_eligible_supply == "1000.0000000"
    assert round_.eligible_holders_count == 2
    assert [r.id for r in await store.list_rounds("launch-1")] == ["round-1"]


async def test_holder_snapshots_replace_and_paginate(store):
    await _insert_round(store)
    await store.replace_holder_snapshots("round-1", [_snapshot("stale", "1.0000000")])
    await store.replace_holder_snapshots(
        "round-1",
        [_snapshot(HOLDER_A, "600.0000000"), _snapshot(HOLDER_B, "400.0000000")],
    )

    rows = await store.list_holder_snapshots("round-1")
    assert [r.public_key for r in rows] == [HOLDER_A, HOLDER_B]

    first = await store.list_holder_snapshots("round-1", limit=1)
    rest = await store.list_holder_snapshots("round-1", after_id=first[0].id)
    assert [r.public_key for r in first + rest] == [HOLDER_A, HOLDER_B]


async def test_mark_holder_claimed_only_once(store):
    await _insert_round(store)
    await store.replace_holder_snapshots("round-1", [_snapshot(HOLDER_A, "600.0000000")])
    assert await store.count_unclaimed("round-1") == 1

    assert await store.mark_holder_claimed("round-1", HOLDER_A, "2026-03-02T00:00:00+00:00", "tx1")
    assert not await store.mark_holder_claimed("round-1", HOLDER_A, "2026-03-03T00:00:00+00:00", "tx2")

    row = await store.get_holder_snapshot("round-1", HOLDER_A)
    assert row.tx_hash == "tx1"
    assert await store.count_unclaimed("round-1") == 0


async def test_recent_activity_newest_first(store):
    await store.log_activity("a", "first")
    await store.log_activity("b", "second", launch_id="launch-1", amount="1.0000000")

    records = await store.get_recent_activity(limit=10)
    assert [r.event_type for r in records] == ["b", "a"]
    assert records[0].launch_id == "launch-1"
    assert records[0].amount == "1.0000000"
    assert len(await store.get_recent_activity(limit=1)) == 1
