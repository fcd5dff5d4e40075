"""SQLite implementation of the LaunchStore protocol."""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from zyra_launchpad.models.dividend import (
    DividendHolderSnapshot,
    DividendRound,
    RoundStatus,
)
from zyra_launchpad.models.launch import (
    EngagementEvent,
    EngagementTier,
    Launch,
    LaunchStatus,
    Participation,
    TokenAsset,
)
from zyra_launchpad.models.records import ActivityRecord

SCHEMA = """
-- Token sale campaigns
CREATE TABLE IF NOT EXISTS launches (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL,
    project_app_url TEXT,
    token_code TEXT NOT NULL,
    token_issuer TEXT NOT NULL,
    t_available TEXT NOT NULL,
    stake_duration_days INTEGER NOT NULL DEFAULT 30,
    allocation_design INTEGER NOT NULL DEFAULT 1,
    status TEXT NOT NULL DEFAULT 'draft',
    pi_power_baseline TEXT,
    is_equity_style INTEGER NOT NULL DEFAULT 0,
    participation_window_start TEXT,
    participation_window_end TEXT,
    engagement_snapshot_at TEXT,
    listing_price TEXT,
    pool_id TEXT,
    tge_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_launches_status ON launches(status);
CREATE INDEX IF NOT EXISTS idx_launches_pool ON launches(pool_id);

-- One row per (launch, user); rowid order is first-commitment order
CREATE TABLE IF NOT EXISTS participations (
    launch_id TEXT NOT NULL REFERENCES launches(id),
    user_id TEXT NOT NULL,
    staked_pi TEXT NOT NULL DEFAULT '0.0000000',
    committed_pi TEXT NOT NULL DEFAULT '0.0000000',
    pi_power TEXT NOT NULL DEFAULT '0.0000000',
    engagement_score INTEGER NOT NULL DEFAULT 0,
    engagement_rank INTEGER NOT NULL DEFAULT 0,
    tier TEXT,
    allocated_tokens TEXT NOT NULL DEFAULT '0.0000000',
    effective_price TEXT NOT NULL DEFAULT '0.0000000',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (launch_id, user_id)
);

-- Append-only engagement events
CREATE TABLE IF NOT EXISTS engagement_events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    launch_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    event_type TEXT NOT NULL,
    payload TEXT NOT NULL DEFAULT '{}',
    at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_events_launch_user ON engagement_events(launch_id, user_id);

-- Stake positions served by the stored staking provider
CREATE TABLE IF NOT EXISTS stakes (
    launch_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    staked_pi TEXT NOT NULL,
    qualifies_for_baseline INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (launch_id, user_id)
);

-- Dividend rounds
CREATE TABLE IF NOT EXISTS dividend_rounds (
    id TEXT PRIMARY KEY,
    launch_id TEXT NOT NULL REFERENCES launches(id),
    record_at TEXT NOT NULL,
    total_payout_amount TEXT NOT NULL,
    asset_code TEXT NOT NULL,
    asset_issuer TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending',
    total_eligible_supply TEXT,
    eligible_holders_count INTEGER,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_rounds_launch ON dividend_rounds(launch_id);

-- Holder entitlements per round
CREATE TABLE IF NOT EXISTS dividend_holder_snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    round_id TEXT NOT NULL REFERENCES dividend_rounds(id),
    public_key TEXT NOT NULL,
    token_balance TEXT NOT NULL,
    share_of_supply TEXT NOT NULL,
    payout_amount TEXT NOT NULL,
    claimed_at TEXT,
    tx_hash TEXT,
    created_at TEXT NOT NULL,
    UNIQUE (round_id, public_key)
);

-- Activity log
CREATE TABLE IF NOT EXISTS activity_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_type TEXT NOT NULL,
    launch_id TEXT,
    round_id TEXT,
    amount TEXT,
    message TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_activity_created ON activity_log(created_at);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


class SQLiteLaunchStore:
    """SQLite-backed implementation of the LaunchStore protocol.

    The connection runs in autocommit mode and transactions are opened
    explicitly with ``BEGIN IMMEDIATE``. A lock serializes transactions on
    the shared connection and a context variable lets nested calls join
    the transaction already open in the current task.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()
        self._in_transaction: ContextVar[bool] = ContextVar(
            f"launch_store_tx_{id(self)}", default=False
        )

    async def initialize(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path, isolation_level=None)
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA foreign_keys = ON")
        await self._db.executescript(SCHEMA)

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Store not initialized. Call initialize() first."
        return self._db

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._in_transaction.get():
            yield
            return
        async with self._lock:
            token = self._in_transaction.set(True)
            try:
                await self.db.execute("BEGIN IMMEDIATE")
                try:
                    yield
                except BaseException:
                    await self.db.execute("ROLLBACK")
                    raise
                await self.db.execute("COMMIT")
            finally:
                self._in_transaction.reset(token)

    async def _write(self, sql: str, params: tuple | list = ()) -> int:
        """Execute one statement inside a transaction, returning the rowcount."""
        async with self.transaction():
            async with self.db.execute(sql, params) as cur:
                return cur.rowcount

    # ── Launches ───────────────────────────────────────────

    async def insert_launch(self, launch: Launch) -> None:
        now = _now()
        launch.created_at = launch.created_at or now
        launch.updated_at = launch.updated_at or now
        await self._write(
            "INSERT INTO launches"
            " (id, project_id, project_app_url, token_code, token_issuer, t_available,"
            "  stake_duration_days, allocation_design, status, pi_power_baseline,"
            "  is_equity_style, participation_window_start, participation_window_end,"
            "  engagement_snapshot_at, listing_price, pool_id, tge_at, created_at, updated_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                launch.id, launch.project_id, launch.project_app_url,
                launch.token_asset.code, launch.token_asset.issuer, launch.t_available,
                launch.stake_duration_days, launch.allocation_design, launch.status.value,
                launch.pi_power_baseline, int(launch.is_equity_style),
                launch.participation_window_start, launch.participation_window_end,
                launch.engagement_snapshot_at, launch.listing_price, launch.pool_id,
                launch.tge_at, launch.created_at, launch.updated_at,
            ),
        )

    async def get_launch(self, launch_id: str) -> Launch | None:
        async with self.transaction():
            async with self.db.execute(
                "SELECT * FROM launches WHERE id=?", (launch_id,)
            ) as cur:
                row = await cur.fetchone()
                return _row_to_launch(row) if row else None

    async def list_launches(
        self, limit: int = 50, status: LaunchStatus | None = None
    ) -> list[Launch]:
        async with self.transaction():
            if status is not None:
                async with self.db.execute(
                    "SELECT * FROM launches WHERE status=? ORDER BY created_at DESC, id LIMIT ?",
                    (status.value, limit),
                ) as cur:
                    return [_row_to_launch(row) async for row in cur]
            async with self.db.execute(
                "SELECT * FROM launches ORDER BY created_at DESC, id LIMIT ?", (limit,)
            ) as cur:
                return [_row_to_launch(row) async for row in cur]

    async def get_launch_by_pool(self, pool_id: str) -> Launch | None:
        async with self.transaction():
            async with self.db.execute(
                "SELECT * FROM launches WHERE pool_id=?", (pool_id,)
            ) as cur:
                row = await cur.fetchone()
                return _row_to_launch(row) if row else None

    async def list_expired_open_launches(self, now: str) -> list[Launch]:
        async with self.transaction():
            async with self.db.execute(
                "SELECT * FROM launches WHERE status=? AND participation_window_end IS NOT NULL"
                " AND participation_window_end <= ? ORDER BY participation_window_end",
                (LaunchStatus.PARTICIPATION_OPEN.value, now),
            ) as cur:
                return [_row_to_launch(row) async for row in cur]

    async def update_launch(
        self,
        launch_id: str,
        listing_price: str | None = None,
        pool_id: str | None = None,
        participation_window_start: str | None = None,
        participation_window_end: str | None = None,
        tge_at: str | None = None,
    ) -> None:
        updates = ["updated_at=?"]
        params: list = [_now()]
        if listing_price is not None:
            updates.append("listing_price=?")
            params.append(listing_price)
        if pool_id is not None:
            updates.append("pool_id=?")
            params.append(pool_id)
        if participation_window_start is not None:
            updates.append("participation_window_start=?")
            params.append(participation_window_start)
        if participation_window_end is not None:
            updates.append("participation_window_end=?")
            params.append(participation_window_end)
        if tge_at is not None:
            updates.append("tge_at=?")
            params.append(tge_at)

        params.append(launch_id)
        await self._write(f"UPDATE launches SET {', '.join(updates)} WHERE id=?", params)

    async def compare_and_set_launch_status(
        self, launch_id: str, expected: LaunchStatus, new: LaunchStatus
    ) -> bool:
        changed = await self._write(
            "UPDATE launches SET status=?, updated_at=? WHERE id=? AND status=?",
            (new.value, _now(), launch_id, expected.value),
        )
        return changed == 1

    async def mark_engagement_snapshot(self, launch_id: str, at: str) -> bool:
        changed = await self._write(
            "UPDATE launches SET engagement_snapshot_at=?, updated_at=?"
            " WHERE id=? AND engagement_snapshot_at IS NULL",
            (at, _now(), launch_id),
        )
        return changed == 1

    # ── Participations ─────────────────────────────────────

    async def get_participation(self, launch_id: str, user_id: str) -> Participation | None:
        async with self.transaction():
            async with self.db.execute(
                "SELECT * FROM participations WHERE launch_id=? AND user_id=?",
                (launch_id, user_id),
            ) as cur:
                row = await cur.fetchone()
                return _row_to_participation(row) if row else None

    async def save_participation(self, participation: Participation) -> None:
        now = _now()
        participation.created_at = participation.created_at or now
        participation.updated_at = now
        p = participation
        await self._write(
            "INSERT INTO participations"
            " (launch_id, user_id, staked_pi, committed_pi, pi_power, engagement_score,"
            "  engagement_rank, tier, allocated_tokens, effective_price, created_at, updated_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
            " ON CONFLICT(launch_id, user_id) DO UPDATE SET"
            " staked_pi=excluded.staked_pi, committed_pi=excluded.committed_pi,"
            " pi_power=excluded.pi_power, engagement_score=excluded.engagement_score,"
            " engagement_rank=excluded.engagement_rank, tier=excluded.tier,"
            " allocated_tokens=excluded.allocated_tokens,"
            " effective_price=excluded.effective_price, updated_at=excluded.updated_at",
            (
                p.launch_id, p.user_id, p.staked_pi, p.committed_pi, p.pi_power,
                p.engagement_score, p.engagement_rank, p.tier.value if p.tier else None,
                p.allocated_tokens, p.effective_price, p.created_at, p.updated_at,
            ),
        )

    async def list_participations(
        self, launch_id: str, by_rank: bool = False
    ) -> list[Participation]:
        order = "engagement_rank, rowid" if by_rank else "rowid"
        async with self.transaction():
            async with self.db.execute(
                f"SELECT * FROM participations WHERE launch_id=? ORDER BY {order}",
                (launch_id,),
            ) as cur:
                return [_row_to_participation(row) async for row in cur]

    # ── Engagement events ──────────────────────────────────

    async def append_engagement_event(self, event: EngagementEvent) -> int:
        async with self.transaction():
            async with self.db.execute(
                "INSERT INTO engagement_events (launch_id, user_id, event_type, payload, at)"
                " VALUES (?, ?, ?, ?, ?)",
                (
                    event.launch_id, event.user_id, event.event_type,
                    json.dumps(event.payload), event.at or _now(),
                ),
            ) as cur:
                return cur.lastrowid

    async def list_engagement_events(
        self, launch_id: str, user_id: str
    ) -> list[EngagementEvent]:
        async with self.transaction():
            async with self.db.execute(
                "SELECT * FROM engagement_events WHERE launch_id=? AND user_id=? ORDER BY id",
                (launch_id, user_id),
            ) as cur:
                return [
                    EngagementEvent(
                        id=row["id"],
                        launch_id=row["launch_id"],
                        user_id=row["user_id"],
                        event_type=row["event_type"],
                        payload=json.loads(row["payload"]),
                        at=row["at"],
                    )
                    async for row in cur
                ]

    async def engagement_event_counts(self, launch_id: str) -> dict[str, dict[str, int]]:
        counts: dict[str, dict[str, int]] = {}
        async with self.transaction():
            async with self.db.execute(
                "SELECT user_id, event_type, COUNT(*) as c FROM engagement_events"
                " WHERE launch_id=? GROUP BY user_id, event_type",
                (launch_id,),
            ) as cur:
                async for row in cur:
                    counts.setdefault(row["user_id"], {})[row["event_type"]] = row["c"]
        return counts

    # ── Stakes ─────────────────────────────────────────────

    async def set_stake(
        self, launch_id: str, user_id: str, staked_pi: str, qualifies_for_baseline: bool
    ) -> None:
        await self._write(
            "INSERT INTO stakes (launch_id, user_id, staked_pi, qualifies_for_baseline, updated_at)"
            " VALUES (?, ?, ?, ?, ?)"
            " ON CONFLICT(launch_id, user_id) DO UPDATE SET"
            " staked_pi=excluded.staked_pi,"
            " qualifies_for_baseline=excluded.qualifies_for_baseline,"
            " updated_at=excluded.updated_at",
            (launch_id, user_id, staked_pi, int(qualifies_for_baseline), _now()),
        )

    async def get_stake(self, launch_id: str, user_id: str) -> tuple[str, bool] | None:
        async with self.transaction():
            async with self.db.execute(
                "SELECT staked_pi, qualifies_for_baseline FROM stakes"
                " WHERE launch_id=? AND user_id=?",
                (launch_id, user_id),
            ) as cur:
                row = await cur.fetchone()
                if row:
                    return row["staked_pi"], bool(row["qualifies_for_baseline"])
        return None

    async def list_stake_amounts(self, launch_id: str) -> list[str]:
        async with self.transaction():
            async with self.db.execute(
                "SELECT staked_pi FROM stakes WHERE launch_id=?", (launch_id,)
            ) as cur:
                return [row["staked_pi"] async for row in cur]

    # ── Dividend rounds ────────────────────────────────────

    async def insert_round(self, round_: DividendRound) -> None:
        now = _now()
        round_.created_at = round_.created_at or now
        round_.updated_at = round_.updated_at or now
        await self._write(
            "INSERT INTO dividend_rounds"
            " (id, launch_id, record_at, total_payout_amount, asset_code, asset_issuer,"
            "  status, total_eligible_supply, eligible_holders_count, created_at, updated_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                round_.id, round_.launch_id, round_.record_at, round_.total_payout_amount,
                round_.payout_asset.code, round_.payout_asset.issuer, round_.status.value,
                round_.total_eligible_supply, round_.eligible_holders_count,
                round_.created_at, round_.updated_at,
            ),
        )

    async def get_round(self, round_id: str) -> DividendRound | None:
        async with self.transaction():
            async with self.db.execute(
                "SELECT * FROM dividend_rounds WHERE id=?", (round_id,)
            ) as cur:
                row = await cur.fetchone()
                return _row_to_round(row) if row else None

    async def list_rounds(self, launch_id: str) -> list[DividendRound]:
        async with self.transaction():
            async with self.db.execute(
                "SELECT * FROM dividend_rounds WHERE launch_id=? ORDER BY record_at, created_at",
                (launch_id,),
            ) as cur:
                return [_row_to_round(row) async for row in cur]

    async def compare_and_set_round_status(
        self,
        round_id: str,
        expected: RoundStatus,
        new: RoundStatus,
        total_eligible_supply: str | None = None,
        eligible_holders_count: int | None = None,
    ) -> bool:
        updates = ["status=?", "updated_at=?"]
        params: list = [new.value, _now()]
        if total_eligible_supply is not None:
            updates.append("total_eligible_supply=?")
            params.append(total_eligible_supply)
        if eligible_holders_count is not None:
            updates.append("eligible_holders_count=?")
            params.append(eligible_holders_count)

        params.extend([round_id, expected.value])
        changed = await self._write(
            f"UPDATE dividend_rounds SET {', '.join(updates)} WHERE id=? AND status=?",
            params,
        )
        return changed == 1

    # ── Holder snapshots ───────────────────────────────────

    async def replace_holder_snapshots(
        self, round_id: str, rows: list[DividendHolderSnapshot]
    ) -> None:
        now = _now()
        async with self.transaction():
            await self.db.execute(
                "DELETE FROM dividend_holder_snapshots WHERE round_id=?", (round_id,)
            )
            await self.db.executemany(
                "INSERT INTO dividend_holder_snapshots"
                " (round_id, public_key, token_balance, share_of_supply, payout_amount,"
                "  claimed_at, tx_hash, created_at)"
                " VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        round_id, r.public_key, r.token_balance, r.share_of_supply,
                        r.payout_amount, r.claimed_at, r.tx_hash, now,
                    )
                    for r in rows
                ],
            )

    async def get_holder_snapshot(
        self, round_id: str, public_key: str
    ) -> DividendHolderSnapshot | None:
        async with self.transaction():
            async with self.db.execute(
                "SELECT * FROM dividend_holder_snapshots WHERE round_id=? AND public_key=?",
                (round_id, public_key),
            ) as cur:
                row = await cur.fetchone()
                return _row_to_snapshot(row) if row else None

    async def list_holder_snapshots(
        self, round_id: str, limit: int | None = None, after_id: int | None = None
    ) -> list[DividendHolderSnapshot]:
        sql = "SELECT * FROM dividend_holder_snapshots WHERE round_id=?"
        params: list = [round_id]
        if after_id is not None:
            sql += " AND id > ?"
            params.append(after_id)
        sql += " ORDER BY id"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        async with self.transaction():
            async with self.db.execute(sql, params) as cur:
                return [_row_to_snapshot(row) async for row in cur]

    async def count_unclaimed(self, round_id: str) -> int:
        async with self.transaction():
            async with self.db.execute(
                "SELECT COUNT(*) as c FROM dividend_holder_snapshots"
                " WHERE round_id=? AND claimed_at IS NULL",
                (round_id,),
            ) as cur:
                row = await cur.fetchone()
                return row["c"] if row else 0

    async def mark_holder_claimed(
        self, round_id: str, public_key: str, claimed_at: str, tx_hash: str
    ) -> bool:
        changed = await self._write(
            "UPDATE dividend_holder_snapshots SET claimed_at=?, tx_hash=?"
            " WHERE round_id=? AND public_key=? AND claimed_at IS NULL",
            (claimed_at, tx_hash, round_id, public_key),
        )
        return changed == 1

    # ── Activity log ───────────────────────────────────────

    async def log_activity(
        self,
        event_type: str,
        message: str,
        launch_id: str | None = None,
        round_id: str | None = None,
        amount: str | None = None,
    ) -> None:
        await self._write(
            "INSERT INTO activity_log (event_type, launch_id, round_id, amount, message, created_at)"
            " VALUES (?, ?, ?, ?, ?, ?)",
            (event_type, launch_id, round_id, amount, message, _now()),
        )

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        async with self.transaction():
            async with self.db.execute(
                "SELECT * FROM activity_log ORDER BY id DESC LIMIT ?", (limit,)
            ) as cur:
                return [
                    ActivityRecord(
                        id=row["id"],
                        event_type=row["event_type"],
                        launch_id=row["launch_id"],
                        round_id=row["round_id"],
                        amount=row["amount"],
                        message=row["message"],
                        created_at=row["created_at"],
                    )
                    async for row in cur
                ]


# ── Row converters ─────────────────────────────────────────


def _row_to_launch(row: aiosqlite.Row) -> Launch:
    return Launch(
        id=row["id"],
        project_id=row["project_id"],
        token_asset=TokenAsset(code=row["token_code"], issuer=row["token_issuer"]),
        t_available=row["t_available"],
        project_app_url=row["project_app_url"],
        stake_duration_days=row["stake_duration_days"],
        allocation_design=row["allocation_design"],
        status=LaunchStatus(row["status"]),
        pi_power_baseline=row["pi_power_baseline"],
        is_equity_style=bool(row["is_equity_style"]),
        participation_window_start=row["participation_window_start"],
        participation_window_end=row["participation_window_end"],
        engagement_snapshot_at=row["engagement_snapshot_at"],
        listing_price=row["listing_price"],
        pool_id=row["pool_id"],
        tge_at=row["tge_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_participation(row: aiosqlite.Row) -> Participation:
    return Participation(
        launch_id=row["launch_id"],
        user_id=row["user_id"],
        staked_pi=row["staked_pi"],
        committed_pi=row["committed_pi"],
        pi_power=row["pi_power"],
        engagement_score=row["engagement_score"],
        engagement_rank=row["engagement_rank"],
        tier=EngagementTier(row["tier"]) if row["tier"] else None,
        allocated_tokens=row["allocated_tokens"],
        effective_price=row["effective_price"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_round(row: aiosqlite.Row) -> DividendRound:
    return DividendRound(
        id=row["id"],
        launch_id=row["launch_id"],
        record_at=row["record_at"],
        total_payout_amount=row["total_payout_amount"],
        payout_asset=TokenAsset(code=row["asset_code"], issuer=row["asset_issuer"]),
        status=RoundStatus(row["status"]),
        total_eligible_supply=row["total_eligible_supply"],
        eligible_holders_count=row["eligible_holders_count"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_snapshot(row: aiosqlite.Row) -> DividendHolderSnapshot:
    return DividendHolderSnapshot(
        id=row["id"],
        round_id=row["round_id"],
        public_key=row["public_key"],
        token_balance=row["token_balance"],
        share_of_supply=row["share_of_supply"],
        payout_amount=row["payout_amount"],
        claimed_at=row["claimed_at"],
        tx_hash=row["tx_hash"],
    )
