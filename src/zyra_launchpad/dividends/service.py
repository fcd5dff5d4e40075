"""Dividend rounds - holder snapshots, pro-rata payouts and claim records."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime
from decimal import Decimal

from zyra_launchpad.errors import (
    AlreadyClaimedError,
    AlreadyDoneError,
    InvalidInputError,
    InvalidStateError,
    LaunchpadError,
    NotFoundError,
    ProviderUnavailableError,
)
from zyra_launchpad.interfaces.fees import FeePolicy
from zyra_launchpad.interfaces.ledger import LedgerQueryProvider
from zyra_launchpad.interfaces.store import LaunchStore
from zyra_launchpad.launchpad.launches import now_iso
from zyra_launchpad.models.dividend import (
    DividendHolderSnapshot,
    DividendRound,
    RoundStatus,
)
from zyra_launchpad.models.launch import LaunchStatus, TokenAsset
from zyra_launchpad.models.records import HolderPage, SnapshotPage, SnapshotResult
from zyra_launchpad.numeric import ZERO, fmt, parse_amount, quantize, to_decimal

log = logging.getLogger(__name__)

LEDGER_PAGE_SIZE = 200


class DividendService:
    """Creates payout rounds for equity-style launches and snapshots holders.

    Holder balances come straight from the ledger. The whole holder list is
    fetched before anything is written, so a failed or timed-out page leaves
    the round pending with its previous rows untouched.
    """

    def __init__(
        self,
        store: LaunchStore,
        ledger: LedgerQueryProvider,
        fee_policy: FeePolicy,
        page_size: int = LEDGER_PAGE_SIZE,
        page_timeout: float | None = None,
        min_holder_balance: str = "0",
        holders_page_size: int = 50,
        holders_page_max: int = 100,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._fee_policy = fee_policy
        self._page_size = page_size
        self._page_timeout = page_timeout
        self._min_balance = to_decimal(min_holder_balance, "min_holder_balance")
        self._holders_page_size = holders_page_size
        self._holders_page_max = holders_page_max

    async def _get_round(self, round_id: str) -> DividendRound:
        round_ = await self._store.get_round(round_id)
        if round_ is None:
            raise NotFoundError(f"Dividend round not found: {round_id}")
        return round_

    # ── Rounds ─────────────────────────────────────────────

    async def create_round(
        self,
        launch_id: str,
        total_payout_amount: str,
        record_at: datetime | str | None = None,
    ) -> DividendRound:
        payout = parse_amount(total_payout_amount, "total_payout_amount")
        if isinstance(record_at, str):
            try:
                record_at = datetime.fromisoformat(record_at)
            except ValueError as exc:
                raise InvalidInputError(f"Invalid record_at: {record_at!r}") from exc

        async with self._store.transaction():
            launch = await self._store.get_launch(launch_id)
            if launch is None:
                raise NotFoundError(f"Launch not found: {launch_id}")
            if not launch.is_equity_style:
                raise InvalidStateError("Launch must be equity-style to create dividend rounds")
            if launch.status != LaunchStatus.TGE_OPEN:
                raise InvalidStateError(
                    f"Launch must be tge_open to create dividend rounds, not {launch.status.value}"
                )

            round_ = DividendRound(
                id=uuid.uuid4().hex,
                launch_id=launch_id,
                record_at=now_iso(record_at),
                total_payout_amount=fmt(payout),
                payout_asset=launch.token_asset,
            )
            await self._store.insert_round(round_)
            await self._store.log_activity(
                "round_created",
                f"Dividend round of {round_.total_payout_amount} {launch.token_asset.code}",
                launch_id=launch_id,
                round_id=round_.id,
                amount=round_.total_payout_amount,
            )
        log.info("Dividend round created: %s for launch %s", round_.id, launch_id)
        return round_

    async def get_round(self, round_id: str) -> DividendRound:
        return await self._get_round(round_id)

    async def list_rounds(self, launch_id: str) -> list[DividendRound]:
        if await self._store.get_launch(launch_id) is None:
            raise NotFoundError(f"Launch not found: {launch_id}")
        return await self._store.list_rounds(launch_id)

    # ── Snapshot ───────────────────────────────────────────

    async def _fetch_page(self, asset: TokenAsset, cursor: str | None) -> HolderPage:
        try:
            return await asyncio.wait_for(
                self._ledger.get_holders_page(asset, cursor, self._page_size),
                timeout=self._page_timeout,
            )
        except asyncio.TimeoutError as exc:
            log.error("Ledger page timed out for %s (cursor=%s)", asset.code, cursor)
            raise ProviderUnavailableError(
                "ledger", f"holders page timed out after {self._page_timeout}s"
            ) from exc
        except LaunchpadError:
            raise
        except Exception as exc:
            log.error("Ledger page failed for %s (cursor=%s): %s", asset.code, cursor, exc)
            raise ProviderUnavailableError("ledger", str(exc)) from exc

    async def _collect_holders(self, asset: TokenAsset) -> list[tuple[str, Decimal]]:
        holders: dict[str, Decimal] = {}
        cursor: str | None = None
        pages = 0
        while True:
            page = await self._fetch_page(asset, cursor)
            pages += 1
            for holder in page.holders:
                if holder.balance is None:
                    continue
                try:
                    balance = to_decimal(holder.balance, "balance")
                except InvalidInputError as exc:
                    raise ProviderUnavailableError(
                        "ledger", f"malformed balance for {holder.account_id}: {holder.balance!r}"
                    ) from exc
                if balance <= self._min_balance:
                    continue
                if holder.account_id in holders:
                    log.warning("Ledger returned holder %s twice; keeping the first", holder.account_id)
                    continue
                holders[holder.account_id] = balance
            if not page.next_cursor:
                break
            cursor = page.next_cursor
        log.debug("Fetched %d eligible holders of %s in %d pages", len(holders), asset.code, pages)
        return list(holders.items())

    async def run_snapshot(self, round_id: str) -> SnapshotResult:
        """Snapshot holders of the payout asset and compute each payout. Runs once.

        share = balance / supply rounded to 7 digits, gross = share * total_payout,
        payout = gross minus the payout fee.
        """
        round_ = await self._get_round(round_id)
        if round_.status != RoundStatus.PENDING:
            raise AlreadyDoneError(f"Round {round_id} snapshot already ran ({round_.status.value})")

        holders = await self._collect_holders(round_.payout_asset)
        total_supply = sum((balance for _, balance in holders), ZERO)
        total_payout = to_decimal(round_.total_payout_amount, "total_payout_amount")

        rows: list[DividendHolderSnapshot] = []
        for public_key, balance in holders:
            share = quantize(balance / total_supply)
            gross = share * total_payout
            fee = self._fee_policy.apply_payout_fee(fmt(gross))
            rows.append(
                DividendHolderSnapshot(
                    round_id=round_id,
                    public_key=public_key,
                    token_balance=fmt(balance),
                    share_of_supply=fmt(share),
                    payout_amount=fee.net_amount,
                )
            )
        result = SnapshotResult(
            total_eligible_supply=fmt(total_supply), eligible_holders_count=len(rows)
        )

        async with self._store.transaction():
            await self._store.replace_holder_snapshots(round_id, rows)
            if not await self._store.compare_and_set_round_status(
                round_id,
                RoundStatus.PENDING,
                RoundStatus.SNAPSHOT_DONE,
                total_eligible_supply=result.total_eligible_supply,
                eligible_holders_count=result.eligible_holders_count,
            ):
                raise AlreadyDoneError(f"Round {round_id} snapshot already ran")
            await self._store.log_activity(
                "round_snapshot",
                f"Snapshot of {len(rows)} holders, supply {result.total_eligible_supply}",
                launch_id=round_.launch_id,
                round_id=round_id,
                amount=round_.total_payout_amount,
            )

        log.info(
            "Dividend snapshot done: round=%s holders=%d totalSupply=%s",
            round_id, result.eligible_holders_count, result.total_eligible_supply,
        )
        return result

    # ── Holders & claims ───────────────────────────────────

    async def get_holders(
        self, round_id: str, limit: int | None = None, cursor: str | None = None
    ) -> SnapshotPage:
        await self._get_round(round_id)
        if limit is None:
            limit = self._holders_page_size
        if limit < 1:
            raise InvalidInputError("limit must be positive")
        limit = min(limit, self._holders_page_max)

        after_id = None
        if cursor:
            try:
                after_id = int(cursor)
            except ValueError:
                raise InvalidInputError(f"Invalid cursor: {cursor!r}") from None
            if after_id < 0:
                raise InvalidInputError(f"Invalid cursor: {cursor!r}")

        records = await self._store.list_holder_snapshots(round_id, limit=limit, after_id=after_id)
        next_cursor = str(records[-1].id) if len(records) == limit else None
        return SnapshotPage(records=records, next_cursor=next_cursor)

    async def record_claim(
        self, round_id: str, public_key: str, tx_hash: str, now: datetime | None = None
    ) -> DividendHolderSnapshot:
        """Record that the treasury paid a holder. Moves no funds itself."""
        if not tx_hash or not tx_hash.strip():
            raise InvalidInputError("tx_hash is required")

        async with self._store.transaction():
            await self._get_round(round_id)
            snapshot = await self._store.get_holder_snapshot(round_id, public_key)
            if snapshot is None:
                raise NotFoundError(f"Holder snapshot not found: {public_key} in round {round_id}")
            if snapshot.claimed_at is not None:
                raise AlreadyClaimedError(f"Already claimed by {public_key} (tx {snapshot.tx_hash})")

            claimed_at = now_iso(now)
            if not await self._store.mark_holder_claimed(
                round_id, public_key, claimed_at, tx_hash.strip()
            ):
                raise AlreadyClaimedError(f"Already claimed by {public_key}")
            snapshot.claimed_at = claimed_at
            snapshot.tx_hash = tx_hash.strip()
            await self._store.log_activity(
                "claim_recorded",
                f"Payout to {public_key} confirmed in {snapshot.tx_hash}",
                round_id=round_id,
                amount=snapshot.payout_amount,
            )
        log.info("Claim recorded: round=%s holder=%s tx=%s", round_id, public_key, snapshot.tx_hash)
        return snapshot

    async def mark_payout_done(self, round_id: str) -> DividendRound:
        async with self._store.transaction():
            round_ = await self._get_round(round_id)
            if round_.status == RoundStatus.PAYOUT_DONE:
                raise AlreadyDoneError(f"Round {round_id} payout already done")
            if round_.status != RoundStatus.SNAPSHOT_DONE:
                raise InvalidStateError("Payout can only complete after the holder snapshot")
            unclaimed = await self._store.count_unclaimed(round_id)
            if unclaimed:
                raise InvalidStateError(f"{unclaimed} holders have no recorded claim yet")
            if not await self._store.compare_and_set_round_status(
                round_id, RoundStatus.SNAPSHOT_DONE, RoundStatus.PAYOUT_DONE
            ):
                raise AlreadyDoneError(f"Round {round_id} payout already done")
            round_.status = RoundStatus.PAYOUT_DONE
            await self._store.log_activity(
                "payout_done", "All holder payouts confirmed",
                launch_id=round_.launch_id, round_id=round_id,
                amount=round_.total_payout_amount,
            )
        log.info("Dividend round %s payout done", round_id)
        return round_
