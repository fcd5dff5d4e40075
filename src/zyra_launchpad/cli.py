"""CLI entry point for the zyra_launchpad engine."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Awaitable, Callable

import click

from zyra_launchpad.config import load_config
from zyra_launchpad.engine import LaunchpadEngine
from zyra_launchpad.errors import InvalidInputError, InvalidStateError, LaunchpadError
from zyra_launchpad.models.dividend import DividendRound
from zyra_launchpad.models.launch import Launch, LaunchStatus

STATUS_CHOICES = [s.value for s in LaunchStatus]


def _run(ctx: click.Context, action: Callable[[LaunchpadEngine], Awaitable[None]]) -> None:
    """Run ``action`` against a started engine, reporting taxonomy errors."""

    async def _main() -> None:
        cfg = load_config(ctx.obj["config_path"])
        async with LaunchpadEngine(cfg) as engine:
            await action(engine)

    try:
        asyncio.run(_main())
    except LaunchpadError as exc:
        click.echo(f"Error [{exc.kind}]: {exc.message}", err=True)
        sys.exit(1)


def _echo_launch(launch: Launch) -> None:
    click.echo(f"Launch:        {launch.id}")
    click.echo(f"  Project:     {launch.project_id} ({launch.project_app_url})")
    click.echo(f"  Token:       {launch.token_asset}")
    click.echo(f"  T_available: {launch.t_available}")
    click.echo(f"  Status:      {launch.status.value}")
    click.echo(f"  Equity:      {'yes' if launch.is_equity_style else 'no'}")
    if launch.pi_power_baseline:
        click.echo(f"  Baseline:    {launch.pi_power_baseline}")
    if launch.participation_window_start:
        click.echo(
            f"  Window:      {launch.participation_window_start} -> {launch.participation_window_end}"
        )
    if launch.engagement_snapshot_at:
        click.echo(f"  Snapshot:    {launch.engagement_snapshot_at}")
    if launch.listing_price:
        click.echo(f"  Price:       {launch.listing_price}")
    if launch.tge_at:
        click.echo(f"  TGE:         {launch.tge_at}")


def _echo_round(round_: DividendRound) -> None:
    click.echo(f"Round:    {round_.id}")
    click.echo(f"  Launch: {round_.launch_id}")
    click.echo(f"  Asset:  {round_.payout_asset}")
    click.echo(f"  Payout: {round_.total_payout_amount}")
    click.echo(f"  Record: {round_.record_at}")
    click.echo(f"  Status: {round_.status.value}")
    if round_.total_eligible_supply is not None:
        click.echo(f"  Supply: {round_.total_eligible_supply}")
        click.echo(f"  Holders: {round_.eligible_holders_count}")


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """zyra_launchpad - Launch allocation and dividend engine for Stellar tokens."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show engine configuration."""
    try:
        cfg = load_config(ctx.obj["config_path"])
    except LaunchpadError as exc:
        click.echo(f"Error [{exc.kind}]: {exc.message}", err=True)
        sys.exit(1)
    click.echo(f"Network:    {cfg.network}")
    click.echo(f"Horizon:    {cfg.resolved_horizon_url()}")
    click.echo(f"Fee rate:   {cfg.dividends.payout_fee_rate}")
    click.echo(f"Min hold:   {cfg.dividends.min_holder_balance}")
    click.echo(f"Page size:  {cfg.ledger.page_size}")
    weights = ", ".join(f"{k}={v}" for k, v in sorted(cfg.engagement_weights.items()))
    click.echo(f"Weights:    {weights}")
    click.echo(f"DB path:    {cfg.db_path}")


@cli.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create the state database schema."""

    async def _init(engine: LaunchpadEngine) -> None:
        click.echo("Database ready.")

    _run(ctx, _init)


@cli.command()
@click.option("--limit", default=20, help="Number of entries to show")
@click.pass_context
def activity(ctx: click.Context, limit: int) -> None:
    """Show the recent activity log."""

    async def _activity(engine: LaunchpadEngine) -> None:
        entries = await engine.store.get_recent_activity(limit)
        if not entries:
            click.echo("No activity.")
            return
        for entry in entries:
            scope = entry.round_id or entry.launch_id or "-"
            amount = f" [{entry.amount}]" if entry.amount else ""
            click.echo(
                f"{entry.created_at}  {entry.event_type:<20} {scope}  {entry.message}{amount}"
            )

    _run(ctx, _activity)


# ── Launches ───────────────────────────────────────────


@cli.command("create-launch")
@click.option("--project-id", required=True)
@click.option("--token-code", required=True)
@click.option("--token-issuer", required=True, help="Issuer account (G...)")
@click.option("--t-available", required=True, help="Tokens reserved for the sale")
@click.option("--app-url", required=True, help="URL of the project's working app")
@click.option("--stake-days", default=30, help="Participation window length in days")
@click.option("--baseline", default=None, help="PiPower baseline ratio for qualifying users")
@click.option("--equity", is_flag=True, help="Equity-style launch (eligible for dividends)")
@click.pass_context
def create_launch(
    ctx: click.Context,
    project_id: str,
    token_code: str,
    token_issuer: str,
    t_available: str,
    app_url: str,
    stake_days: int,
    baseline: str | None,
    equity: bool,
) -> None:
    """Create a launch in draft status."""

    async def _create(engine: LaunchpadEngine) -> None:
        launch = await engine.launches.create(
            project_id=project_id,
            token_code=token_code,
            token_issuer=token_issuer,
            t_available=t_available,
            project_app_url=app_url,
            stake_duration_days=stake_days,
            pi_power_baseline=baseline,
            is_equity_style=equity,
        )
        _echo_launch(launch)

    _run(ctx, _create)


@cli.command()
@click.option("--status", "status_filter", type=click.Choice(STATUS_CHOICES), default=None)
@click.option("--limit", default=50, help="Maximum launches to list (max 100)")
@click.pass_context
def launches(ctx: click.Context, status_filter: str | None, limit: int) -> None:
    """List launches, newest first."""

    async def _list(engine: LaunchpadEngine) -> None:
        status_enum = LaunchStatus(status_filter) if status_filter else None
        items = await engine.launches.list(limit, status_enum)
        if not items:
            click.echo("No launches.")
            return
        for launch in items:
            click.echo(
                f"{launch.id}  {launch.status.value:<22} {launch.token_asset.code:<12}"
                f" T={launch.t_available}  price={launch.listing_price or '-'}"
            )

    _run(ctx, _list)


@cli.command()
@click.argument("launch_id")
@click.pass_context
def show(ctx: click.Context, launch_id: str) -> None:
    """Show a launch and its participations."""

    async def _show(engine: LaunchpadEngine) -> None:
        launch = await engine.launches.get(launch_id)
        _echo_launch(launch)
        participations = await engine.store.list_participations(
            launch_id, by_rank=launch.engagement_snapshot_at is not None
        )
        click.echo(f"\nParticipations ({len(participations)}):")
        for p in participations:
            tier = p.tier.value if p.tier else "-"
            click.echo(
                f"  {p.user_id:<24} committed={p.committed_pi} power={p.pi_power}"
                f" score={p.engagement_score} rank={p.engagement_rank} tier={tier}"
                f" allocated={p.allocated_tokens}"
            )

    _run(ctx, _show)


@cli.command()
@click.argument("launch_id")
@click.argument("new_status", type=click.Choice(STATUS_CHOICES))
@click.pass_context
def transition(ctx: click.Context, launch_id: str, new_status: str) -> None:
    """Move a launch to its next status."""

    async def _transition(engine: LaunchpadEngine) -> None:
        launch = await engine.launches.transition_status(launch_id, LaunchStatus(new_status))
        click.echo(f"Launch {launch.id} is now {launch.status.value}")

    _run(ctx, _transition)


@cli.command("attach-pool")
@click.argument("launch_id")
@click.argument("pool_id")
@click.pass_context
def attach_pool(ctx: click.Context, launch_id: str, pool_id: str) -> None:
    """Tie a liquidity pool to a launch (trading opens at TGE)."""

    async def _attach(engine: LaunchpadEngine) -> None:
        await engine.launches.attach_pool(launch_id, pool_id)
        click.echo(f"Pool {pool_id} attached to launch {launch_id}")

    _run(ctx, _attach)


@cli.command("can-trade")
@click.argument("pool_id")
@click.pass_context
def can_trade(ctx: click.Context, pool_id: str) -> None:
    """Check whether trading is open on a pool."""

    async def _check(engine: LaunchpadEngine) -> None:
        try:
            await engine.launches.ensure_pool_tradable(pool_id)
        except InvalidStateError as exc:
            click.echo(f"Closed: {exc.message}")
            return
        click.echo("Open")

    _run(ctx, _check)


# ── Staking & commitments ──────────────────────────────


@cli.command()
@click.argument("launch_id")
@click.argument("user_id")
@click.argument("amount")
@click.option("--baseline/--no-baseline", default=False, help="User qualifies for the baseline")
@click.pass_context
def stake(ctx: click.Context, launch_id: str, user_id: str, amount: str, baseline: bool) -> None:
    """Record a user's staked amount for a launch."""

    async def _stake(engine: LaunchpadEngine) -> None:
        assert engine.stakes is not None
        staked = await engine.stakes.set_stake(launch_id, user_id, amount, baseline)
        click.echo(f"Stake of {user_id} set to {staked}")

    _run(ctx, _stake)


@cli.command()
@click.argument("launch_id")
@click.argument("user_id")
@click.pass_context
def power(ctx: click.Context, launch_id: str, user_id: str) -> None:
    """Show a user's PiPower and commitment."""

    async def _power(engine: LaunchpadEngine) -> None:
        info = await engine.staking.get_pi_power_for_user(launch_id, user_id)
        click.echo(f"PiPower:    {info.pi_power}")
        click.echo(f"Staked:     {info.staked_pi} of {info.sum_staked_pi}")
        click.echo(f"Committed:  {info.committed_pi}")
        click.echo(f"Max commit: {info.max_commitment_allowed}")

    _run(ctx, _power)


@cli.command()
@click.argument("launch_id")
@click.argument("user_id")
@click.argument("amount")
@click.pass_context
def commit(ctx: click.Context, launch_id: str, user_id: str, amount: str) -> None:
    """Commit Pi to a launch, capped by PiPower."""

    async def _commit(engine: LaunchpadEngine) -> None:
        p = await engine.staking.commit_pi(launch_id, user_id, amount)
        click.echo(f"Committed {p.committed_pi} of PiPower {p.pi_power}")

    _run(ctx, _commit)


@cli.command()
@click.argument("launch_id")
@click.argument("user_id")
@click.argument("event_type")
@click.option("--payload", default=None, help="JSON object stored with the event")
@click.pass_context
def engage(
    ctx: click.Context, launch_id: str, user_id: str, event_type: str, payload: str | None
) -> None:
    """Record an engagement event."""

    async def _engage(engine: LaunchpadEngine) -> None:
        data = None
        if payload:
            try:
                data = json.loads(payload)
            except ValueError as exc:
                raise InvalidInputError(f"payload is not valid JSON: {exc}") from exc
            if not isinstance(data, dict):
                raise InvalidInputError("payload must be a JSON object")
        event = await engine.engagement.ingest_event(launch_id, user_id, event_type, data)
        click.echo(f"Event {event.id} recorded ({event.event_type})")

    _run(ctx, _engage)


# ── Window, allocation, TGE ────────────────────────────


@cli.command("close-window")
@click.argument("launch_id")
@click.pass_context
def close_window(ctx: click.Context, launch_id: str) -> None:
    """Close participation and snapshot engagement."""

    async def _close(engine: LaunchpadEngine) -> None:
        launch = await engine.orchestrator.close_participation_window(launch_id)
        click.echo(f"Launch {launch.id} closed; engagement snapshot at {launch.engagement_snapshot_at}")

    _run(ctx, _close)


@cli.command("close-expired")
@click.pass_context
def close_expired(ctx: click.Context) -> None:
    """Close every launch whose participation window has ended."""

    async def _close(engine: LaunchpadEngine) -> None:
        closed = await engine.orchestrator.close_expired_windows()
        click.echo(f"Closed {len(closed)} launches")
        for launch in closed:
            click.echo(f"  {launch.id}")

    _run(ctx, _close)


@cli.command()
@click.argument("launch_id")
@click.option("--open-tge", is_flag=True, help="Open TGE once allocation succeeds")
@click.pass_context
def allocate(ctx: click.Context, launch_id: str, open_tge: bool) -> None:
    """Run Design 1 allocation for a closed launch."""

    async def _allocate(engine: LaunchpadEngine) -> None:
        result = await engine.orchestrator.run_allocation(launch_id, open_tge=open_tge)
        click.echo(f"Total committed: {result.total_c}")
        click.echo(f"Listing price:   {result.p_list}")
        click.echo(f"Engagement pool: {result.t_engage}")
        for p in result.participations:
            tier = p.tier.value if p.tier else "-"
            click.echo(f"  {p.user_id:<24} {tier:<6} {p.allocated_tokens}")

    _run(ctx, _allocate)


@cli.command("open-tge")
@click.argument("launch_id")
@click.pass_context
def open_tge(ctx: click.Context, launch_id: str) -> None:
    """Open TGE for an allocated launch."""

    async def _open(engine: LaunchpadEngine) -> None:
        launch = await engine.orchestrator.open_tge(launch_id)
        click.echo(f"Launch {launch.id} is tge_open at price {launch.listing_price}")

    _run(ctx, _open)


# ── Dividends ──────────────────────────────────────────


@cli.command("round-create")
@click.argument("launch_id")
@click.argument("total_payout")
@click.option("--record-at", default=None, help="ISO 8601 snapshot instant (default now)")
@click.pass_context
def round_create(
    ctx: click.Context, launch_id: str, total_payout: str, record_at: str | None
) -> None:
    """Create a dividend round for an equity-style launch."""

    async def _create(engine: LaunchpadEngine) -> None:
        round_ = await engine.dividends.create_round(launch_id, total_payout, record_at)
        _echo_round(round_)

    _run(ctx, _create)


@cli.command("rounds")
@click.argument("launch_id")
@click.pass_context
def rounds(ctx: click.Context, launch_id: str) -> None:
    """List dividend rounds of a launch."""

    async def _rounds(engine: LaunchpadEngine) -> None:
        items = await engine.dividends.list_rounds(launch_id)
        if not items:
            click.echo("No rounds.")
            return
        for r in items:
            click.echo(f"{r.id}  {r.status.value:<14} {r.record_at}  payout={r.total_payout_amount}")

    _run(ctx, _rounds)


@cli.command("round-snapshot")
@click.argument("round_id")
@click.pass_context
def round_snapshot(ctx: click.Context, round_id: str) -> None:
    """Snapshot on-chain holders and compute payouts."""

    async def _snapshot(engine: LaunchpadEngine) -> None:
        result = await engine.dividends.run_snapshot(round_id)
        click.echo(f"Eligible supply:  {result.total_eligible_supply}")
        click.echo(f"Eligible holders: {result.eligible_holders_count}")

    _run(ctx, _snapshot)


@cli.command("round-show")
@click.argument("round_id")
@click.pass_context
def round_show(ctx: click.Context, round_id: str) -> None:
    """Show a dividend round."""

    async def _show(engine: LaunchpadEngine) -> None:
        _echo_round(await engine.dividends.get_round(round_id))

    _run(ctx, _show)


@cli.command()
@click.argument("round_id")
@click.option("--limit", default=None, type=int, help="Page size (default 50, max 100)")
@click.option("--cursor", default=None, help="Cursor from the previous page")
@click.pass_context
def holders(ctx: click.Context, round_id: str, limit: int | None, cursor: str | None) -> None:
    """List holder entitlements of a round."""

    async def _holders(engine: LaunchpadEngine) -> None:
        page = await engine.dividends.get_holders(round_id, limit, cursor)
        for row in page.records:
            claimed = f"claimed {row.tx_hash}" if row.claimed_at else "unclaimed"
            click.echo(
                f"{row.public_key}  balance={row.token_balance} share={row.share_of_supply}"
                f" payout={row.payout_amount}  {claimed}"
            )
        if page.next_cursor:
            click.echo(f"Next cursor: {page.next_cursor}")

    _run(ctx, _holders)


@cli.command("record-claim")
@click.argument("round_id")
@click.argument("public_key")
@click.argument("tx_hash")
@click.pass_context
def record_claim(ctx: click.Context, round_id: str, public_key: str, tx_hash: str) -> None:
    """Record the treasury payment to a holder."""

    async def _claim(engine: LaunchpadEngine) -> None:
        row = await engine.dividends.record_claim(round_id, public_key, tx_hash)
        click.echo(f"Claim recorded for {row.public_key}: {row.payout_amount} ({row.tx_hash})")

    _run(ctx, _claim)


@cli.command("payout-done")
@click.argument("round_id")
@click.pass_context
def payout_done(ctx: click.Context, round_id: str) -> None:
    """Mark a round paid once every holder claim is recorded."""

    async def _done(engine: LaunchpadEngine) -> None:
        round_ = await engine.dividends.mark_payout_done(round_id)
        click.echo(f"Round {round_.id} is {round_.status.value}")

    _run(ctx, _done)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
