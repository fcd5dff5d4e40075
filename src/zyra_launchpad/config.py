"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import os
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from zyra_launchpad.errors import InvalidInputError
from zyra_launchpad.models.config import DividendConfig, EngineConfig, LedgerConfig


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "ZYRA_LAUNCHPAD_",
) -> EngineConfig:
    """Load engine configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (ZYRA_LAUNCHPAD_NETWORK, etc.)
        2. TOML config file
        3. Defaults from EngineConfig
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = EngineConfig()

    # ── Engine section ─────────────────────────────────────
    engine = raw.get("engine", {})
    if v := engine.get("log_level"):
        cfg.log_level = str(v)

    # ── Stellar section ────────────────────────────────────
    stellar = raw.get("stellar", {})
    if v := stellar.get("network"):
        cfg.network = str(v)
    if v := stellar.get("horizon_url"):
        cfg.horizon_url = str(v)

    # ── Ledger section ─────────────────────────────────────
    ledger = raw.get("ledger", {})
    cfg.ledger = LedgerConfig(
        page_size=int(ledger.get("page_size", 200)),
        timeout=int(ledger.get("timeout", 15)),
        retries=int(ledger.get("retries", 3)),
    )

    # ── Staking section ────────────────────────────────────
    staking = raw.get("staking", {})
    if v := staking.get("timeout"):
        cfg.staking_timeout = int(v)

    # ── Dividends section ──────────────────────────────────
    dividends = raw.get("dividends", {})
    cfg.dividends = DividendConfig(
        payout_fee_rate=str(dividends.get("payout_fee_rate", "0.006")),
        min_holder_balance=str(dividends.get("min_holder_balance", "0")),
        holders_page_size=int(dividends.get("holders_page_size", 50)),
    )
    if cfg.dividends.holders_page_size > cfg.dividends.holders_page_max:
        cfg.dividends.holders_page_size = cfg.dividends.holders_page_max

    # ── Engagement section ─────────────────────────────────
    engagement = raw.get("engagement", {})
    if weights := engagement.get("weights"):
        cfg.engagement_weights.update(_parse_weights(weights))

    # ── Storage section ────────────────────────────────────
    storage = raw.get("storage", {})
    if v := storage.get("db_path"):
        cfg.db_path = str(v)

    # ── Environment variable overrides (highest priority) ──
    if level := os.environ.get(f"{env_prefix}LOG_LEVEL"):
        cfg.log_level = level
    if net := os.environ.get(f"{env_prefix}NETWORK"):
        cfg.network = net
    if url := os.environ.get(f"{env_prefix}HORIZON_URL"):
        cfg.horizon_url = url
    if rate := os.environ.get(f"{env_prefix}PAYOUT_FEE_RATE"):
        cfg.dividends.payout_fee_rate = rate
    if db := os.environ.get(f"{env_prefix}DB_PATH"):
        cfg.db_path = db

    # Expand ~ in paths
    if cfg.db_path != ":memory:":
        cfg.db_path = str(Path(cfg.db_path).expanduser())

    return cfg


def _parse_weights(weights: object) -> dict[str, int]:
    if not isinstance(weights, dict):
        raise InvalidInputError("engagement.weights must be a table of event_type = weight")
    parsed: dict[str, int] = {}
    for event_type, weight in weights.items():
        if isinstance(weight, bool) or not isinstance(weight, int) or weight < 1:
            raise InvalidInputError(
                f"engagement weight for {event_type!r} must be a positive integer, got {weight!r}"
            )
        parsed[str(event_type)] = weight
    return parsed
