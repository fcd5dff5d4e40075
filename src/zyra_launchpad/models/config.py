"""Configuration models for the engine."""

from __future__ import annotations

from dataclasses import dataclass, field

HORIZON_URLS = {
    "testnet": "https://horizon-testnet.stellar.org",
    "mainnet": "https://horizon.stellar.org",
}

DEFAULT_ENGAGEMENT_WEIGHTS = {
    "registration": 1,
    "milestone": 2,
    "referral": 1,
    "daily_active": 1,
    "custom": 1,  # fallback for unknown event types
}


@dataclass
class LedgerConfig:
    """Horizon holder pagination settings."""

    page_size: int = 200
    timeout: int = 15  # seconds per page request
    retries: int = 3  # attempts per page


@dataclass
class DividendConfig:
    payout_fee_rate: str = "0.006"  # 0.6%
    min_holder_balance: str = "0"
    holders_page_size: int = 50
    holders_page_max: int = 100


@dataclass
class EngineConfig:
    """Complete engine configuration."""

    log_level: str = "info"

    # Stellar
    network: str = "testnet"
    horizon_url: str = ""  # derived from network when empty

    # Collaborators
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    staking_timeout: int = 10  # seconds per staking provider call

    # Dividends
    dividends: DividendConfig = field(default_factory=DividendConfig)

    # Engagement
    engagement_weights: dict[str, int] = field(
        default_factory=lambda: dict(DEFAULT_ENGAGEMENT_WEIGHTS)
    )

    # Storage
    db_path: str = "~/.zyra_launchpad/state.db"

    def resolved_horizon_url(self) -> str:
        return self.horizon_url or HORIZON_URLS.get(self.network, HORIZON_URLS["testnet"])
