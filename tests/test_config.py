"""Configuration loading from TOML and environment."""

from __future__ import annotations

from pathlib import Path

import pytest

from zyra_launchpad.config import load_config
from zyra_launchpad.errors import InvalidInputError

ENV_VARS = ("LOG_LEVEL", "NETWORK", "HORIZON_URL", "PAYOUT_FEE_RATE", "DB_PATH")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(f"ZYRA_LAUNCHPAD_{name}", raising=False)


def test_defaults_without_file():
    cfg = load_config()
    assert cfg.network == "testnet"
    assert cfg.resolved_horizon_url() == "https://horizon-testnet.stellar.org"
    assert cfg.ledger.page_size == 200
    assert cfg.dividends.payout_fee_rate == "0.006"
    assert cfg.dividends.holders_page_size == 50
    assert cfg.engagement_weights["milestone"] == 2
    assert cfg.db_path == str(Path("~/.zyra_launchpad/state.db").expanduser())


def test_missing_file_falls_back_to_defaults(tmp_path):
    cfg = load_config(tmp_path / "absent.toml")
    assert cfg.network == "testnet"


def test_toml_file_sections(tmp_path):
    path = tmp_path / "launchpad.toml"
    path.write_text(
        """
[engine]
log_level = "debug"

[stellar]
network = "mainnet"

[ledger]
page_size = 100
timeout = 5
retries = 2

[staking]
timeout = 3

[dividends]
payout_fee_rate = "0.01"
min_holder_balance = "1"
holders_page_size = 500

[engagement.weights]
referral = 3
quest = 4

[storage]
db_path = "/tmp/zyra/state.db"
"""
    )
    cfg = load_config(path)
    assert cfg.log_level == "debug"
    assert cfg.resolved_horizon_url() == "https://horizon.stellar.org"
    assert (cfg.ledger.page_size, cfg.ledger.timeout, cfg.ledger.retries) == (100, 5, 2)
    assert cfg.staking_timeout == 3
    assert cfg.dividends.payout_fee_rate == "0.01"
    assert cfg.dividends.min_holder_balance == "1"
    assert cfg.dividends.holders_page_size == 100  # clamped to the maximum
    assert cfg.engagement_weights["referral"] == 3
    assert cfg.engagement_weights["quest"] == 4
    assert cfg.engagement_weights["registration"] == 1
    assert cfg.db_path == "/tmp/zyra/state.db"


def test_env_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "launchpad.toml"
    path.write_text('[stellar]\nnetwork = "mainnet"\n')
    monkeypatch.setenv("ZYRA_LAUNCHPAD_NETWORK", "testnet")
    monkeypatch.setenv("ZYRA_LAUNCHPAD_HORIZON_URL", "https://horizon.local")
    monkeypatch.setenv("ZYRA_LAUNCHPAD_PAYOUT_FEE_RATE", "0")
    monkeypatch.setenv("ZYRA_LAUNCHPAD_DB_PATH", ":memory:")
    cfg = load_config(path)
    assert cfg.network == "testnet"
    assert cfg.resolved_horizon_url() == "https://horizon.local"
    assert cfg.dividends.payout_fee_rate == "0"
    assert cfg.db_path == ":memory:"


@pytest.mark.parametrize("weights", ['referral = 0', 'referral = "two"', 'referral = 1.5'])
def test_malformed_weights_rejected(tmp_path, weights):
    path = tmp_path / "launchpad.toml"
    path.write_text(f"[engagement.weights]\n{weights}\n")
    with pytest.raises(InvalidInputError):
        load_config(path)
