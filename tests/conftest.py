"""Shared fixtures for zyra_launchpad tests."""

from __future__ import annotations

import pytest
from pytest_metadata.plugin import metadata_key

from zyra_launchpad.engine import LaunchpadEngine
from zyra_launchpad.models.config import DividendConfig, EngineConfig, LedgerConfig
from zyra_launchpad.policy.fees import PercentagePayoutFee
from zyra_launchpad.storage.sqlite import SQLiteLaunchStore

from tests.factories import TEST_ISSUER
from tests.mocks import MockLedger, MockStakingProvider


EXPLORER_BASE = "https://stellar.expert/explorer/testnet"


def stellar_expert_link(kind: str, id: str, label: str | None = None) -> str:
    """Build an HTML anchor to stellar.expert for the report."""
    url = f"{EXPLORER_BASE}/{kind}/{id}"
    text = label or f"{id[:8]}...{id[-4:]}"
    return f'<a href="{url}" target="_blank">{text}</a>'


# ── Report metadata ──────────────────────────────────────────────


def pytest_configure(config):
    """Add engine info to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Network"] = "Stellar Testnet (mocked ledger)"
    meta["Token Issuer"] = TEST_ISSUER
    meta["Decimal Precision"] = "7 fractional digits, ROUND_HALF_UP"


def pytest_html_results_summary(prefix, summary, postfix):
    """Link the test token issuer in the report summary."""
    prefix.append(
        '<div style="margin:8px 0;padding:10px;background:#f8f9fa;border:1px solid #dee2e6;'
        'border-radius:4px;font-family:monospace;font-size:13px;">'
        "<strong>Test token issuer</strong><br/>"
        f'{stellar_expert_link("account", TEST_ISSUER, TEST_ISSUER)}'
        "</div>"
    )


def make_test_config(**overrides) -> EngineConfig:
    """Build an EngineConfig suitable for testing."""
    defaults = dict(
        log_level="debug",
        network="testnet",
        horizon_url="https://horizon.test",
        ledger=LedgerConfig(page_size=2, timeout=1, retries=1),
        staking_timeout=1,
        dividends=DividendConfig(),
        db_path=":memory:",
    )
    defaults.update(overrides)
    return EngineConfig(**defaults)


@pytest.fixture
def test_config():
    """Default EngineConfig for tests."""
    return make_test_config()


@pytest.fixture
async def store():
    """Initialized in-memory SQLiteLaunchStore."""
    s = SQLiteLaunchStore(":memory:")
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def mock_staking():
    return MockStakingProvider()


@pytest.fixture
def mock_ledger():
    return MockLedger()


@pytest.fixture
def engine(test_config, store, mock_staking, mock_ledger):
    """Fully wired LaunchpadEngine over the in-memory store and mocks."""
    return LaunchpadEngine(
        test_config,
        store=store,
        staking_provider=mock_staking,
        ledger=mock_ledger,
        fee_policy=PercentagePayoutFee("0.006"),
    )


@pytest.fixture
def launches(engine):
    return engine.launches


@pytest.fixture
def staking(engine):
    return engine.staking


@pytest.fixture
def engagement(engine):
    return engine.engagement


@pytest.fixture
def allocation(engine):
    return engine.allocation


@pytest.fixture
def orchestrator(engine):
    return engine.orchestrator


@pytest.fixture
def dividends(engine):
    return engine.dividends
