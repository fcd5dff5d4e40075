"""Engine - wires the store, collaborators and services together."""

from __future__ import annotations

import logging

from zyra_launchpad.dividends.service import DividendService
from zyra_launchpad.interfaces.fees import FeePolicy
from zyra_launchpad.interfaces.ledger import LedgerQueryProvider
from zyra_launchpad.interfaces.staking import StakingDataProvider
from zyra_launchpad.interfaces.store import LaunchStore
from zyra_launchpad.launchpad.allocation import AllocationService
from zyra_launchpad.launchpad.engagement import EngagementService
from zyra_launchpad.launchpad.launches import LaunchService
from zyra_launchpad.launchpad.orchestrator import LaunchpadOrchestrator
from zyra_launchpad.launchpad.staking import StakingService
from zyra_launchpad.models.config import EngineConfig
from zyra_launchpad.policy.fees import PercentagePayoutFee
from zyra_launchpad.providers.staking import StoredStakingProvider
from zyra_launchpad.stellar.horizon import HorizonLedgerQueries
from zyra_launchpad.storage.sqlite import SQLiteLaunchStore

log = logging.getLogger(__name__)


class LaunchpadEngine:
    """One per process. Owns the store and every service built on it.

    Collaborators default to the store-backed staking provider, Horizon
    for ledger holders and the percentage payout fee; tests and embedders
    pass their own.
    """

    def __init__(
        self,
        cfg: EngineConfig,
        store: LaunchStore | None = None,
        staking_provider: StakingDataProvider | None = None,
        ledger: LedgerQueryProvider | None = None,
        fee_policy: FeePolicy | None = None,
    ) -> None:
        self._cfg = cfg
        self.store: LaunchStore = store or SQLiteLaunchStore(cfg.db_path)

        self.stakes: StoredStakingProvider | None = None
        if staking_provider is None:
            self.stakes = StoredStakingProvider(self.store)
            staking_provider = self.stakes

        self._horizon: HorizonLedgerQueries | None = None
        if ledger is None:
            self._horizon = HorizonLedgerQueries(
                cfg.resolved_horizon_url(), cfg.ledger.timeout, cfg.ledger.retries,
            )
            ledger = self._horizon

        fee_policy = fee_policy or PercentagePayoutFee(cfg.dividends.payout_fee_rate)

        self.launches = LaunchService(self.store)
        self.staking = StakingService(self.store, staking_provider, cfg.staking_timeout)
        self.engagement = EngagementService(self.store, cfg.engagement_weights)
        self.allocation = AllocationService(self.store)
        self.orchestrator = LaunchpadOrchestrator(
            self.store, self.launches, self.engagement, self.allocation,
        )
        self.dividends = DividendService(
            self.store,
            ledger,
            fee_policy,
            page_size=cfg.ledger.page_size,
            # outer bound per page, covering every Horizon retry
            page_timeout=float(cfg.ledger.timeout * (cfg.ledger.retries + 1)),
            min_holder_balance=cfg.dividends.min_holder_balance,
            holders_page_size=cfg.dividends.holders_page_size,
            holders_page_max=cfg.dividends.holders_page_max,
        )

    async def start(self) -> None:
        log.info("Starting zyra_launchpad engine")
        log.info("  Network: %s", self._cfg.network)
        log.info("  Horizon: %s", self._cfg.resolved_horizon_url())
        log.info("  DB:      %s", self._cfg.db_path)
        await self.store.initialize()

    async def close(self) -> None:
        if self._horizon is not None:
            await self._horizon.close()
        await self.store.close()

    async def __aenter__(self) -> LaunchpadEngine:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
