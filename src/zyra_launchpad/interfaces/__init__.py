"""Protocol interfaces for the launchpad collaborators."""

from zyra_launchpad.interfaces.fees import FeePolicy
from zyra_launchpad.interfaces.ledger import LedgerQueryProvider
from zyra_launchpad.interfaces.staking import StakingDataProvider
from zyra_launchpad.interfaces.store import LaunchStore

__all__ = [
    "FeePolicy",
    "LedgerQueryProvider",
    "StakingDataProvider",
    "LaunchStore",
]
