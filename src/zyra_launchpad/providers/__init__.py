"""Collaborator implementations backed by local state."""

from zyra_launchpad.providers.staking import StoredStakingProvider

__all__ = ["StoredStakingProvider"]
