"""LedgerQueryProvider protocol - paginated holders of an asset."""

from __future__ import annotations

from typing import Protocol

from zyra_launchpad.models.launch import TokenAsset
from zyra_launchpad.models.records import HolderPage


class LedgerQueryProvider(Protocol):
    """Read access to on-chain accounts holding an asset."""

    async def get_holders_page(
        self, asset: TokenAsset, cursor: str | None, limit: int
    ) -> HolderPage:
        """Fetch one page of accounts holding ``asset`` after ``cursor``.

        ``next_cursor`` is None on the last page.
        """
        ...
