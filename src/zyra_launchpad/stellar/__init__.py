"""Stellar integration components."""

from zyra_launchpad.stellar.assets import is_valid_account, parse_asset_string, parse_token_asset
from zyra_launchpad.stellar.horizon import HorizonLedgerQueries

__all__ = [
    "HorizonLedgerQueries", "is_valid_account", "parse_asset_string", "parse_token_asset",
]
