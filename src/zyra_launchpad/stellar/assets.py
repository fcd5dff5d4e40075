"""Stellar asset and account validation."""

from __future__ import annotations

from stellar_sdk import Asset, StrKey

from zyra_launchpad.errors import InvalidInputError
from zyra_launchpad.models.launch import TokenAsset


def parse_token_asset(code: str, issuer: str) -> TokenAsset:
    """Validate a credit asset with stellar_sdk and return it as a TokenAsset."""
    if not code or not issuer:
        raise InvalidInputError("token asset requires both a code and an issuer")
    try:
        asset = Asset(code, issuer)
    except ValueError as exc:
        raise InvalidInputError(f"invalid token asset {code}:{issuer}: {exc}") from exc
    if asset.is_native():
        raise InvalidInputError("the native asset cannot be sold in a launch")
    return TokenAsset(code=asset.code, issuer=asset.issuer)


def parse_asset_string(value: str) -> TokenAsset:
    """Parse ``CODE:ISSUER``."""
    code, sep, issuer = value.partition(":")
    if not sep:
        raise InvalidInputError(f"expected CODE:ISSUER, got {value!r}")
    return parse_token_asset(code, issuer)


def is_valid_account(public_key: str) -> bool:
    return StrKey.is_valid_ed25519_public_key(public_key)
