"""Horizon ledger queries - pages through the accounts holding an asset."""

from __future__ import annotations

import logging

import httpx

from zyra_launchpad.errors import ProviderUnavailableError
from zyra_launchpad.models.launch import TokenAsset
from zyra_launchpad.models.records import AssetHolder, HolderPage

log = logging.getLogger(__name__)


class HorizonLedgerQueries:
    """LedgerQueryProvider backed by the Horizon ``/accounts`` endpoint.

    Horizon filters accounts by trustline with ``?asset=CODE:ISSUER`` and
    pages with the ``paging_token`` of the last record. Timeouts and 5xx
    responses are retried; anything else fails the page.
    """

    def __init__(
        self,
        horizon_url: str,
        timeout: int = 15,
        retries: int = 3,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = horizon_url.rstrip("/")
        self._timeout = timeout
        self._retries = max(1, retries)
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout, connect=10),
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def get_holders_page(
        self, asset: TokenAsset, cursor: str | None, limit: int
    ) -> HolderPage:
        params: dict[str, str | int] = {"asset": str(asset), "limit": limit, "order": "asc"}
        if cursor:
            params["cursor"] = cursor
        url = f"{self._base_url}/accounts"

        for attempt in range(1, self._retries + 1):
            try:
                resp = await self._get_client().get(url, params=params)
                resp.raise_for_status()
                body = resp.json()
                break

            except (httpx.TimeoutException, httpx.HTTPStatusError) as exc:
                retryable = isinstance(exc, httpx.TimeoutException) or (
                    isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code >= 500
                )
                if retryable and attempt < self._retries:
                    log.warning(
                        "Horizon holders page failed for %s (attempt %d/%d): %s",
                        asset.code, attempt, self._retries, exc,
                    )
                    continue
                if isinstance(exc, httpx.HTTPStatusError):
                    error_msg = f"horizon HTTP {exc.response.status_code}"
                else:
                    error_msg = f"horizon timeout after {self._retries} attempts"
                log.error("Horizon holders page failed for %s: %s", asset.code, error_msg)
                raise ProviderUnavailableError("ledger", error_msg) from exc

            except (httpx.HTTPError, ValueError) as exc:
                log.error("Horizon holders page error for %s: %s", asset.code, exc)
                raise ProviderUnavailableError("ledger", str(exc)) from exc

        records = body.get("_embedded", {}).get("records", [])
        holders = [
            AssetHolder(account_id=rec["id"], balance=_balance_of(rec, asset))
            for rec in records
        ]
        next_cursor = None
        if records and len(records) >= limit:
            next_cursor = records[-1].get("paging_token") or records[-1]["id"]
        log.debug("Horizon returned %d holders of %s", len(holders), asset.code)
        return HolderPage(holders=holders, next_cursor=next_cursor)


def _balance_of(record: dict, asset: TokenAsset) -> str | None:
    for balance in record.get("balances", []):
        if (
            balance.get("asset_code") == asset.code
            and balance.get("asset_issuer") == asset.issuer
        ):
            return balance.get("balance")
    return None
