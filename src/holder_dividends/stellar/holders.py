"""Horizon holder registry - reads every account holding the tracked asset."""

from __future__ import annotations

import logging
from decimal import Decimal

from stellar_sdk import Asset, ServerAsync
from stellar_sdk.client.aiohttp_client import AiohttpClient
from stellar_sdk.exceptions import BaseHorizonError, ConnectionError as HorizonConnectionError

from holder_dividends.errors import HolderFetchError
from holder_dividends.models.records import STROOPS_PER_XLM, HolderBalance, HolderSet

log = logging.getLogger(__name__)

PAGE_LIMIT = 200


def parse_asset_id(asset_id: str) -> Asset:
    """Parse a CODE:ISSUER asset id. Raises HolderFetchError on malformed ids."""
    code, sep, issuer = asset_id.partition(":")
    if not sep or not code or not issuer:
        raise HolderFetchError(f"asset id must be CODE:ISSUER, got {asset_id!r}")
    try:
        return Asset(code, issuer)
    except ValueError as exc:
        raise HolderFetchError(f"invalid asset {asset_id!r}: {exc}") from exc


def balance_in_stroops(account: dict, asset: Asset) -> int:
    """Balance of `asset` on a Horizon account record, in base units."""
    for balance in account.get("balances", []):
        if (
            balance.get("asset_code") == asset.code
            and balance.get("asset_issuer") == asset.issuer
        ):
            return int(Decimal(balance["balance"]) * STROOPS_PER_XLM)
    return 0


def build_holder_set(balances: dict[str, int]) -> HolderSet:
    """Drop empty balances and compute each holder's share of the total."""
    positive = {addr: bal for addr, bal in balances.items() if bal > 0}
    total = sum(positive.values())
    holders = [
        HolderBalance(address=addr, balance=bal, percentage=bal / total * 100)
        for addr, bal in positive.items()
    ]
    return HolderSet(holders=holders, total_balance=total)


class HorizonHolderRegistry:
    """Pages Horizon's accounts-by-asset endpoint into a HolderSet.

    Accounts with a trustline but a zero balance are not holders and are
    left out.
    """

    def __init__(self, horizon_url: str, page_limit: int = PAGE_LIMIT) -> None:
        self._horizon_url = horizon_url
        self._page_limit = page_limit

    async def get_holders(self, asset_id: str) -> HolderSet:
        asset = parse_asset_id(asset_id)
        balances: dict[str, int] = {}
        cursor: str | None = None
        pages = 0

        try:
            async with ServerAsync(self._horizon_url, client=AiohttpClient()) as server:
                while True:
                    builder = server.accounts().for_asset(asset).limit(self._page_limit)
                    if cursor:
                        builder = builder.cursor(cursor)
                    resp = await builder.call()
                    records = resp.get("_embedded", {}).get("records", [])
                    pages += 1

                    for account in records:
                        balances[account["account_id"]] = balance_in_stroops(account, asset)

                    if len(records) < self._page_limit:
                        break
                    cursor = records[-1]["paging_token"]
        except (BaseHorizonError, HorizonConnectionError) as exc:
            log.error("Horizon holder query failed for %s: %s", asset.code, exc)
            raise HolderFetchError(f"horizon query failed: {exc}") from exc
        except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
            raise HolderFetchError(f"unexpected horizon response: {exc}") from exc

        holder_set = build_holder_set(balances)
        log.info(
            "Fetched %d holders of %s across %d page(s), total %d",
            len(holder_set.holders), asset.code, pages, holder_set.total_balance,
        )
        return holder_set
