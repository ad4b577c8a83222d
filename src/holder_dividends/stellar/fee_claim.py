"""Portal fee claim service - collects accrued creator fees for the wallet."""

from __future__ import annotations

import logging
from decimal import Decimal

import httpx
from stellar_sdk import Keypair, ServerAsync, TransactionEnvelope
from stellar_sdk.client.aiohttp_client import AiohttpClient
from stellar_sdk.exceptions import BaseHorizonError, ConnectionError as HorizonConnectionError

from holder_dividends.errors import ClaimError, ConfigurationError
from holder_dividends.models.records import AutoClaimSettings, FeeClaimResult, to_native

log = logging.getLogger(__name__)

CLAIM_ACTION = "collectCreatorFee"


class PortalFeeClaimService:
    """Claims creator fees through the portal API.

    Three steps: read the claimable total, ask the portal for an unsigned
    claim transaction, then sign it with the wallet keypair and submit it to
    Horizon. The claimed amount is the total reported in the first step.
    """

    def __init__(
        self,
        api_url: str,
        horizon_url: str,
        network_passphrase: str,
        keypair: Keypair,
        timeout: int = 30,
    ) -> None:
        self._base_url = api_url.rstrip("/")
        self._horizon_url = horizon_url
        self._network_passphrase = network_passphrase
        self._keypair = keypair
        self._timeout = timeout

    def _url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    async def claim(self, settings: AutoClaimSettings) -> FeeClaimResult:
        if settings.wallet_address != self._keypair.public_key:
            raise ConfigurationError(
                f"signing key {self._keypair.public_key[:16]} does not match"
                f" wallet {settings.wallet_address[:16]}"
            )

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                total_stroops = await self._fetch_claimable(client, settings.wallet_address)
                claimable = to_native(total_stroops)

                if total_stroops <= 0:
                    log.info("No claimable fees for %s", settings.wallet_address[:16])
                    return FeeClaimResult(success=False, reason="no_claimable_fees")
                if claimable < settings.min_claim_amount:
                    log.info(
                        "Claimable fees %.7f below minimum %.7f",
                        claimable, settings.min_claim_amount,
                    )
                    return FeeClaimResult(success=False, reason="below_minimum")

                envelope_xdr = await self._request_claim_tx(client, settings)

            tx_hash = await self._sign_and_submit(envelope_xdr)

        except ClaimError as exc:
            log.warning("Fee claim failed: %s", exc)
            return FeeClaimResult(success=False, reason=str(exc))

        except httpx.TimeoutException:
            log.warning("Fee claim API timed out")
            return FeeClaimResult(success=False, reason="api_timeout")

        except httpx.HTTPStatusError as exc:
            log.warning("Fee claim API returned %d", exc.response.status_code)
            return FeeClaimResult(
                success=False, reason=f"api_error:{exc.response.status_code}",
            )

        except httpx.HTTPError as exc:
            log.warning("Fee claim API unreachable: %s", exc)
            return FeeClaimResult(success=False, reason=f"api_unreachable: {exc}")

        log.info("Claimed %.7f in fees (tx=%s)", claimable, tx_hash[:16])
        return FeeClaimResult(
            success=True, claimed_amount=claimable, transaction_id=tx_hash,
        )

    async def _fetch_claimable(self, client: httpx.AsyncClient, wallet: str) -> int:
        resp = await client.get(self._url(f"creators/{wallet}/fees/total"))
        resp.raise_for_status()
        data = resp.json()
        try:
            return int(Decimal(str(data["totalFees"])))
        except (KeyError, TypeError, ArithmeticError) as exc:
            raise ClaimError(f"invalid_fee_total: {exc}") from exc

    async def _request_claim_tx(
        self, client: httpx.AsyncClient, settings: AutoClaimSettings
    ) -> str:
        resp = await client.post(
            self._url("claim"),
            json={
                "publicKey": settings.wallet_address,
                "action": CLAIM_ACTION,
                "asset": settings.asset_id,
            },
        )
        resp.raise_for_status()
        data = resp.json()
        envelope = data.get("transaction") or data.get("xdr")
        if not envelope:
            raise ClaimError("claim_tx_missing")
        return envelope

    async def _sign_and_submit(self, envelope_xdr: str) -> str:
        try:
            tx = TransactionEnvelope.from_xdr(envelope_xdr, self._network_passphrase)
        except Exception as exc:
            raise ClaimError(f"invalid_claim_tx: {exc}") from exc

        tx.sign(self._keypair)
        try:
            async with ServerAsync(self._horizon_url, client=AiohttpClient()) as server:
                resp = await server.submit_transaction(tx)
        except (BaseHorizonError, HorizonConnectionError) as exc:
            raise ClaimError(f"submit_failed: {exc}") from exc

        return resp.get("hash", "")
