"""Stellar payment executor - native-asset transfers from the funding wallet."""

from __future__ import annotations

import logging
from decimal import Decimal

from stellar_sdk import Asset, Keypair, ServerAsync, StrKey, TransactionBuilder
from stellar_sdk.client.aiohttp_client import AiohttpClient
from stellar_sdk.exceptions import (
    BadRequestError,
    BaseHorizonError,
    ConnectionError as HorizonConnectionError,
    NotFoundError,
)

from holder_dividends.errors import PaymentError
from holder_dividends.models.records import STROOPS_PER_XLM, PaymentResult

log = logging.getLogger(__name__)

# Horizon operation result codes we report by name
_OP_ERRORS = {
    "op_no_destination": "destination_not_found",
    "op_underfunded": "insufficient_balance",
    "op_line_full": "destination_line_full",
    "op_malformed": "invalid_amount",
}


def format_amount(units: int) -> str:
    """Stroops -> decimal string accepted by payment operations."""
    return format(Decimal(units) / STROOPS_PER_XLM, "f")


def _classify_error(exc: BadRequestError) -> str:
    extras = exc.extras or {}
    codes = extras.get("result_codes", {})
    for op_code in codes.get("operations", []) or []:
        if op_code in _OP_ERRORS:
            return _OP_ERRORS[op_code]
    tx_code = codes.get("transaction")
    return tx_code or "unknown"


def _native_balance(account: dict) -> int:
    for balance in account.get("balances", []):
        if balance.get("asset_type") == "native":
            return int(Decimal(balance["balance"]) * STROOPS_PER_XLM)
    return 0


class StellarPaymentExecutor:
    """Sends one native payment per call.

    The source account is reloaded on every transfer so each payment gets a
    fresh sequence number. A transfer that would leave the wallet below
    `min_reserve` stroops is refused before anything is submitted.
    """

    def __init__(
        self,
        horizon_url: str,
        network_passphrase: str,
        keypair: Keypair,
        base_fee: int = 100,
        min_reserve: int = 20_000_000,
        tx_timeout: int = 30,
    ) -> None:
        self._horizon_url = horizon_url
        self._network_passphrase = network_passphrase
        self._keypair = keypair
        self._base_fee = base_fee
        self._min_reserve = min_reserve
        self._tx_timeout = tx_timeout

    @property
    def public_key(self) -> str:
        return self._keypair.public_key

    def _validate(self, address: str, amount: int) -> None:
        if amount <= 0:
            raise PaymentError(address, "invalid_amount")
        if not StrKey.is_valid_ed25519_public_key(address):
            raise PaymentError(address, "invalid_address")

    async def send_transfer(self, address: str, amount: int) -> PaymentResult:
        """Pay `amount` stroops of the native asset to `address`."""
        try:
            self._validate(address, amount)
        except PaymentError as exc:
            log.warning("Refusing payment to %s: %s", address[:16], exc)
            return PaymentResult(success=False, address=address, amount=amount, error=str(exc))

        try:
            async with ServerAsync(self._horizon_url, client=AiohttpClient()) as server:
                account = await server.accounts().account_id(self.public_key).call()
                available = _native_balance(account)
                if available - amount < self._min_reserve:
                    raise PaymentError(address, "insufficient_balance")

                source = await server.load_account(self.public_key)
                tx = (
                    TransactionBuilder(
                        source_account=source,
                        network_passphrase=self._network_passphrase,
                        base_fee=self._base_fee,
                    )
                    .append_payment_op(
                        destination=address,
                        asset=Asset.native(),
                        amount=format_amount(amount),
                    )
                    .set_timeout(self._tx_timeout)
                    .build()
                )
                tx.sign(self._keypair)
                resp = await server.submit_transaction(tx)

            tx_hash = resp.get("hash", "")
            log.info(
                "Payment of %s to %s submitted (tx=%s)",
                format_amount(amount), address[:16], tx_hash[:16] if tx_hash else "?",
            )
            return PaymentResult(
                success=True, address=address, amount=amount, signature=tx_hash,
            )

        except PaymentError as exc:
            log.warning(
                "Payment to %s refused: %s (balance below reserve %d)",
                address[:16], exc, self._min_reserve,
            )
            return PaymentResult(success=False, address=address, amount=amount, error=str(exc))

        except BadRequestError as exc:
            error_type = _classify_error(exc)
            log.error("Payment tx to %s failed: %s", address[:16], error_type)
            return PaymentResult(
                success=False, address=address, amount=amount, error=f"tx_failed:{error_type}",
            )

        except NotFoundError as exc:
            log.error("Funding account not found: %s", exc)
            return PaymentResult(
                success=False, address=address, amount=amount, error="source_not_found",
            )

        except (BaseHorizonError, HorizonConnectionError) as exc:
            log.error("Payment to %s failed: %s", address[:16], exc)
            return PaymentResult(success=False, address=address, amount=amount, error=str(exc))
