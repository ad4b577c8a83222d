"""Protocols for the external collaborators the engine calls."""

from __future__ import annotations

from typing import Protocol

from holder_dividends.models.records import (
    AutoClaimSettings,
    FeeClaimResult,
    HolderSet,
    PaymentResult,
)


class FeeClaimService(Protocol):
    """Settles accumulated trading fees into the claiming wallet."""

    async def claim(self, settings: AutoClaimSettings) -> FeeClaimResult:
        """Request a fee claim. Failures come back in the result.

        Raises ConfigurationError when the signing key is not the settings wallet.
        """
        ...


class HolderRegistry(Protocol):
    """Reads current balances of every holder of an asset."""

    async def get_holders(self, asset_id: str) -> HolderSet:
        """Return holders with balance > 0. Raises HolderFetchError on failure."""
        ...


class PaymentExecutor(Protocol):
    """Builds, signs and broadcasts transfers from the funding wallet."""

    async def send_transfer(self, address: str, amount: int) -> PaymentResult:
        """Send `amount` base units to `address`."""
        ...
