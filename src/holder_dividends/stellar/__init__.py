"""Stellar integration components."""

from holder_dividends.stellar.fee_claim import PortalFeeClaimService
from holder_dividends.stellar.holders import HorizonHolderRegistry
from holder_dividends.stellar.payments import StellarPaymentExecutor

__all__ = ["PortalFeeClaimService", "HorizonHolderRegistry", "StellarPaymentExecutor"]
