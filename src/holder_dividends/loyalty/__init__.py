"""Holder loyalty - retention rule and eligibility tracking."""

from holder_dividends.loyalty.ledger import LoyaltyLedger, retention_percentage, transition

__all__ = ["LoyaltyLedger", "retention_percentage", "transition"]
