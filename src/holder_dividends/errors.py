"""Exception taxonomy for the dividend engine."""

from __future__ import annotations


class DividendEngineError(Exception):
    """Base class for engine errors."""


class ConfigurationError(DividendEngineError):
    """Settings disabled or carrying placeholder wallet/asset identifiers."""


class ClaimError(DividendEngineError):
    """External fee claim rejected or unreachable."""


class HolderFetchError(DividendEngineError):
    """Holder balances could not be read from the ledger."""


class PaymentError(DividendEngineError):
    """A single transfer failed."""

    def __init__(self, address: str, message: str) -> None:
        super().__init__(message)
        self.address = address


class PersistenceError(DividendEngineError):
    """An audit write failed."""
