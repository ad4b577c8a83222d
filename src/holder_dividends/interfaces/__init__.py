"""Protocol interfaces for all holder_dividends components."""

from holder_dividends.interfaces.collaborators import (
    FeeClaimService,
    HolderRegistry,
    PaymentExecutor,
)
from holder_dividends.interfaces.store import AuditStore, LoyaltyStore, SettingsStore

__all__ = [
    "FeeClaimService", "HolderRegistry", "PaymentExecutor",
    "AuditStore", "LoyaltyStore", "SettingsStore",
]
