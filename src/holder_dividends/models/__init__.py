"""Data models for the holder_dividends engine."""

from holder_dividends.models.records import (
    ActivityRecord,
    AutoClaimSettings,
    CronStatus,
    CycleResult,
    DistributionShare,
    DividendClaim,
    DividendDistribution,
    FeeClaimResult,
    HolderBalance,
    HolderSet,
    HolderSnapshot,
    HolderStats,
    PaymentResult,
    STROOPS_PER_XLM,
    is_placeholder,
    to_base_units,
    to_native,
)
from holder_dividends.models.loyalty import (
    EligibilityEvaluation,
    EligibilityState,
    HolderEligibility,
    HolderInitialBag,
    LoyaltyStats,
)
from holder_dividends.models.config import EngineConfig, SettingsSeed

__all__ = [
    "ActivityRecord", "AutoClaimSettings", "CronStatus", "CycleResult",
    "DistributionShare", "DividendClaim", "DividendDistribution",
    "FeeClaimResult", "HolderBalance", "HolderSet", "HolderSnapshot", "HolderStats",
    "PaymentResult", "STROOPS_PER_XLM", "is_placeholder", "to_base_units",
    "to_native",
    "EligibilityEvaluation", "EligibilityState", "HolderEligibility",
    "HolderInitialBag", "LoyaltyStats",
    "EngineConfig", "SettingsSeed",
]
