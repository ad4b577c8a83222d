"""Record types for persistence and collaborator results."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

STROOPS_PER_XLM = 10_000_000

PLACEHOLDER_PREFIX = "PLACEHOLDER"


def is_placeholder(value: str | None) -> bool:
    """True for unset or placeholder wallet/asset identifiers."""
    if not value or not value.strip():
        return True
    return value.strip().upper().startswith(PLACEHOLDER_PREFIX)


def to_base_units(amount: float) -> int:
    """Native units -> stroops, floored."""
    return math.floor(round(amount * STROOPS_PER_XLM, 6))


def to_native(units: int) -> float:
    return units / STROOPS_PER_XLM


@dataclass
class AutoClaimSettings:
    """Process-wide auto-claim settings (singleton row)."""

    enabled: bool = False
    claim_interval_minutes: int = 10
    distribution_percentage: float = 30.0
    min_claim_amount: float = 0.001  # native units
    wallet_address: str = ""
    asset_id: str = ""  # "CODE:ISSUER"
    next_claim_scheduled: str | None = None  # ISO 8601
    last_successful_claim: str | None = None
    updated_at: str = ""

    @property
    def is_configured(self) -> bool:
        return not (is_placeholder(self.wallet_address) or is_placeholder(self.asset_id))

    @property
    def effective_enabled(self) -> bool:
        """Stored flag, forced off while wallet or asset is a placeholder."""
        return self.enabled and self.is_configured


@dataclass(frozen=True)
class HolderBalance:
    """One address holding the tracked asset."""

    address: str
    balance: int  # base units
    percentage: float = 0.0  # share of total observed balance


@dataclass
class HolderSet:
    """Result of a Holder Registry read."""

    holders: list[HolderBalance] = field(default_factory=list)
    total_balance: int = 0


@dataclass
class FeeClaimResult:
    """Result of a fee claim request against the external fee source."""

    success: bool
    claimed_amount: float = 0.0  # native units
    transaction_id: str | None = None
    reason: str | None = None


@dataclass
class PaymentResult:
    """Result of a single transfer from the funding wallet."""

    success: bool
    address: str
    amount: int  # stroops
    signature: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class DistributionShare:
    """One holder's computed share of a payout."""

    address: str
    balance: int
    share_percentage: float
    amount: float  # native units


@dataclass
class DividendClaim:
    """A successful fee claim and the bookkeeping of its payout."""

    id: int
    claimed_amount: float
    distribution_amount: float
    total_supply: int = 0
    holder_count: int = 0
    status: str = "processing"  # processing | completed | failed
    transaction_id: str | None = None
    error_message: str | None = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class HolderSnapshot:
    """Immutable audit row, one per (claim, observed holder)."""

    claim_id: int
    holder_address: str
    token_balance: int
    percentage: float
    initial_balance: int
    retention_percentage: float
    is_eligible: bool
    created_at: str = ""


@dataclass
class DividendDistribution:
    """A planned payment to one eligible holder for one claim."""

    claim_id: int
    holder_address: str
    token_balance: int
    share_percentage: float
    dividend_amount: float  # native units
    status: str = "pending"  # pending | completed | failed
    transaction_signature: str | None = None
    error_message: str | None = None
    paid_at: str | None = None


@dataclass
class HolderStats:
    """Running dividend totals for one holder across every claim."""

    address: str
    current_balance: int = 0
    current_percentage: float = 0.0
    total_dividends_received: float = 0.0  # native units
    participation_count: int = 0
    pending_dividends: float = 0.0
    last_dividend_at: str | None = None
    updated_at: str = ""


@dataclass
class ActivityRecord:
    """A single activity log entry."""

    id: int
    event_type: str
    claim_id: int | None
    holder_address: str | None
    amount: float | None
    message: str
    created_at: str


@dataclass
class CycleResult:
    """Outcome of one claim cycle (or of a rejected trigger)."""

    success: bool
    reason: str | None = None
    claim_id: int | None = None
    claimed_amount: float = 0.0
    distribution_amount: float = 0.0
    total_holders: int = 0
    eligible_holders: int = 0
    payments_completed: int = 0
    payments_failed: int = 0
    unrecorded: list[str] = field(default_factory=list)
    transaction_id: str | None = None
    next_claim_time: str | None = None


@dataclass
class CronStatus:
    running: bool
    claim_in_progress: bool
    interval_spec: str
