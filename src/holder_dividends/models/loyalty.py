"""Holder loyalty models: initial bags, eligibility state, evaluations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class EligibilityState(str, Enum):
    """Per-holder loyalty state.

    PERMANENTLY_BLACKLISTED is terminal for a given initial-bag baseline;
    only an administrative baseline reset leaves it.
    """

    NEW = "new"  # no initial bag recorded yet
    ELIGIBLE = "eligible"
    TEMP_BLACKLISTED = "temp_blacklisted"  # retention below threshold, recoverable
    PERMANENTLY_BLACKLISTED = "permanently_blacklisted"  # balance touched zero

    @property
    def is_terminal(self) -> bool:
        return self is EligibilityState.PERMANENTLY_BLACKLISTED


@dataclass
class HolderInitialBag:
    """First-observed holding of an address; the retention baseline."""

    address: str
    initial_balance: int  # base units
    initial_percentage: float
    asset_id: str
    first_recorded_at: str = ""


@dataclass
class HolderEligibility:
    """Eligibility row as persisted, mutated once per claim cycle."""

    address: str
    current_balance: int
    initial_balance: int
    retention_percentage: float
    state: EligibilityState
    blacklisted_at: str | None = None
    blacklist_reason: str | None = None
    last_checked_at: str = ""

    @property
    def is_eligible(self) -> bool:
        return self.state is EligibilityState.ELIGIBLE

    @property
    def permanently_blacklisted(self) -> bool:
        return self.state is EligibilityState.PERMANENTLY_BLACKLISTED


@dataclass(frozen=True)
class EligibilityEvaluation:
    """Outcome of evaluating one holder during a claim cycle."""

    address: str
    balance: int
    percentage: float  # share of the total observed balance
    initial_balance: int
    retention_percentage: float
    state: EligibilityState
    previous_state: EligibilityState
    blacklist_reason: str | None = None

    @property
    def is_eligible(self) -> bool:
        return self.state is EligibilityState.ELIGIBLE

    @property
    def recovered(self) -> bool:
        return (
            self.previous_state is EligibilityState.TEMP_BLACKLISTED
            and self.state is EligibilityState.ELIGIBLE
        )


@dataclass
class LoyaltyStats:
    """Aggregate loyalty figures across all tracked holders."""

    total_holders: int = 0
    eligible_holders: int = 0
    temp_blacklisted: int = 0
    permanently_blacklisted: int = 0
    eligibility_rate: float = 0.0  # percent
    average_retention: float = 0.0  # percent
