"""Store protocols - settings, loyalty state and the audit trail."""

from __future__ import annotations

from typing import Protocol

from holder_dividends.models.loyalty import (
    HolderEligibility,
    HolderInitialBag,
    LoyaltyStats,
)
from holder_dividends.models.records import (
    ActivityRecord,
    AutoClaimSettings,
    DividendClaim,
    DividendDistribution,
    HolderSnapshot,
    HolderStats,
)


class SettingsStore(Protocol):
    """Holds the singleton AutoClaimSettings row."""

    async def get_settings(self) -> AutoClaimSettings:
        ...

    async def set_next_schedule(
        self, next_claim: str, last_successful_claim: str | None = None
    ) -> None:
        ...

    async def update_settings(
        self,
        enabled: bool | None = None,
        claim_interval_minutes: int | None = None,
        distribution_percentage: float | None = None,
        min_claim_amount: float | None = None,
        wallet_address: str | None = None,
        asset_id: str | None = None,
    ) -> AutoClaimSettings:
        ...


class LoyaltyStore(Protocol):
    """Per-holder baselines and eligibility rows."""

    async def get_initial_bag(self, address: str) -> HolderInitialBag | None:
        ...

    async def save_initial_bag(self, bag: HolderInitialBag) -> None:
        """Insert or replace the baseline for an address."""
        ...

    async def get_eligibility(self, address: str) -> HolderEligibility | None:
        ...

    async def get_all_eligibility(self) -> list[HolderEligibility]:
        ...

    async def save_eligibility(self, record: HolderEligibility) -> None:
        ...

    async def get_loyalty_stats(self) -> LoyaltyStats:
        ...


class AuditStore(Protocol):
    """Append-only plus status-mutable claim/snapshot/distribution records."""

    async def create_claim(
        self,
        claimed_amount: float,
        distribution_amount: float,
        transaction_id: str | None,
        total_supply: int = 0,
        holder_count: int = 0,
    ) -> int:
        """Insert a claim with status 'processing'. Returns its id."""
        ...

    async def update_claim_status(
        self, claim_id: int, status: str, error: str | None = None
    ) -> None:
        ...

    async def update_claim_totals(
        self, claim_id: int, holder_count: int, total_supply: int
    ) -> None:
        ...

    async def create_snapshots(self, snapshots: list[HolderSnapshot]) -> None:
        ...

    async def create_distributions(
        self, distributions: list[DividendDistribution]
    ) -> None:
        ...

    async def update_distribution(
        self,
        claim_id: int,
        holder_address: str,
        status: str,
        signature: str | None = None,
        error: str | None = None,
    ) -> None:
        ...

    async def get_claim(self, claim_id: int) -> DividendClaim | None:
        ...

    async def get_distributions(self, claim_id: int) -> list[DividendDistribution]:
        ...

    async def get_holder_stats(self, address: str) -> HolderStats | None:
        """Dividend totals for one holder, or None if never observed."""
        ...

    async def log_activity(
        self,
        event_type: str,
        message: str,
        claim_id: int | None = None,
        holder_address: str | None = None,
        amount: float | None = None,
    ) -> None:
        ...

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        ...
