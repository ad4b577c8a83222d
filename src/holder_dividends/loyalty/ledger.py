"""Loyalty ledger - retention-based eligibility for dividend payouts.

Each holder is measured against the first balance we ever saw for it (its
initial bag). Holding at least the retention threshold keeps a holder
eligible; dropping below it blacklists them until they top back up; touching
a zero balance blacklists them for good, whatever they buy later.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from holder_dividends.interfaces.store import LoyaltyStore
from holder_dividends.models.loyalty import (
    EligibilityEvaluation,
    EligibilityState,
    HolderEligibility,
    HolderInitialBag,
    LoyaltyStats,
)
from holder_dividends.models.records import HolderSet

log = logging.getLogger(__name__)

DEFAULT_RETENTION_THRESHOLD = 70.0

SOLD_OUT_REASON = "Permanently blacklisted: sold entire bag"


def retention_percentage(current_balance: int, initial_balance: int) -> float:
    if initial_balance <= 0:
        return 0.0
    return max(current_balance, 0) / initial_balance * 100


def transition(
    previous: HolderEligibility | None,
    address: str,
    current_balance: int,
    initial_balance: int,
    threshold: float = DEFAULT_RETENTION_THRESHOLD,
    now: str | None = None,
) -> HolderEligibility:
    """Compute the next eligibility row for one holder.

    `previous` is None for a holder seen for the first time. The zero-balance
    check runs before the threshold check, and a permanently blacklisted
    holder never leaves that state here.
    """
    now = now or datetime.now(timezone.utc).isoformat()
    retention = retention_percentage(current_balance, initial_balance)
    prev_state = previous.state if previous else EligibilityState.NEW

    if prev_state is EligibilityState.PERMANENTLY_BLACKLISTED:
        return HolderEligibility(
            address=address,
            current_balance=current_balance,
            initial_balance=initial_balance,
            retention_percentage=retention,
            state=EligibilityState.PERMANENTLY_BLACKLISTED,
            blacklisted_at=previous.blacklisted_at,
            blacklist_reason=previous.blacklist_reason or SOLD_OUT_REASON,
            last_checked_at=now,
        )

    if current_balance <= 0:
        return HolderEligibility(
            address=address,
            current_balance=0,
            initial_balance=initial_balance,
            retention_percentage=0.0,
            state=EligibilityState.PERMANENTLY_BLACKLISTED,
            blacklisted_at=now,
            blacklist_reason=f"{SOLD_OUT_REASON} ({now})",
            last_checked_at=now,
        )

    if retention < threshold:
        blacklisted_at = now
        if prev_state is EligibilityState.TEMP_BLACKLISTED and previous.blacklisted_at:
            blacklisted_at = previous.blacklisted_at
        return HolderEligibility(
            address=address,
            current_balance=current_balance,
            initial_balance=initial_balance,
            retention_percentage=retention,
            state=EligibilityState.TEMP_BLACKLISTED,
            blacklisted_at=blacklisted_at,
            blacklist_reason=(
                f"Temporarily blacklisted: retention {retention:.2f}% < {threshold:g}%"
                f" (recoverable by topping back up to {threshold:g}%)"
            ),
            last_checked_at=now,
        )

    return HolderEligibility(
        address=address,
        current_balance=current_balance,
        initial_balance=initial_balance,
        retention_percentage=retention,
        state=EligibilityState.ELIGIBLE,
        last_checked_at=now,
    )


class LoyaltyLedger:
    """Maintains initial bags and eligibility rows across claim cycles."""

    def __init__(
        self,
        store: LoyaltyStore,
        threshold: float = DEFAULT_RETENTION_THRESHOLD,
    ) -> None:
        self._store = store
        self._threshold = threshold

    @property
    def threshold(self) -> float:
        return self._threshold

    async def evaluate(
        self, holder_set: HolderSet, asset_id: str
    ) -> list[EligibilityEvaluation]:
        """Apply this cycle's balances to every holder and return the outcomes.

        Tracked holders missing from `holder_set` hold nothing any more and are
        evaluated at a zero balance. Only observed holders are returned.
        """
        now = datetime.now(timezone.utc).isoformat()
        results: list[EligibilityEvaluation] = []
        seen: set[str] = set()

        for holder in holder_set.holders:
            seen.add(holder.address)
            bag = await self._store.get_initial_bag(holder.address)
            previous = await self._store.get_eligibility(holder.address)
            if bag is not None and bag.asset_id != asset_id:
                log.info(
                    "Holder %s baseline was for %s, starting over for %s",
                    holder.address[:16], bag.asset_id, asset_id,
                )
                bag = None
            if bag is None:
                bag = HolderInitialBag(
                    address=holder.address,
                    initial_balance=holder.balance,
                    initial_percentage=holder.percentage,
                    asset_id=asset_id,
                    first_recorded_at=now,
                )
                await self._store.save_initial_bag(bag)
                previous = None
                log.info(
                    "New holder %s: initial bag %d (%.4f%%)",
                    holder.address[:16], holder.balance, holder.percentage,
                )

            record = transition(
                previous, holder.address, holder.balance, bag.initial_balance,
                self._threshold, now,
            )
            await self._store.save_eligibility(record)

            evaluation = EligibilityEvaluation(
                address=holder.address,
                balance=holder.balance,
                percentage=holder.percentage,
                initial_balance=bag.initial_balance,
                retention_percentage=record.retention_percentage,
                state=record.state,
                previous_state=previous.state if previous else EligibilityState.NEW,
                blacklist_reason=record.blacklist_reason,
            )
            _log_evaluation(evaluation)
            results.append(evaluation)

        await self._sweep_exited(seen, asset_id, now)

        eligible = sum(1 for r in results if r.is_eligible)
        log.info("Eligible holders: %d/%d", eligible, len(results))
        return results

    async def _sweep_exited(self, seen: set[str], asset_id: str, now: str) -> None:
        for record in await self._store.get_all_eligibility():
            if record.address in seen or record.permanently_blacklisted:
                continue
            bag = await self._store.get_initial_bag(record.address)
            if bag is not None and bag.asset_id != asset_id:
                continue
            updated = transition(
                record, record.address, 0, record.initial_balance, self._threshold, now,
            )
            await self._store.save_eligibility(updated)
            log.warning(
                "PERMANENTLY BLACKLISTED: %s no longer holds the asset", record.address[:16],
            )

    async def reset_baseline(
        self,
        address: str,
        new_balance: int,
        new_percentage: float,
        asset_id: str,
    ) -> HolderEligibility:
        """Replace a holder's initial bag and restart loyalty tracking from it.

        This is the only way out of a permanent blacklist.
        """
        if new_balance <= 0:
            raise ValueError("baseline balance must be positive")

        now = datetime.now(timezone.utc).isoformat()
        await self._store.save_initial_bag(
            HolderInitialBag(
                address=address,
                initial_balance=new_balance,
                initial_percentage=new_percentage,
                asset_id=asset_id,
                first_recorded_at=now,
            )
        )
        record = HolderEligibility(
            address=address,
            current_balance=new_balance,
            initial_balance=new_balance,
            retention_percentage=100.0,
            state=EligibilityState.ELIGIBLE,
            last_checked_at=now,
        )
        await self._store.save_eligibility(record)
        log.info("Reset initial bag for %s to %d", address[:16], new_balance)
        return record

    async def get_stats(self) -> LoyaltyStats:
        return await self._store.get_loyalty_stats()


def _log_evaluation(ev: EligibilityEvaluation) -> None:
    if ev.state is EligibilityState.PERMANENTLY_BLACKLISTED:
        log.info("PERMANENTLY BLACKLISTED: %s", ev.address[:16])
    elif ev.state is EligibilityState.TEMP_BLACKLISTED:
        log.info(
            "TEMPORARILY BLACKLISTED: %s retention %.2f%%",
            ev.address[:16], ev.retention_percentage,
        )
    elif ev.recovered:
        log.info(
            "RECOVERED: %s retention %.2f%%, eligible again",
            ev.address[:16], ev.retention_percentage,
        )
    else:
        log.debug("ELIGIBLE: %s retention %.2f%%", ev.address[:16], ev.retention_percentage)
