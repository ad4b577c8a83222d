"""Claim cycle - claim, snapshot, plan, pay, complete."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from holder_dividends.claims.orchestrator import FeeClaimOrchestrator
from holder_dividends.distribution.calculator import calculate_distribution, order_for_payment
from holder_dividends.errors import ConfigurationError, HolderFetchError
from holder_dividends.interfaces.collaborators import HolderRegistry, PaymentExecutor
from holder_dividends.interfaces.store import AuditStore, SettingsStore
from holder_dividends.loyalty.ledger import LoyaltyLedger
from holder_dividends.models.loyalty import EligibilityEvaluation
from holder_dividends.models.records import (
    AutoClaimSettings,
    CycleResult,
    DistributionShare,
    DividendDistribution,
    HolderBalance,
    HolderSnapshot,
    PaymentResult,
    to_base_units,
)

log = logging.getLogger(__name__)


class DividendEngine:
    """Runs one claim cycle end to end.

    Ordering within a cycle is strict: the claim row is written as soon as
    the fee claim succeeds, then every observed holder is snapshotted and
    every planned distribution is written as pending, and only then are
    payments sent, one holder at a time.
    """

    def __init__(
        self,
        store: AuditStore,
        settings_store: SettingsStore,
        orchestrator: FeeClaimOrchestrator,
        registry: HolderRegistry,
        ledger: LoyaltyLedger,
        executor: PaymentExecutor,
    ) -> None:
        self._store = store
        self._settings_store = settings_store
        self._orchestrator = orchestrator
        self._registry = registry
        self._ledger = ledger
        self._executor = executor

    async def run_cycle(self, settings: AutoClaimSettings) -> CycleResult:
        """Run a full cycle with the settings loaded at cycle start."""
        started = datetime.now(timezone.utc)
        log.info("Starting dividend claim cycle")

        # 1. Claim fees
        try:
            outcome = await self._orchestrator.claim(settings)
        except ConfigurationError as exc:
            log.info("Claim cycle skipped: %s", exc)
            return CycleResult(success=False, reason=f"configuration: {exc}")

        if not outcome.success:
            return CycleResult(
                success=False,
                reason=outcome.result.reason or "claim_failed",
            )

        claim = outcome.result
        claim_id = await self._store.create_claim(
            claimed_amount=claim.claimed_amount,
            distribution_amount=outcome.distribution_amount,
            transaction_id=claim.transaction_id,
        )
        await self._store.log_activity(
            "claim_recorded",
            f"Claimed {claim.claimed_amount:.7f}, distributing {outcome.distribution_amount:.7f}",
            claim_id=claim_id,
            amount=claim.claimed_amount,
        )

        result = CycleResult(
            success=False,
            claim_id=claim_id,
            claimed_amount=claim.claimed_amount,
            distribution_amount=outcome.distribution_amount,
            transaction_id=claim.transaction_id,
        )

        # 2. Snapshot holders and plan the payout
        try:
            shares = await self._plan(claim_id, settings, outcome.distribution_amount, result)
        except HolderFetchError as exc:
            return await self._fail_claim(
                claim_id, result, "holders_failed", f"holder_fetch_failed: {exc}",
            )
        except Exception as exc:
            log.error("Planning failed for claim %d: %s", claim_id, exc, exc_info=True)
            return await self._fail_claim(
                claim_id, result, "planning_failed", f"planning_failed: {exc}",
            )

        # 3. Pay
        await self._pay(claim_id, shares, result)

        # 4. Complete
        next_claim = started + timedelta(minutes=settings.claim_interval_minutes)
        try:
            await self._store.update_claim_status(claim_id, "completed")
            await self._settings_store.set_next_schedule(
                next_claim.isoformat(), last_successful_claim=started.isoformat(),
            )
        except Exception as exc:
            log.critical(
                "UNRECORDED CLAIM COMPLETION: claim %d paid %d, failed %d: %s",
                claim_id, result.payments_completed, result.payments_failed, exc,
                exc_info=True,
            )
            await self._log_persistence_error(
                f"Claim completion not recorded: paid={result.payments_completed}"
                f" failed={result.payments_failed}: {exc}",
                claim_id=claim_id,
                amount=outcome.distribution_amount,
            )
            result.reason = "completion_unrecorded"
            return result

        result.next_claim_time = next_claim.isoformat()
        try:
            await self._store.log_activity(
                "cycle_completed",
                f"Paid {result.payments_completed}/{len(shares)} holders,"
                f" {result.payments_failed} failed",
                claim_id=claim_id,
                amount=outcome.distribution_amount,
            )
        except Exception as exc:
            log.error("Could not log completion of claim %d: %s", claim_id, exc)
        result.success = True
        log.info(
            "Claim %d completed: %d paid, %d failed, next claim at %s",
            claim_id, result.payments_completed, result.payments_failed,
            result.next_claim_time,
        )
        return result

    async def _plan(
        self,
        claim_id: int,
        settings: AutoClaimSettings,
        distribution_amount: float,
        result: CycleResult,
    ) -> list[DistributionShare]:
        holder_set = await self._registry.get_holders(settings.asset_id)
        evaluations = await self._ledger.evaluate(holder_set, settings.asset_id)
        eligible = [e for e in evaluations if e.is_eligible]

        result.total_holders = len(evaluations)
        result.eligible_holders = len(eligible)
        await self._store.update_claim_totals(
            claim_id, holder_count=len(eligible), total_supply=holder_set.total_balance,
        )
        await self._store.create_snapshots(
            [_snapshot(claim_id, e) for e in evaluations]
        )

        payees = order_for_payment(
            [HolderBalance(e.address, e.balance, e.percentage) for e in eligible]
        )
        shares = calculate_distribution(payees, distribution_amount)
        if not shares:
            log.warning("No eligible holders for claim %d; payout left unallocated", claim_id)
            return []

        await self._store.create_distributions(
            [
                DividendDistribution(
                    claim_id=claim_id,
                    holder_address=s.address,
                    token_balance=s.balance,
                    share_percentage=s.share_percentage,
                    dividend_amount=s.amount,
                )
                for s in shares
            ]
        )
        log.info("Planned %d distributions for claim %d", len(shares), claim_id)
        return shares

    async def _pay(
        self, claim_id: int, shares: list[DistributionShare], result: CycleResult
    ) -> None:
        for share in shares:
            payment = await self._send(share)
            if payment.success:
                result.payments_completed += 1
                status = "completed"
                log.info(
                    "Paid %.7f to %s (tx=%s)",
                    share.amount, share.address[:16], (payment.signature or "?")[:16],
                )
            else:
                result.payments_failed += 1
                status = "failed"
                log.warning("Payment to %s failed: %s", share.address[:16], payment.error)

            try:
                await self._store.update_distribution(
                    claim_id, share.address, status,
                    signature=payment.signature, error=payment.error,
                )
                await self._store.log_activity(
                    "payment_sent" if payment.success else "payment_failed",
                    payment.signature or payment.error or "",
                    claim_id=claim_id,
                    holder_address=share.address,
                    amount=share.amount,
                )
            except Exception as exc:
                result.unrecorded.append(share.address)
                log.critical(
                    "UNRECORDED PAYMENT OUTCOME: claim %d holder %s status=%s tx=%s: %s",
                    claim_id, share.address, status, payment.signature, exc,
                    exc_info=True,
                )
                await self._log_persistence_error(
                    f"Outcome not recorded: status={status} tx={payment.signature}: {exc}",
                    claim_id=claim_id,
                    holder_address=share.address,
                    amount=share.amount,
                )

    async def _log_persistence_error(self, message: str, **context) -> None:
        try:
            await self._store.log_activity("persistence_error", message, **context)
        except Exception as log_exc:
            log.critical("Activity log also unavailable: %s", log_exc)

    async def _send(self, share: DistributionShare) -> PaymentResult:
        units = to_base_units(share.amount)
        if units <= 0:
            return PaymentResult(
                success=False, address=share.address, amount=0, error="dust_amount",
            )
        try:
            return await self._executor.send_transfer(share.address, units)
        except Exception as exc:
            return PaymentResult(
                success=False, address=share.address, amount=units, error=str(exc),
            )

    async def _fail_claim(
        self, claim_id: int, result: CycleResult, event_type: str, reason: str
    ) -> CycleResult:
        log.error("Claim %d failed before payout: %s", claim_id, reason)
        await self._store.update_claim_status(claim_id, "failed", reason)
        await self._store.log_activity(event_type, reason, claim_id=claim_id)
        result.reason = reason
        return result


def _snapshot(claim_id: int, ev: EligibilityEvaluation) -> HolderSnapshot:
    return HolderSnapshot(
        claim_id=claim_id,
        holder_address=ev.address,
        token_balance=ev.balance,
        percentage=ev.percentage,
        initial_balance=ev.initial_balance,
        retention_percentage=ev.retention_percentage,
        is_eligible=ev.is_eligible,
    )
