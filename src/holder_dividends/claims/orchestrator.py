"""Fee claim orchestrator - validates settings, claims fees, sizes the payout."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from holder_dividends.errors import ConfigurationError
from holder_dividends.interfaces.collaborators import FeeClaimService
from holder_dividends.models.records import AutoClaimSettings, FeeClaimResult, is_placeholder

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClaimOutcome:
    """A fee claim plus the portion of it earmarked for holders."""

    result: FeeClaimResult
    distribution_amount: float = 0.0

    @property
    def success(self) -> bool:
        return self.result.success


def validate_settings(settings: AutoClaimSettings) -> None:
    """Raise ConfigurationError unless wallet and asset identifiers are usable."""
    if is_placeholder(settings.wallet_address):
        raise ConfigurationError("claiming wallet not configured")
    if is_placeholder(settings.asset_id):
        raise ConfigurationError("asset identifier not configured")
    if not 0 < settings.distribution_percentage <= 100:
        raise ConfigurationError(
            f"distribution_percentage {settings.distribution_percentage} out of range"
        )


def split_claim(claimed_amount: float, distribution_percentage: float) -> float:
    """Portion of a claim that goes to holders; the rest stays in the wallet."""
    return claimed_amount * distribution_percentage / 100


class FeeClaimOrchestrator:
    """Requests a fee claim and computes the distributable amount.

    A failed claim leaves no trace in the store; the cycle just ends and the
    next scheduled tick tries again.
    """

    def __init__(self, service: FeeClaimService) -> None:
        self._service = service

    async def claim(self, settings: AutoClaimSettings) -> ClaimOutcome:
        validate_settings(settings)

        try:
            result = await self._service.claim(settings)
        except ConfigurationError:
            raise
        except Exception as exc:
            log.error("Fee claim raised: %s", exc, exc_info=True)
            result = FeeClaimResult(success=False, reason=f"claim_error: {exc}")

        if not result.success:
            log.warning("Fee claim failed: %s", result.reason)
            return ClaimOutcome(result=result)

        distribution_amount = split_claim(
            result.claimed_amount, settings.distribution_percentage,
        )
        log.info(
            "Claimed %.7f, distributing %.7f (%g%%), tx=%s",
            result.claimed_amount,
            distribution_amount,
            settings.distribution_percentage,
            (result.transaction_id or "?")[:16],
        )
        return ClaimOutcome(result=result, distribution_amount=distribution_amount)
