"""Fee claiming."""

from holder_dividends.claims.orchestrator import (
    ClaimOutcome,
    FeeClaimOrchestrator,
    split_claim,
    validate_settings,
)

__all__ = ["ClaimOutcome", "FeeClaimOrchestrator", "split_claim", "validate_settings"]
