"""Proportional payout calculation."""

from __future__ import annotations

from collections.abc import Sequence

from holder_dividends.models.records import DistributionShare, HolderBalance


def calculate_distribution(
    holders: Sequence[HolderBalance], payout: float
) -> list[DistributionShare]:
    """Split `payout` across holders in proportion to their current balances.

    Output order follows input order. Returns an empty list when the holders
    carry no balance at all.
    """
    total = sum(h.balance for h in holders)
    if total <= 0:
        return []

    shares = []
    for holder in holders:
        fraction = holder.balance / total
        shares.append(
            DistributionShare(
                address=holder.address,
                balance=holder.balance,
                share_percentage=fraction * 100,
                amount=payout * fraction,
            )
        )
    return shares


def order_for_payment(holders: Sequence[HolderBalance]) -> list[HolderBalance]:
    """Largest holders first, address as the tie-breaker."""
    return sorted(holders, key=lambda h: (-h.balance, h.address))
