"""Proportional payout planning."""

from holder_dividends.distribution.calculator import calculate_distribution, order_for_payment

__all__ = ["calculate_distribution", "order_for_payment"]
