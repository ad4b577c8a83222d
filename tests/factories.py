"""Synthetic record factories for testing."""

from __future__ import annotations

from holder_dividends.models.records import AutoClaimSettings, HolderBalance, HolderSet

WALLET = "GDNAG4KFFVF5HCSGRWZIXZNL2SR2KBGJSHW2A6FI6DZI62XF6IBLO4GD"
ASSET_ID = "DIVI:GDNAG4KFFVF5HCSGRWZIXZNL2SR2KBGJSHW2A6FI6DZI62XF6IBLO4GD"

HOLDER_A = "GAHOLDERAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA"
HOLDER_B = "GBHOLDERBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBB"
HOLDER_C = "GCHOLDERCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCC"


def make_holder_set(balances: dict[str, int]) -> HolderSet:
    """Holders with balance > 0, percentages of the observed total."""
    positive = {a: b for a, b in balances.items() if b > 0}
    total = sum(positive.values())
    return HolderSet(
        holders=[
            HolderBalance(address=a, balance=b, percentage=b / total * 100)
            for a, b in positive.items()
        ],
        total_balance=total,
    )


def make_settings(**overrides) -> AutoClaimSettings:
    defaults = dict(
        enabled=True,
        claim_interval_minutes=10,
        distribution_percentage=40.0,
        min_claim_amount=0.001,
        wallet_address=WALLET,
        asset_id=ASSET_ID,
    )
    defaults.update(overrides)
    return AutoClaimSettings(**defaults)
