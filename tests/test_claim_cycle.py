"""Claim cycle: claim, snapshot, plan, pay, complete."""

from __future__ import annotations

from holder_dividends.models.records import STROOPS_PER_XLM

from tests.conftest import make_engine
from tests.factories import HOLDER_A, HOLDER_B, HOLDER_C, make_settings
from tests.mocks import FlakyAuditStore, MockFeeClaimService, MockHolderRegistry


# ── Test 1: Full cycle pays every eligible holder ────────────────


async def test_full_cycle_pays_proportionally(engine, store, mock_executor):
    settings = await store.get_settings()
    result = await engine.run_cycle(settings)

    assert result.success
    assert result.claimed_amount == 100.0
    assert result.distribution_amount == 40.0
    assert result.total_holders == 2
    assert result.eligible_holders == 2
    assert result.payments_completed == 2
    assert result.payments_failed == 0
    assert result.unrecorded == []

    # Largest balance first
    assert mock_executor.transfers == [
        (HOLDER_B, 30 * STROOPS_PER_XLM),
        (HOLDER_A, 10 * STROOPS_PER_XLM),
    ]

    claim = await store.get_claim(result.claim_id)
    assert claim.status == "completed"
    assert claim.transaction_id == "claim_tx_0001"
    assert claim.holder_count == 2
    assert claim.total_supply == 400

    distributions = {d.holder_address: d for d in await store.get_distributions(result.claim_id)}
    assert distributions[HOLDER_A].dividend_amount == 10.0
    assert distributions[HOLDER_B].dividend_amount == 30.0
    assert all(d.status == "completed" for d in distributions.values())
    assert all(d.transaction_signature for d in distributions.values())
    assert all(d.paid_at for d in distributions.values())

    snapshots = await store.get_snapshots(result.claim_id)
    assert {s.holder_address for s in snapshots} == {HOLDER_A, HOLDER_B}
    assert all(s.is_eligible for s in snapshots)


async def test_completed_cycle_advances_schedule(engine, store):
    settings = await store.get_settings()
    assert settings.next_claim_scheduled is None

    result = await engine.run_cycle(settings)

    updated = await store.get_settings()
    assert updated.next_claim_scheduled == result.next_claim_time
    assert updated.last_successful_claim is not None
    assert updated.next_claim_scheduled > updated.last_successful_claim


async def test_activity_trail(engine, store):
    result = await engine.run_cycle(await store.get_settings())

    activity = await store.get_recent_activity(50)
    types = [a.event_type for a in reversed(activity)]
    assert types == ["claim_recorded", "payment_sent", "payment_sent", "cycle_completed"]
    assert all(a.claim_id == result.claim_id for a in activity)


# ── Test 2: Retention gate ──────────────────────────────────────


async def test_holder_below_threshold_is_skipped(engine, store, mock_registry, mock_executor):
    mock_registry.set_balances({HOLDER_A: 1000, HOLDER_B: 300})
    await engine.run_cycle(await store.get_settings())

    # A sold half its bag
    mock_registry.set_balances({HOLDER_A: 500, HOLDER_B: 300})
    mock_executor.transfers.clear()
    result = await engine.run_cycle(await store.get_settings())

    assert result.success
    assert result.total_holders == 2
    assert result.eligible_holders == 1
    assert mock_executor.transfers == [(HOLDER_B, 40 * STROOPS_PER_XLM)]

    snapshots = {s.holder_address: s for s in await store.get_snapshots(result.claim_id)}
    assert snapshots[HOLDER_A].is_eligible is False
    assert snapshots[HOLDER_A].retention_percentage == 50.0
    assert snapshots[HOLDER_B].is_eligible is True

    distributions = await store.get_distributions(result.claim_id)
    assert [d.holder_address for d in distributions] == [HOLDER_B]


async def test_sold_out_holder_never_paid_again(engine, store, mock_registry, mock_executor):
    await engine.run_cycle(await store.get_settings())

    # A sold everything and drops out of the registry
    mock_registry.set_balances({HOLDER_B: 300})
    await engine.run_cycle(await store.get_settings())
    eligibility = await store.get_eligibility(HOLDER_A)
    assert eligibility.permanently_blacklisted

    # A buys back in with more than before
    mock_registry.set_balances({HOLDER_A: 2000, HOLDER_B: 300})
    mock_executor.transfers.clear()
    result = await engine.run_cycle(await store.get_settings())

    assert result.eligible_holders == 1
    assert [addr for addr, _ in mock_executor.transfers] == [HOLDER_B]


async def test_no_eligible_holders_completes_without_payments(store, mock_fee_service, mock_executor):
    engine = make_engine(store, mock_fee_service, MockHolderRegistry({}), mock_executor)
    result = await engine.run_cycle(await store.get_settings())

    assert result.success
    assert result.eligible_holders == 0
    assert mock_executor.transfers == []

    claim = await store.get_claim(result.claim_id)
    assert claim.status == "completed"
    assert claim.holder_count == 0
    assert await store.get_distributions(result.claim_id) == []


# ── Test 3: Per-payment failure isolation ───────────────────────


async def test_failed_payment_does_not_stop_batch(engine, store, mock_executor):
    mock_executor.fail_for = {HOLDER_B}
    result = await engine.run_cycle(await store.get_settings())

    assert result.success
    assert result.payments_completed == 1
    assert result.payments_failed == 1

    distributions = {d.holder_address: d for d in await store.get_distributions(result.claim_id)}
    assert distributions[HOLDER_A].status == "completed"
    assert distributions[HOLDER_B].status == "failed"
    assert distributions[HOLDER_B].error_message == "tx_failed:op_no_trust"
    assert distributions[HOLDER_B].paid_at is None

    claim = await store.get_claim(result.claim_id)
    assert claim.status == "completed"

    failed = await store.get_failed_distributions()
    assert [d.holder_address for d in failed] == [HOLDER_B]


async def test_raising_executor_is_recorded_as_failure(engine, store, mock_executor):
    mock_executor.raise_for = {HOLDER_B}
    result = await engine.run_cycle(await store.get_settings())

    assert result.payments_completed == 1
    assert result.payments_failed == 1
    distributions = {d.holder_address: d for d in await store.get_distributions(result.claim_id)}
    assert distributions[HOLDER_B].error_message == "horizon unreachable"


async def test_dust_share_is_not_sent(store, mock_executor):
    fee_service = MockFeeClaimService(claimed_amount=0.0000002)
    registry = MockHolderRegistry({HOLDER_A: 1, HOLDER_B: 1, HOLDER_C: 1})
    engine = make_engine(store, fee_service, registry, mock_executor)

    await store.update_settings(distribution_percentage=100.0)
    result = await engine.run_cycle(await store.get_settings())

    assert result.success
    assert result.payments_failed == 3
    assert mock_executor.transfers == []
    distributions = await store.get_distributions(result.claim_id)
    assert {d.error_message for d in distributions} == {"dust_amount"}


# ── Test 4: Claim failures leave no trace ───────────────────────


async def test_failed_fee_claim_writes_nothing(store, mock_registry, mock_executor):
    fee_service = MockFeeClaimService(succeed=False, reason="below_minimum")
    engine = make_engine(store, fee_service, mock_registry, mock_executor)
    before = await store.get_settings()

    result = await engine.run_cycle(before)

    assert not result.success
    assert result.reason == "below_minimum"
    assert result.claim_id is None
    assert await store.get_claims() == []
    assert await store.get_recent_activity() == []
    assert mock_registry.get_calls == []
    assert await store.get_settings() == before


async def test_raising_fee_claim_is_a_failed_claim(store, mock_registry, mock_executor):
    fee_service = MockFeeClaimService(raises=RuntimeError("portal down"))
    engine = make_engine(store, fee_service, mock_registry, mock_executor)

    result = await engine.run_cycle(await store.get_settings())

    assert not result.success
    assert result.reason.startswith("claim_error")
    assert await store.get_claims() == []


async def test_placeholder_wallet_skips_claim(engine, store, mock_fee_service):
    result = await engine.run_cycle(make_settings(wallet_address="PLACEHOLDER_WALLET"))

    assert not result.success
    assert result.reason.startswith("configuration")
    assert mock_fee_service.claim_calls == []
    assert await store.get_claims() == []


# ── Test 5: Failures after the claim is recorded ────────────────


async def test_holder_fetch_failure_marks_claim_failed(engine, store, mock_registry, mock_executor):
    mock_registry.error = "horizon 503"
    result = await engine.run_cycle(await store.get_settings())

    assert not result.success
    assert result.reason.startswith("holder_fetch_failed")
    assert mock_executor.transfers == []

    claim = await store.get_claim(result.claim_id)
    assert claim.status == "failed"
    assert "horizon 503" in claim.error_message

    settings = await store.get_settings()
    assert settings.next_claim_scheduled is None

    types = [a.event_type for a in await store.get_recent_activity()]
    assert "holders_failed" in types


async def test_unrecorded_outcome_is_reported(store, mock_fee_service, mock_registry, mock_executor):
    flaky = FlakyAuditStore(store, fail_for={HOLDER_B})
    engine = make_engine(flaky, mock_fee_service, mock_registry, mock_executor, settings_store=store)

    result = await engine.run_cycle(await store.get_settings())

    assert result.success
    assert result.unrecorded == [HOLDER_B]
    assert result.payments_completed == 2
    assert len(mock_executor.transfers) == 2

    distributions = {d.holder_address: d for d in await store.get_distributions(result.claim_id)}
    assert distributions[HOLDER_A].status == "completed"
    assert distributions[HOLDER_B].status == "pending"

    types = [a.event_type for a in await store.get_recent_activity()]
    assert "persistence_error" in types


async def test_unrecorded_completion_is_reported(store, mock_fee_service, mock_registry, mock_executor):
    flaky = FlakyAuditStore(store, fail_for=set(), fail_statuses={"completed"})
    engine = make_engine(flaky, mock_fee_service, mock_registry, mock_executor, settings_store=store)

    result = await engine.run_cycle(await store.get_settings())

    assert not result.success
    assert result.reason == "completion_unrecorded"
    assert result.payments_completed == 2
    assert len(mock_executor.transfers) == 2

    claim = await store.get_claim(result.claim_id)
    assert claim.status == "processing"
    settings = await store.get_settings()
    assert settings.next_claim_scheduled is None

    activity = await store.get_recent_activity()
    assert activity[0].event_type == "persistence_error"
    assert "paid=2" in activity[0].message


async def test_holder_stats_accumulate_across_claims(engine, store):
    await engine.run_cycle(await store.get_settings())
    await engine.run_cycle(await store.get_settings())

    stats = await store.get_holder_stats(HOLDER_B)
    assert stats.participation_count == 2
    assert stats.total_dividends_received == 60.0
    assert stats.current_balance == 300
    assert stats.current_percentage == 75.0
    assert stats.pending_dividends == 0.0
    assert stats.last_dividend_at is not None

    assert await store.get_holder_stats(HOLDER_C) is None
