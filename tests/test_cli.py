"""CLI commands against a temporary database."""

from __future__ import annotations

import asyncio

import pytest
from click.testing import CliRunner

from holder_dividends.cli import cli
from holder_dividends.models.records import DividendDistribution
from holder_dividends.storage.sqlite import SQLiteStateStore

from tests.factories import ASSET_ID, HOLDER_A, HOLDER_B, WALLET


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    path = tmp_path / "state.db"
    monkeypatch.setenv("HOLDER_DIVIDENDS_DB_PATH", str(path))
    return path


@pytest.fixture
def runner():
    return CliRunner()


def _seed_claim(db_path) -> None:
    async def _seed():
        store = SQLiteStateStore(str(db_path))
        await store.initialize()
        try:
            claim_id = await store.create_claim(10.0, 3.0, "claim_tx_0001")
            await store.create_distributions([
                DividendDistribution(claim_id, HOLDER_A, 100, 25.0, 0.75),
                DividendDistribution(claim_id, HOLDER_B, 300, 75.0, 2.25),
            ])
            await store.update_distribution(claim_id, HOLDER_A, "completed", signature="pay_tx_0001")
            await store.update_distribution(claim_id, HOLDER_B, "failed", error="tx_failed:op_no_trust")
            await store.update_claim_status(claim_id, "completed")
        finally:
            await store.close()

    asyncio.run(_seed())


def test_settings_show_defaults(runner, db_path):
    result = runner.invoke(cli, ["settings", "show"])
    assert result.exit_code == 0, result.output
    assert "Enabled:       False" in result.output
    assert "Distribution:  30%" in result.output


def test_settings_set(runner, db_path):
    result = runner.invoke(
        cli,
        ["settings", "set", "--enabled", "--percentage", "50", "--wallet", WALLET, "--asset", ASSET_ID],
    )
    assert result.exit_code == 0, result.output
    assert "Effective:     True" in result.output
    assert "Distribution:  50%" in result.output

    result = runner.invoke(cli, ["settings", "show"])
    assert "Distribution:  50%" in result.output


def test_settings_set_rejects_bad_percentage(runner, db_path):
    result = runner.invoke(cli, ["settings", "set", "--percentage", "0"])
    assert result.exit_code == 1
    assert "distribution_percentage" in result.output


def test_status(runner, db_path, monkeypatch):
    monkeypatch.delenv("HOLDER_DIVIDENDS_SECRET", raising=False)
    result = runner.invoke(cli, ["status"])
    assert result.exit_code == 0, result.output
    assert "Secret:        (not set)" in result.output
    assert "Due now:       False" in result.output
    assert "Scheduler:     every " in result.output
    assert "In progress:   False" in result.output


def test_claim_requires_secret(runner, db_path, monkeypatch):
    monkeypatch.delenv("HOLDER_DIVIDENDS_SECRET", raising=False)
    result = runner.invoke(cli, ["claim", "--force"])
    assert result.exit_code == 1


def test_claims_list_and_show(runner, db_path):
    result = runner.invoke(cli, ["claims", "list"])
    assert "No claims recorded." in result.output

    _seed_claim(db_path)

    result = runner.invoke(cli, ["claims", "list"])
    assert result.exit_code == 0, result.output
    assert "#1 [completed" in result.output

    result = runner.invoke(cli, ["claims", "show", "1"])
    assert result.exit_code == 0, result.output
    assert "Distributions (2)" in result.output
    assert "tx_failed:op_no_trust" in result.output

    result = runner.invoke(cli, ["claims", "show", "42"])
    assert result.exit_code == 1


def test_payments_failed(runner, db_path):
    result = runner.invoke(cli, ["payments", "failed"])
    assert "No failed payments." in result.output

    _seed_claim(db_path)
    result = runner.invoke(cli, ["payments", "failed"])
    assert HOLDER_B[:16] in result.output
    assert HOLDER_A[:16] not in result.output


def test_holders_reset_and_stats(runner, db_path):
    result = runner.invoke(cli, ["holders", "reset", HOLDER_A, "--balance", "0"])
    assert result.exit_code == 1

    result = runner.invoke(cli, ["holders", "reset", HOLDER_A, "--balance", "5000"])
    assert result.exit_code == 0, result.output
    assert "eligible" in result.output

    result = runner.invoke(cli, ["holders", "stats"])
    assert result.exit_code == 0, result.output
    assert "Tracked:            1" in result.output
    assert "Eligible:           1" in result.output


def test_holders_show(runner, db_path):
    result = runner.invoke(cli, ["holders", "show", HOLDER_A])
    assert result.exit_code == 1

    _seed_claim(db_path)
    result = runner.invoke(cli, ["holders", "show", HOLDER_A])
    assert result.exit_code == 0, result.output
    assert "Received:       0.7500000" in result.output
    assert "Claims paid:    1" in result.output

    result = runner.invoke(cli, ["holders", "show", HOLDER_B])
    assert result.exit_code == 1
