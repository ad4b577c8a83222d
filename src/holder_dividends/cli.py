"""CLI entry point for the holder dividend engine."""

from __future__ import annotations

import asyncio
import logging
import sys

import click

from holder_dividends.config import load_config
from holder_dividends.daemon import DividendDaemon, run_daemon
from holder_dividends.loyalty.ledger import LoyaltyLedger
from holder_dividends.models.records import AutoClaimSettings, CycleResult
from holder_dividends.scheduler import interval_spec, is_due, utcnow
from holder_dividends.storage.sqlite import SQLiteStateStore


def _require_secret(cfg):
    """Exit with error if no keypair secret is configured."""
    if not cfg.keypair_secret:
        click.echo("Error: No keypair secret configured.", err=True)
        click.echo("Set HOLDER_DIVIDENDS_SECRET env var or keypair_secret in config.", err=True)
        sys.exit(1)


def _require_fee_api(cfg):
    """Exit with error if the fee claim API is not configured."""
    if not cfg.fee_claim_api_url:
        click.echo("Error: No fee claim API configured.", err=True)
        click.echo("Set HOLDER_DIVIDENDS_FEE_CLAIM_API_URL or [fee_claim] api_url.", err=True)
        sys.exit(1)


def _store(cfg) -> SQLiteStateStore:
    return SQLiteStateStore(cfg.db_path, seed=cfg.settings)


def _echo_settings(s: AutoClaimSettings) -> None:
    click.echo(f"Enabled:       {s.enabled}")
    click.echo(f"Effective:     {s.effective_enabled}")
    click.echo(f"Interval:      {s.claim_interval_minutes} min")
    click.echo(f"Distribution:  {s.distribution_percentage:g}%")
    click.echo(f"Min claim:     {s.min_claim_amount:.7f}")
    click.echo(f"Wallet:        {s.wallet_address or '(not set)'}")
    click.echo(f"Asset:         {s.asset_id or '(not set)'}")
    click.echo(f"Next claim:    {s.next_claim_scheduled or '(due now)'}")
    click.echo(f"Last success:  {s.last_successful_claim or '(never)'}")


def _echo_cycle(result: CycleResult) -> None:
    if result.success:
        click.echo(f"Claim #{result.claim_id} completed")
    else:
        click.echo(f"Claim not completed: {result.reason}")
    if result.claim_id is not None:
        click.echo(f"  Claimed:      {result.claimed_amount:.7f}")
        click.echo(f"  Distributed:  {result.distribution_amount:.7f}")
        click.echo(f"  Holders:      {result.eligible_holders}/{result.total_holders} eligible")
        click.echo(f"  Payments:     {result.payments_completed} ok, {result.payments_failed} failed")
    if result.unrecorded:
        click.echo(f"  UNRECORDED:   {', '.join(result.unrecorded)}", err=True)
    if result.next_claim_time:
        click.echo(f"  Next claim:   {result.next_claim_time}")


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """holder-dividends - Fee claiming and loyalty-gated dividend payouts."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Daemon ─────────────────────────────────────────────


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Start the dividend daemon."""
    cfg = load_config(ctx.obj["config_path"])
    _require_secret(cfg)
    _require_fee_api(cfg)

    click.echo(f"Starting holder-dividends daemon (tick every {cfg.tick_interval}s)")
    asyncio.run(run_daemon(cfg))


@cli.command()
@click.option("--force", is_flag=True, help="Ignore the enabled flag and the schedule")
@click.pass_context
def claim(ctx: click.Context, force: bool) -> None:
    """Run one claim cycle now."""
    cfg = load_config(ctx.obj["config_path"])
    _require_secret(cfg)
    _require_fee_api(cfg)

    result = asyncio.run(DividendDaemon(cfg).claim_now(force=force))
    _echo_cycle(result)
    if not result.success:
        sys.exit(1)


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show configuration, settings and the latest claim."""
    cfg = load_config(ctx.obj["config_path"])

    async def _status():
        store = _store(cfg)
        await store.initialize()
        try:
            settings = await store.get_settings()
            claims = await store.get_claims(1)
            stats = await store.get_loyalty_stats()
        finally:
            await store.close()

        click.echo(f"Network:       {cfg.network}")
        click.echo(f"Horizon:       {cfg.horizon_url}")
        click.echo(f"Fee API:       {cfg.fee_claim_api_url or '(not set)'}")
        click.echo(f"DB path:       {cfg.db_path}")
        click.echo(f"Secret:        {'***configured***' if cfg.keypair_secret else '(not set)'}")
        click.echo("")
        _echo_settings(settings)
        click.echo(f"Due now:       {is_due(settings, utcnow())}")
        in_flight = bool(claims) and claims[0].status == "processing"
        click.echo(f"Scheduler:     {interval_spec(cfg.tick_interval)}")
        click.echo(f"In progress:   {in_flight}")
        click.echo("")
        click.echo(f"Holders:       {stats.eligible_holders}/{stats.total_holders} eligible")
        if claims:
            c = claims[0]
            click.echo(f"Last claim:    #{c.id} {c.status} at {c.created_at}")

    asyncio.run(_status())


# ── Settings ───────────────────────────────────────────


@cli.group()
def settings() -> None:
    """Inspect or change auto-claim settings."""


@settings.command("show")
@click.pass_context
def settings_show(ctx: click.Context) -> None:
    """Show the stored auto-claim settings."""
    cfg = load_config(ctx.obj["config_path"])

    async def _show():
        store = _store(cfg)
        await store.initialize()
        try:
            return await store.get_settings()
        finally:
            await store.close()

    _echo_settings(asyncio.run(_show()))


@settings.command("set")
@click.option("--enabled/--disabled", default=None, help="Turn auto-claim on or off")
@click.option("--interval", type=int, default=None, help="Minutes between claims")
@click.option("--percentage", type=float, default=None, help="Percent of each claim paid out")
@click.option("--min-claim", type=float, default=None, help="Minimum claimable amount")
@click.option("--wallet", default=None, help="Claiming wallet address")
@click.option("--asset", default=None, help="Tracked asset as CODE:ISSUER")
@click.pass_context
def settings_set(
    ctx: click.Context,
    enabled: bool | None,
    interval: int | None,
    percentage: float | None,
    min_claim: float | None,
    wallet: str | None,
    asset: str | None,
) -> None:
    """Update auto-claim settings."""
    cfg = load_config(ctx.obj["config_path"])

    async def _set():
        store = _store(cfg)
        await store.initialize()
        try:
            return await store.update_settings(
                enabled=enabled,
                claim_interval_minutes=interval,
                distribution_percentage=percentage,
                min_claim_amount=min_claim,
                wallet_address=wallet,
                asset_id=asset,
            )
        finally:
            await store.close()

    try:
        updated = asyncio.run(_set())
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    _echo_settings(updated)


# ── Holders ────────────────────────────────────────────


@cli.group()
def holders() -> None:
    """Holder loyalty tracking."""


@holders.command("stats")
@click.pass_context
def holders_stats(ctx: click.Context) -> None:
    """Show loyalty statistics."""
    cfg = load_config(ctx.obj["config_path"])

    async def _stats():
        store = _store(cfg)
        await store.initialize()
        try:
            return await LoyaltyLedger(store, cfg.retention_threshold).get_stats()
        finally:
            await store.close()

    stats = asyncio.run(_stats())
    click.echo(f"Tracked:            {stats.total_holders}")
    click.echo(f"Eligible:           {stats.eligible_holders}")
    click.echo(f"Temp blacklisted:   {stats.temp_blacklisted}")
    click.echo(f"Perm blacklisted:   {stats.permanently_blacklisted}")
    click.echo(f"Eligibility rate:   {stats.eligibility_rate:.2f}%")
    click.echo(f"Average retention:  {stats.average_retention:.2f}%")


@holders.command("show")
@click.argument("address")
@click.pass_context
def holders_show(ctx: click.Context, address: str) -> None:
    """Show one holder's loyalty state and dividend totals."""
    cfg = load_config(ctx.obj["config_path"])

    async def _show():
        store = _store(cfg)
        await store.initialize()
        try:
            return (
                await store.get_initial_bag(address),
                await store.get_eligibility(address),
                await store.get_holder_stats(address),
            )
        finally:
            await store.close()

    bag, eligibility, stats = asyncio.run(_show())
    if bag is None and stats is None:
        click.echo(f"Holder {address} not tracked.", err=True)
        sys.exit(1)

    click.echo(f"Holder {address}")
    if bag:
        click.echo(f"  Initial bag:    {bag.initial_balance} ({bag.asset_id})")
    if eligibility:
        click.echo(f"  State:          {eligibility.state.value}")
        click.echo(f"  Retention:      {eligibility.retention_percentage:.2f}%")
        if eligibility.blacklist_reason:
            click.echo(f"  Reason:         {eligibility.blacklist_reason}")
    if stats:
        click.echo(f"  Balance:        {stats.current_balance} ({stats.current_percentage:.4f}%)")
        click.echo(f"  Received:       {stats.total_dividends_received:.7f}")
        click.echo(f"  Pending:        {stats.pending_dividends:.7f}")
        click.echo(f"  Claims paid:    {stats.participation_count}")
        click.echo(f"  Last dividend:  {stats.last_dividend_at or '(never)'}")


@holders.command("reset")
@click.argument("address")
@click.option("--balance", type=int, required=True, help="New initial bag in base units")
@click.option("--percentage", type=float, default=0.0, help="New initial share of supply")
@click.pass_context
def holders_reset(ctx: click.Context, address: str, balance: int, percentage: float) -> None:
    """Reset a holder's initial bag, clearing any blacklist."""
    cfg = load_config(ctx.obj["config_path"])

    async def _reset():
        store = _store(cfg)
        await store.initialize()
        try:
            settings = await store.get_settings()
            ledger = LoyaltyLedger(store, cfg.retention_threshold)
            record = await ledger.reset_baseline(address, balance, percentage, settings.asset_id)
            await store.log_activity(
                "baseline_reset",
                f"Initial bag reset to {balance}",
                holder_address=address,
            )
            return record
        finally:
            await store.close()

    try:
        record = asyncio.run(_reset())
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    click.echo(f"Reset {record.address}: initial bag {record.initial_balance}, {record.state.value}")


# ── Claims & payments ──────────────────────────────────


@cli.group()
def claims() -> None:
    """Claim history."""


@claims.command("list")
@click.option("-n", "--limit", type=int, default=20, help="Number of recent claims to show")
@click.pass_context
def claims_list(ctx: click.Context, limit: int) -> None:
    """List recent claims."""
    cfg = load_config(ctx.obj["config_path"])

    async def _list():
        store = _store(cfg)
        await store.initialize()
        try:
            return await store.get_claims(limit)
        finally:
            await store.close()

    rows = asyncio.run(_list())
    if not rows:
        click.echo("No claims recorded.")
        return
    for c in rows:
        click.echo(
            f"  #{c.id} [{c.status:10s}] claimed={c.claimed_amount:.7f}"
            f" distributed={c.distribution_amount:.7f} holders={c.holder_count}"
            f" at={c.created_at}"
        )


@claims.command("show")
@click.argument("claim_id", type=int)
@click.pass_context
def claims_show(ctx: click.Context, claim_id: int) -> None:
    """Show one claim with its snapshots and distributions."""
    cfg = load_config(ctx.obj["config_path"])

    async def _show():
        store = _store(cfg)
        await store.initialize()
        try:
            c = await store.get_claim(claim_id)
            if c is None:
                return None, [], []
            return c, await store.get_snapshots(claim_id), await store.get_distributions(claim_id)
        finally:
            await store.close()

    c, snapshots, distributions = asyncio.run(_show())
    if c is None:
        click.echo(f"Claim #{claim_id} not found.", err=True)
        sys.exit(1)

    click.echo(f"Claim #{c.id}")
    click.echo(f"  Status:       {c.status}")
    click.echo(f"  Claimed:      {c.claimed_amount:.7f}")
    click.echo(f"  Distributed:  {c.distribution_amount:.7f}")
    click.echo(f"  Transaction:  {c.transaction_id or '-'}")
    click.echo(f"  Supply:       {c.total_supply}")
    if c.error_message:
        click.echo(f"  Error:        {c.error_message}")
    click.echo("")
    click.echo(f"Snapshots ({len(snapshots)})")
    for s in snapshots:
        flag = "eligible" if s.is_eligible else "excluded"
        click.echo(
            f"  {s.holder_address[:16]}... balance={s.token_balance}"
            f" retention={s.retention_percentage:.2f}% {flag}"
        )
    click.echo("")
    click.echo(f"Distributions ({len(distributions)})")
    for d in distributions:
        click.echo(
            f"  [{d.status:9s}] {d.holder_address[:16]}... amount={d.dividend_amount:.7f}"
            f" tx={(d.transaction_signature or '-')[:16]} {d.error_message or ''}".rstrip()
        )


@cli.group()
def payments() -> None:
    """Payment outcomes."""


@payments.command("failed")
@click.pass_context
def payments_failed(ctx: click.Context) -> None:
    """List failed distributions across all claims."""
    cfg = load_config(ctx.obj["config_path"])

    async def _failed():
        store = _store(cfg)
        await store.initialize()
        try:
            return await store.get_failed_distributions()
        finally:
            await store.close()

    rows = asyncio.run(_failed())
    if not rows:
        click.echo("No failed payments.")
        return
    for d in rows:
        click.echo(
            f"  claim=#{d.claim_id} {d.holder_address[:16]}... amount={d.dividend_amount:.7f}"
            f" error={d.error_message or '?'}"
        )


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
