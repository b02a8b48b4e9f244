"""
LST Accumulator CLI
===================
Command-line interface using Typer + Rich.

Commands:
    python cli_typer.py status
    python cli_typer.py simulate
    python cli_typer.py simulate --price 1.002 --loss 1 --persist
"""

import asyncio
from fractions import Fraction
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

app = typer.Typer(
    name="lst",
    help="LST Accumulator - liquid staking strategy with two-phase redemptions",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()

UNIT = 10**18


def _fmt(amount: int) -> str:
    return f"{amount / UNIT:,.6f}"


def _state_table(title: str, status: dict) -> Table:
    state = status["state"]
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Field")
    table.add_column("Value", justify="right")
    table.add_row("Liquid balance", _fmt(status["liquid_balance"]))
    table.add_row("LST balance", _fmt(status["lst_balance"]))
    table.add_row("Total value", _fmt(status["total_value"]))
    table.add_row("Pending redemptions", _fmt(int(state["pending_redemptions"])))
    table.add_row("Stake on deploy", str(state["stake_on_deploy"]))
    table.add_row("Open deposits", str(state["open_deposits"]))
    table.add_row("Allowlist size", str(len(state["allowed"])))
    table.add_row("Shut down", str(state["is_shutdown"]))
    return table


# ═══════════════════════════════════════════════════════════════════════════════
# COMMAND: STATUS
# ═══════════════════════════════════════════════════════════════════════════════

@app.command()
def status(
    name: Optional[str] = typer.Option(None, "--name", help="Strategy name (defaults to LST_STRATEGY_NAME)"),
    events: int = typer.Option(10, "--events", help="Recent audit events to show", min=0, max=500),
):
    """
    Show the persisted state of a strategy and its recent operations.
    """
    from config.settings import Settings
    from src.lst_strategy.store import StrategyStateStore

    name = name or Settings.LST_STRATEGY_NAME
    store = StrategyStateStore()
    state = store.load(name)
    if state is None:
        console.print(f"[yellow]⚠️  No persisted state for '{name}'[/yellow]")
        raise typer.Exit(1)

    table = Table(title=f"Strategy '{name}'", header_style="bold cyan")
    table.add_column("Field")
    table.add_column("Value", justify="right")
    for key, value in state.to_dict().items():
        table.add_row(key, str(value))
    console.print(table)

    if events:
        log = Table(title="Recent operations", header_style="bold magenta")
        log.add_column("Event", no_wrap=True)
        log.add_column("Payload")
        for event in store.history(name, events):
            log.add_row(event["event_type"], str(event["payload"]))
        console.print(log)


# ═══════════════════════════════════════════════════════════════════════════════
# COMMAND: SIMULATE (Paper Lifecycle)
# ═══════════════════════════════════════════════════════════════════════════════

@app.command()
def simulate(
    deposit: int = typer.Option(100, "--deposit", help="Whole tokens deposited", min=1),
    withdraw: int = typer.Option(50, "--withdraw", help="Whole LST queued for redemption", min=1),
    price: float = typer.Option(1.0, "--price", help="Pool price in LST per asset"),
    loss: int = typer.Option(0, "--loss", help="Rounding loss per request (base units)", min=0),
    persist: bool = typer.Option(False, "--persist", help="Save state to the SQLite store"),
):
    """
    Run a full paper lifecycle against the virtual drivers.

    deposit → cycle (stake) → initiate → blocked cycle → finalize → claim → cycle
    """
    from src.lst_strategy.access import Governance
    from src.lst_strategy.config import StrategyConfig
    from src.lst_strategy.drivers.virtual import build_virtual_environment
    from src.lst_strategy.integration import QueueStakingIntegration
    from src.lst_strategy.store import StrategyStateStore
    from src.lst_strategy.strategy import LSTAccumulatorStrategy
    from src.lst_strategy.types import RedemptionsPendingError
    from solders.pubkey import Pubkey

    console.print(Panel.fit(
        "[bold cyan]📝 Paper Lifecycle[/bold cyan]\n"
        f"Deposit: {deposit} | Withdraw: {withdraw} | Price: {price} | Loss: {loss}",
        border_style="cyan",
    ))

    async def run():
        config = StrategyConfig.from_settings()
        env = build_virtual_environment(
            asset_symbol=config.asset_symbol,
            lst_symbol=config.lst_symbol,
            lst_per_asset=Fraction(str(price)),
        )
        integration = QueueStakingIntegration.from_config(
            config, env.custody, env.pool, env.staking, env.queue
        )
        ops = Pubkey.new_unique()
        strategy = LSTAccumulatorStrategy(
            integration,
            Governance(management=ops),
            config=config,
            store=StrategyStateStore() if persist else None,
        )

        env.custody.deposit(deposit * UNIT)
        await strategy.run_cycle(ops)
        console.print(_state_table("After first cycle", await strategy.status()))

        handle = await strategy.initiate_withdrawal(ops, withdraw * UNIT)
        console.print(f"[dim]Handle: {handle.to_dict()}[/dim]")
        try:
            await strategy.run_cycle(ops)
        except RedemptionsPendingError as e:
            console.print(f"[yellow]⏸  {e}[/yellow]")

        env.queue.finalize_all(loss_per_request=loss)
        await strategy.claim_withdrawal(ops, handle)
        if strategy.pending_redemptions:
            console.print(
                f"[yellow]⚠️  {strategy.pending_redemptions} base units still pending; "
                "cycle stays blocked[/yellow]"
            )
        else:
            await strategy.set_stake_on_deploy(ops, False)
            await strategy.run_cycle(ops)
        console.print(_state_table("After claim", await strategy.status()))

    try:
        asyncio.run(run())
    except Exception as e:
        console.print(f"[bold red]❌ Simulation failed: {e}[/bold red]")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
