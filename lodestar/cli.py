"""
CLI Entry Point for Lodestar.

Commands:
  run               - Watch the board and deploy every round
  deploy            - Run a single deployment cycle
  checkpoint        - Settle one past round on its own
  status            - Show board, round and miner state
  close-automation  - Close the automation account (maintenance)
  config            - Show current configuration
"""

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from solders.pubkey import Pubkey

from lodestar import __version__
from lodestar.agent import LodestarAgent
from lodestar.chain.accounts import board_pda, miner_pda, round_pda
from lodestar.chain.state import decode_board, decode_miner, decode_round
from lodestar.chain.transport import RpcTransport
from lodestar.config import SOL_PER_LAMPORT, LodestarConfig, RoundContext, parse_squares
from lodestar.trading.deployer import Deployer, Target
from lodestar.trading.maintenance import close_automation
from lodestar.trading.settlement import classify_settlement, send_checkpoint
from lodestar.wallet import WalletError, load_signer, try_load_signer

console = Console()


def _transport(cfg: LodestarConfig) -> RpcTransport:
    return RpcTransport(cfg.rpc.rpc_url, commitment=cfg.rpc.commitment)


def _signer_or_exit(cfg: LodestarConfig):
    try:
        return load_signer(cfg.wallet)
    except WalletError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)


def _current_round_id(transport, program_id: Pubkey) -> int:
    board = decode_board(transport.fetch_account(board_pda(program_id)))
    if not board.ready:
        console.print(f"[red]Board not readable: {board.reason}[/red]")
        raise SystemExit(1)
    return board.value.round_id


@click.group()
@click.version_option(version=__version__, prog_name="Lodestar")
def cli():
    """Lodestar - automated round deployment for ORE."""
    pass


@cli.command()
@click.option("--poll-interval", type=float, default=None, help="Seconds between board polls")
def run(poll_interval):
    """Watch the board and deploy once per round."""
    cfg = LodestarConfig()
    if poll_interval is not None:
        cfg.poll_interval = poll_interval
    signer = _signer_or_exit(cfg)
    agent = LodestarAgent(cfg, _transport(cfg), signer)
    agent.start()


@cli.command()
@click.option("--round", "round_id", type=int, default=None, help="Round id (defaults to the board's)")
@click.option("--squares", default=None, help="Comma-separated square ids, e.g. 1,7,25")
@click.option("--amount", type=float, default=None, help="SOL per square")
def deploy(round_id, squares, amount):
    """Run a single deployment cycle."""
    cfg = LodestarConfig()
    if squares is not None:
        cfg.deploy.squares = parse_squares(squares)
    if amount is not None:
        cfg.deploy.deploy_amount_sol = amount

    signer = _signer_or_exit(cfg)
    transport = _transport(cfg)
    program_id = Pubkey.from_string(cfg.deploy.program_id)
    if round_id is None:
        round_id = _current_round_id(transport, program_id)

    deployer = Deployer(cfg.deploy, transport, signer)
    result = deployer.run_cycle(
        RoundContext(round_id=round_id, deploy_amount_sol=cfg.deploy.deploy_amount_sol),
        [Target(square) for square in cfg.deploy.squares],
    )
    console.print(f"Result: [bold]{result.status.value}[/bold]")
    if not result.success:
        raise SystemExit(1)


@cli.command()
@click.option("--round", "round_id", type=int, required=True, help="Round id to settle")
def checkpoint(round_id):
    """Settle one past round on its own transaction."""
    cfg = LodestarConfig()
    signer = _signer_or_exit(cfg)
    ok = send_checkpoint(round_id, _transport(cfg), signer,
                         program_id=Pubkey.from_string(cfg.deploy.program_id))
    if not ok:
        raise SystemExit(1)


@cli.command()
def status():
    """Show board, current round and miner state."""
    cfg = LodestarConfig()
    transport = _transport(cfg)
    program_id = Pubkey.from_string(cfg.deploy.program_id)
    round_id = _current_round_id(transport, program_id)

    table = Table(title=f"Round #{round_id}", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    current = decode_round(transport.fetch_account(round_pda(round_id, program_id)))
    if current.ready:
        table.add_row("Total Deployed", f"{current.value.total_deployed * SOL_PER_LAMPORT:.4f} SOL")
        table.add_row("Motherlode", f"{current.value.motherlode}")
    else:
        table.add_row("Round", f"[yellow]{current.status.value}[/yellow]")

    signer = try_load_signer(cfg.wallet)
    if signer is not None:
        miner = decode_miner(transport.fetch_account(miner_pda(signer.pubkey(), program_id)))
        if miner.ready:
            m = miner.value
            table.add_row("Miner Round", str(m.round_id))
            table.add_row("Miner Checkpoint", str(m.checkpoint_id))
            table.add_row("Settlement", classify_settlement(m.checkpoint_id, m.round_id, round_id).value)
            table.add_row("Rewards", f"{m.rewards_sol * SOL_PER_LAMPORT:.4f} SOL")
        else:
            table.add_row("Miner", f"[dim]{miner.status.value}[/dim]")
    else:
        table.add_row("Miner", "[dim]no signer configured[/dim]")

    console.print(table)


@cli.command("close-automation")
@click.confirmation_option(prompt="This closes the automation account. Are you sure?")
def close_automation_cmd():
    """Close the automation account (one-time maintenance)."""
    cfg = LodestarConfig()
    signer = _signer_or_exit(cfg)
    ok = close_automation(_transport(cfg), signer, Pubkey.from_string(cfg.deploy.program_id))
    if not ok:
        raise SystemExit(1)


@cli.command()
def config():
    """Show current configuration."""
    cfg = LodestarConfig()
    squares = ", ".join(str(s) for s in cfg.deploy.squares) or "none"
    console.print(Panel(
        f"RPC: {cfg.rpc.rpc_url}\n"
        f"Program: {cfg.deploy.program_id}\n"
        f"Stake per square: {cfg.deploy.deploy_amount_sol} SOL\n"
        f"Squares: {squares}\n"
        f"Stake per round: {cfg.stake_per_round_sol:.4f} SOL\n"
        f"Fee rate: {cfg.deploy.fee_rate:.0%}\n"
        f"Compute: {cfg.deploy.compute_unit_limit} units @ {cfg.deploy.compute_unit_price} micro-lamports\n"
        f"Poll interval: {cfg.poll_interval}s\n"
        f"Wallet: {'Configured' if cfg.wallet.private_key else cfg.wallet.keypair_path}",
        title="[bold]Lodestar Configuration[/bold]",
    ))


def main():
    cli()


if __name__ == "__main__":
    main()
