"""
The Agent - watches the board and deploys once per round.

Main loop:
1. Read the board to learn the current round id
2. If the round is new, run one deployment cycle
3. Remember the round unless the cycle was deferred
4. Repeat every poll interval

Cycles are strictly sequential; a tick that is still waiting on confirmation
blocks the next one.
"""

import signal
import time
from datetime import datetime
from typing import List, Optional

import schedule
from rich.console import Console
from rich.panel import Panel
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from lodestar import __version__
from lodestar.chain.accounts import board_pda
from lodestar.chain.state import decode_board
from lodestar.config import LodestarConfig, RoundContext
from lodestar.trading.deployer import Deployer, DeployResult, DeployStatus, Target

console = Console()


class LodestarAgent:
    """Drives the deployer from the board's round lifecycle."""

    def __init__(self, config: LodestarConfig, transport, signer: Optional[Keypair],
                 deployer: Optional[Deployer] = None, console: Console = console):
        self.config = config
        self.transport = transport
        self.signer = signer
        self.console = console
        self.deployer = deployer or Deployer(config.deploy, transport, signer, console=console)
        self.program_id = Pubkey.from_string(config.deploy.program_id)
        self.targets: List[Target] = [Target(square) for square in config.deploy.squares]

        self.running = False
        self.last_round_id: Optional[int] = None
        self.cycle_count = 0
        self.scheduler = schedule.Scheduler()

    def start(self):
        mode = f"[green]{self.signer.pubkey()}[/green]" if self.signer else "[red]no signer[/red]"
        self.console.print(Panel(
            f"Authority: {mode}\n"
            f"Stake per square: [green]{self.config.deploy.deploy_amount_sol} SOL[/green]\n"
            f"Squares: [cyan]{', '.join(str(t.id) for t in self.targets) or 'none'}[/cyan]\n"
            f"Stake per round: [green]{self.config.stake_per_round_sol:.4f} SOL[/green]\n"
            f"Poll interval: [yellow]{self.config.poll_interval}s[/yellow]",
            title=f"[bold]Lodestar v{__version__}[/bold]",
        ))

        signal.signal(signal.SIGINT, self._shutdown_handler)
        signal.signal(signal.SIGTERM, self._shutdown_handler)

        self.running = True
        self.scheduler.every(self.config.poll_interval).seconds.do(self._safe_tick)
        self.console.print("\n[bold green]Agent started. Watching the board...[/bold green]\n")
        self._main_loop()

    def _main_loop(self):
        while self.running:
            self.scheduler.run_pending()
            time.sleep(0.5)
        self._shutdown()

    def _safe_tick(self):
        try:
            self.tick()
        except Exception as e:
            self.console.print(f"[red]Error in cycle: {e}[/red]")

    def tick(self) -> Optional[DeployResult]:
        """Run a cycle if the board has moved to a new round."""
        board = decode_board(self.transport.fetch_account(board_pda(self.program_id)))
        if not board.ready:
            self.console.print(f"[dim]board not ready: {board.reason}[/dim]")
            return None

        round_id = board.value.round_id
        if round_id == self.last_round_id:
            return None

        self.cycle_count += 1
        self.console.rule(
            f"[bold cyan]Round #{round_id}[/bold cyan] - {datetime.now().strftime('%H:%M:%S')}"
        )
        context = RoundContext(round_id=round_id, deploy_amount_sol=self.config.deploy.deploy_amount_sol)
        result = self.deployer.run_cycle(context, self.targets)

        # A deferred round is retried on the next tick.
        if result.status is not DeployStatus.DEFERRED:
            self.last_round_id = round_id
        return result

    def _shutdown_handler(self, signum, frame):
        self.console.print("\n[yellow]Shutdown signal received...[/yellow]")
        self.running = False

    def _shutdown(self):
        self.scheduler.clear()
        self.console.print("[yellow]Lodestar stopped.[/yellow]")
        if self.last_round_id is not None:
            self.console.print(f"[dim]Last round handled: {self.last_round_id}[/dim]")
