"""
Deployment Orchestrator - one round, one transaction.

Per cycle:
1. Bail out early with no signer or no targets
2. Fetch the current round; defer if it is not ready or malformed
3. Fetch the miner record (defer if partly written) and reconcile settlement
4. Work out stake and fee in lamports
5. Assemble: budget limit, budget price, [checkpoint], [fee], deploy
6. Submit, wait, classify any failure

The order in step 5 matters: the program reads miner state when it evaluates
the deploy, so the checkpoint has to land first within the same transaction.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence

from rich.console import Console
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from lodestar.chain.accounts import miner_pda, round_pda
from lodestar.chain.instructions import (
    compute_budget_instructions,
    deploy_instruction,
    fee_transfer_instruction,
    squares_mask,
)
from lodestar.chain.state import (
    AccountDecodeError,
    DecodeStatus,
    Miner,
    decode_miner,
    decode_round,
)
from lodestar.config import SOL_PER_LAMPORT, DeployConfig, RoundContext
from lodestar.trading.errors import ErrorClassifier, extract_signature
from lodestar.trading.settlement import SettlementState, reconcile

console = Console()


class DeployStatus(Enum):
    SKIPPED = "skipped"                    # no signer / no targets
    DEFERRED = "deferred"                  # round or miner account not ready
    ALREADY_DEPLOYED = "already_deployed"  # miner already has stake on these squares this round
    SUBMITTED = "submitted"
    DUPLICATE = "duplicate"                # program said it was already done
    FAILED = "failed"


@dataclass(frozen=True)
class Target:
    id: int
    weight: float = 0.0


@dataclass
class DeployResult:
    success: bool
    status: DeployStatus
    round_id: Optional[int] = None
    signature: Optional[str] = None
    amount_lamports: int = 0
    fee_lamports: int = 0
    squares_mask: int = 0
    settlement: Optional[SettlementState] = None
    error: Optional[str] = None


def sol_to_lamports(amount_sol: float) -> int:
    """Truncates toward zero."""
    return int(amount_sol / SOL_PER_LAMPORT)


def fee_lamports(amount_sol: float, target_count: int, fee_rate: float) -> int:
    total_sol = amount_sol * target_count
    return int(total_sol * fee_rate / SOL_PER_LAMPORT)


class Deployer:
    """
    Runs deployment cycles for a single authority.

    Not reentrant: the caller must not start a cycle while another one is
    waiting for confirmation.
    """

    def __init__(
        self,
        config: DeployConfig,
        transport,
        signer: Optional[Keypair],
        classifier: Optional[ErrorClassifier] = None,
        console: Console = console,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.transport = transport
        self.signer = signer
        self.console = console
        self.classifier = classifier or ErrorClassifier(console=console)
        self.sleep = sleep
        self.program_id = Pubkey.from_string(config.program_id)
        self.fee_recipient = Pubkey.from_string(config.fee_recipient)

    def run_cycle(self, context: RoundContext, targets: Sequence[Target]) -> DeployResult:
        if self.signer is None:
            self.console.print("[red]deploy failed: signer keypair not loaded[/red]")
            return DeployResult(False, DeployStatus.SKIPPED, context.round_id,
                                error="signer keypair not loaded")
        if not targets:
            self.console.print("[dim]deploy skipped: no targets provided[/dim]")
            return DeployResult(False, DeployStatus.SKIPPED, context.round_id,
                                error="no targets provided")

        authority = self.signer.pubkey()
        round_id = context.round_id

        round_state = decode_round(self.transport.fetch_account(round_pda(round_id, self.program_id)))
        if round_state.status is DecodeStatus.NOT_INITIALIZED:
            self.console.print(
                f"[dim]deploy deferred: round {round_id} not initialized yet ({round_state.reason}). "
                f"Waiting for next tick.[/dim]"
            )
            return DeployResult(False, DeployStatus.DEFERRED, round_id, error=round_state.reason)
        if round_state.status is DecodeStatus.MALFORMED:
            self.console.print(
                f"[yellow]warning: deploy deferred, round {round_id} account is malformed "
                f"({round_state.reason}). Waiting for next tick.[/yellow]"
            )
            return DeployResult(False, DeployStatus.DEFERRED, round_id, error=round_state.reason)

        miner_data = self.transport.fetch_account(miner_pda(authority, self.program_id))
        miner_state = decode_miner(miner_data)
        if miner_state.status is DecodeStatus.MALFORMED:
            return self._fatal(AccountDecodeError(miner_state.reason), round_id)
        if miner_data is not None and not miner_state.ready:
            # Exists but only partly written: never settle against it.
            self.console.print(
                f"[dim]deploy deferred: miner account not initialized yet ({miner_state.reason}). "
                f"Waiting for next tick.[/dim]"
            )
            return DeployResult(False, DeployStatus.DEFERRED, round_id, error=miner_state.reason)
        miner = miner_state.value

        if self._already_deployed(miner, round_id, targets):
            self.console.print(f"[dim]deploy skipped: already deployed in round {round_id}[/dim]")
            return DeployResult(True, DeployStatus.ALREADY_DEPLOYED, round_id)

        plan = reconcile(miner, round_id, authority, self.program_id)
        if plan.state is SettlementState.DIRTY_INELIGIBLE:
            self.console.print(
                f"[yellow]warning: state dirty but round {plan.stale_round_id} is current. "
                f"skipping checkpoint.[/yellow]"
            )
        elif plan.needs_checkpoint:
            self.console.print(f"[cyan]checkpointing round {plan.stale_round_id} before deploy[/cyan]")

        amount = sol_to_lamports(context.deploy_amount_sol)
        fee = fee_lamports(context.deploy_amount_sol, len(targets), self.config.fee_rate)
        mask = squares_mask(targets)

        try:
            instructions = self.build_instructions(authority, round_id, amount, fee, mask, plan.instruction)
        except ValueError as e:
            return self._fatal(e, round_id)

        self.console.print(f"[cyan]sending deploy tx for {len(targets)} target(s)...[/cyan]")
        result = DeployResult(False, DeployStatus.FAILED, round_id, amount_lamports=amount,
                              fee_lamports=fee, squares_mask=mask, settlement=plan.state)
        try:
            signature = self.transport.submit(instructions, self.signer)
        except Exception as e:
            logs = getattr(e, "logs", None) or self._recover_logs(e)
            classification = self.classifier.handle(e, logs, operation=f"deploy round {round_id}")
            result.error = str(e)
            if classification.is_success:
                result.success = True
                result.status = DeployStatus.DUPLICATE
            return result

        self.console.print(f"[green]deploy successful! signature: {signature[:16]}...[/green]")
        result.success = True
        result.status = DeployStatus.SUBMITTED
        result.signature = signature
        return result

    def build_instructions(
        self,
        authority: Pubkey,
        round_id: int,
        amount: int,
        fee: int,
        mask: int,
        checkpoint: Optional[Instruction] = None,
    ) -> List[Instruction]:
        instructions = compute_budget_instructions(
            self.config.compute_unit_limit, self.config.compute_unit_price
        )
        if checkpoint is not None:
            instructions.append(checkpoint)
        if fee > 0:
            instructions.append(fee_transfer_instruction(authority, self.fee_recipient, fee))
        instructions.append(deploy_instruction(authority, round_id, amount, mask, self.program_id))
        return instructions

    @staticmethod
    def _already_deployed(miner: Optional[Miner], round_id: int, targets: Sequence[Target]) -> bool:
        if miner is None or miner.round_id != round_id:
            return False
        return any(miner.deployed_on(t.id) > 0 for t in targets)

    def _recover_logs(self, error: BaseException) -> Optional[List[str]]:
        """Best effort. A failure here never changes the outcome."""
        signature = extract_signature(error)
        if not signature:
            return None
        # Give the RPC a moment to index the transaction.
        self.sleep(self.config.log_fetch_delay)
        try:
            return self.transport.fetch_logs(signature)
        except Exception as log_error:
            self.console.print(f"[red]error fetching logs: {log_error}[/red]")
            return None

    def _fatal(self, error: BaseException, round_id: int) -> DeployResult:
        self.classifier.on_fatal(error, None)
        return DeployResult(False, DeployStatus.FAILED, round_id, error=str(error))
