"""
Settlement Reconciler.

The program refuses a new deploy while the miner still has unsettled exposure
from an older round. Each cycle we look at the miner record and decide:

    CLEAN             checkpoint_id == round_id           nothing to do
    DIRTY_ELIGIBLE    dirty and round_id <  current       checkpoint round_id first
    DIRTY_INELIGIBLE  dirty and round_id >= current       warn, deploy anyway

A miner that does not exist yet is CLEAN.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from rich.console import Console
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from lodestar.chain.accounts import PROGRAM_ID
from lodestar.chain.instructions import checkpoint_instruction
from lodestar.chain.state import Miner
from lodestar.chain.transport import SubmissionError
from lodestar.trading.errors import ErrorClassifier

console = Console()


class SettlementState(Enum):
    CLEAN = "clean"
    DIRTY_ELIGIBLE = "dirty_eligible"
    DIRTY_INELIGIBLE = "dirty_ineligible"


@dataclass(frozen=True)
class SettlementPlan:
    state: SettlementState
    stale_round_id: Optional[int] = None
    instruction: Optional[Instruction] = None

    @property
    def needs_checkpoint(self) -> bool:
        return self.instruction is not None


def classify_settlement(checkpoint_id: int, round_id: int, current_round_id: int) -> SettlementState:
    if checkpoint_id == round_id:
        return SettlementState.CLEAN
    if round_id < current_round_id:
        return SettlementState.DIRTY_ELIGIBLE
    return SettlementState.DIRTY_INELIGIBLE


def reconcile(
    miner: Optional[Miner],
    current_round_id: int,
    authority: Pubkey,
    program_id: Pubkey = PROGRAM_ID,
) -> SettlementPlan:
    """Decide whether a checkpoint must precede this round's deploy, and build it."""
    if miner is None:
        return SettlementPlan(SettlementState.CLEAN)

    state = classify_settlement(miner.checkpoint_id, miner.round_id, current_round_id)
    if state is SettlementState.DIRTY_ELIGIBLE:
        # Bundled with a deploy, the board is only read.
        ix = checkpoint_instruction(authority, miner.round_id, board_writable=False,
                                    program_id=program_id)
        return SettlementPlan(state, stale_round_id=miner.round_id, instruction=ix)
    if state is SettlementState.DIRTY_INELIGIBLE:
        return SettlementPlan(state, stale_round_id=miner.round_id)
    return SettlementPlan(state)


def send_checkpoint(
    round_id: int,
    transport,
    signer: Optional[Keypair],
    classifier: Optional[ErrorClassifier] = None,
    program_id: Pubkey = PROGRAM_ID,
    console: Console = console,
) -> bool:
    """
    Settle a single round on its own transaction.

    Returns True when the checkpoint landed or the program says it was already
    done, False otherwise.
    """
    if signer is None:
        console.print("[red]checkpoint failed: signer keypair not loaded[/red]")
        return False

    classifier = classifier or ErrorClassifier(console=console)
    ix = checkpoint_instruction(signer.pubkey(), round_id, board_writable=True, program_id=program_id)
    try:
        signature = transport.submit([ix], signer)
    except SubmissionError as e:
        result = classifier.handle(e, e.logs, operation=f"checkpoint round {round_id}")
        return result.is_success

    console.print(f"[green]checkpoint successful: {signature[:16]}...[/green]")
    return True
