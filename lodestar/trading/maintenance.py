"""
One-off maintenance: close the automation account.

Resets automation state for the authority; a stale or half-written automation
account is a common cause of InvalidAccountData on deploy. Not part of the
per-round cycle.
"""

from rich.console import Console
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from lodestar.chain.accounts import PROGRAM_ID, automation_pda
from lodestar.chain.instructions import close_automation_instruction
from lodestar.chain.transport import SubmissionError

console = Console()


def close_automation(transport, signer: Keypair, program_id: Pubkey = PROGRAM_ID,
                     console: Console = console) -> bool:
    authority = signer.pubkey()
    console.print(f"Loaded signer: [cyan]{authority}[/cyan]")
    console.print(f"Automation account: [cyan]{automation_pda(authority, program_id)}[/cyan]")

    ix = close_automation_instruction(authority, program_id)
    console.print("Sending close transaction...")
    try:
        signature = transport.submit([ix], signer)
    except SubmissionError as e:
        console.print(f"[red]close automation failed: {e}[/red]")
        if e.logs:
            console.print("Logs:")
            for line in e.logs:
                console.print(f"  [dim]{line}[/dim]")
        return False

    console.print("[green]Automation closed.[/green]")
    console.print(f"Signature: {signature}")
    return True
