"""
Bet Encoder and instruction builders.

The program's instruction data is a one-byte opcode followed by fixed-width
little-endian operands:

    checkpoint  02
    deploy      06 | amount: u64 | squares mask: u32      (13 bytes)
    close       00 | 40 zero bytes                         (41 bytes)

Account lists mirror what the program checks, in the order it checks them.
"""

import struct
from typing import Iterable, List

from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.system_program import TransferParams, transfer

from lodestar.chain.accounts import (
    PROGRAM_ID,
    automation_pda,
    board_pda,
    miner_pda,
    round_pda,
    treasury_pda,
)
from lodestar.chain.state import SQUARE_COUNT

OP_CLOSE_AUTOMATION = 0
OP_CHECKPOINT = 2
OP_DEPLOY = 6

DEPLOY_DATA = struct.Struct("<BQI")
CLOSE_AUTOMATION_SIZE = 41

U32_MAX = 2**32 - 1
U64_MAX = 2**64 - 1


def squares_mask(targets: Iterable) -> int:
    """
    Bit (id - 1) set for every target whose id is in [1, 25].

    Anything else is ignored rather than rejected; the decision engine is
    expected to have filtered already.
    """
    mask = 0
    for target in targets:
        index = target.id - 1
        if 0 <= index < SQUARE_COUNT:
            mask |= 1 << index
    return mask


def encode_deploy(amount_lamports: int, mask: int) -> bytes:
    if amount_lamports < 0 or amount_lamports > U64_MAX:
        raise ValueError(f"deploy amount out of u64 range: {amount_lamports}")
    if mask < 0 or mask > U32_MAX:
        raise ValueError(f"squares mask out of u32 range: {mask}")
    return DEPLOY_DATA.pack(OP_DEPLOY, amount_lamports, mask)


def encode_checkpoint() -> bytes:
    return bytes([OP_CHECKPOINT])


def encode_close_automation() -> bytes:
    data = bytearray(CLOSE_AUTOMATION_SIZE)
    data[0] = OP_CLOSE_AUTOMATION
    return bytes(data)


def compute_budget_instructions(unit_limit: int, unit_price: int) -> List[Instruction]:
    """Limit first, then price. Both must precede anything compute-heavy."""
    return [
        set_compute_unit_limit(unit_limit),
        set_compute_unit_price(unit_price),
    ]


def checkpoint_instruction(
    authority: Pubkey,
    round_id: int,
    board_writable: bool = True,
    program_id: Pubkey = PROGRAM_ID,
) -> Instruction:
    """Settle `round_id` for `authority`. Pass the stale round, not the current one."""
    accounts = [
        AccountMeta(authority, is_signer=True, is_writable=True),
        AccountMeta(board_pda(program_id), is_signer=False, is_writable=board_writable),
        AccountMeta(miner_pda(authority, program_id), is_signer=False, is_writable=True),
        AccountMeta(round_pda(round_id, program_id), is_signer=False, is_writable=True),
        AccountMeta(treasury_pda(program_id), is_signer=False, is_writable=True),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(program_id, encode_checkpoint(), accounts)


def deploy_instruction(
    authority: Pubkey,
    round_id: int,
    amount_lamports: int,
    mask: int,
    program_id: Pubkey = PROGRAM_ID,
) -> Instruction:
    accounts = [
        AccountMeta(authority, is_signer=True, is_writable=True),
        AccountMeta(authority, is_signer=False, is_writable=True),
        AccountMeta(automation_pda(authority, program_id), is_signer=False, is_writable=True),
        AccountMeta(board_pda(program_id), is_signer=False, is_writable=True),
        AccountMeta(miner_pda(authority, program_id), is_signer=False, is_writable=True),
        AccountMeta(round_pda(round_id, program_id), is_signer=False, is_writable=True),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(program_id, encode_deploy(amount_lamports, mask), accounts)


def fee_transfer_instruction(authority: Pubkey, recipient: Pubkey, lamports: int) -> Instruction:
    return transfer(TransferParams(from_pubkey=authority, to_pubkey=recipient, lamports=lamports))


def close_automation_instruction(authority: Pubkey, program_id: Pubkey = PROGRAM_ID) -> Instruction:
    accounts = [
        AccountMeta(authority, is_signer=True, is_writable=True),
        AccountMeta(automation_pda(authority, program_id), is_signer=False, is_writable=True),
        AccountMeta(Pubkey.default(), is_signer=False, is_writable=False),
        AccountMeta(miner_pda(authority, program_id), is_signer=False, is_writable=True),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(program_id, encode_close_automation(), accounts)
