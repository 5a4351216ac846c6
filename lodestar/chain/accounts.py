"""
Program-derived addresses for the ORE program.

Five roles: board and treasury are singletons, round is keyed by round id,
miner and automation are keyed by the wallet authority. All of them are pure
functions of their seeds, so results are cached.
"""

import struct
from functools import lru_cache

from solders.pubkey import Pubkey

from lodestar.config import ORE_PROGRAM_ID

PROGRAM_ID = Pubkey.from_string(ORE_PROGRAM_ID)

SEED_BOARD = b"board"
SEED_ROUND = b"round"
SEED_MINER = b"miner"
SEED_AUTOMATION = b"automation"
SEED_TREASURY = b"treasury"

U64_MAX = 2**64 - 1


def _u64le(value: int) -> bytes:
    if value < 0 or value > U64_MAX:
        raise ValueError(f"round id must be within u64 range, got {value}")
    return struct.pack("<Q", value)


@lru_cache(maxsize=None)
def _find(seeds: tuple, program_id: Pubkey) -> Pubkey:
    address, _bump = Pubkey.find_program_address(list(seeds), program_id)
    return address


def board_pda(program_id: Pubkey = PROGRAM_ID) -> Pubkey:
    return _find((SEED_BOARD,), program_id)


def treasury_pda(program_id: Pubkey = PROGRAM_ID) -> Pubkey:
    return _find((SEED_TREASURY,), program_id)


def round_pda(round_id: int, program_id: Pubkey = PROGRAM_ID) -> Pubkey:
    return _find((SEED_ROUND, _u64le(round_id)), program_id)


def miner_pda(authority: Pubkey, program_id: Pubkey = PROGRAM_ID) -> Pubkey:
    return _find((SEED_MINER, bytes(authority)), program_id)


def automation_pda(authority: Pubkey, program_id: Pubkey = PROGRAM_ID) -> Pubkey:
    return _find((SEED_AUTOMATION, bytes(authority)), program_id)
