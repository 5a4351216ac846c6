"""
Account State Decoder.

Turns raw account bytes into frozen snapshots. Every ORE account starts with
an 8-byte discriminator whose low byte is the account type tag; the rest of
the record follows with fixed little-endian offsets.

Decoding never raises for the expected "round not created yet" situations.
It returns a DecodeResult instead, so the caller can tell a benign defer
(NOT_INITIALIZED) apart from real corruption (MALFORMED).
"""

import struct
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Optional, Tuple, TypeVar

from solders.pubkey import Pubkey

SQUARE_COUNT = 25

# Account type tags.
MINER_TAG = 103
BOARD_TAG = 105
ROUND_TAG = 109

DISCRIMINATOR = struct.Struct("<Q")

BOARD_LAYOUT = struct.Struct("<QQQQ")
ROUND_LAYOUT = struct.Struct(f"<QQ{SQUARE_COUNT}Q32s{SQUARE_COUNT}QQQ32s32sQQQQ")
MINER_LAYOUT = struct.Struct(f"<Q32s{SQUARE_COUNT}Q{SQUARE_COUNT}QQQqq16sQQQQQQ")

T = TypeVar("T")


class AccountDecodeError(Exception):
    """Raised when a non-ready DecodeResult is unwrapped."""


class DecodeStatus(Enum):
    READY = "ready"
    NOT_INITIALIZED = "not_initialized"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class DecodeResult(Generic[T]):
    status: DecodeStatus
    value: Optional[T] = None
    reason: str = ""

    @property
    def ready(self) -> bool:
        return self.status is DecodeStatus.READY

    def unwrap(self) -> T:
        if self.status is not DecodeStatus.READY:
            raise AccountDecodeError(f"{self.status.value}: {self.reason}")
        return self.value


@dataclass(frozen=True)
class Board:
    round_id: int
    start_slot: int
    end_slot: int


@dataclass(frozen=True)
class Round:
    id: int
    deployed: Tuple[int, ...]
    slot_hash: bytes
    count: Tuple[int, ...]
    expires_at: int
    motherlode: int
    rent_payer: Pubkey
    top_miner: Pubkey
    top_miner_reward: int
    total_deployed: int
    total_vaulted: int
    total_winnings: int


@dataclass(frozen=True)
class Miner:
    authority: Pubkey
    deployed: Tuple[int, ...]
    cumulative: Tuple[int, ...]
    checkpoint_fee: int
    checkpoint_id: int
    last_claim_ore_at: int
    last_claim_sol_at: int
    rewards_sol: int
    rewards_ore: int
    refined_ore: int
    round_id: int
    lifetime_rewards_sol: int
    lifetime_rewards_ore: int

    @property
    def is_dirty(self) -> bool:
        return self.checkpoint_id != self.round_id

    def deployed_on(self, square_id: int) -> int:
        """Lamports this miner has on a 1-based square in its current round."""
        if 1 <= square_id <= SQUARE_COUNT:
            return self.deployed[square_id - 1]
        return 0


def _decode(
    data: Optional[bytes],
    tag: int,
    layout: struct.Struct,
    build: Callable[[tuple], T],
    name: str,
) -> DecodeResult[T]:
    if data is None:
        return DecodeResult(DecodeStatus.NOT_INITIALIZED, reason=f"{name} account does not exist")
    data = bytes(data)
    if len(data) < DISCRIMINATOR.size:
        return DecodeResult(
            DecodeStatus.NOT_INITIALIZED,
            reason=f"{name} account holds {len(data)} bytes, no discriminator yet",
        )
    (discriminator,) = DISCRIMINATOR.unpack_from(data)
    if discriminator == 0:
        return DecodeResult(DecodeStatus.NOT_INITIALIZED, reason=f"{name} account is zeroed")
    if discriminator != tag:
        return DecodeResult(
            DecodeStatus.MALFORMED,
            reason=f"{name} discriminator {discriminator} does not match {tag}",
        )
    if len(data) < layout.size:
        return DecodeResult(
            DecodeStatus.NOT_INITIALIZED,
            reason=f"{name} account holds {len(data)} of {layout.size} bytes",
        )
    return DecodeResult(DecodeStatus.READY, value=build(layout.unpack_from(data)))


def _build_board(fields: tuple) -> Board:
    _, round_id, start_slot, end_slot = fields
    return Board(round_id=round_id, start_slot=start_slot, end_slot=end_slot)


def _build_round(fields: tuple) -> Round:
    n = SQUARE_COUNT
    round_id = fields[1]
    deployed = tuple(fields[2:2 + n])
    slot_hash = fields[2 + n]
    count = tuple(fields[3 + n:3 + 2 * n])
    rest = fields[3 + 2 * n:]
    return Round(
        id=round_id,
        deployed=deployed,
        slot_hash=slot_hash,
        count=count,
        expires_at=rest[0],
        motherlode=rest[1],
        rent_payer=Pubkey.from_bytes(rest[2]),
        top_miner=Pubkey.from_bytes(rest[3]),
        top_miner_reward=rest[4],
        total_deployed=rest[5],
        total_vaulted=rest[6],
        total_winnings=rest[7],
    )


def _build_miner(fields: tuple) -> Miner:
    n = SQUARE_COUNT
    authority = Pubkey.from_bytes(fields[1])
    deployed = tuple(fields[2:2 + n])
    cumulative = tuple(fields[2 + n:2 + 2 * n])
    rest = fields[2 + 2 * n:]
    # rest[4] is the rewards factor (fixed-point), not needed here
    return Miner(
        authority=authority,
        deployed=deployed,
        cumulative=cumulative,
        checkpoint_fee=rest[0],
        checkpoint_id=rest[1],
        last_claim_ore_at=rest[2],
        last_claim_sol_at=rest[3],
        rewards_sol=rest[5],
        rewards_ore=rest[6],
        refined_ore=rest[7],
        round_id=rest[8],
        lifetime_rewards_sol=rest[9],
        lifetime_rewards_ore=rest[10],
    )


def decode_board(data: Optional[bytes]) -> DecodeResult[Board]:
    return _decode(data, BOARD_TAG, BOARD_LAYOUT, _build_board, "board")


def decode_round(data: Optional[bytes]) -> DecodeResult[Round]:
    return _decode(data, ROUND_TAG, ROUND_LAYOUT, _build_round, "round")


def decode_miner(data: Optional[bytes]) -> DecodeResult[Miner]:
    return _decode(data, MINER_TAG, MINER_LAYOUT, _build_miner, "miner")
