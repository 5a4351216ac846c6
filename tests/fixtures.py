"""Builders for raw account buffers and a scripted transport."""

import io

from rich.console import Console
from solders.pubkey import Pubkey

from lodestar.chain.state import (
    BOARD_LAYOUT,
    BOARD_TAG,
    MINER_LAYOUT,
    MINER_TAG,
    ROUND_LAYOUT,
    ROUND_TAG,
    SQUARE_COUNT,
)

SIGNATURE = "5VERv8NMvzbJMEkV8xnrLkEaWRtSz9CosKDYjCJjBRnbJLgp8uirBgmQpjKhoR4tjF3ZpRzrFmBV6UjKdiSZkQUW"


def capture_console() -> Console:
    return Console(file=io.StringIO(), width=200)


def output(console: Console) -> str:
    return console.file.getvalue()


def pack_board(round_id: int, start_slot: int = 0, end_slot: int = 0, tag: int = BOARD_TAG) -> bytes:
    return BOARD_LAYOUT.pack(tag, round_id, start_slot, end_slot)


def pack_round(round_id: int, total_deployed: int = 0, motherlode: int = 0, tag: int = ROUND_TAG) -> bytes:
    zeros = [0] * SQUARE_COUNT
    return ROUND_LAYOUT.pack(
        tag, round_id, *zeros, bytes(32), *zeros,
        0, motherlode, bytes(32), bytes(32), 0, total_deployed, 0, 0,
    )


def pack_miner(
    round_id: int,
    checkpoint_id: int,
    authority: Pubkey = Pubkey.default(),
    deployed=None,
    rewards_sol: int = 0,
    tag: int = MINER_TAG,
) -> bytes:
    deployed = list(deployed or [0] * SQUARE_COUNT)
    cumulative = [0] * SQUARE_COUNT
    return MINER_LAYOUT.pack(
        tag, bytes(authority), *deployed, *cumulative,
        0, checkpoint_id, 0, 0, bytes(16), rewards_sol, 0, 0, round_id, 0, 0,
    )


class StubTransport:
    """Serves accounts from a dict and records every submitted bundle."""

    def __init__(self, accounts=None, failure=None, logs=None, log_error=None):
        self.accounts = dict(accounts or {})
        self.failure = failure
        self.logs = logs
        self.log_error = log_error
        self.submitted = []
        self.log_requests = []
        self.on_submit = None

    def fetch_account(self, address):
        return self.accounts.get(address)

    def submit(self, instructions, signer):
        self.submitted.append(list(instructions))
        if self.failure is not None:
            raise self.failure
        if self.on_submit is not None:
            self.on_submit(self, instructions)
        return SIGNATURE

    def fetch_logs(self, signature):
        self.log_requests.append(signature)
        if self.log_error is not None:
            raise self.log_error
        return self.logs
