"""
Configuration for Lodestar.

Everything comes from the environment (or a .env file). The deployer never
reads these globals directly: the agent hands it a DeployConfig and a
RoundContext per cycle.
"""

import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

load_dotenv()

# 1 lamport expressed in SOL.
SOL_PER_LAMPORT = 1e-9

ORE_PROGRAM_ID = os.getenv("ORE_PROGRAM_ID", "oreV3EG1i9BEgiAJ8b177Z2S2rMarzak4NMv1kULvWv")
FEE_RECIPIENT = "oREVE663st4oVqRp31TdEKdjqUYmZkJ3Vofi1zEAPro"


def parse_squares(raw: str) -> List[int]:
    """Parse "1, 5,25" into [1, 5, 25]. Blank entries are ignored."""
    squares = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            squares.append(int(part))
        except ValueError:
            raise ValueError(f"DEPLOY_SQUARES entry is not an integer: {part!r}")
    return squares


@dataclass
class WalletConfig:
    keypair_path: str = os.getenv("LODESTAR_KEYPAIR", "~/.config/solana/id.json")
    private_key: str = os.getenv("LODESTAR_PRIVATE_KEY", "")


@dataclass
class RPCConfig:
    rpc_url: str = os.getenv("SOLANA_RPC_URL", "https://api.mainnet-beta.solana.com")
    commitment: str = os.getenv("SOLANA_COMMITMENT", "confirmed")


@dataclass
class DeployConfig:
    deploy_amount_sol: float = float(os.getenv("DEPLOY_AMOUNT_SOL", "0.01"))
    squares: List[int] = field(
        default_factory=lambda: parse_squares(os.getenv("DEPLOY_SQUARES", ""))
    )
    compute_unit_limit: int = int(os.getenv("COMPUTE_UNIT_LIMIT", "750000"))
    compute_unit_price: int = int(os.getenv("COMPUTE_UNIT_PRICE", "100000"))  # micro-lamports
    fee_rate: float = float(os.getenv("FEE_RATE", "0.01"))
    fee_recipient: str = os.getenv("FEE_RECIPIENT", FEE_RECIPIENT)
    program_id: str = ORE_PROGRAM_ID
    log_fetch_delay: float = float(os.getenv("LOG_FETCH_DELAY", "1.0"))  # seconds


@dataclass
class LodestarConfig:
    wallet: WalletConfig = field(default_factory=WalletConfig)
    rpc: RPCConfig = field(default_factory=RPCConfig)
    deploy: DeployConfig = field(default_factory=DeployConfig)
    poll_interval: float = float(os.getenv("POLL_INTERVAL", "5"))

    @property
    def stake_per_round_sol(self) -> float:
        """SOL committed per round before the protocol fee."""
        return self.deploy.deploy_amount_sol * len(self.deploy.squares)


@dataclass(frozen=True)
class RoundContext:
    """What a single deployment cycle needs to know about the world."""

    round_id: int
    deploy_amount_sol: float
