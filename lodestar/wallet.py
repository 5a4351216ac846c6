"""
Signer loading.

Reads an existing keypair; never creates or stores one. A base58 secret in
the environment wins over the keypair file.
"""

from pathlib import Path
from typing import Optional

from solders.keypair import Keypair

from lodestar.config import WalletConfig


class WalletError(Exception):
    pass


def load_signer(config: WalletConfig) -> Keypair:
    if config.private_key:
        try:
            return Keypair.from_base58_string(config.private_key.strip())
        except Exception as e:
            raise WalletError(f"LODESTAR_PRIVATE_KEY is not a valid base58 keypair: {e}") from e

    path = Path(config.keypair_path).expanduser()
    if not path.exists():
        raise WalletError(f"Keypair file not found: {path}")
    try:
        return Keypair.from_json(path.read_text())
    except Exception as e:
        raise WalletError(f"Unable to parse keypair file {path}: {e}") from e


def try_load_signer(config: WalletConfig) -> Optional[Keypair]:
    """None instead of an exception, for read-only commands."""
    try:
        return load_signer(config)
    except WalletError:
        return None
