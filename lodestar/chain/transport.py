"""
RPC transport.

A thin wrapper over solana-py's synchronous Client. It exposes the three
things a cycle needs and nothing else: read an account, send a signed
instruction bundle and wait for confirmation, and read the logs of a
transaction after the fact.
"""

from typing import List, Optional, Sequence

from solana.rpc.api import Client
from solana.rpc.commitment import Commitment
from solana.rpc.core import RPCException, UnconfirmedTxError
from solana.rpc.types import TxOpts
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction


class SubmissionError(Exception):
    """A transaction was rejected, failed on-chain, or never confirmed."""

    def __init__(self, message: str, logs: Optional[List[str]] = None,
                 signature: Optional[str] = None, code: Optional[int] = None):
        super().__init__(message)
        self.logs = logs
        self.signature = signature
        self.code = code


def custom_error_code(err) -> Optional[int]:
    """Program error code from a TransactionErrorInstructionError, if it carries one."""
    code = getattr(getattr(err, "err", None), "code", None)
    return code if isinstance(code, int) else None


def _simulation_result(exc: RPCException):
    # Preflight failures carry the simulation result, logs included.
    for arg in exc.args:
        data = getattr(arg, "data", None)
        if data is not None:
            return data
    return None


def _logs_from_rpc_exception(exc: RPCException) -> Optional[List[str]]:
    logs = getattr(_simulation_result(exc), "logs", None)
    return list(logs) if logs else None


class RpcTransport:
    """Client for a Solana RPC node."""

    def __init__(self, rpc_url: str, commitment: str = "confirmed", timeout: float = 30):
        self.commitment = Commitment(commitment)
        self.client = Client(rpc_url, commitment=self.commitment, timeout=timeout)

    def fetch_account(self, address: Pubkey) -> Optional[bytes]:
        """Raw account data, or None when the account does not exist."""
        resp = self.client.get_account_info(address, commitment=self.commitment)
        if resp.value is None:
            return None
        return bytes(resp.value.data)

    def submit(self, instructions: Sequence[Instruction], signer: Keypair) -> str:
        """Sign, send and wait for confirmation. Returns the signature."""
        blockhash = self.client.get_latest_blockhash(commitment=self.commitment).value.blockhash
        message = Message(list(instructions), signer.pubkey())
        tx = Transaction([signer], message, blockhash)
        signature = str(tx.signatures[0])
        opts = TxOpts(skip_confirmation=False, preflight_commitment=self.commitment)
        try:
            resp = self.client.send_transaction(tx, opts=opts)
        except RPCException as e:
            raise SubmissionError(
                str(e),
                logs=_logs_from_rpc_exception(e),
                signature=signature,
                code=custom_error_code(getattr(_simulation_result(e), "err", None)),
            ) from e
        except UnconfirmedTxError as e:
            raise SubmissionError(f"Transaction {signature} was not confirmed: {e}",
                                  signature=signature) from e

        # Confirmed, but it may still have failed during execution.
        status = self.client.get_signature_statuses([resp.value]).value[0]
        if status is not None and status.err is not None:
            raise SubmissionError(f"Transaction {signature} failed: {status.err}",
                                  signature=signature, code=custom_error_code(status.err))
        return str(resp.value)

    def fetch_logs(self, signature: str) -> Optional[List[str]]:
        resp = self.client.get_transaction(
            Signature.from_string(signature),
            commitment=self.commitment,
            max_supported_transaction_version=0,
        )
        if resp.value is None or resp.value.transaction.meta is None:
            return None
        return resp.value.transaction.meta.log_messages
