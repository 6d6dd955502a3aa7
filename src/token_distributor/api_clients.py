import time
import logging
from typing import Callable, Protocol

from substrateinterface import Keypair, KeypairType, SubstrateInterface

from .exceptions import ConfirmationTimeout, TransferError
from .models import ChainSession, SubmittedTransfer
from .utils import PRIMARY_SS58_PREFIX

# Set up logging
logger = logging.getLogger(__name__)


class ChainClient(Protocol):
    """Operations the distributor needs from a blockchain connection."""

    def connect(self, endpoint: str, private_key: str) -> ChainSession:
        ...

    def get_balance(self, session: ChainSession, address: str) -> int:
        ...

    def submit_transfer(self, session: ChainSession, to_address: str,
                        amount: int) -> SubmittedTransfer:
        ...

    def await_confirmations(self, session: ChainSession, transfer: SubmittedTransfer,
                            depth: int, timeout: float) -> bool:
        ...

    def disconnect(self, session: ChainSession) -> None:
        ...


class SubstrateChainClient:
    """Chain client for Substrate-based networks (Autonomys consensus chain)."""

    def __init__(self, ss58_format: int = PRIMARY_SS58_PREFIX, poll_interval: float = 2.0,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.ss58_format = ss58_format
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._clock = clock

    def connect(self, endpoint: str, private_key: str) -> ChainSession:
        """Open a websocket connection and load the sr25519 distributor key."""
        substrate = SubstrateInterface(url=endpoint, ss58_format=self.ss58_format)

        seed = private_key.strip()
        if not seed.startswith("0x"):
            seed = f"0x{seed}"
        keypair = Keypair.create_from_seed(
            seed_hex=seed, ss58_format=self.ss58_format, crypto_type=KeypairType.SR25519)

        logger.info(f"Connected to {endpoint} as {keypair.ss58_address}")
        return ChainSession(endpoint=endpoint, address=keypair.ss58_address,
                            handle=substrate, signer=keypair)

    def get_balance(self, session: ChainSession, address: str) -> int:
        """Free balance of an account in minor units."""
        account = session.handle.query("System", "Account", [address])
        return int(account.value["data"]["free"])

    def submit_transfer(self, session: ChainSession, to_address: str,
                        amount: int) -> SubmittedTransfer:
        """Sign and submit a transfer, returning once it is included in a block."""
        substrate = session.handle
        call = substrate.compose_call(
            call_module="Balances",
            call_function="transfer_keep_alive",
            call_params={"dest": to_address, "value": amount},
        )
        extrinsic = substrate.create_signed_extrinsic(call=call, keypair=session.signer)
        receipt = substrate.submit_extrinsic(extrinsic, wait_for_inclusion=True)

        if not receipt.is_success:
            raise TransferError(f"Transfer rejected: {receipt.error_message}")

        block_number = None
        if receipt.block_hash:
            block_number = substrate.get_block_number(receipt.block_hash)

        return SubmittedTransfer(
            transaction_hash=receipt.extrinsic_hash or "unknown",
            block_hash=receipt.block_hash,
            block_number=block_number,
        )

    def await_confirmations(self, session: ChainSession, transfer: SubmittedTransfer,
                            depth: int, timeout: float) -> bool:
        """
        Poll the chain head until `depth` blocks follow the inclusion block.

        Returns False when the timeout elapses first. Polling keeps no
        subscription open, so nothing is left running after a timeout.
        """
        substrate = session.handle
        start_block = transfer.block_number
        if start_block is None:
            start_block = self._head_block_number(substrate)

        deadline = self._clock() + timeout
        logger.debug(
            f"Waiting for {depth} confirmations of {transfer.transaction_hash} "
            f"after block {start_block}")

        while True:
            head = self._head_block_number(substrate)
            if head - start_block >= depth:
                return True
            if self._clock() >= deadline:
                logger.warning(
                    f"Confirmation timeout for {transfer.transaction_hash} "
                    f"at block {head} (needed {start_block + depth})")
                return False
            self._sleep(self.poll_interval)

    def disconnect(self, session: ChainSession) -> None:
        session.handle.close()
        logger.info(f"Disconnected from {session.endpoint}")

    @staticmethod
    def _head_block_number(substrate: SubstrateInterface) -> int:
        return substrate.get_block_number(substrate.get_chain_head())


def confirm_or_raise(client: ChainClient, session: ChainSession, transfer: SubmittedTransfer,
                     depth: int, timeout: float) -> None:
    """Wait for confirmations and raise ConfirmationTimeout if they never arrive."""
    if not client.await_confirmations(session, transfer, depth, timeout):
        raise ConfirmationTimeout(
            f"Transaction confirmation timeout after {timeout:g}s "
            f"({transfer.transaction_hash})")
