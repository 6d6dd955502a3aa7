"""
Sequential, resumable token distribution.

Exactly one transfer is outstanding at any time; records are processed in
file order and the checkpoint cursor always names the next record to send.
"""

import logging
import time
from datetime import datetime
from typing import Callable, List, Optional, Protocol, Set

from .api_clients import ChainClient, confirm_or_raise
from .config import Config
from .csv_logger import CSVTransactionLogger
from .exceptions import DistributorNotInitialized
from .models import (
    BalanceCheck,
    ChainSession,
    DistributionRecord,
    DistributionSummary,
    FailureAction,
    RecordStatus,
    TransactionResult,
)
from .resume import ResumeManager
from .utils import to_decimal_string

logger = logging.getLogger(__name__)


class FailureHandler(Protocol):
    """Decides what happens after a transfer fails."""

    def handle_failure(self, record: DistributionRecord, index: int, error: str,
                       attempts: int) -> FailureAction:
        ...


class DefaultFailureHandler:
    """Retry a failed transfer until max_attempts, then skip it."""

    def __init__(self, max_attempts: int = 3):
        self.max_attempts = max_attempts

    def handle_failure(self, record: DistributionRecord, index: int, error: str,
                       attempts: int) -> FailureAction:
        logger.warning(
            f"Transaction failed, using default retry strategy: {record.address} "
            f"amount={record.amount} attempts={attempts} error={error}")
        if attempts < self.max_attempts:
            return FailureAction.RETRY
        return FailureAction.SKIP


class TokenDistributor:
    """Drives a distribution run against a chain client.

    Use as a context manager so the connection is always released:

        with TokenDistributor(config, client) as distributor:
            summary = distributor.distribute(records)
    """

    def __init__(self, config: Config, chain_client: ChainClient,
                 failure_handler: Optional[FailureHandler] = None,
                 resume_manager: Optional[ResumeManager] = None,
                 transaction_logger: Optional[CSVTransactionLogger] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self.chain_client = chain_client
        self.failure_handler = failure_handler or DefaultFailureHandler()
        self.resume_manager = resume_manager or ResumeManager(config.resume_dir)
        self.transaction_logger = transaction_logger
        self._sleep = sleep
        self._session: Optional[ChainSession] = None

    def __enter__(self) -> "TokenDistributor":
        self.initialize()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    @property
    def is_initialized(self) -> bool:
        return self._session is not None

    @property
    def distributor_address(self) -> Optional[str]:
        return self._session.address if self._session else None

    @property
    def network_name(self) -> str:
        return self.config.network

    def initialize(self) -> None:
        """Connect to the network and load the distributor account."""
        if self._session is not None:
            return

        endpoint = self.config.endpoint
        logger.info(f"Connecting to {self.config.network} at {endpoint}")
        try:
            self._session = self.chain_client.connect(
                endpoint, self.config.distributor_private_key)
            balance = self.chain_client.get_balance(self._session, self._session.address)
            # The transaction log exists only for runs that connected
            if self.transaction_logger is not None:
                self.transaction_logger.initialize()
                logger.info(f"Transaction log: {self.transaction_logger.log_file_path}")
        except Exception:
            logger.exception("Failed to initialize token distributor")
            self.disconnect()
            raise

        logger.info(
            f"Token distributor initialized: {self._session.address} on "
            f"{self.config.network}, balance {to_decimal_string(balance)}")

    def disconnect(self) -> None:
        if self._session is None:
            return
        session, self._session = self._session, None
        try:
            self.chain_client.disconnect(session)
        except Exception as e:
            logger.warning(f"Error while disconnecting: {e}")
        logger.info("Disconnected from network")

    def _require_session(self) -> ChainSession:
        if self._session is None:
            raise DistributorNotInitialized()
        return self._session

    def check_distributor_balance(self) -> int:
        session = self._require_session()
        return self.chain_client.get_balance(session, session.address)

    def validate_sufficient_balance(self, total_amount: int) -> BalanceCheck:
        """Compare the distributor balance with total_amount plus the gas buffer."""
        current_balance = self.check_distributor_balance()
        gas_buffer = self.config.gas_buffer_minor_units
        required_amount = total_amount + gas_buffer
        sufficient = current_balance >= required_amount

        result = BalanceCheck(
            sufficient=sufficient,
            current_balance=current_balance,
            required_amount=required_amount,
            shortfall=None if sufficient else required_amount - current_balance,
        )

        logger.info(
            f"Balance validation completed: balance={current_balance} "
            f"distribution={total_amount} gas_buffer={gas_buffer} "
            f"required={required_amount} sufficient={sufficient}"
            + ("" if sufficient else f" shortfall={result.shortfall}"))
        return result

    def distribute(self, records: List[DistributionRecord], resume_from_index: int = 0,
                   source_filename: Optional[str] = None) -> DistributionSummary:
        """
        Send every record from resume_from_index onwards, in order.

        Transfer failures never escape this method; they are recorded on the
        record and resolved through the failure handler. A pause returns a
        summary without end_time; an abort sets end_time and aborted_by_user.
        """
        self._require_session()

        summary = DistributionSummary(
            total_records=len(records),
            total_amount=sum(record.amount for record in records),
            resumed_from=resume_from_index if resume_from_index > 0 else None,
        )
        logger.info(
            f"Distribution started: {summary.total_records} records, "
            f"{to_decimal_string(summary.total_amount)} tokens"
            + (f", resuming from index {resume_from_index}" if resume_from_index else ""))

        def checkpoint(cursor: int) -> None:
            self.resume_manager.save_state(records, summary, cursor, source_filename)

        checkpoint(resume_from_index)

        # Indices whose failure is currently counted in the summary
        counted_failures: Set[int] = set()

        try:
            index = resume_from_index
            while index < len(records):
                record = records[index]

                if record.status == RecordStatus.COMPLETED:
                    summary.skipped += 1
                    index += 1
                    continue

                if record.status == RecordStatus.FAILED:
                    record.status = RecordStatus.PENDING
                    record.error = None

                logger.info(
                    f"Transaction {index + 1}/{len(records)}: sending "
                    f"{to_decimal_string(record.amount)} to {record.address}")

                record.status = RecordStatus.PROCESSING
                record.timestamp = datetime.now()
                result = self._execute_transfer(record)

                next_index = index + 1
                if result.success:
                    self._mark_completed(record, result, summary)
                    if index in counted_failures:
                        counted_failures.discard(index)
                        summary.failed -= 1
                        summary.failed_amount -= record.amount
                else:
                    self._mark_failed(record, result, summary, index in counted_failures)
                    counted_failures.add(index)

                    action = self.failure_handler.handle_failure(
                        record, index, record.error, record.attempts)

                    if action == FailureAction.RETRY:
                        next_index = index
                    elif action == FailureAction.PAUSE:
                        checkpoint(index)
                        logger.info(
                            f"Distribution paused at index {index}; resume to retry "
                            f"{record.address}")
                        return summary
                    elif action == FailureAction.ABORT:
                        checkpoint(index + 1)
                        summary.end_time = datetime.now()
                        summary.aborted_by_user = True
                        logger.warning(f"Distribution aborted by user at index {index}")
                        return summary

                if index % self.config.batch_size == 0:
                    checkpoint(next_index)

                self._sleep(self.config.transfer_delay)
                index = next_index
        except Exception:
            logger.exception("Distribution failed")
            raise

        summary.end_time = datetime.now()
        logger.info(
            f"Distribution complete: {summary.completed} completed, {summary.failed} failed, "
            f"{summary.skipped} skipped; distributed "
            f"{to_decimal_string(summary.distributed_amount)} tokens")

        self.resume_manager.clear_state()
        return summary

    def _execute_transfer(self, record: DistributionRecord) -> TransactionResult:
        session = self._require_session()
        try:
            transfer = self.chain_client.submit_transfer(session, record.address, record.amount)
            confirm_or_raise(self.chain_client, session, transfer,
                             self.config.confirmation_blocks, self.config.confirmation_timeout)
        except Exception as e:
            logger.error(
                f"Transaction execution failed for {record.address} "
                f"(amount {record.amount}): {e}")
            return TransactionResult(success=False, error=str(e) or type(e).__name__)

        return TransactionResult(
            success=True,
            transaction_hash=transfer.transaction_hash,
            block_hash=transfer.block_hash,
            block_number=transfer.block_number,
        )

    def _mark_completed(self, record: DistributionRecord, result: TransactionResult,
                        summary: DistributionSummary) -> None:
        record.status = RecordStatus.COMPLETED
        record.transaction_hash = result.transaction_hash
        record.block_hash = result.block_hash
        record.block_number = result.block_number
        record.error = None

        summary.completed += 1
        summary.distributed_amount += record.amount

        logger.info(
            f"Transaction succeeded: {to_decimal_string(record.amount)} to {record.address} "
            f"hash={result.transaction_hash} block={result.block_number}")
        self._log_transaction(record)

    def _mark_failed(self, record: DistributionRecord, result: TransactionResult,
                     summary: DistributionSummary, already_counted: bool) -> None:
        record.status = RecordStatus.FAILED
        record.error = result.error or "Transaction failed"
        record.attempts += 1

        if not already_counted:
            summary.failed += 1
            summary.failed_amount += record.amount

        logger.error(
            f"Transaction failed: {to_decimal_string(record.amount)} to {record.address} "
            f"attempt {record.attempts}: {record.error}")
        self._log_transaction(record)

    def _log_transaction(self, record: DistributionRecord) -> None:
        if self.transaction_logger is None:
            return
        try:
            self.transaction_logger.log_transaction(record)
        except Exception as e:
            logger.error(f"Failed to write transaction log entry: {e}")
