from pathlib import Path
from typing import List, Optional

import pytest
from scalecodec.utils.ss58 import ss58_encode

from token_distributor.config import Config
from token_distributor.models import ChainSession, FailureAction, SubmittedTransfer
from token_distributor.resume import ResumeManager
from token_distributor.utils import LEGACY_SS58_PREFIX, PRIMARY_SS58_PREFIX

TIMEOUT = "timeout"


def make_address(seed: int, prefix: int = PRIMARY_SS58_PREFIX) -> str:
    """Deterministic SS58 address for a 32-byte key filled with `seed`."""
    return ss58_encode(bytes([seed]) * 32, ss58_format=prefix)


def write_csv(directory: Path, content: str, name: str = "recipients.csv") -> Path:
    path = directory / name
    path.write_text(content, encoding="utf-8")
    return path


class FakeChainClient:
    """In-memory chain client with scripted transfer outcomes.

    Each outcome is None (success), an exception instance (raised from
    submit_transfer) or TIMEOUT (confirmation never arrives). A connect_error
    is raised from connect.
    """

    def __init__(self, balance: int = 10 ** 30, outcomes: Optional[list] = None,
                 connect_error: Optional[Exception] = None):
        self.balance = balance
        self.connect_error = connect_error
        self.outcomes = list(outcomes or [])
        self.transfers: List[tuple] = []
        self.connect_calls = 0
        self.disconnect_calls = 0
        self._timeout_next = False

    def connect(self, endpoint: str, private_key: str) -> ChainSession:
        self.connect_calls += 1
        if self.connect_error is not None:
            raise self.connect_error
        return ChainSession(endpoint=endpoint, address=make_address(200), handle=object())

    def get_balance(self, session: ChainSession, address: str) -> int:
        return self.balance

    def submit_transfer(self, session: ChainSession, to_address: str,
                        amount: int) -> SubmittedTransfer:
        self.transfers.append((to_address, amount))
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if isinstance(outcome, BaseException):
            raise outcome
        self._timeout_next = outcome == TIMEOUT
        number = len(self.transfers)
        return SubmittedTransfer(
            transaction_hash=f"0x{number:064x}",
            block_hash=f"0x{number + 1000:064x}",
            block_number=100 + number,
        )

    def await_confirmations(self, session: ChainSession, transfer: SubmittedTransfer,
                            depth: int, timeout: float) -> bool:
        return not self._timeout_next

    def disconnect(self, session: ChainSession) -> None:
        self.disconnect_calls += 1


class ScriptedFailureHandler:
    """Returns queued decisions and remembers every call."""

    def __init__(self, *actions: FailureAction):
        self.actions = list(actions)
        self.calls: List[tuple] = []

    def handle_failure(self, record, index, error, attempts):
        self.calls.append((record.address, index, error, attempts))
        return self.actions.pop(0)


class RecordingResumeManager(ResumeManager):
    """ResumeManager that remembers every checkpoint cursor."""

    def __init__(self, resume_dir):
        super().__init__(resume_dir)
        self.cursors: List[int] = []
        self.clear_calls = 0

    def save_state(self, records, summary, last_processed_index, source_filename=None):
        self.cursors.append(last_processed_index)
        return super().save_state(records, summary, last_processed_index, source_filename)

    def clear_state(self):
        self.clear_calls += 1
        super().clear_state()


@pytest.fixture
def primary_address() -> str:
    return make_address(1)


@pytest.fixture
def legacy_address() -> str:
    return make_address(2, LEGACY_SS58_PREFIX)


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(
        network="chronos",
        distributor_private_key="0x" + "ab" * 32,
        log_to_file=False,
        log_dir=str(tmp_path / "logs"),
        batch_size=10,
        transfer_delay=0,
        confirmation_timeout=1,
        resume_dir=str(tmp_path / ".resume"),
    )
