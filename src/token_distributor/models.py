"""
Data models for token distribution runs.

All token amounts are exact integers in minor units (10^-18 of a token).
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional


class RecordStatus(str, Enum):
    """Lifecycle state of a single distribution record."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class FailureAction(str, Enum):
    """Decision taken after a transfer fails."""
    RETRY = "retry"
    SKIP = "skip"
    PAUSE = "pause"
    ABORT = "abort"


class AddressKind(str, Enum):
    """Accepted SS58 address families."""
    PRIMARY = "primary"
    LEGACY = "legacy"


@dataclass
class DistributionRecord:
    """One recipient row of a distribution."""
    address: str
    amount: int
    status: RecordStatus = RecordStatus.PENDING
    transaction_hash: Optional[str] = None
    block_hash: Optional[str] = None
    block_number: Optional[int] = None
    error: Optional[str] = None
    attempts: int = 0
    timestamp: Optional[datetime] = None
    source_row_number: Optional[int] = None


@dataclass(frozen=True)
class DuplicateAddress:
    """An address seen on more than one CSV line."""
    address: str
    indices: List[int]


@dataclass(frozen=True)
class AddressStats:
    """Counts of each address family seen during ingest."""
    primary_count: int = 0
    legacy_count: int = 0


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a full CSV validation pass."""
    is_valid: bool
    errors: List[str]
    warnings: List[str]
    duplicates: List[DuplicateAddress]
    total_amount: int
    record_count: int
    address_stats: AddressStats = field(default_factory=AddressStats)


@dataclass
class DistributionSummary:
    """Running totals for a distribution run."""
    total_records: int
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    total_amount: int = 0
    distributed_amount: int = 0
    failed_amount: int = 0
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    resumed_from: Optional[int] = None
    aborted_by_user: bool = False

    @property
    def is_paused(self) -> bool:
        """A run that returned without finishing and without an abort."""
        return self.end_time is None and not self.aborted_by_user


@dataclass
class ResumeSnapshot:
    """Point-in-time copy of a run that can be resumed."""
    records: List[DistributionRecord]
    summary: DistributionSummary
    last_processed_index: int
    timestamp: datetime
    source_filename: Optional[str] = None


@dataclass(frozen=True)
class AddressValidation:
    """Result of validating a single address."""
    is_valid: bool
    kind: Optional[AddressKind] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class AddressClassification:
    """Which accepted SS58 family an address belongs to."""
    prefix: int
    kind_label: str


@dataclass
class ChainSession:
    """An open connection plus the signing account used for a run."""
    endpoint: str
    address: str
    handle: Any
    signer: Any = None


@dataclass(frozen=True)
class SubmittedTransfer:
    """Identifiers returned once a transfer is included in a block."""
    transaction_hash: str
    block_hash: Optional[str] = None
    block_number: Optional[int] = None


@dataclass(frozen=True)
class TransactionResult:
    """Result of a transfer attempt as seen by the distributor."""
    success: bool
    transaction_hash: Optional[str] = None
    block_hash: Optional[str] = None
    block_number: Optional[int] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class BalanceCheck:
    """Distributor balance compared with what a run needs."""
    sufficient: bool
    current_balance: int
    required_amount: int
    shortfall: Optional[int] = None


@dataclass(frozen=True)
class ResumeStats:
    """Overview of the snapshots on disk."""
    has_resume_data: bool
    resume_file_count: int
    total_size: int
    latest_timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class ProgressAnalysis:
    """Progress of a run derived from a snapshot."""
    completed: int
    failed: int
    pending: int
    completion_percentage: float
    failure_rate: float
