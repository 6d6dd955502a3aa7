"""
Per-run CSV log of transaction outcomes.
"""

import csv
from datetime import datetime, timezone
from pathlib import Path
from typing import Union

from .config import NETWORKS
from .models import DistributionRecord
from .utils import to_decimal_string

HEADER = ["SourceFileRowNumber", "Address", "Amount", "Status", "TransactionHash", "ExplorerLink"]


def build_explorer_link(network_name: str, transaction_hash: str) -> str:
    """Explorer URL for a transaction, or "" when unknown."""
    if not transaction_hash or transaction_hash == "unknown":
        return ""

    network = NETWORKS.get(network_name.lower())
    if network is None:
        return ""

    return f"{network.explorer_url}/extrinsic/{transaction_hash}"


class CSVTransactionLogger:
    """Appends one row per transaction outcome to a CSV file under log_dir."""

    def __init__(self, source_filename: Union[str, Path], network_name: str,
                 log_dir: Union[str, Path] = "logs"):
        self.network_name = network_name.lower()
        base_name = Path(source_filename).stem
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
        self.log_file_path = Path(log_dir) / f"{base_name}-transactions-{timestamp}.csv"
        self._initialized = False

    def initialize(self) -> None:
        if self._initialized:
            return

        self.log_file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.log_file_path, "w", newline="", encoding="utf-8") as csvfile:
            csv.writer(csvfile, lineterminator="\n").writerow(HEADER)

        self._initialized = True

    def log_transaction(self, record: DistributionRecord) -> None:
        if not self._initialized:
            raise RuntimeError("CSV logger not initialized. Call initialize() first.")

        transaction_hash = record.transaction_hash or ""
        with open(self.log_file_path, "a", newline="", encoding="utf-8") as csvfile:
            csv.writer(csvfile, lineterminator="\n").writerow([
                record.source_row_number or 0,
                record.address,
                to_decimal_string(record.amount),
                record.status.value,
                transaction_hash,
                build_explorer_link(self.network_name, transaction_hash),
            ])
