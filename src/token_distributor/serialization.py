"""
JSON conversion for distribution state.

Token amounts are written as decimal integer strings and read back as int,
so values beyond 2**53 survive any JSON consumer unchanged.
"""

import json
from datetime import datetime
from typing import Any, Dict, Optional

from .models import DistributionRecord, DistributionSummary, RecordStatus, ResumeSnapshot


def _dt_to_str(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _dt_from_str(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _int_from_text(value: Any) -> int:
    # Reject floats outright; they may already have lost precision.
    if isinstance(value, float):
        raise ValueError(f"Amount stored as float: {value!r}")
    return int(value)


def record_to_dict(record: DistributionRecord) -> Dict[str, Any]:
    return {
        "address": record.address,
        "amount": str(record.amount),
        "status": record.status.value,
        "transactionHash": record.transaction_hash,
        "blockHash": record.block_hash,
        "blockNumber": record.block_number,
        "error": record.error,
        "attempts": record.attempts,
        "timestamp": _dt_to_str(record.timestamp),
        "sourceRowNumber": record.source_row_number,
    }


def record_from_dict(data: Dict[str, Any]) -> DistributionRecord:
    return DistributionRecord(
        address=data["address"],
        amount=_int_from_text(data["amount"]),
        status=RecordStatus(data.get("status", RecordStatus.PENDING.value)),
        transaction_hash=data.get("transactionHash"),
        block_hash=data.get("blockHash"),
        block_number=data.get("blockNumber"),
        error=data.get("error"),
        attempts=int(data.get("attempts") or 0),
        timestamp=_dt_from_str(data.get("timestamp")),
        source_row_number=data.get("sourceRowNumber"),
    )


def summary_to_dict(summary: DistributionSummary) -> Dict[str, Any]:
    return {
        "totalRecords": summary.total_records,
        "completed": summary.completed,
        "failed": summary.failed,
        "skipped": summary.skipped,
        "totalAmount": str(summary.total_amount),
        "distributedAmount": str(summary.distributed_amount),
        "failedAmount": str(summary.failed_amount),
        "startTime": _dt_to_str(summary.start_time),
        "endTime": _dt_to_str(summary.end_time),
        "resumedFrom": summary.resumed_from,
        "abortedByUser": summary.aborted_by_user,
    }


def summary_from_dict(data: Dict[str, Any]) -> DistributionSummary:
    return DistributionSummary(
        total_records=int(data["totalRecords"]),
        completed=int(data.get("completed", 0)),
        failed=int(data.get("failed", 0)),
        skipped=int(data.get("skipped", 0)),
        total_amount=_int_from_text(data.get("totalAmount", "0")),
        distributed_amount=_int_from_text(data.get("distributedAmount", "0")),
        failed_amount=_int_from_text(data.get("failedAmount", "0")),
        start_time=_dt_from_str(data.get("startTime")) or datetime.now(),
        end_time=_dt_from_str(data.get("endTime")),
        resumed_from=data.get("resumedFrom"),
        aborted_by_user=bool(data.get("abortedByUser", False)),
    )


def snapshot_to_dict(snapshot: ResumeSnapshot) -> Dict[str, Any]:
    return {
        "records": [record_to_dict(record) for record in snapshot.records],
        "summary": summary_to_dict(snapshot.summary),
        "lastProcessedIndex": snapshot.last_processed_index,
        "timestamp": _dt_to_str(snapshot.timestamp),
        "sourceFilename": snapshot.source_filename,
    }


def snapshot_from_dict(data: Dict[str, Any]) -> ResumeSnapshot:
    return ResumeSnapshot(
        records=[record_from_dict(item) for item in data["records"]],
        summary=summary_from_dict(data["summary"]),
        last_processed_index=int(data["lastProcessedIndex"]),
        timestamp=_dt_from_str(data["timestamp"]),
        source_filename=data.get("sourceFilename"),
    )


def dumps_snapshot(snapshot: ResumeSnapshot, indent: Optional[int] = 2) -> str:
    return json.dumps(snapshot_to_dict(snapshot), indent=indent)


def loads_snapshot(text: str) -> ResumeSnapshot:
    return snapshot_from_dict(json.loads(text))
