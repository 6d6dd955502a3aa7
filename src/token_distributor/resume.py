"""
Durable checkpoints for resumable distribution runs.

Every checkpoint is a new ``resume-<utc timestamp>-<seq>.json`` file; older
snapshots are never rewritten, so a crash while writing can only lose the
checkpoint in progress.
"""

import json
import logging
import os
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .exceptions import PersistenceError
from .models import (
    DistributionRecord,
    DistributionSummary,
    ProgressAnalysis,
    RecordStatus,
    ResumeSnapshot,
    ResumeStats,
)
from .serialization import (
    dumps_snapshot,
    loads_snapshot,
    record_to_dict,
    summary_to_dict,
)

logger = logging.getLogger(__name__)

RESUME_PREFIX = "resume-"
RESUME_SUFFIX = ".json"


class ResumeManager:
    """Stores and restores snapshots of a distribution run."""

    def __init__(self, resume_dir: Union[str, Path] = ".resume"):
        self.resume_dir = Path(resume_dir)

    def save_state(self, records: Sequence[DistributionRecord], summary: DistributionSummary,
                   last_processed_index: int, source_filename: Optional[str] = None) -> Optional[Path]:
        """Write a new snapshot. Failures are logged and never raised."""
        try:
            self.resume_dir.mkdir(parents=True, exist_ok=True)

            snapshot = ResumeSnapshot(
                records=list(records),
                summary=summary,
                last_processed_index=last_processed_index,
                timestamp=datetime.now(timezone.utc),
                source_filename=source_filename,
            )
            filepath = self._next_snapshot_path(snapshot.timestamp)

            # Write under a temporary name so a partial file is never listed
            tmp_path = filepath.with_name(filepath.name + ".tmp")
            tmp_path.write_text(dumps_snapshot(snapshot), encoding="utf-8")
            os.replace(tmp_path, filepath)

            logger.debug(
                f"Resume state saved to {filepath} (index {last_processed_index}, "
                f"{len(snapshot.records)} records)")
            return filepath
        except Exception as e:
            logger.error(f"Failed to save resume state: {e}")
            return None

    def load_latest_state(self) -> Optional[ResumeSnapshot]:
        files = self.list_resume_files()
        if not files:
            return None

        snapshot = self.load_specific_state(files[0])
        if snapshot is not None:
            logger.info(
                f"Resume state loaded from {files[0]}: index "
                f"{snapshot.last_processed_index} of {len(snapshot.records)} records")
        return snapshot

    def list_resume_files(self) -> List[str]:
        """Snapshot file names, newest first."""
        try:
            if not self.resume_dir.is_dir():
                return []
            names = [
                path.name for path in self.resume_dir.iterdir()
                if path.name.startswith(RESUME_PREFIX) and path.name.endswith(RESUME_SUFFIX)
            ]
            return sorted(names, reverse=True)
        except OSError as e:
            logger.error(f"Failed to list resume files: {e}")
            return []

    def load_specific_state(self, filename: str) -> Optional[ResumeSnapshot]:
        # Only plain names inside the resume directory are accepted
        filepath = self.resume_dir / Path(filename).name
        try:
            if not filepath.is_file():
                return None
            return loads_snapshot(filepath.read_text(encoding="utf-8"))
        except Exception as e:
            logger.error(f"Failed to load resume state {filepath}: {e}")
            return None

    def clear_state(self) -> None:
        """Remove every snapshot of the run."""
        try:
            if self.resume_dir.exists():
                shutil.rmtree(self.resume_dir)
                logger.info("Resume state cleared")
        except OSError as e:
            logger.error(f"Failed to clear resume state: {e}")

    def clear_old_states(self, keep_count: int = 5) -> int:
        """Delete all but the newest keep_count snapshots. Returns the number deleted."""
        files = self.list_resume_files()
        stale = files[max(keep_count, 0):]
        deleted = 0

        for name in stale:
            try:
                (self.resume_dir / name).unlink()
                deleted += 1
            except OSError as e:
                logger.error(f"Failed to delete old resume state {name}: {e}")

        if deleted:
            logger.info(
                f"Old resume states cleaned up: deleted {deleted}, kept {keep_count}")
        return deleted

    def get_resume_stats(self) -> ResumeStats:
        files = self.list_resume_files()
        if not files:
            return ResumeStats(has_resume_data=False, resume_file_count=0, total_size=0)

        total_size = 0
        for name in files:
            try:
                total_size += (self.resume_dir / name).stat().st_size
            except OSError as e:
                logger.warning(f"Could not stat resume file {name}: {e}")

        latest = self.load_latest_state()
        return ResumeStats(
            has_resume_data=True,
            resume_file_count=len(files),
            total_size=total_size,
            latest_timestamp=latest.timestamp if latest else None,
        )

    @staticmethod
    def analyze_progress(snapshot: ResumeSnapshot) -> ProgressAnalysis:
        statuses = [record.status for record in snapshot.records]
        completed = statuses.count(RecordStatus.COMPLETED)
        failed = statuses.count(RecordStatus.FAILED)
        pending = statuses.count(RecordStatus.PENDING)
        total = len(statuses)
        attempted = completed + failed

        return ProgressAnalysis(
            completed=completed,
            failed=failed,
            pending=pending,
            completion_percentage=(completed / total) * 100 if total else 0.0,
            failure_rate=(failed / attempted) * 100 if attempted else 0.0,
        )

    def export_resume_data(self, output_path: Union[str, Path]) -> Path:
        """Export the latest snapshot with a progress analysis.

        Unlike checkpointing, failures here are raised as PersistenceError.
        """
        snapshot = self.load_latest_state()
        if snapshot is None:
            raise PersistenceError("No resume data available")

        analysis = self.analyze_progress(snapshot)
        export = {
            "metadata": {
                "exportedAt": datetime.now(timezone.utc).isoformat(),
                "originalTimestamp": snapshot.timestamp.isoformat(),
                "lastProcessedIndex": snapshot.last_processed_index,
                "sourceFilename": snapshot.source_filename,
            },
            "summary": summary_to_dict(snapshot.summary),
            "analysis": {
                "completed": analysis.completed,
                "failed": analysis.failed,
                "pending": analysis.pending,
                "completionPercentage": analysis.completion_percentage,
                "failureRate": analysis.failure_rate,
            },
            "records": [record_to_dict(record) for record in snapshot.records],
        }

        output = Path(output_path)
        try:
            output.parent.mkdir(parents=True, exist_ok=True)
            with open(output, "w", encoding="utf-8") as jsonfile:
                json.dump(export, jsonfile, indent=2)
        except OSError as e:
            logger.error(f"Failed to export resume data: {e}")
            raise PersistenceError(f"Failed to export resume data: {e}") from e

        logger.info(f"Resume data exported to {output} ({len(snapshot.records)} records)")
        return output

    def _next_snapshot_path(self, timestamp: datetime) -> Path:
        stamp = timestamp.strftime("%Y-%m-%dT%H-%M-%S-%fZ")
        seq = 0
        while True:
            candidate = self.resume_dir / f"{RESUME_PREFIX}{stamp}-{seq:04d}{RESUME_SUFFIX}"
            if not candidate.exists():
                return candidate
            seq += 1
