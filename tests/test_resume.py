import json

import pytest

from token_distributor.exceptions import PersistenceError
from token_distributor.models import DistributionRecord, DistributionSummary, RecordStatus
from token_distributor.resume import ResumeManager

HUGE = 123456789012345678901234567890


@pytest.fixture
def manager(tmp_path):
    return ResumeManager(tmp_path / ".resume")


def make_records():
    return [
        DistributionRecord(address="addr-1", amount=HUGE, status=RecordStatus.COMPLETED,
                           transaction_hash="0xabc", block_number=7, attempts=1,
                           source_row_number=1),
        DistributionRecord(address="addr-2", amount=5, status=RecordStatus.FAILED,
                           error="boom", attempts=2, source_row_number=2),
        DistributionRecord(address="addr-3", amount=10 ** 18, source_row_number=4),
    ]


def make_summary():
    return DistributionSummary(
        total_records=3, completed=1, failed=1,
        total_amount=HUGE + 5 + 10 ** 18, distributed_amount=HUGE, failed_amount=5,
    )


def test_no_snapshot_returns_none(manager):
    assert manager.load_latest_state() is None
    assert manager.list_resume_files() == []


def test_round_trip_preserves_huge_amounts(manager):
    path = manager.save_state(make_records(), make_summary(), 2, "recipients.csv")
    assert path is not None and path.exists()

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["records"][0]["amount"] == str(HUGE)
    assert raw["summary"]["totalAmount"] == str(HUGE + 5 + 10 ** 18)

    snapshot = manager.load_latest_state()
    assert snapshot.records == make_records()
    assert snapshot.summary.distributed_amount == HUGE
    assert snapshot.summary.failed_amount == 5
    assert snapshot.last_processed_index == 2
    assert snapshot.source_filename == "recipients.csv"
    assert snapshot.records[1].status == RecordStatus.FAILED
    assert snapshot.records[1].error == "boom"


def test_snapshots_are_append_only_and_newest_wins(manager):
    records = make_records()
    first = manager.save_state(records, make_summary(), 0)
    second = manager.save_state(records, make_summary(), 1)
    third = manager.save_state(records, make_summary(), 2)

    assert len({first, second, third}) == 3
    assert manager.list_resume_files() == [third.name, second.name, first.name]
    assert manager.load_latest_state().last_processed_index == 2
    assert manager.load_specific_state(first.name).last_processed_index == 0


def test_no_temporary_files_are_left_behind(manager):
    manager.save_state(make_records(), make_summary(), 0)
    assert [p.suffix for p in manager.resume_dir.iterdir()] == [".json"]


def test_load_specific_state_stays_inside_resume_dir(manager, tmp_path):
    path = manager.save_state(make_records(), make_summary(), 1)
    assert manager.load_specific_state(f"../../{path.name}") is not None
    assert manager.load_specific_state("resume-missing.json") is None


def test_clear_state_removes_everything(manager):
    manager.save_state(make_records(), make_summary(), 0)
    manager.clear_state()

    assert not manager.resume_dir.exists()
    assert manager.load_latest_state() is None
    manager.clear_state()


def test_clear_old_states_keeps_newest(manager):
    paths = [manager.save_state(make_records(), make_summary(), i) for i in range(4)]

    assert manager.clear_old_states(keep_count=2) == 2
    assert manager.list_resume_files() == [paths[3].name, paths[2].name]
    assert manager.clear_old_states(keep_count=5) == 0


def test_resume_stats(manager):
    assert not manager.get_resume_stats().has_resume_data

    manager.save_state(make_records(), make_summary(), 0)
    manager.save_state(make_records(), make_summary(), 1)

    stats = manager.get_resume_stats()
    assert stats.has_resume_data
    assert stats.resume_file_count == 2
    assert stats.total_size > 0
    assert stats.latest_timestamp is not None


def test_analyze_progress(manager):
    manager.save_state(make_records(), make_summary(), 2)

    analysis = ResumeManager.analyze_progress(manager.load_latest_state())
    assert (analysis.completed, analysis.failed, analysis.pending) == (1, 1, 1)
    assert analysis.completion_percentage == pytest.approx(100 / 3)
    assert analysis.failure_rate == pytest.approx(50.0)


def test_export_resume_data(manager, tmp_path):
    manager.save_state(make_records(), make_summary(), 2, "recipients.csv")

    output = manager.export_resume_data(tmp_path / "out" / "export.json")
    data = json.loads(output.read_text(encoding="utf-8"))

    assert data["metadata"]["lastProcessedIndex"] == 2
    assert data["metadata"]["sourceFilename"] == "recipients.csv"
    assert data["analysis"]["completed"] == 1
    assert data["records"][0]["amount"] == str(HUGE)
    assert data["summary"]["distributedAmount"] == str(HUGE)


def test_export_without_data_raises(manager, tmp_path):
    with pytest.raises(PersistenceError, match="No resume data available"):
        manager.export_resume_data(tmp_path / "export.json")


def test_export_write_failure_raises(manager, tmp_path):
    manager.save_state(make_records(), make_summary(), 0)
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")

    with pytest.raises(PersistenceError):
        manager.export_resume_data(blocker / "export.json")


def test_corrupt_snapshot_loads_as_none(manager):
    manager.resume_dir.mkdir(parents=True)
    (manager.resume_dir / "resume-corrupt.json").write_text("{not json")

    assert manager.load_latest_state() is None


def test_float_amount_is_rejected(manager):
    path = manager.save_state(make_records(), make_summary(), 0)
    data = json.loads(path.read_text(encoding="utf-8"))
    data["records"][0]["amount"] = 1.5e29
    path.write_text(json.dumps(data), encoding="utf-8")

    assert manager.load_latest_state() is None


def test_save_failure_is_not_raised(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")

    manager = ResumeManager(blocker)
    assert manager.save_state(make_records(), make_summary(), 0) is None
