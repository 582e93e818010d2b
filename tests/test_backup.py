import asyncio
import sqlite3
import threading
import pytest
from unittest.mock import MagicMock, patch

from app.core.errors import StoreUnavailable
from app.services.backup_service import BackupManager, BackupState
from app.services.db_service import RecordStore


@pytest.fixture
def paths(tmp_path):
    return tmp_path / "bookings.db", tmp_path / "bookings_backup.db"


def test_cold_start_creates_empty_store(paths):
    primary, backup = paths
    manager = BackupManager(str(primary), str(backup))
    assert manager.state == BackupState.COLD

    restored = manager.ensure_store()

    assert restored is False
    assert primary.exists()
    assert not backup.exists()
    assert manager.state == BackupState.READY


def test_cold_start_restores_from_backup(paths):
    primary, backup = paths
    backup.write_bytes(b"snapshot-bytes")

    restored = BackupManager(str(primary), str(backup)).ensure_store()

    assert restored is True
    assert primary.read_bytes() == b"snapshot-bytes"


def test_existing_primary_is_left_alone(paths):
    primary, backup = paths
    primary.write_bytes(b"live")
    backup.write_bytes(b"old")

    restored = BackupManager(str(primary), str(backup)).ensure_store()

    assert restored is False
    assert primary.read_bytes() == b"live"


def test_ensure_store_failure_is_fatal(paths):
    primary, backup = paths
    backup.write_bytes(b"snapshot-bytes")

    with patch("app.services.backup_service.shutil.copy2", side_effect=OSError("disk full")):
        with pytest.raises(StoreUnavailable):
            BackupManager(str(primary), str(backup)).ensure_store()


def test_snapshot_overwrites_backup(paths):
    primary, backup = paths
    manager = BackupManager(str(primary), str(backup))
    manager.ensure_store()

    primary.write_bytes(b"v1")
    assert manager.snapshot() is True
    assert backup.read_bytes() == b"v1"

    primary.write_bytes(b"v2")
    assert manager.snapshot() is True
    assert backup.read_bytes() == b"v2"
    assert manager.read_backup() == b"v2"


def test_snapshot_failure_is_swallowed(paths):
    primary, backup = paths
    manager = BackupManager(str(primary), str(backup))
    manager.ensure_store()

    with patch("app.services.backup_service.shutil.copy2", side_effect=OSError("disk full")):
        assert manager.snapshot() is False

    assert not backup.exists()
    assert manager.state == BackupState.READY


def test_snapshot_skipped_without_primary(paths):
    primary, backup = paths
    manager = BackupManager(str(primary), str(backup))

    assert manager.snapshot() is False
    assert manager.read_backup() is None


def test_restore_contains_records_up_to_snapshot(paths):
    primary, backup = paths
    gate = threading.Lock()
    manager = BackupManager(str(primary), str(backup), gate=gate)
    manager.ensure_store()
    store = RecordStore(str(primary), gate=gate).open()

    # M = 3 records before the snapshot
    for i in range(3):
        store.insert(f"User {i}", f"user{i}@x.com", ["math"], 300)
    assert manager.snapshot() is True

    # Written after the snapshot, lost with the primary (expected)
    store.insert("Late User", "late@x.com", ["physics"], 300)
    store.close()
    primary.unlink()

    manager = BackupManager(str(primary), str(backup))
    assert manager.ensure_store() is True
    restored = RecordStore(str(primary)).open()
    records = restored.list_all()
    restored.close()

    assert [r.name for r in records] == ["User 2", "User 1", "User 0"]


@pytest.mark.asyncio
async def test_periodic_backup_runs(paths):
    primary, backup = paths
    manager = BackupManager(str(primary), str(backup), interval=0.01)
    manager.ensure_store()
    primary.write_bytes(b"periodic")

    manager.start()
    for _ in range(200):
        if backup.exists():
            break
        await asyncio.sleep(0.01)

    assert backup.read_bytes() == b"periodic"
    await manager.shutdown()


@pytest.mark.asyncio
async def test_failed_snapshot_keeps_timer_running(paths):
    primary, backup = paths
    manager = BackupManager(str(primary), str(backup), interval=0.01)
    manager.ensure_store()
    manager.snapshot = MagicMock(return_value=False)

    manager.start()
    for _ in range(200):
        if manager.snapshot.call_count >= 3:
            break
        await asyncio.sleep(0.01)

    assert manager.snapshot.call_count >= 3
    await manager.shutdown()


@pytest.mark.asyncio
async def test_shutdown_takes_final_snapshot(paths):
    primary, backup = paths
    manager = BackupManager(str(primary), str(backup), interval=3600)
    manager.ensure_store()
    manager.start()

    primary.write_bytes(b"final-state")
    await manager.shutdown()

    assert backup.read_bytes() == b"final-state"
    assert manager.state == BackupState.TERMINATED

    # Terminated: no further snapshots, shutdown is a no-op
    primary.write_bytes(b"after-shutdown")
    assert manager.snapshot() is False
    await manager.shutdown()
    assert backup.read_bytes() == b"final-state"


@pytest.mark.asyncio
async def test_start_requires_ready_state(paths):
    primary, backup = paths
    manager = BackupManager(str(primary), str(backup))

    with pytest.raises(RuntimeError):
        manager.start()


@pytest.mark.asyncio
async def test_unexpected_snapshot_error_keeps_timer_running(paths):
    primary, backup = paths
    manager = BackupManager(str(primary), str(backup), interval=0.01)
    manager.ensure_store()

    with patch("app.services.backup_service.os.replace", side_effect=ValueError("boom")) as mock_replace:
        task = manager.start()
        for _ in range(200):
            if mock_replace.call_count >= 3:
                break
            await asyncio.sleep(0.01)

        assert mock_replace.call_count >= 3
        assert not task.done()

        # Final snapshot fails the same way; shutdown still completes
        await manager.shutdown()

    assert manager.state == BackupState.TERMINATED
    assert task.done()


def test_concurrent_inserts_and_snapshots(paths):
    primary, backup = paths
    gate = threading.Lock()
    manager = BackupManager(str(primary), str(backup), gate=gate)
    manager.ensure_store()
    store = RecordStore(str(primary), gate=gate).open()

    writers, per_writer = 4, 25
    ids = []
    ids_lock = threading.Lock()
    errors = []
    writing = threading.Event()
    writing.set()

    def write(worker):
        try:
            for i in range(per_writer):
                booking_id = store.insert(f"Worker {worker}-{i}", f"w{worker}@x.com", ["math"], 300)
                with ids_lock:
                    ids.append(booking_id)
        except Exception as e:
            errors.append(e)

    def read():
        try:
            while writing.is_set():
                records = store.list_all()
                assert len({r.id for r in records}) == len(records)
        except Exception as e:
            errors.append(e)

    def back_up():
        while writing.is_set():
            manager.snapshot()

    threads = [threading.Thread(target=write, args=(w,)) for w in range(writers)]
    helpers = [threading.Thread(target=read), threading.Thread(target=back_up)]
    for t in helpers + threads:
        t.start()
    for t in threads:
        t.join()
    writing.clear()
    for t in helpers:
        t.join()

    assert errors == []
    assert len(ids) == len(set(ids)) == writers * per_writer
    assert len(store.list_all()) == writers * per_writer

    # The last snapshot is a consistent database with every record
    assert manager.snapshot() is True
    store.close()
    conn = sqlite3.connect(str(backup))
    assert conn.execute("PRAGMA integrity_check").fetchone()[0] == "ok"
    assert conn.execute("SELECT COUNT(*) FROM bookings").fetchone()[0] == writers * per_writer
    conn.close()
