import json
import os
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from clone_worker.exceptions import LockConflictError
from clone_worker.lock import ProcessingLock

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def write_lock(path, pid, file='other.mp4', acquired_at=NOW, ttl=300):
    with open(path, 'w') as f:
        json.dump({
            'pid': pid,
            'file': file,
            'acquiredAt': acquired_at.isoformat(),
            'expiresAt': (acquired_at + timedelta(seconds=ttl)).isoformat(),
        }, f)


@pytest.fixture
def lock_path(tmp_path):
    return str(tmp_path / '.processing.lock')


class TestAcquire:

    def test_writes_owner_and_expiry(self, lock_path):
        lock = ProcessingLock(lock_path)
        info = lock.acquire('clip.mp4', now=NOW)

        with open(lock_path) as f:
            data = json.load(f)
        assert data['pid'] == os.getpid()
        assert data['file'] == 'clip.mp4'
        assert set(data) == {'pid', 'file', 'acquiredAt', 'expiresAt'}
        assert info.expires_at - info.acquired_at == timedelta(seconds=300)

    def test_second_acquire_conflicts_even_for_same_process(self, lock_path):
        lock = ProcessingLock(lock_path)
        lock.acquire('a.mp4', now=NOW)

        with pytest.raises(LockConflictError) as exc_info:
            lock.acquire('b.mp4', now=NOW)
        assert exc_info.value.file == 'a.mp4'
        assert exc_info.value.pid == os.getpid()

    def test_live_foreign_lock_conflicts(self, lock_path):
        write_lock(lock_path, pid=424242)

        with patch('clone_worker.lock.psutil.pid_exists', return_value=True):
            with pytest.raises(LockConflictError):
                ProcessingLock(lock_path).acquire('clip.mp4', now=NOW + timedelta(seconds=10))

    def test_expired_lock_is_replaced(self, lock_path):
        write_lock(lock_path, pid=424242, acquired_at=NOW - timedelta(minutes=10))

        with patch('clone_worker.lock.psutil.pid_exists', return_value=True):
            info = ProcessingLock(lock_path).acquire('clip.mp4', now=NOW)

        assert info.pid == os.getpid()

    def test_dead_owner_lock_is_replaced(self, lock_path):
        write_lock(lock_path, pid=424242)

        with patch('clone_worker.lock.psutil.pid_exists', return_value=False):
            info = ProcessingLock(lock_path).acquire('clip.mp4', now=NOW + timedelta(seconds=5))

        assert info.file == 'clip.mp4'


class TestValidateAndClean:

    def test_no_lock(self, lock_path):
        assert ProcessingLock(lock_path).validate_and_clean_lock() is False

    def test_corrupt_lock_is_removed(self, lock_path):
        with open(lock_path, 'w') as f:
            f.write('{not json')

        assert ProcessingLock(lock_path).validate_and_clean_lock(NOW) is False
        assert not os.path.exists(lock_path)

    def test_incomplete_lock_is_removed(self, lock_path):
        with open(lock_path, 'w') as f:
            json.dump({'pid': 1}, f)

        assert ProcessingLock(lock_path).validate_and_clean_lock(NOW) is False
        assert not os.path.exists(lock_path)

    def test_expired_lock_removed_even_if_owner_alive(self, lock_path):
        write_lock(lock_path, pid=os.getpid(), acquired_at=NOW - timedelta(seconds=301))

        assert ProcessingLock(lock_path).validate_and_clean_lock(NOW) is False
        assert not os.path.exists(lock_path)

    def test_valid_lock_remains(self, lock_path):
        write_lock(lock_path, pid=os.getpid())

        assert ProcessingLock(lock_path).validate_and_clean_lock(NOW + timedelta(seconds=1)) is True
        assert os.path.exists(lock_path)


class TestRelease:

    def test_release_own_lock(self, lock_path):
        lock = ProcessingLock(lock_path)
        lock.acquire('clip.mp4', now=NOW)

        assert lock.release() is True
        assert not os.path.exists(lock_path)

    def test_foreign_lock_is_left_alone(self, lock_path):
        write_lock(lock_path, pid=424242)

        assert ProcessingLock(lock_path).release() is False
        assert os.path.exists(lock_path)


def test_lock_is_mirrored_into_context(lock_path, context):
    lock = ProcessingLock(lock_path, context)

    lock.acquire('clip.mp4')
    assert context.get_full_state().lock_info.file == 'clip.mp4'

    lock.release()
    assert context.get_full_state().lock_info is None
