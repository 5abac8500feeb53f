"""
Durable processing lock.

A small JSON file ({pid, file, acquiredAt, expiresAt}) marks that one video
is in flight. It survives crashes, so every acquire first cleans up locks
that are corrupt, expired or owned by a dead process.
"""

import os
import json
import logging
from datetime import datetime, timedelta
from typing import Optional

import psutil
from pydantic import ValidationError

from .exceptions import LockConflictError
from .state import AgentContext, LockInfo, utcnow

logger = logging.getLogger("clone_worker")

LOCK_TIMEOUT_SEC = 300


class ProcessingLock:
    """Create-exclusive lock file with stale-lock recovery"""

    def __init__(
        self,
        lock_file: str,
        context: Optional[AgentContext] = None,
        timeout_sec: int = LOCK_TIMEOUT_SEC,
    ):
        self.lock_file = lock_file
        self.context = context
        self.timeout_sec = timeout_sec
        self.pid = os.getpid()

    def read(self) -> Optional[LockInfo]:
        """Parse the lock file; None when absent. Raises on corrupt content."""
        if not os.path.exists(self.lock_file):
            return None
        with open(self.lock_file, 'r', encoding='utf-8') as f:
            return LockInfo.model_validate(json.load(f))

    def acquire(self, file_name: str, now: Optional[datetime] = None) -> LockInfo:
        """
        Take the lock for file_name.

        Raises:
            LockConflictError: a valid lock already exists (including one held by this pid)
        """
        self.validate_and_clean_lock(now)

        acquired_at = now or utcnow()
        lock_info = LockInfo(
            pid=self.pid,
            file=file_name,
            acquired_at=acquired_at,
            expires_at=acquired_at + timedelta(seconds=self.timeout_sec),
        )

        lock_dir = os.path.dirname(os.path.abspath(self.lock_file))
        os.makedirs(lock_dir, exist_ok=True)

        try:
            fd = os.open(self.lock_file, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            holder = self._safe_read()
            pid = holder.pid if holder else None
            held_file = holder.file if holder else None
            raise LockConflictError(
                f"Processing lock held by pid {pid} for {held_file}",
                pid=pid,
                file=held_file,
            )

        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(lock_info.model_dump(mode='json', by_alias=True), f, indent=2)

        logger.debug(f"Lock acquired for {file_name} (pid {self.pid})")
        if self.context:
            self.context.set_lock_info(lock_info)
        return lock_info

    def release(self) -> bool:
        """Remove the lock if this process owns it"""
        holder = self._safe_read()
        if holder is None or holder.pid != self.pid:
            return False

        self._remove()
        logger.debug(f"Lock released for {holder.file}")
        if self.context:
            self.context.set_lock_info(None)
        return True

    def validate_and_clean_lock(self, now: Optional[datetime] = None) -> bool:
        """
        Remove a corrupt, expired or orphaned lock file.

        Returns:
            True if a valid lock remains after cleanup
        """
        if not os.path.exists(self.lock_file):
            return False

        try:
            holder = self.read()
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Removing unreadable lock file {self.lock_file}: {e}")
            self._clear()
            return False

        if holder is None:
            return False

        if holder.is_expired(now):
            logger.warning(f"Removing expired lock for {holder.file} (pid {holder.pid})")
            self._clear()
            return False

        if not psutil.pid_exists(holder.pid):
            logger.warning(f"Removing orphaned lock for {holder.file} (pid {holder.pid} is gone)")
            self._clear()
            return False

        return True

    def _safe_read(self) -> Optional[LockInfo]:
        try:
            return self.read()
        except (OSError, json.JSONDecodeError, ValidationError):
            return None

    def _clear(self) -> None:
        self._remove()
        if self.context:
            self.context.set_lock_info(None)

    def _remove(self) -> None:
        try:
            os.remove(self.lock_file)
        except FileNotFoundError:
            pass
