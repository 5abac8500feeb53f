"""
Watched-directory job source.

Polls the input directory and emits a job once a video file's size and
modification time have stopped changing for the stability threshold, so
files are never picked up while they are still being copied in.
"""

import os
import time
import logging
from typing import Callable, Dict, List, Optional, Tuple

from .base import JobSourceAdapter, Job
from ..pipeline.util import is_video_file

logger = logging.getLogger("clone_worker")

# (size, mtime in ns, inode)
Signature = Tuple[int, int, int]


class DirectoryJobSourceAdapter(JobSourceAdapter):
    """Input directory implementation of job source adapter"""

    def __init__(
        self,
        input_dir: str,
        stability_threshold_ms: int = 2000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.input_dir = input_dir
        self.stability_threshold_ms = stability_threshold_ms
        self.clock = clock
        # path -> (signature, first time this signature was seen)
        self._pending: Dict[str, Tuple[Signature, float]] = {}
        # path -> signature of the file that was handed out
        self._emitted: Dict[str, Signature] = {}

    def connect(self) -> None:
        """Create the input directory and run the initial scan"""
        os.makedirs(self.input_dir, exist_ok=True)
        existing = self._scan()
        logger.info(f"Watching {self.input_dir} ({len(existing)} existing video files)")

    def _scan(self) -> List[str]:
        try:
            names = sorted(os.listdir(self.input_dir))
        except FileNotFoundError:
            logger.warning(f"Input directory {self.input_dir} is missing")
            return []

        paths = []
        for name in names:
            path = os.path.join(self.input_dir, name)
            if os.path.isfile(path) and is_video_file(path):
                paths.append(path)
        return paths

    def _signature(self, path: str) -> Optional[Signature]:
        try:
            stat = os.stat(path)
        except FileNotFoundError:
            return None
        return stat.st_size, stat.st_mtime_ns, stat.st_ino

    def poll_jobs(self) -> List[Job]:
        """Return video files whose size and mtime have been stable long enough"""
        now = self.clock()
        present = set()
        ready: List[Job] = []

        for path in self._scan():
            present.add(path)
            signature = self._signature(path)
            if signature is None:
                continue

            if path in self._emitted:
                if self._emitted[path] == signature:
                    continue
                # Replaced by a new file under the same name
                del self._emitted[path]

            previous = self._pending.get(path)
            if previous is None or previous[0] != signature:
                self._pending[path] = (signature, now)
                if self.stability_threshold_ms > 0:
                    continue

            first_seen = self._pending[path][1]
            if (now - first_seen) * 1000 >= self.stability_threshold_ms:
                del self._pending[path]
                self._emitted[path] = signature
                logger.info(f"New file detected: {os.path.basename(path)}")
                ready.append(Job(id=os.path.basename(path), path=path, size=signature[0]))

        # Files that vanished before becoming stable, or were archived
        for tracked in (self._pending, self._emitted):
            for path in list(tracked):
                if path not in present:
                    del tracked[path]

        return ready

    def release_job(self, job_id: str) -> None:
        self._emitted.pop(os.path.join(self.input_dir, job_id), None)
