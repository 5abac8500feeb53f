"""
Process-wide status record ("agent context").

The worker publishes its phase, active project, histories and lock info to a
JSON file after every mutation so that external tools can poll it without
talking to the running process. The record is validated against a versioned
pydantic schema on load; malformed or incompatible files are replaced by
defaults instead of being merged.
"""

import json
import logging
import os
import shutil
import tempfile
import threading
from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .logging_setup import log_exception
from .pipeline.util import VIDEO_EXTENSIONS

logger = logging.getLogger("clone_worker")

SCHEMA_VERSION = "1.0.0"

ProcessingStatus = Literal['idle', 'processing', 'analyzing', 'generating', 'complete', 'error', 'paused']
BUSY_STATUSES = {'processing', 'analyzing', 'generating'}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LockInfo(BaseModel):
    """Owner and validity window of the processing lock"""
    model_config = ConfigDict(populate_by_name=True, extra='forbid')

    pid: int
    file: str
    acquired_at: datetime = Field(alias='acquiredAt')
    expires_at: datetime = Field(alias='expiresAt')

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.expires_at <= (now or utcnow())


class ActiveProject(BaseModel):
    """The item currently moving through the pipeline"""
    model_config = ConfigDict(populate_by_name=True, extra='forbid')

    name: str
    component_name: str = Field(alias='componentName')
    start_time: datetime = Field(alias='startTime')
    stage: str = 'queued'
    progress: int = Field(default=0, ge=0, le=100)


class SystemState(BaseModel):
    """Versioned schema of the persisted status file"""
    model_config = ConfigDict(populate_by_name=True, extra='forbid', validate_assignment=True)

    version: str = SCHEMA_VERSION
    status: ProcessingStatus = 'idle'
    active_project: Optional[ActiveProject] = Field(default=None, alias='activeProject')
    last_processed: Optional[str] = Field(default=None, alias='lastProcessed')
    last_error: Optional[str] = Field(default=None, alias='lastError')
    queue: List[str] = Field(default_factory=list)
    processed_videos: List[str] = Field(default_factory=list, alias='processedVideos')
    failed_videos: List[str] = Field(default_factory=list, alias='failedVideos')
    lock_info: Optional[LockInfo] = Field(default=None, alias='lockInfo')

    @field_validator('version')
    @classmethod
    def check_major_version(cls, value: str) -> str:
        if value.split('.')[0] != SCHEMA_VERSION.split('.')[0]:
            raise ValueError(f"Unsupported state schema version {value} (expected {SCHEMA_VERSION})")
        return value


class VideoStatus(BaseModel):
    """Answer to "what is the system doing with this video?" """
    is_processing: bool = False
    is_processed: bool = False
    is_failed: bool = False
    is_in_queue: bool = False
    details: str


def list_archived_videos(directory: Optional[str]) -> List[str]:
    """Video file names already present in an archive directory"""
    if not directory or not os.path.isdir(directory):
        return []
    try:
        return sorted(
            name for name in os.listdir(directory)
            if os.path.splitext(name)[1].lower() in VIDEO_EXTENSIONS
        )
    except OSError as e:
        logger.warning(f"Failed to read {directory} directory: {e}")
        return []


class AgentContext:
    """
    Owner of the SystemState record.

    Constructed once at process start and passed to the queue manager; the
    queue manager is the only writer. Every mutation is persisted atomically.
    """

    def __init__(
        self,
        state_file: str,
        processed_dir: Optional[str] = None,
        failed_dir: Optional[str] = None,
    ):
        self.state_file = state_file
        self.processed_dir = processed_dir
        self.failed_dir = failed_dir
        self._lock = threading.RLock()
        self.state = self._load_state()

    # ===== Persistence =====

    def _default_state(self) -> SystemState:
        return SystemState(
            processed_videos=list_archived_videos(self.processed_dir),
            failed_videos=list_archived_videos(self.failed_dir),
        )

    def _load_state(self) -> SystemState:
        if not os.path.exists(self.state_file):
            return self._default_state()

        try:
            with open(self.state_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return SystemState.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Failed to load state from {self.state_file}, using defaults: {e}")
            return self._default_state()

    def _save_state(self) -> None:
        payload = self.state.model_dump(mode='json', by_alias=True)
        directory = os.path.dirname(os.path.abspath(self.state_file))
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix='.state-', suffix='.json', dir=directory)
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(payload, f, indent=2)
                os.replace(tmp_path, self.state_file)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except OSError as e:
            log_exception(logger, f"Failed to save state to {self.state_file}: {e}")

    # ===== Queries =====

    def get_full_state(self) -> SystemState:
        with self._lock:
            return self.state.model_copy(deep=True)

    def get_active_project(self) -> Optional[ActiveProject]:
        with self._lock:
            project = self.state.active_project
            return project.model_copy() if project else None

    def get_video_status(self, video_name: str) -> VideoStatus:
        """Check whether a video is being processed, done, failed or queued"""
        name = video_name.lower()
        with self._lock:
            project = self.state.active_project
            if project and project.name.lower() == name:
                return VideoStatus(
                    is_processing=True,
                    details=f"Currently {project.stage} ({project.progress}%)",
                )

            if any(name in v.lower() for v in self.state.processed_videos):
                return VideoStatus(is_processed=True, details="Video has been processed and its analysis is ready")

            if any(name in v.lower() for v in self.state.failed_videos):
                return VideoStatus(is_failed=True, details="Video processing failed - check failed/error.log")

            if any(name in v.lower() for v in self.state.queue):
                return VideoStatus(is_in_queue=True, details="Video is queued for processing")

            return VideoStatus(details="Video not found in system")

    def is_ready(self) -> bool:
        """Check if the system can take new input"""
        with self._lock:
            lock_info = self.state.lock_info
            if lock_info and lock_info.is_expired():
                logger.warning("Stale lock detected, system is ready")
                return True
            return self.state.status not in BUSY_STATUSES

    def health_check(self, directories: List[str], ffmpeg_path: str = "ffmpeg") -> Dict:
        """Status of directories, ffmpeg and the processing lock"""
        checks: Dict[str, Dict[str, str]] = {}

        for directory in directories:
            checks[directory] = (
                {'status': 'ok', 'message': f"Directory exists: {directory}"}
                if os.path.isdir(directory)
                else {'status': 'error', 'message': f"Missing directory: {directory}"}
            )

        checks['ffmpeg'] = (
            {'status': 'ok', 'message': f"FFmpeg configured: {ffmpeg_path}"}
            if shutil.which(ffmpeg_path) or os.path.exists(ffmpeg_path)
            else {'status': 'warning', 'message': f"FFmpeg path not found: {ffmpeg_path}"}
        )

        with self._lock:
            lock_info = self.state.lock_info
        if lock_info is None:
            checks['lock'] = {'status': 'ok', 'message': 'No active lock'}
        elif lock_info.is_expired():
            checks['lock'] = {'status': 'warning', 'message': 'Stale lock detected'}
        else:
            checks['lock'] = {'status': 'ok', 'message': f"Processing: {lock_info.file}"}

        statuses = {check['status'] for check in checks.values()}
        overall = 'error' if 'error' in statuses else 'degraded' if 'warning' in statuses else 'healthy'
        return {'status': overall, 'checks': checks}

    # ===== State Update Methods (used by QueueManager) =====

    def update_status(self, status: ProcessingStatus) -> None:
        with self._lock:
            self.state.status = status
            self._save_state()

    def recover_interrupted_run(self) -> bool:
        """
        Clear what a crashed run left behind. Only valid while no live
        process holds the processing lock.

        The queued names are dropped because the in-memory queue they mirrored
        is gone; files still in the input directory are found again by the
        next scan. An item that was mid-pipeline is reported through status
        'error' and last_error.

        Returns:
            True if an item was interrupted mid-pipeline
        """
        with self._lock:
            project = self.state.active_project
            interrupted = project is not None or self.state.status in BUSY_STATUSES
            if not (interrupted or self.state.queue or self.state.lock_info):
                return False

            if interrupted:
                if project:
                    message = f"Interrupted: {project.name} was at {project.stage} ({project.progress}%) when the previous run stopped"
                else:
                    message = f"Interrupted: previous run stopped while {self.state.status}"
                logger.warning(message)
                self.state.status = 'error'
                self.state.last_error = message

            self.state.active_project = None
            self.state.queue = []
            self.state.lock_info = None
            self._save_state()
            return interrupted

    def set_active_project(self, project: Optional[ActiveProject]) -> None:
        with self._lock:
            self.state.active_project = project
            if project:
                self.state.status = 'processing'
            self._save_state()

    def update_progress(self, stage: str, progress: int, status: Optional[ProcessingStatus] = None) -> None:
        with self._lock:
            project = self.state.active_project
            if project is None:
                return
            project.stage = stage
            project.progress = max(0, min(100, int(progress)))
            # Re-assign so the model re-validates the nested record
            self.state.active_project = project
            if status:
                self.state.status = status
            self._save_state()

    def mark_complete(self, video_name: str) -> None:
        with self._lock:
            self.state.active_project = None
            self.state.status = 'complete'
            self.state.last_processed = video_name
            self.state.last_error = None
            self.state.processed_videos = self.state.processed_videos + [video_name]
            self.state.queue = [v for v in self.state.queue if v != video_name]
            self._save_state()

    def mark_error(self, error: str) -> None:
        with self._lock:
            self.state.status = 'error'
            self.state.last_error = error
            self._save_state()

    def add_to_queue(self, video_name: str) -> None:
        with self._lock:
            if video_name not in self.state.queue:
                self.state.queue = self.state.queue + [video_name]
                self._save_state()

    def remove_from_queue(self, video_name: str) -> None:
        with self._lock:
            if video_name in self.state.queue:
                self.state.queue = [v for v in self.state.queue if v != video_name]
                self._save_state()

    def add_failed_video(self, video_name: str, error: Optional[str] = None) -> None:
        with self._lock:
            self.state.failed_videos = self.state.failed_videos + [video_name]
            self.state.queue = [v for v in self.state.queue if v != video_name]
            self.state.active_project = None
            self.state.status = 'error'
            if error is not None:
                self.state.last_error = error
            self._save_state()

    def set_lock_info(self, lock_info: Optional[LockInfo]) -> None:
        with self._lock:
            self.state.lock_info = lock_info
            self._save_state()

    def set_idle(self) -> None:
        """Return to idle once the queue is drained, keeping the last outcome visible"""
        with self._lock:
            if self.state.status in ('complete', 'processing') and self.state.active_project is None:
                self.state.status = 'idle'
                self._save_state()
