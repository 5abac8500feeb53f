"""
Queue manager and per-item state machine.

Serializes processing to one video at a time:

    idle -> locking -> analyzing -> (sanitizing -> analyzing) -> orchestrating
         -> exporting -> generating -> finalizing -> idle

with `error` reachable from every stage. An item is sanitized at most once;
a second analysis failure is terminal. Progress is published to the
AgentContext at every transition.
"""

import os
import time
import logging
import traceback
from collections import deque
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional, Tuple

from .adapters.base import CodeGeneratorAdapter, JobSourceAdapter, StorageAdapter
from .adapters.filesystem_adapter import FilesystemStorageAdapter
from .analyzer import VideoAnalyzer
from .config import WorkerConfig
from .exceptions import LockConflictError, RegistryCorruptionError
from .lock import ProcessingLock
from .logging_setup import log_exception
from .models import ProcessingOutcome, VideoAnalysisResult
from .pipeline.orchestrate import ContentOrchestrator
from .pipeline.sanitize import Sanitizer
from .pipeline.util import component_name, get_video_output_dir, is_video_file
from .state import ActiveProject, AgentContext, utcnow

logger = logging.getLogger("clone_worker")

# Stage -> (progress percent, published system status)
STAGES = {
    'locking': (5, 'processing'),
    'analyzing': (10, 'analyzing'),
    'sanitizing': (30, 'analyzing'),
    'orchestrating': (70, 'generating'),
    'exporting': (80, 'generating'),
    'generating': (90, 'generating'),
    'finalizing': (95, 'processing'),
    'idle': (100, 'complete'),
    'error': (0, 'error'),
}

# Analyzer progress (0-100) is scaled into this window of the overall progress
ANALYSIS_PROGRESS_START = 10
ANALYSIS_PROGRESS_END = 60

# Bounded histories for the long-running service
MAX_TRANSITIONS = 1000
MAX_OUTCOMES = 100


class QueueManager:
    """Owns the FIFO of pending files and drives each one through the pipeline"""

    def __init__(
        self,
        config: WorkerConfig,
        context: AgentContext,
        storage: Optional[StorageAdapter] = None,
        analyzer: Optional[VideoAnalyzer] = None,
        sanitizer: Optional[Sanitizer] = None,
        lock: Optional[ProcessingLock] = None,
        code_generator: Optional[CodeGeneratorAdapter] = None,
        orchestrator: Optional[ContentOrchestrator] = None,
        job_source: Optional[JobSourceAdapter] = None,
    ):
        self.config = config
        self.context = context
        self.storage = storage or FilesystemStorageAdapter(
            config.OUTPUT_DIR, config.PROCESSED_DIR, config.FAILED_DIR
        )
        self.analyzer = analyzer or VideoAnalyzer(config)
        self.sanitizer = sanitizer or Sanitizer(config.SANITIZE_DIR, config.TRANSCODER_PATH)
        self.lock = lock or ProcessingLock(config.LOCK_FILE, context, config.LOCK_TIMEOUT_SEC)
        self.code_generator = code_generator
        self.orchestrator = orchestrator
        self.job_source = job_source

        self.queue: Deque[str] = deque()
        self.current_path: Optional[str] = None
        self.is_processing = False
        self.transitions: Deque[Tuple[float, str, str]] = deque(maxlen=MAX_TRANSITIONS)
        self.outcomes: Deque[ProcessingOutcome] = deque(maxlen=MAX_OUTCOMES)
        self.stats = {
            'videos_processed': 0,
            'videos_failed': 0,
            'videos_sanitized': 0,
            'total_processing_time': 0.0,
            'start_time': datetime.now()
        }

    # ===== Queue =====

    def enqueue(self, path: str) -> bool:
        """
        Add a file to the back of the queue.

        Returns:
            False if the file is not a video or is already queued/in flight
        """
        if not is_video_file(path):
            logger.debug(f"Ignoring non-video file {path}")
            return False

        path = os.path.abspath(path)
        if path == self.current_path or path in self.queue:
            logger.debug(f"{os.path.basename(path)} is already queued")
            return False

        self.queue.append(path)
        self.context.add_to_queue(os.path.basename(path))
        logger.info(f"Queued {os.path.basename(path)} (queue length {len(self.queue)})")
        return True

    def get_queue(self) -> List[str]:
        return [os.path.basename(path) for path in self.queue]

    def validate_and_clean_lock(self) -> bool:
        """Remove a stale lock left behind by a crashed run"""
        return self.lock.validate_and_clean_lock()

    def process_next(self) -> bool:
        """
        Process the item at the head of the queue.

        Returns:
            True if an item was taken off the queue (whatever its outcome),
            False if busy, empty, or another process holds the lock
        """
        if self.is_processing or not self.queue:
            return False

        path = self.queue[0]
        file_name = os.path.basename(path)

        if not os.path.exists(path):
            logger.warning(f"{file_name} disappeared from the input directory, skipping")
            self.queue.popleft()
            self.context.remove_from_queue(file_name)
            self._release(file_name)
            return True

        try:
            self.lock.acquire(file_name)
        except LockConflictError as e:
            logger.info(f"Waiting for lock: {e}")
            return False
        self._record_transition(file_name, 'locking')

        self.is_processing = True
        self.queue.popleft()
        self.current_path = path
        try:
            outcome = self._process_item(path)
            self.outcomes.append(outcome)
            if outcome.archived_path:
                self._release(file_name)
        finally:
            self.lock.release()
            self.current_path = None
            self.is_processing = False

        return True

    def _release(self, file_name: str) -> None:
        """Let the job source pick up a new file dropped under the same name"""
        if self.job_source:
            self.job_source.release_job(file_name)

    def drain(self) -> int:
        """
        Process queued items back to back until the queue is empty or blocked.

        Returns:
            Number of items taken off the queue
        """
        count = 0
        while self.process_next():
            count += 1
        if count and not self.queue:
            self.context.set_idle()
        return count

    # ===== Per-item pipeline =====

    def _process_item(self, path: str) -> ProcessingOutcome:
        start_time = time.time()
        file_name = os.path.basename(path)
        output_dir = get_video_output_dir(self.config.OUTPUT_DIR, file_name)
        stages_completed: List[str] = []
        sanitized_path: Optional[str] = None

        logger.info(f"Processing {file_name}")
        self.context.set_active_project(ActiveProject(
            name=file_name,
            component_name=component_name(file_name),
            start_time=utcnow(),
        ))
        self.context.remove_from_queue(file_name)
        self._publish('locking')

        try:
            # Analysis, with a single sanitize-and-retry
            self._set_stage(file_name, 'analyzing')
            try:
                result = self.analyzer.analyze(path, output_dir, self._analysis_progress)
            except Exception as e:
                logger.warning(f"Analysis failed for {file_name}, attempting to sanitize: {e}")
                self._set_stage(file_name, 'sanitizing')
                sanitized_path = self.sanitizer.sanitize(path)
                self.stats['videos_sanitized'] += 1
                stages_completed.append('sanitizing')

                self._set_stage(file_name, 'analyzing')
                result = self.analyzer.analyze(sanitized_path, output_dir, self._analysis_progress)
            stages_completed.append('analyzing')

            if self.orchestrator:
                self._set_stage(file_name, 'orchestrating')
                result.orchestration = self.orchestrator.synthesize(result.generated_prompt or "", result.metadata)
                stages_completed.append('orchestrating')

            self._set_stage(file_name, 'exporting')
            analysis_path = self._export(file_name, result)
            stages_completed.append('exporting')

            if self.code_generator:
                self._set_stage(file_name, 'generating')
                self._generate(file_name, result)
                stages_completed.append('generating')

            self._set_stage(file_name, 'finalizing')
            archived_path = self.storage.archive_processed(path)
            Sanitizer.discard(sanitized_path)
            self.storage.reclaim_storage(keep_project=file_name)
            stages_completed.append('finalizing')

            self.context.mark_complete(file_name)
            self._record_transition(file_name, 'idle')

            processing_time = time.time() - start_time
            self.stats['videos_processed'] += 1
            self.stats['total_processing_time'] += processing_time
            logger.info(f"READY: {file_name} processed in {processing_time:.2f}s")

            return ProcessingOutcome(
                file_name=file_name,
                success=True,
                stages_completed=stages_completed,
                source_path=sanitized_path or path,
                analysis_path=analysis_path,
                archived_path=archived_path,
                sanitized=sanitized_path is not None,
                processing_time_sec=processing_time,
            )

        except Exception as e:
            error_msg = f"{type(e).__name__}: {e}"
            details = traceback.format_exc()
            log_exception(logger, f"Processing failed for {file_name}: {error_msg}")
            self._set_stage(file_name, 'error')

            Sanitizer.discard(sanitized_path)
            archived_path = self._handle_failure(path, error_msg, details)
            self.stats['videos_failed'] += 1

            return ProcessingOutcome(
                file_name=file_name,
                success=False,
                stages_completed=stages_completed,
                source_path=path,
                archived_path=archived_path,
                sanitized=sanitized_path is not None,
                error=error_msg,
                processing_time_sec=time.time() - start_time,
            )

    def _export(self, file_name: str, result: VideoAnalysisResult) -> str:
        analysis_path = self.storage.save_analysis(file_name, result)
        if result.generated_prompt:
            self.storage.save_prompt(file_name, result.generated_prompt)
        return analysis_path

    def _generate(self, file_name: str, result: VideoAnalysisResult) -> None:
        """Hand the result to the code generator; the analysis is already saved"""
        try:
            self.code_generator.generate(file_name, result)
        except RegistryCorruptionError as e:
            log_exception(logger, f"Code generation skipped for {file_name}: {e}")

    def _handle_failure(self, path: str, error: str, details: str) -> Optional[str]:
        """Archive the original, append to the failure log and record the failure"""
        file_name = os.path.basename(path)
        archived_path = None
        try:
            archived_path = self.storage.archive_failed(path, error, details)
        except OSError as e:
            log_exception(logger, f"Error archiving failed file {file_name}: {e}")

        self.context.add_failed_video(file_name, error)
        return archived_path

    # ===== Progress =====

    def _analysis_progress(self, stage: str, percent: int) -> None:
        span = ANALYSIS_PROGRESS_END - ANALYSIS_PROGRESS_START
        progress = ANALYSIS_PROGRESS_START + round(percent * span / 100)
        self.context.update_progress(f"analyzing:{stage}", progress, 'analyzing')

    def _set_stage(self, file_name: str, stage: str) -> None:
        self._record_transition(file_name, stage)
        if stage == 'error':
            self.context.mark_error(f"{file_name} failed")
        else:
            self._publish(stage)

    def _publish(self, stage: str) -> None:
        progress, status = STAGES[stage]
        self.context.update_progress(stage, progress, status)

    def _record_transition(self, file_name: str, stage: str) -> None:
        logger.debug(f"{file_name}: {stage}")
        self.transitions.append((time.time(), file_name, stage))

    def get_stats(self) -> Dict[str, Any]:
        """Get queue manager statistics"""
        uptime = (datetime.now() - self.stats['start_time']).total_seconds()
        finished = self.stats['videos_processed'] + self.stats['videos_failed']
        avg_processing_time = (
            self.stats['total_processing_time'] / self.stats['videos_processed']
            if self.stats['videos_processed'] > 0 else 0
        )

        return {
            'videos_processed': self.stats['videos_processed'],
            'videos_failed': self.stats['videos_failed'],
            'videos_sanitized': self.stats['videos_sanitized'],
            'queue_length': len(self.queue),
            'is_processing': self.is_processing,
            'average_processing_time': avg_processing_time,
            'uptime_seconds': uptime,
            'success_rate': self.stats['videos_processed'] / finished if finished > 0 else 0
        }
