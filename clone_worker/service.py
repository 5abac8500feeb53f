"""
Main worker service.

Wires the watched input directory, filesystem storage, code-generation
handoff and the queue manager together and runs the polling loop.
"""

import time
import signal
import sys
import logging
from typing import Optional, Dict, Any

from dotenv import load_dotenv

from .config import WorkerConfig
from .adapters.base import JobSourceAdapter, StorageAdapter, CodeGeneratorAdapter
from .adapters.codegen_adapter import ManifestCodeGenerator
from .adapters.directory_adapter import DirectoryJobSourceAdapter
from .adapters.filesystem_adapter import FilesystemStorageAdapter
from .pipeline.orchestrate import ContentOrchestrator
from .pipeline.util import ensure_dir
from .queue_manager import QueueManager
from .state import AgentContext
from .logging_setup import setup_logging, log_exception
from .http_server import start_health_server

logger = logging.getLogger("clone_worker")


class WorkerService:
    """Main worker service with adapter-based architecture"""

    def __init__(self, config: Optional[WorkerConfig] = None):
        self.config = config or WorkerConfig.from_env()
        self.job_source: Optional[JobSourceAdapter] = None
        self.storage: Optional[StorageAdapter] = None
        self.context: Optional[AgentContext] = None
        self.queue_manager: Optional[QueueManager] = None
        self.health_server = None
        self.running = False
        self.backoff_interval = self.config.POLL_INTERVAL_MS
        self.max_backoff = self.config.MAX_BACKOFF_MS

    def initialize(self):
        """Initialize worker with adapters based on configuration"""
        try:
            # Setup logging
            setup_logging(self.config.LOG_LEVEL, self.config.LOG_DIR)

            # Validate configuration
            self.config.validate()

            for directory in self.config.directories():
                ensure_dir(directory)

            # Process-wide status, owned by the service for its whole lifetime
            self.context = AgentContext(
                self.config.STATE_FILE,
                processed_dir=self.config.PROCESSED_DIR,
                failed_dir=self.config.FAILED_DIR,
            )

            # Initialize adapters
            self._initialize_adapters()

            self.queue_manager = QueueManager(
                self.config,
                self.context,
                storage=self.storage,
                code_generator=self._create_code_generator(),
                orchestrator=self._create_orchestrator(),
                job_source=self.job_source,
            )

            # Recover from a crashed previous run
            if self.queue_manager.validate_and_clean_lock():
                logger.warning("A live processing lock is held by another process")
            else:
                self.context.recover_interrupted_run()
                if self.context.get_full_state().status == 'paused':
                    self.context.update_status('idle')

            # Start health server if enabled
            self.health_server = start_health_server(self)

            logger.info("Worker service initialized successfully")

        except Exception as e:
            log_exception(logger, f"Failed to initialize worker service: {e}")
            raise

    def _initialize_adapters(self):
        """Initialize job source and storage adapters"""
        self.job_source = DirectoryJobSourceAdapter(
            self.config.INPUT_DIR,
            stability_threshold_ms=self.config.STABILITY_THRESHOLD_MS,
        )
        self.job_source.connect()

        self.storage = FilesystemStorageAdapter(
            self.config.OUTPUT_DIR,
            self.config.PROCESSED_DIR,
            self.config.FAILED_DIR,
        )
        self.storage.connect()

        logger.info(f"Initialized adapters: watching {self.config.INPUT_DIR}, writing to {self.config.OUTPUT_DIR}")

    def _create_code_generator(self) -> Optional[CodeGeneratorAdapter]:
        if not self.config.ENABLE_CODEGEN:
            return None
        return ManifestCodeGenerator(self.config.CODEGEN_DIR)

    def _create_orchestrator(self) -> Optional[ContentOrchestrator]:
        if not self.config.ENABLE_ORCHESTRATION:
            return None
        return ContentOrchestrator(model=self.config.ORCHESTRATION_MODEL)

    def start(self):
        """Start the worker service"""
        if self.running:
            logger.warning("Worker service is already running")
            return

        self.running = True
        logger.info("Worker service started")
        self._start_polling_loop()

    def _start_polling_loop(self):
        """Poll the input directory and drain the queue"""
        logger.info(f"Worker started, watching {self.config.INPUT_DIR} for videos...")

        while self.running:
            try:
                processed = self.run_once()

                if not processed:
                    # Nothing ready (or lock held elsewhere), use exponential backoff
                    time.sleep(self.backoff_interval / 1000.0)
                    self.backoff_interval = min(
                        self.backoff_interval * self.config.BACKOFF_MULTIPLIER,
                        self.max_backoff
                    )
                else:
                    # Reset backoff on successful processing
                    self.backoff_interval = self.config.POLL_INTERVAL_MS

            except KeyboardInterrupt:
                logger.info("Received interrupt signal, shutting down...")
                break
            except Exception as e:
                log_exception(logger, f"Unexpected error in worker loop: {str(e)}")
                time.sleep(self.backoff_interval / 1000.0)
                self.backoff_interval = min(
                    self.backoff_interval * self.config.BACKOFF_MULTIPLIER,
                    self.max_backoff
                )

        logger.info("Worker polling loop stopped")

    def run_once(self) -> bool:
        """
        Run one iteration of the worker loop.

        Returns:
            True if at least one video was taken off the queue
        """
        for job in self.job_source.poll_jobs():
            if self.queue_manager.enqueue(job.path):
                # New jobs are worth checking for again soon
                self.backoff_interval = self.config.POLL_INTERVAL_MS

        return self.queue_manager.drain() > 0

    def stop(self):
        """Stop the worker service"""
        if not self.running:
            return

        self.running = False

        if self.health_server:
            self.health_server.stop()

        # Tell observers the worker is down unless a failure should stay visible
        if self.context and self.context.get_full_state().status in ('idle', 'complete'):
            self.context.update_status('paused')

        if self.job_source:
            self.job_source.close()
        if self.storage:
            self.storage.close()

        logger.info("Worker service stopped")

    def get_stats(self) -> Dict[str, Any]:
        """Get worker statistics"""
        stats = {
            'running': self.running,
            'config': {
                'input_dir': self.config.INPUT_DIR,
                'output_dir': self.config.OUTPUT_DIR,
                'max_keyframes': self.config.MAX_KEYFRAMES,
                'poll_interval_ms': self.config.POLL_INTERVAL_MS
            }
        }

        if self.queue_manager:
            stats['queue'] = self.queue_manager.get_stats()

        return stats


def signal_handler(signum, frame):
    """Handle shutdown signals"""
    logger.info(f"Received signal {signum}, shutting down...")
    sys.exit(0)


def main():
    """Main entry point"""
    load_dotenv()

    # Setup signal handlers
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    worker = WorkerService()

    try:
        worker.initialize()
        worker.start()
    except Exception as e:
        log_exception(logger, f"Worker failed to start: {str(e)}")
        sys.exit(1)
    finally:
        worker.stop()


if __name__ == "__main__":
    main()
