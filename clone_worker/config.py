"""
Configuration management for the clone worker.

Centralizes all configuration loading from environment variables
and provides type-safe access to configuration values.
"""

import os
from typing import List, Optional
from dataclasses import dataclass


@dataclass
class WorkerConfig:
    """Configuration for the clone worker"""

    # Directories
    INPUT_DIR: str = "inputs"
    OUTPUT_DIR: str = "outputs"
    PROCESSED_DIR: Optional[str] = None
    FAILED_DIR: Optional[str] = None
    SANITIZE_DIR: Optional[str] = None
    CODEGEN_DIR: Optional[str] = None

    # Analysis settings
    SCENE_THRESHOLD: float = 0.4
    KEYFRAME_INTERVAL: float = 2.0
    MAX_KEYFRAMES: int = 50

    # External tools
    FFMPEG_PATH: str = "ffmpeg"
    FFPROBE_PATH: str = "ffprobe"
    TRANSCODER_PATH: Optional[str] = None

    # Process-wide status and lock
    STATE_FILE: str = "system-state.json"
    LOCK_FILE: str = ".processing.lock"
    LOCK_TIMEOUT_SEC: int = 300

    # Polling settings
    POLL_INTERVAL_MS: int = 1500
    BACKOFF_MULTIPLIER: float = 1.5
    MAX_BACKOFF_MS: int = 12000
    STABILITY_THRESHOLD_MS: int = 2000

    # Optional stages
    ENABLE_ORCHESTRATION: bool = False
    ORCHESTRATION_MODEL: str = "gpt-4o-mini"
    ENABLE_CODEGEN: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # HTTP server
    ENABLE_HTTP_SERVER: bool = False
    HTTP_PORT: int = 8000

    def __post_init__(self):
        self._resolve_derived_paths()

    def _resolve_derived_paths(self) -> None:
        """Fill in directories that default relative to the input/output dirs"""
        input_parent = os.path.dirname(os.path.abspath(self.INPUT_DIR))
        if not self.PROCESSED_DIR:
            self.PROCESSED_DIR = os.path.join(input_parent, "processed")
        if not self.FAILED_DIR:
            self.FAILED_DIR = os.path.join(input_parent, "failed")
        if not self.SANITIZE_DIR:
            self.SANITIZE_DIR = os.path.join(self.OUTPUT_DIR, ".sanitized")
        if not self.CODEGEN_DIR:
            self.CODEGEN_DIR = os.path.join(self.OUTPUT_DIR, "clones")
        if not self.TRANSCODER_PATH:
            self.TRANSCODER_PATH = self.FFMPEG_PATH

    @classmethod
    def from_env(cls) -> 'WorkerConfig':
        """Load configuration from environment variables"""
        ffmpeg_path = os.getenv("FFMPEG_PATH", "ffmpeg")

        return cls(
            # Directories
            INPUT_DIR=os.getenv("INPUT_DIR", os.path.join(os.getcwd(), "inputs")),
            OUTPUT_DIR=os.getenv("OUTPUT_DIR", os.path.join(os.getcwd(), "outputs")),
            PROCESSED_DIR=os.getenv("PROCESSED_DIR"),
            FAILED_DIR=os.getenv("FAILED_DIR"),
            SANITIZE_DIR=os.getenv("SANITIZE_DIR"),
            CODEGEN_DIR=os.getenv("CODEGEN_DIR"),

            # Analysis settings
            SCENE_THRESHOLD=float(os.getenv("SCENE_DETECTION_THRESHOLD", "0.4")),
            KEYFRAME_INTERVAL=float(os.getenv("KEYFRAME_INTERVAL", "2")),
            MAX_KEYFRAMES=int(os.getenv("MAX_KEYFRAMES", "50")),

            # External tools
            FFMPEG_PATH=ffmpeg_path,
            FFPROBE_PATH=os.getenv("FFPROBE_PATH", "ffprobe"),
            TRANSCODER_PATH=os.getenv("TRANSCODER_PATH", ffmpeg_path),

            # Process-wide status and lock
            STATE_FILE=os.getenv("STATE_FILE", os.path.join(os.getcwd(), "system-state.json")),
            LOCK_FILE=os.getenv("LOCK_FILE", os.path.join(os.getcwd(), ".processing.lock")),

            # Polling settings
            POLL_INTERVAL_MS=int(os.getenv("WORKER_POLL_MS", "1500")),
            BACKOFF_MULTIPLIER=float(os.getenv("WORKER_BACKOFF_MULTIPLIER", "1.5")),
            MAX_BACKOFF_MS=int(os.getenv("WORKER_MAX_BACKOFF_MS", "12000")),
            STABILITY_THRESHOLD_MS=int(os.getenv("STABILITY_THRESHOLD_MS", "2000")),

            # Optional stages
            ENABLE_ORCHESTRATION=os.getenv("ENABLE_ORCHESTRATION", "false").lower() == "true",
            ORCHESTRATION_MODEL=os.getenv("ORCHESTRATION_MODEL", "gpt-4o-mini"),
            ENABLE_CODEGEN=os.getenv("ENABLE_CODEGEN", "true").lower() == "true",

            # Logging
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
            LOG_DIR=os.getenv("LOG_DIR", os.path.join(os.getcwd(), "logs")),

            # HTTP server
            ENABLE_HTTP_SERVER=os.getenv("WORKER_DEV_HTTP", "false").lower() == "true",
            HTTP_PORT=int(os.getenv("WORKER_HTTP_PORT", "8000")),
        )

    def validate(self) -> None:
        """Validate configuration and raise errors for invalid values"""
        problems: List[str] = []

        if not 0.0 <= self.SCENE_THRESHOLD <= 1.0:
            problems.append(f"SCENE_DETECTION_THRESHOLD must be within [0, 1], got {self.SCENE_THRESHOLD}")

        if self.KEYFRAME_INTERVAL <= 0:
            problems.append(f"KEYFRAME_INTERVAL must be positive, got {self.KEYFRAME_INTERVAL}")

        if self.MAX_KEYFRAMES <= 0:
            problems.append(f"MAX_KEYFRAMES must be positive, got {self.MAX_KEYFRAMES}")

        if self.LOCK_TIMEOUT_SEC <= 0:
            problems.append(f"LOCK_TIMEOUT_SEC must be positive, got {self.LOCK_TIMEOUT_SEC}")

        # Check for OpenAI API key if orchestration is enabled
        if self.ENABLE_ORCHESTRATION and not os.getenv("OPENAI_API_KEY"):
            problems.append("OPENAI_API_KEY is required when ENABLE_ORCHESTRATION=true")

        if problems:
            raise ValueError(f"Invalid configuration: {'; '.join(problems)}")

    def directories(self) -> List[str]:
        """Directories the worker needs before it can start"""
        return [
            self.INPUT_DIR,
            self.OUTPUT_DIR,
            self.PROCESSED_DIR,
            self.FAILED_DIR,
            self.SANITIZE_DIR,
        ]
