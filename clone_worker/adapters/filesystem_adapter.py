"""
Local filesystem storage adapter.

Writes analysis.json and prompt.txt under <output>/<stem>/, archives source
files into the processed/failed directories and keeps the failure log.
"""

import os
import json
import shutil
import logging
from datetime import datetime, timezone
from typing import Optional, List

from .base import StorageAdapter
from ..models import VideoAnalysisResult
from ..pipeline.util import TEMP_FRAMES_DIR, ensure_dir, get_video_output_dir, unique_destination

logger = logging.getLogger("clone_worker")

ANALYSIS_FILE = "analysis.json"
PROMPT_FILE = "prompt.txt"
ERROR_LOG_FILE = "error.log"


class FilesystemStorageAdapter(StorageAdapter):
    """Filesystem implementation of storage adapter"""

    def __init__(self, output_dir: str, processed_dir: str, failed_dir: str):
        self.output_dir = output_dir
        self.processed_dir = processed_dir
        self.failed_dir = failed_dir

    def connect(self) -> None:
        for directory in (self.output_dir, self.processed_dir, self.failed_dir):
            ensure_dir(directory)
        logger.info(f"Filesystem storage ready: output={self.output_dir}")

    @property
    def error_log_path(self) -> str:
        return os.path.join(self.failed_dir, ERROR_LOG_FILE)

    def project_dir(self, video_name: str) -> str:
        return get_video_output_dir(self.output_dir, video_name)

    def save_analysis(self, video_name: str, result: VideoAnalysisResult) -> str:
        project_dir = self.project_dir(video_name)
        ensure_dir(project_dir)
        analysis_path = os.path.join(project_dir, ANALYSIS_FILE)

        with open(analysis_path, 'w', encoding='utf-8') as f:
            json.dump(result.to_dict(), f, indent=2)

        logger.info(f"Analysis saved to {analysis_path}")
        return analysis_path

    def load_analysis(self, video_name: str) -> Optional[VideoAnalysisResult]:
        analysis_path = os.path.join(self.project_dir(video_name), ANALYSIS_FILE)
        if not os.path.exists(analysis_path):
            return None

        with open(analysis_path, 'r', encoding='utf-8') as f:
            return VideoAnalysisResult.from_dict(json.load(f))

    def save_prompt(self, video_name: str, prompt: str) -> str:
        project_dir = self.project_dir(video_name)
        ensure_dir(project_dir)
        prompt_path = os.path.join(project_dir, PROMPT_FILE)

        with open(prompt_path, 'w', encoding='utf-8') as f:
            f.write(prompt)

        logger.info(f"Prompt saved to {prompt_path}")
        return prompt_path

    def archive_processed(self, source_path: str) -> str:
        ensure_dir(self.processed_dir)
        destination = unique_destination(self.processed_dir, os.path.basename(source_path))
        shutil.move(source_path, destination)
        logger.info(f"Moved {os.path.basename(source_path)} to {destination}")
        return destination

    def archive_failed(self, source_path: str, error: str, details: Optional[str] = None) -> Optional[str]:
        ensure_dir(self.failed_dir)
        file_name = os.path.basename(source_path)

        timestamp = datetime.now(timezone.utc).isoformat()
        entry = f"[{timestamp}] {file_name}: {error}\n"
        if details:
            entry += f"{details.rstrip()}\n"
        entry += "\n"
        with open(self.error_log_path, 'a', encoding='utf-8') as f:
            f.write(entry)

        if not os.path.exists(source_path):
            logger.warning(f"Failed file {file_name} is no longer in the input directory")
            return None

        destination = unique_destination(self.failed_dir, file_name)
        shutil.move(source_path, destination)
        logger.info(f"Moved failed file {file_name} to {destination}")
        return destination

    def reclaim_storage(self, keep_project: Optional[str] = None) -> List[str]:
        """Remove temp_frames/ of every project except keep_project"""
        if not os.path.isdir(self.output_dir):
            return []

        keep_dir = self.project_dir(keep_project) if keep_project else None
        removed = []

        for entry in sorted(os.listdir(self.output_dir)):
            project_dir = os.path.join(self.output_dir, entry)
            if not os.path.isdir(project_dir) or project_dir == keep_dir:
                continue

            frames_dir = os.path.join(project_dir, TEMP_FRAMES_DIR)
            if os.path.isdir(frames_dir):
                try:
                    shutil.rmtree(frames_dir)
                    removed.append(frames_dir)
                except OSError as e:
                    logger.warning(f"Could not remove {frames_dir}: {e}")

        if removed:
            logger.info(f"Reclaimed {len(removed)} temporary frame directories")
        return removed
