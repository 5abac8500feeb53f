import os
import time
import ffmpeg
import logging
import threading
from typing import Optional

from ..exceptions import SanitizeError
from .util import ensure_dir

logger = logging.getLogger("clone_worker")


class Sanitizer:
    """
    Re-encodes a video to H.264/AAC MP4 so that probing and frame extraction
    can succeed on sources with unusual encodings.
    """

    def __init__(self, work_dir: str, ffmpeg_path: str = "ffmpeg"):
        self.work_dir = work_dir
        self.ffmpeg_path = ffmpeg_path
        self._token_lock = threading.Lock()
        self._last_token = 0

    def _next_token(self) -> int:
        """Millisecond timestamp, bumped so that two calls never share a token"""
        with self._token_lock:
            token = max(int(time.time() * 1000), self._last_token + 1)
            self._last_token = token
            return token

    def output_path_for(self, file_path: str) -> str:
        name = os.path.splitext(os.path.basename(file_path))[0]
        return os.path.join(self.work_dir, f"{name}_fixed_{self._next_token()}.mp4")

    def sanitize(self, file_path: str) -> str:
        """
        Transcode file_path into a new file in the work directory.

        Returns:
            Path of the sanitized copy

        Raises:
            SanitizeError: ffmpeg failed; any partial output has been removed
        """
        ensure_dir(self.work_dir)
        sanitized_path = self.output_path_for(file_path)

        logger.info(f"SANITIZE: Attempting to fix {file_path} -> {sanitized_path}")

        stream = (
            ffmpeg
            .input(file_path)
            .output(
                sanitized_path,
                vcodec='libx264',   # widely compatible H.264 video
                preset='fast',
                acodec='aac',       # widely compatible AAC audio
                movflags='+faststart'
            )
            .overwrite_output()
        )

        try:
            ffmpeg.run(stream, cmd=self.ffmpeg_path, capture_stdout=True, capture_stderr=True)
        except ffmpeg.Error as e:
            stderr = e.stderr.decode("utf-8", errors="ignore") if e.stderr else ""
            self._remove_partial(sanitized_path)
            error_msg = f"Failed to sanitize {file_path}: {stderr.strip()}"
            logger.error(error_msg)
            raise SanitizeError(error_msg) from e
        except FileNotFoundError as e:
            self._remove_partial(sanitized_path)
            raise SanitizeError(
                f"Command not found: {self.ffmpeg_path}. Ensure ffmpeg is installed and available in your PATH."
            ) from e

        if not os.path.exists(sanitized_path):
            raise SanitizeError(f"Sanitization produced no output for {file_path}")

        logger.info(f"Successfully created sanitized version: {sanitized_path}")
        return sanitized_path

    def _remove_partial(self, sanitized_path: str) -> None:
        if os.path.exists(sanitized_path):
            os.remove(sanitized_path)
            logger.debug(f"Removed partial output {sanitized_path}")

    @staticmethod
    def discard(sanitized_path: Optional[str]) -> None:
        """Delete a sanitized copy once it is no longer needed"""
        if sanitized_path and os.path.exists(sanitized_path):
            os.remove(sanitized_path)
            logger.debug(f"Deleted sanitized copy {sanitized_path}")
