import math
import os
import logging
from typing import List, Sequence

import ffmpeg

from ..exceptions import KeyframeExtractionError
from ..models import Keyframe, SceneSegment
from .util import ensure_dir

logger = logging.getLogger("clone_worker")

DEFAULT_KEYFRAME_INTERVAL = 2.0
DEFAULT_MAX_KEYFRAMES = 50


def select_keyframe_timestamps(
    scenes: Sequence[SceneSegment],
    duration: float,
    interval: float = DEFAULT_KEYFRAME_INTERVAL,
    max_keyframes: int = DEFAULT_MAX_KEYFRAMES,
) -> List[float]:
    """
    Choose the timestamps to sample keyframes at.

    Scene starts are the base set. When scene detection found fewer than two
    segments, a fixed-interval sweep over [0, duration) is added so that the
    video is still covered. The result is deduplicated, sorted and, when it
    exceeds max_keyframes, thinned by keeping every ceil(n / max)-th element.
    """
    if interval <= 0:
        raise ValueError(f"Keyframe interval must be positive, got {interval}")
    if max_keyframes <= 0:
        raise ValueError(f"Maximum keyframe count must be positive, got {max_keyframes}")

    timestamps = [scene.start_time for scene in scenes]

    if len(scenes) < 2:
        # Multiply instead of accumulating to avoid float drift
        steps = int(math.ceil(duration / interval)) if duration > 0 else 0
        for i in range(steps):
            t = i * interval
            if t < duration:
                timestamps.append(t)

    timestamps = sorted(set(timestamps))

    if len(timestamps) > max_keyframes:
        stride = int(math.ceil(len(timestamps) / max_keyframes))
        logger.debug(f"Thinning {len(timestamps)} timestamps with stride {stride}")
        timestamps = timestamps[::stride]

    return timestamps


def keyframe_filename(index: int) -> str:
    """Ordinal-based name so extraction order is stable and collision-free"""
    return f"frame_{index:04d}.png"


def extract_keyframes(
    video_path: str,
    output_dir: str,
    timestamps: Sequence[float],
    ffmpeg_path: str = "ffmpeg",
) -> List[str]:
    """
    Extract one still image per timestamp, one ffmpeg invocation at a time.

    Returns:
        Image paths in the same order as timestamps

    Raises:
        KeyframeExtractionError: any single extraction failed
    """
    ensure_dir(output_dir)
    file_paths: List[str] = []

    logger.info(f"Extracting {len(timestamps)} keyframes from {video_path}")

    for index, timestamp in enumerate(timestamps):
        frame_path = os.path.join(output_dir, keyframe_filename(index))

        # -ss before -i performs a fast seek
        stream = (
            ffmpeg
            .input(video_path, ss=f"{timestamp:.3f}")
            .output(frame_path, **{'frames:v': 1, 'q:v': 2})
            .overwrite_output()
        )

        try:
            ffmpeg.run(stream, cmd=ffmpeg_path, capture_stdout=True, capture_stderr=True)
        except ffmpeg.Error as e:
            stderr = e.stderr.decode("utf-8", errors="ignore") if e.stderr else ""
            raise KeyframeExtractionError(
                f"Failed to extract keyframe {index} at {timestamp:.3f}s from {video_path}: {stderr.strip()}"
            ) from e
        except FileNotFoundError as e:
            raise KeyframeExtractionError(
                f"Command not found: {ffmpeg_path}. Ensure ffmpeg is installed and available in your PATH."
            ) from e

        if not os.path.exists(frame_path):
            raise KeyframeExtractionError(
                f"ffmpeg produced no image for keyframe {index} at {timestamp:.3f}s"
            )

        logger.debug(f"Extracted keyframe {index} at {timestamp:.3f}s")
        file_paths.append(frame_path)

    return file_paths


def build_keyframes(timestamps: Sequence[float], file_paths: Sequence[str]) -> List[Keyframe]:
    """Pair sampled timestamps with their extracted image paths"""
    if len(timestamps) != len(file_paths):
        raise KeyframeExtractionError(
            f"Extracted {len(file_paths)} images for {len(timestamps)} timestamps"
        )
    return [
        Keyframe(timestamp=timestamp, file_path=path, frame_number=-1)
        for timestamp, path in zip(timestamps, file_paths)
    ]
