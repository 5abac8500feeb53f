import logging
import re
from typing import List

import ffmpeg

from ..exceptions import SceneDetectionError
from ..models import SceneSegment

logger = logging.getLogger("clone_worker")

DEFAULT_SCENE_THRESHOLD = 0.4

# showinfo prints one line per frame that passed the select filter
PTS_TIME_PATTERN = re.compile(r'pts_time:([0-9]+(?:\.[0-9]+)?)')


def detect_scenes(
    video_path: str,
    threshold: float = DEFAULT_SCENE_THRESHOLD,
    ffmpeg_path: str = "ffmpeg",
) -> List[SceneSegment]:
    """
    Detect scene changes with ffmpeg's scene-score select filter.

    Each change point closes the segment started by the previous one (the
    first segment starts at 0). The tail after the last change point is not
    emitted; callers that need it close it with the video duration.

    Returns:
        Time-ordered list of SceneSegment. Empty when no change exceeded the threshold.

    Raises:
        SceneDetectionError: the ffmpeg invocation itself failed
    """
    if not 0.0 <= threshold <= 1.0:
        raise ValueError(f"Scene threshold must be within [0, 1], got {threshold}")

    logger.info(f"Detecting scenes for {video_path} (threshold={threshold})")

    stream = (
        ffmpeg
        .input(video_path)
        .filter('select', f'gt(scene,{threshold})')
        .filter('showinfo')
        .output('-', format='null')
    )

    try:
        _, stderr = ffmpeg.run(stream, cmd=ffmpeg_path, capture_stdout=True, capture_stderr=True)
    except ffmpeg.Error as e:
        stderr = e.stderr.decode("utf-8", errors="ignore") if e.stderr else ""
        raise SceneDetectionError(f"Scene detection failed for {video_path}: {stderr.strip()}") from e
    except FileNotFoundError as e:
        raise SceneDetectionError(
            f"Command not found: {ffmpeg_path}. Ensure ffmpeg is installed and available in your PATH."
        ) from e

    diagnostics = stderr.decode("utf-8", errors="ignore") if isinstance(stderr, bytes) else (stderr or "")
    scenes = parse_scene_changes(diagnostics, threshold)

    logger.info(f"Scene detection completed for {video_path}: {len(scenes)} scenes")
    return scenes


def parse_scene_changes(diagnostics: str, threshold: float) -> List[SceneSegment]:
    """Turn showinfo pts_time entries into consecutive segments"""
    scenes: List[SceneSegment] = []
    last_time = 0.0

    for match in PTS_TIME_PATTERN.finditer(diagnostics):
        change_time = float(match.group(1))
        if change_time < last_time:
            logger.debug(f"Ignoring out-of-order scene change at {change_time:.3f}s")
            continue

        scenes.append(
            SceneSegment(
                start_time=last_time,
                end_time=change_time,
                frame_number=-1,  # not recoverable from showinfo timestamps
                scene_score=threshold,
            )
        )
        last_time = change_time

    return scenes


def validate_scenes(scenes: List[SceneSegment]) -> bool:
    """Validate scene detection results: ordered, non-overlapping, non-inverted."""
    for scene in scenes:
        if scene.start_time < 0 or scene.end_time < scene.start_time:
            return False

    # Equality at boundaries is OK.
    for i in range(1, len(scenes)):
        if scenes[i].start_time < scenes[i - 1].end_time:
            return False

    return True
