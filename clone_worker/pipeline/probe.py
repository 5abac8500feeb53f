import json
import math
import logging
from typing import Any, Dict, Optional

import ffmpeg

from ..exceptions import ProbeError
from ..models import VideoMetadata
from .util import parse_frame_rate, is_plausible_fps

logger = logging.getLogger("clone_worker")

DEFAULT_FPS = 30.0


def get_video_metadata(video_path: str, ffprobe_path: str = "ffprobe") -> VideoMetadata:
    """
    Probe a video file and return normalized metadata.

    Raises:
        ProbeError: ffprobe failed or the file has no usable video stream
    """
    try:
        probe = ffmpeg.probe(video_path, cmd=ffprobe_path)
    except ffmpeg.Error as e:
        stderr = e.stderr.decode("utf-8", errors="ignore") if e.stderr else ""
        raise ProbeError(f"ffprobe failed for {video_path}: {stderr.strip()}") from e
    except FileNotFoundError as e:
        raise ProbeError(
            f"Command not found: {ffprobe_path}. Ensure ffprobe is installed and available in your PATH."
        ) from e
    except json.JSONDecodeError as e:
        raise ProbeError(f"ffprobe returned unreadable output for {video_path}: {e}") from e

    return parse_probe_output(probe, video_path)


def parse_probe_output(probe: Dict[str, Any], video_path: str = "<probe>") -> VideoMetadata:
    """Build VideoMetadata from ffprobe's format/streams JSON document"""
    streams = probe.get('streams') or []
    video_stream = next((s for s in streams if s.get('codec_type') == 'video'), None)
    if video_stream is None:
        raise ProbeError(f"No video stream found in {video_path}")

    width = _positive_int(video_stream.get('width'))
    height = _positive_int(video_stream.get('height'))
    if width is None or height is None:
        raise ProbeError(
            f"Invalid dimensions for {video_path}: "
            f"{video_stream.get('width')}x{video_stream.get('height')}"
        )

    format_info = probe.get('format') or {}

    duration = _parse_duration(format_info.get('duration'))
    if duration is None:
        logger.warning(f"No container duration reported for {video_path}, using 0")
        duration = 0.0

    metadata = VideoMetadata(
        duration=duration,
        fps=resolve_fps(video_stream, video_path),
        width=width,
        height=height,
        codec=str(video_stream.get('codec_name') or 'unknown'),
        bitrate=_parse_bitrate(format_info.get('bit_rate')),
    )

    logger.debug(
        f"Probed {video_path}: {metadata.width}x{metadata.height} "
        f"{metadata.fps:.3f}fps {metadata.duration:.2f}s codec={metadata.codec}"
    )
    return metadata


def resolve_fps(video_stream: Dict[str, Any], video_path: str = "<probe>") -> float:
    """
    Pick a plausible frame rate for a stream.

    avg_frame_rate is preferred because it is more reliable for VFR sources;
    r_frame_rate is the fallback. When neither lies in (0, 120] the default
    of 30 is used.
    """
    fps = parse_frame_rate(video_stream.get('avg_frame_rate'))
    if is_plausible_fps(fps):
        return fps

    fallback = parse_frame_rate(video_stream.get('r_frame_rate'))
    if is_plausible_fps(fallback):
        return fallback

    logger.warning(
        f"Detected unusual FPS for {video_path} "
        f"(avg_frame_rate={video_stream.get('avg_frame_rate')}, "
        f"r_frame_rate={video_stream.get('r_frame_rate')}). Defaulting to {DEFAULT_FPS:g}."
    )
    return DEFAULT_FPS


def _positive_int(value) -> Optional[int]:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _parse_duration(value) -> Optional[float]:
    try:
        duration = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(duration) or duration < 0:
        return None
    return duration


def _parse_bitrate(value) -> Optional[int]:
    # Missing bitrate is common for raw/streamed containers
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
