import math
import os
import re
import time
from typing import Optional


VIDEO_EXTENSIONS = {".mp4", ".mov", ".avi", ".mkv", ".webm", ".m4v", ".flv"}
TEMP_FRAMES_DIR = "temp_frames"
MAX_PLAUSIBLE_FPS = 120.0


def is_video_file(path: str) -> bool:
    """Extension-based filter for watched files; dotfiles are ignored"""
    name = os.path.basename(path)
    if name.startswith("."):
        return False
    return os.path.splitext(name)[1].lower() in VIDEO_EXTENSIONS


def get_video_output_dir(output_dir: str, video_name: str) -> str:
    """Get output directory for a video: "a.mp4" -> "<output_dir>/a_mp4" """
    stem, ext = os.path.splitext(os.path.basename(video_name))
    if ext:
        stem = f"{stem}_{ext[1:].lower()}"
    return os.path.join(output_dir, stem)


def get_frames_dir(video_output_dir: str) -> str:
    """Get keyframe working directory for a video"""
    frames_dir = os.path.join(video_output_dir, TEMP_FRAMES_DIR)
    os.makedirs(frames_dir, exist_ok=True)
    return frames_dir


def parse_frame_rate(value) -> Optional[float]:
    """
    Parse an ffprobe rate such as "30000/1001" or "25" into frames per second.

    Returns None when the value is missing, malformed, has a zero denominator,
    or is not a finite number.
    """
    if value is None:
        return None

    if isinstance(value, (int, float)):
        rate = float(value)
    else:
        text = str(value).strip()
        match = re.fullmatch(r'([0-9]+(?:\.[0-9]+)?)\s*/\s*([0-9]+(?:\.[0-9]+)?)', text)
        try:
            if match:
                numerator, denominator = float(match.group(1)), float(match.group(2))
                if denominator == 0:
                    return None
                rate = numerator / denominator
            else:
                rate = float(text)
        except ValueError:
            return None

    if not math.isfinite(rate):
        return None
    return rate


def is_plausible_fps(fps: Optional[float]) -> bool:
    """Frame rates must lie in (0, 120]"""
    return fps is not None and math.isfinite(fps) and 0 < fps <= MAX_PLAUSIBLE_FPS


def ensure_dir(path: str):
    """Ensure directory exists"""
    os.makedirs(path, exist_ok=True)


def unique_destination(directory: str, file_name: str) -> str:
    """
    Return a path in directory for file_name that does not exist yet.

    Collisions get a "_<ms timestamp>" suffix before the extension, and a
    counter on top of that if the same millisecond is already taken.
    """
    candidate = os.path.join(directory, file_name)
    if not os.path.exists(candidate):
        return candidate

    stem, ext = os.path.splitext(file_name)
    token = int(time.time() * 1000)
    candidate = os.path.join(directory, f"{stem}_{token}{ext}")
    counter = 1
    while os.path.exists(candidate):
        candidate = os.path.join(directory, f"{stem}_{token}_{counter}{ext}")
        counter += 1
    return candidate


def component_name(video_name: str) -> str:
    """Derive a component identifier: "travel77" -> "Travel77" """
    stem = os.path.splitext(os.path.basename(video_name))[0]
    cleaned = re.sub(r'[^a-zA-Z0-9]', '', stem)
    if not cleaned:
        return "Clip"
    if cleaned[0].isdigit():
        cleaned = f"Clip{cleaned}"
    return cleaned[0].upper() + cleaned[1:]
