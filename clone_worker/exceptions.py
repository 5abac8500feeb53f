"""
Error taxonomy for the clone worker.

Pipeline-level errors propagate to the queue manager, which decides whether
to sanitize and retry or to fail the item. Stage-local errors such as
ColorExtractionError are caught where they happen and degrade the output.
"""


class WorkerError(Exception):
    """Base class for all worker errors"""


class ProbeError(WorkerError):
    """No decodable video stream, or ffprobe could not be run"""


class SceneDetectionError(WorkerError):
    """The scene-detection ffmpeg invocation failed"""


class KeyframeExtractionError(WorkerError):
    """A keyframe could not be extracted; the whole stage fails"""


class ColorExtractionError(WorkerError):
    """Palette extraction failed for one image (always absorbed)"""


class SanitizeError(WorkerError):
    """Re-encoding to the canonical format failed"""


class LockConflictError(WorkerError):
    """Another live process holds an unexpired processing lock"""

    def __init__(self, message: str, pid: int = None, file: str = None):
        super().__init__(message)
        self.pid = pid
        self.file = file


class RegistryCorruptionError(WorkerError):
    """The code-generation registry index is unreadable"""
