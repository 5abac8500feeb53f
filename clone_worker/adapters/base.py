"""
Abstract base classes for job sources, storage and code-generation adapters.

Defines the interface that all adapters must implement, so the queue manager
can be driven by the watched input directory today and by other sources
(or other output backends) without changes.
"""

from abc import ABC, abstractmethod
from typing import Optional, List
from dataclasses import dataclass, field
import time

from ..models import VideoAnalysisResult


@dataclass
class Job:
    """A video file that is ready to be processed"""
    id: str
    path: str
    size: int = 0
    detected_at: float = field(default_factory=time.time)


class JobSourceAdapter(ABC):
    """Abstract base class for job source adapters"""

    def connect(self) -> None:
        """Prepare the source (optional)"""

    def close(self) -> None:
        """Release resources held by the source (optional)"""

    @abstractmethod
    def poll_jobs(self) -> List[Job]:
        """
        Return jobs that became ready since the last poll.

        Each job is returned at most once until it is released.

        Returns:
            List of ready jobs, oldest first
        """
        pass

    @abstractmethod
    def release_job(self, job_id: str) -> None:
        """
        Forget a job so a new file with the same name can be picked up again.

        Args:
            job_id: ID of the job that left the input location
        """
        pass


class StorageAdapter(ABC):
    """Abstract base class for storage adapters"""

    def connect(self) -> None:
        """Prepare the backend (optional)"""

    def close(self) -> None:
        """Release resources held by the backend (optional)"""

    @abstractmethod
    def save_analysis(self, video_name: str, result: VideoAnalysisResult) -> str:
        """
        Persist the analysis record for a video.

        Returns:
            Location of the stored record
        """
        pass

    @abstractmethod
    def load_analysis(self, video_name: str) -> Optional[VideoAnalysisResult]:
        """
        Load a previously stored analysis.

        Returns:
            VideoAnalysisResult if found, None otherwise
        """
        pass

    @abstractmethod
    def save_prompt(self, video_name: str, prompt: str) -> str:
        """
        Persist the replication prompt as plain text.

        Returns:
            Location of the stored prompt
        """
        pass

    @abstractmethod
    def archive_processed(self, source_path: str) -> str:
        """
        Move a successfully processed source file out of the input location.

        Returns:
            Archived path (suffixed when the name was taken)
        """
        pass

    @abstractmethod
    def archive_failed(self, source_path: str, error: str, details: Optional[str] = None) -> Optional[str]:
        """
        Move a failed source file aside and append the error to the failure log.

        Returns:
            Archived path, or None if the source was already gone
        """
        pass

    @abstractmethod
    def reclaim_storage(self, keep_project: Optional[str] = None) -> List[str]:
        """
        Delete temporary frame directories of finished projects.

        Args:
            keep_project: Project whose temporary frames must be kept

        Returns:
            Removed directories
        """
        pass


class CodeGeneratorAdapter(ABC):
    """Abstract base class for handing analyses to a code generator"""

    @abstractmethod
    def generate(self, video_name: str, result: VideoAnalysisResult) -> str:
        """
        Produce the code-generation artifact for an analyzed video.

        Returns:
            Location of the generated artifact
        """
        pass
