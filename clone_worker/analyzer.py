"""
Video analysis pipeline.

Runs metadata probing, scene detection, keyframe sampling, color analysis
and prompt synthesis for one video file, in that order, and returns the
aggregated VideoAnalysisResult.
"""

import os
import time
import logging
from typing import Callable, List, Optional

from .config import WorkerConfig
from .models import ColorPalette, Keyframe, SceneSegment, VideoAnalysisResult, VideoMetadata
from .pipeline.colors import ColorAnalyzer
from .pipeline.frames import build_keyframes, extract_keyframes, select_keyframe_timestamps
from .pipeline.probe import get_video_metadata
from .pipeline.prompt import PromptGenerator
from .pipeline.scenes import detect_scenes, validate_scenes
from .pipeline.util import get_frames_dir

logger = logging.getLogger("clone_worker")

ProgressCallback = Callable[[str, int], None]

# Progress (0-100) reported when each analysis stage starts
STAGE_PROGRESS = {
    'metadata': 0,
    'scenes': 20,
    'keyframes': 40,
    'colors': 70,
    'prompt': 90,
    'done': 100,
}


class VideoAnalyzer:
    """Handles analysis pipeline execution for a single video"""

    def __init__(
        self,
        config: WorkerConfig,
        color_analyzer: Optional[ColorAnalyzer] = None,
        prompt_generator: Optional[PromptGenerator] = None,
    ):
        self.config = config
        self.color_analyzer = color_analyzer or ColorAnalyzer()
        self.prompt_generator = prompt_generator or PromptGenerator()

    def analyze(
        self,
        video_path: str,
        output_dir: str,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> VideoAnalysisResult:
        """
        Analyze one video file.

        Args:
            video_path: File to analyze (original or sanitized copy)
            output_dir: Per-video output directory; keyframes go to its temp_frames/
            progress_callback: Optional hook receiving (stage, percent)

        Returns:
            VideoAnalysisResult with one color palette per keyframe

        Raises:
            FileNotFoundError, ProbeError, SceneDetectionError, KeyframeExtractionError
        """
        if not os.path.exists(video_path):
            raise FileNotFoundError(f"Video file not found: {video_path}")

        start_time = time.time()
        os.makedirs(output_dir, exist_ok=True)
        frames_dir = get_frames_dir(output_dir)

        # Step 1: Metadata
        self._report(progress_callback, 'metadata')
        logger.info(f"PROBE: Extracting metadata for {video_path}")
        metadata = self._extract_metadata(video_path)

        # Step 2: Scene detection
        self._report(progress_callback, 'scenes')
        logger.info(f"SCENES: Detecting scenes for {video_path}")
        scenes = self._detect_scenes(video_path)

        # Step 3: Keyframe sampling and extraction
        self._report(progress_callback, 'keyframes')
        logger.info(f"FRAMES: Extracting keyframes for {video_path}")
        keyframes = self._extract_keyframes(video_path, frames_dir, scenes, metadata.duration)

        # Step 4: Color analysis
        self._report(progress_callback, 'colors')
        logger.info(f"COLORS: Analyzing {len(keyframes)} keyframes")
        color_palettes = self._analyze_colors([k.file_path for k in keyframes])

        # Step 5: Replication prompt
        self._report(progress_callback, 'prompt')
        logger.info("PROMPT: Generating replication prompt")
        generated_prompt = self.prompt_generator.generate_replication_prompt(metadata, color_palettes)

        self._report(progress_callback, 'done')
        logger.info(
            f"Analysis completed for {video_path} in {time.time() - start_time:.2f}s: "
            f"{len(scenes)} scenes, {len(keyframes)} keyframes"
        )

        return VideoAnalysisResult(
            metadata=metadata,
            scenes=scenes,
            keyframes=keyframes,
            color_palettes=color_palettes,
            generated_prompt=generated_prompt,
        )

    def _report(self, progress_callback: Optional[ProgressCallback], stage: str) -> None:
        if progress_callback:
            progress_callback(stage, STAGE_PROGRESS[stage])

    def _extract_metadata(self, video_path: str) -> VideoMetadata:
        """Probe container and stream metadata"""
        return get_video_metadata(video_path, ffprobe_path=self.config.FFPROBE_PATH)

    def _detect_scenes(self, video_path: str) -> List[SceneSegment]:
        """Detect scene boundaries in video"""
        scenes = detect_scenes(
            video_path,
            threshold=self.config.SCENE_THRESHOLD,
            ffmpeg_path=self.config.FFMPEG_PATH,
        )
        if not validate_scenes(scenes):
            logger.warning(f"Scene list for {video_path} is not strictly ordered")
        return scenes

    def _extract_keyframes(
        self,
        video_path: str,
        frames_dir: str,
        scenes: List[SceneSegment],
        duration: float,
    ) -> List[Keyframe]:
        """Sample timestamps from scenes (or fixed intervals) and extract stills"""
        timestamps = select_keyframe_timestamps(
            scenes,
            duration,
            interval=self.config.KEYFRAME_INTERVAL,
            max_keyframes=self.config.MAX_KEYFRAMES,
        )
        file_paths = extract_keyframes(
            video_path,
            frames_dir,
            timestamps,
            ffmpeg_path=self.config.FFMPEG_PATH,
        )
        return build_keyframes(timestamps, file_paths)

    def _analyze_colors(self, frame_paths: List[str]) -> List[ColorPalette]:
        """Dominant colors per keyframe; failures yield empty palettes"""
        return self.color_analyzer.analyze_video_colors(frame_paths)
