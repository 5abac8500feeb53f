"""
Domain models for the clone worker.

Defines the analysis data structures passed between pipeline stages and
persisted as analysis.json. Serialized field names follow the camelCase
layout consumed by the downstream template tooling.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List


@dataclass(frozen=True)
class VideoMetadata:
    """Container and stream metadata for one analysis run"""
    duration: float
    fps: float
    width: int
    height: int
    codec: str
    bitrate: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'duration': self.duration,
            'fps': self.fps,
            'width': self.width,
            'height': self.height,
            'codec': self.codec,
            'bitrate': self.bitrate,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VideoMetadata':
        return cls(
            duration=float(data['duration']),
            fps=float(data['fps']),
            width=int(data['width']),
            height=int(data['height']),
            codec=str(data.get('codec', '')),
            bitrate=data.get('bitrate'),
        )


@dataclass
class SceneSegment:
    """Interval between two detected scene-change points"""
    start_time: float
    end_time: float
    frame_number: int = -1
    scene_score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'startTime': self.start_time,
            'endTime': self.end_time,
            'frameNumber': self.frame_number,
            'sceneScore': self.scene_score,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SceneSegment':
        return cls(
            start_time=float(data['startTime']),
            end_time=float(data['endTime']),
            frame_number=int(data.get('frameNumber', -1)),
            scene_score=float(data.get('sceneScore', 0.0)),
        )


@dataclass
class Keyframe:
    """A sampled still image, not a codec-level I-frame"""
    timestamp: float
    file_path: str
    frame_number: int = -1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'frameNumber': self.frame_number,
            'filePath': self.file_path,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Keyframe':
        return cls(
            timestamp=float(data['timestamp']),
            file_path=str(data['filePath']),
            frame_number=int(data.get('frameNumber', -1)),
        )


@dataclass
class ColorPalette:
    """Dominant colors of one keyframe, most dominant first"""
    dominant_colors: List[str] = field(default_factory=list)
    population: List[int] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.dominant_colors

    def to_dict(self) -> Dict[str, Any]:
        return {
            'dominantColors': list(self.dominant_colors),
            'population': list(self.population),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ColorPalette':
        return cls(
            dominant_colors=list(data.get('dominantColors', [])),
            population=list(data.get('population', [])),
        )


@dataclass
class VideoAnalysisResult:
    """Aggregate analysis for one video; the unit of persistence"""
    metadata: VideoMetadata
    scenes: List[SceneSegment]
    keyframes: List[Keyframe]
    color_palettes: List[ColorPalette]
    generated_prompt: Optional[str] = None
    orchestration: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'metadata': self.metadata.to_dict(),
            'scenes': [scene.to_dict() for scene in self.scenes],
            'keyframes': [keyframe.to_dict() for keyframe in self.keyframes],
            'colorPalettes': [palette.to_dict() for palette in self.color_palettes],
        }
        if self.generated_prompt is not None:
            data['generatedPrompt'] = self.generated_prompt
        if self.orchestration is not None:
            data['orchestration'] = self.orchestration
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VideoAnalysisResult':
        return cls(
            metadata=VideoMetadata.from_dict(data['metadata']),
            scenes=[SceneSegment.from_dict(s) for s in data.get('scenes', [])],
            keyframes=[Keyframe.from_dict(k) for k in data.get('keyframes', [])],
            color_palettes=[ColorPalette.from_dict(p) for p in data.get('colorPalettes', [])],
            generated_prompt=data.get('generatedPrompt'),
            orchestration=data.get('orchestration'),
        )


@dataclass
class ProcessingOutcome:
    """Result of running one queued file through the state machine"""
    file_name: str
    success: bool
    stages_completed: List[str]
    source_path: Optional[str] = None
    analysis_path: Optional[str] = None
    archived_path: Optional[str] = None
    sanitized: bool = False
    error: Optional[str] = None
    processing_time_sec: Optional[float] = None
