"""
Shared fixtures.

External tools are never executed: ffmpeg-python's run/probe are patched in
the tests that need them, and images are generated with Pillow in tmp_path.
"""

import os
from typing import List

import pytest
from PIL import Image

from clone_worker.config import WorkerConfig
from clone_worker.models import ColorPalette, VideoAnalysisResult, VideoMetadata
from clone_worker.state import AgentContext


@pytest.fixture
def config(tmp_path) -> WorkerConfig:
    """Config with every directory and file under tmp_path"""
    cfg = WorkerConfig(
        INPUT_DIR=str(tmp_path / "inputs"),
        OUTPUT_DIR=str(tmp_path / "outputs"),
        STATE_FILE=str(tmp_path / "system-state.json"),
        LOCK_FILE=str(tmp_path / ".processing.lock"),
        LOG_DIR=str(tmp_path / "logs"),
    )
    for directory in cfg.directories():
        os.makedirs(directory, exist_ok=True)
    return cfg


@pytest.fixture
def context(config) -> AgentContext:
    return AgentContext(
        config.STATE_FILE,
        processed_dir=config.PROCESSED_DIR,
        failed_dir=config.FAILED_DIR,
    )


@pytest.fixture
def make_video(config):
    """Drop a fake video file into the input directory"""

    def _make(name: str, content: bytes = b"not really a video") -> str:
        path = os.path.join(config.INPUT_DIR, name)
        with open(path, "wb") as f:
            f.write(content)
        return path

    return _make


@pytest.fixture
def make_image(tmp_path):
    """Write a PNG made of vertical color bands; widths are in pixels"""

    def _make(name: str, bands: List[tuple], height: int = 40) -> str:
        width = sum(band_width for _, band_width in bands)
        img = Image.new("RGB", (width, height))
        x = 0
        for color, band_width in bands:
            img.paste(color, (x, 0, x + band_width, height))
            x += band_width
        path = str(tmp_path / name)
        img.save(path)
        return path

    return _make


@pytest.fixture
def metadata() -> VideoMetadata:
    return VideoMetadata(duration=10.0, fps=30.0, width=1920, height=1080, codec="h264", bitrate=4000000)


@pytest.fixture
def analysis_result(metadata) -> VideoAnalysisResult:
    return VideoAnalysisResult(
        metadata=metadata,
        scenes=[],
        keyframes=[],
        color_palettes=[ColorPalette(dominant_colors=["#ff0000", "#000064"], population=[30, 10])],
        generated_prompt="Replicate this clip",
    )


@pytest.fixture
def output_path_of():
    """Output file an ffmpeg-python stream would write"""

    def _output(stream, suffix: str) -> str:
        return [arg for arg in stream.get_args() if arg.endswith(suffix)][-1]

    return _output
