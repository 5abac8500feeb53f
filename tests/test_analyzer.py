from unittest.mock import patch

import pytest

from clone_worker.analyzer import VideoAnalyzer
from clone_worker.exceptions import ProbeError
from clone_worker.models import ColorPalette, SceneSegment


class StubColors:
    def analyze_video_colors(self, paths):
        return [ColorPalette(dominant_colors=['#ff0000'], population=[1]) for _ in paths]


@pytest.fixture
def video(tmp_path):
    path = tmp_path / 'clip.mp4'
    path.write_bytes(b'video')
    return str(path)


def test_full_analysis(config, metadata, video, tmp_path):
    progress = []
    scenes = [SceneSegment(0.0, 2.0, scene_score=0.4), SceneSegment(2.0, 6.0, scene_score=0.4)]

    with patch('clone_worker.analyzer.get_video_metadata', return_value=metadata) as mock_probe, \
            patch('clone_worker.analyzer.detect_scenes', return_value=scenes), \
            patch('clone_worker.analyzer.extract_keyframes',
                  side_effect=lambda path, out, ts, ffmpeg_path: [f'{out}/frame_{i:04d}.png' for i in range(len(ts))]):
        result = VideoAnalyzer(config, color_analyzer=StubColors()).analyze(
            video, str(tmp_path / 'out' / 'clip'), lambda stage, pct: progress.append((stage, pct))
        )

    mock_probe.assert_called_once_with(video, ffprobe_path=config.FFPROBE_PATH)
    assert result.metadata == metadata
    assert [k.timestamp for k in result.keyframes] == [0.0, 2.0]
    assert result.keyframes[0].file_path.endswith('temp_frames/frame_0000.png')
    assert len(result.color_palettes) == len(result.keyframes)
    assert '1920x1080' in result.generated_prompt
    assert [stage for stage, _ in progress] == ['metadata', 'scenes', 'keyframes', 'colors', 'prompt', 'done']
    assert progress[-1][1] == 100


def test_missing_file(config, tmp_path):
    with pytest.raises(FileNotFoundError):
        VideoAnalyzer(config).analyze(str(tmp_path / 'nope.mp4'), str(tmp_path / 'out'))


def test_probe_failure_propagates(config, video, tmp_path):
    with patch('clone_worker.analyzer.get_video_metadata', side_effect=ProbeError('no stream')):
        with pytest.raises(ProbeError):
            VideoAnalyzer(config).analyze(video, str(tmp_path / 'out'))
