from clone_worker.models import ColorPalette, VideoMetadata
from clone_worker.pipeline.prompt import PromptGenerator, classify_aspect_ratio, collect_global_palette


def test_global_palette_keeps_first_appearance_order():
    palettes = [
        ColorPalette(dominant_colors=['#111111', '#222222']),
        ColorPalette(dominant_colors=['#222222', '#333333']),
        ColorPalette(),
    ]
    assert collect_global_palette(palettes) == ['#111111', '#222222', '#333333']


def test_global_palette_is_capped():
    palettes = [ColorPalette(dominant_colors=[f'#00000{i}' for i in range(10)])]
    assert len(collect_global_palette(palettes)) == 7


def test_aspect_ratio_classes():
    assert classify_aspect_ratio(1920, 1080) == 'Landscape'
    assert classify_aspect_ratio(1080, 1920) == 'Portrait'
    assert classify_aspect_ratio(1080, 1080) == 'Square'


class TestPromptGenerator:

    def test_canvas_and_choreography(self, metadata):
        prompt = PromptGenerator().generate_replication_prompt(
            metadata, [ColorPalette(dominant_colors=['#ff0000', '#000064'])]
        )

        assert '[#ff0000, #000064]' in prompt
        assert '1920x1080 (Landscape)' in prompt
        assert 'FPS: 30fps' in prompt
        assert 'Duration: 10 seconds (300 frames)' in prompt
        assert '[Frame 0-30]' in prompt
        assert '[Frame 30-90]' in prompt
        assert '[Frame 90-300]' in prompt

    def test_five_sections(self, metadata):
        prompt = PromptGenerator().generate_replication_prompt(metadata, [])

        for heading in ('1. VISUAL SPECS', '2. VIDEO CONFIGURATION', '3. DATA & PROPS',
                        '4. ANIMATION LOGIC', '5. THE REPLICATION PROMPT'):
            assert heading in prompt

    def test_rounds_fractional_rates(self):
        metadata = VideoMetadata(duration=4.2, fps=29.97, width=720, height=1280, codec='h264')
        prompt = PromptGenerator().generate_replication_prompt(metadata, [])

        assert 'FPS: 30fps' in prompt
        assert '(Portrait)' in prompt
        assert '(126 frames)' in prompt
