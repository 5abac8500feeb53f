from clone_worker.models import ColorPalette
from clone_worker.pipeline.colors import ColorAnalyzer, Swatch, select_named_swatches

RED = (255, 0, 0)
NAVY = (0, 0, 100)


def hex_to_rgb(value):
    return tuple(int(value[i:i + 2], 16) for i in (1, 3, 5))


class TestColorAnalyzer:

    def test_solid_image_yields_one_color(self, make_image):
        path = make_image('red.png', [(RED, 40)])

        palette = ColorAnalyzer().extract_color_palette(path)

        assert len(palette.dominant_colors) == 1
        r, g, b = hex_to_rgb(palette.dominant_colors[0])
        assert r > 240 and g < 15 and b < 15

    def test_most_populous_color_first(self, make_image):
        path = make_image('split.png', [(NAVY, 10), (RED, 30)])

        palette = ColorAnalyzer().extract_color_palette(path)

        assert len(palette.dominant_colors) == 2
        assert palette.population[0] > palette.population[1]
        r, _, _ = hex_to_rgb(palette.dominant_colors[0])
        assert r > 240

    def test_colors_are_lowercase_hex(self, make_image):
        path = make_image('red.png', [(RED, 40)])
        color = ColorAnalyzer().extract_color_palette(path).dominant_colors[0]

        assert color.startswith('#') and len(color) == 7
        assert color == color.lower()

    def test_unreadable_image_yields_empty_palette(self, tmp_path):
        broken = tmp_path / 'broken.png'
        broken.write_bytes(b'not an image')

        palette = ColorAnalyzer().extract_color_palette(str(broken))

        assert palette == ColorPalette(dominant_colors=[], population=[])
        assert palette.is_empty

    def test_one_palette_per_keyframe_even_on_failure(self, make_image, tmp_path):
        good = make_image('red.png', [(RED, 40)])
        missing = str(tmp_path / 'missing.png')

        palettes = ColorAnalyzer().analyze_video_colors([good, missing, good])

        assert len(palettes) == 3
        assert [p.is_empty for p in palettes] == [False, True, False]

    def test_max_colors_cap(self, make_image):
        bands = [(RED, 10), (NAVY, 10), ((128, 128, 128), 10), ((250, 250, 250), 10), ((20, 20, 20), 10)]
        path = make_image('bands.png', bands)

        palette = ColorAnalyzer(max_colors=2).extract_color_palette(path)

        assert len(palette.dominant_colors) <= 2


class TestSelectNamedSwatches:

    def test_empty_input(self):
        named = select_named_swatches([])
        assert set(named) == {'Vibrant', 'LightVibrant', 'DarkVibrant', 'Muted', 'LightMuted', 'DarkMuted'}
        assert all(v is None for v in named.values())

    def test_swatch_used_at_most_once(self):
        red = Swatch(rgb=RED, population=100)
        named = select_named_swatches([red])

        assert named['Vibrant'] == red
        assert sum(1 for v in named.values() if v == red) == 1

    def test_grey_is_muted(self):
        grey = Swatch(rgb=(128, 128, 128), population=50)
        assert select_named_swatches([grey])['Muted'] == grey
