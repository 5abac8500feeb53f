import colorsys
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from PIL import Image

from ..exceptions import ColorExtractionError
from ..models import ColorPalette

logger = logging.getLogger("clone_worker")

MAX_PALETTE_COLORS = 5
QUANTIZE_COLORS = 64
MAX_SAMPLE_SIZE = (200, 200)

# Luma / saturation windows for the six named swatches
TARGET_DARK_LUMA = 0.26
MAX_DARK_LUMA = 0.45
MIN_LIGHT_LUMA = 0.55
TARGET_LIGHT_LUMA = 0.74
MIN_NORMAL_LUMA = 0.3
TARGET_NORMAL_LUMA = 0.5
MAX_NORMAL_LUMA = 0.7
TARGET_MUTED_SATURATION = 0.3
MAX_MUTED_SATURATION = 0.4
TARGET_VIBRANT_SATURATION = 1.0
MIN_VIBRANT_SATURATION = 0.35

WEIGHT_SATURATION = 3.0
WEIGHT_LUMA = 6.5
WEIGHT_POPULATION = 0.5


@dataclass(frozen=True)
class SwatchTarget:
    name: str
    min_luma: float
    target_luma: float
    max_luma: float
    min_saturation: float
    target_saturation: float
    max_saturation: float


SWATCH_TARGETS = (
    SwatchTarget("Vibrant", MIN_NORMAL_LUMA, TARGET_NORMAL_LUMA, MAX_NORMAL_LUMA,
                 MIN_VIBRANT_SATURATION, TARGET_VIBRANT_SATURATION, 1.0),
    SwatchTarget("LightVibrant", MIN_LIGHT_LUMA, TARGET_LIGHT_LUMA, 1.0,
                 MIN_VIBRANT_SATURATION, TARGET_VIBRANT_SATURATION, 1.0),
    SwatchTarget("DarkVibrant", 0.0, TARGET_DARK_LUMA, MAX_DARK_LUMA,
                 MIN_VIBRANT_SATURATION, TARGET_VIBRANT_SATURATION, 1.0),
    SwatchTarget("Muted", MIN_NORMAL_LUMA, TARGET_NORMAL_LUMA, MAX_NORMAL_LUMA,
                 0.0, TARGET_MUTED_SATURATION, MAX_MUTED_SATURATION),
    SwatchTarget("LightMuted", MIN_LIGHT_LUMA, TARGET_LIGHT_LUMA, 1.0,
                 0.0, TARGET_MUTED_SATURATION, MAX_MUTED_SATURATION),
    SwatchTarget("DarkMuted", 0.0, TARGET_DARK_LUMA, MAX_DARK_LUMA,
                 0.0, TARGET_MUTED_SATURATION, MAX_MUTED_SATURATION),
)


@dataclass(frozen=True)
class Swatch:
    """One quantized color with the number of pixels it covers"""
    rgb: Tuple[int, int, int]
    population: int

    @property
    def hls(self) -> Tuple[float, float, float]:
        r, g, b = (channel / 255.0 for channel in self.rgb)
        return colorsys.rgb_to_hls(r, g, b)

    @property
    def hex(self) -> str:
        return "#{:02x}{:02x}{:02x}".format(*self.rgb)


def quantize_image(image_path: str) -> List[Swatch]:
    """
    Reduce an image to at most QUANTIZE_COLORS colors with median cut.

    Raises:
        ColorExtractionError: the image could not be read or quantized
    """
    try:
        with Image.open(image_path) as img:
            rgb = img.convert("RGB")
            rgb.thumbnail(MAX_SAMPLE_SIZE)
            quantized = rgb.quantize(colors=QUANTIZE_COLORS, method=Image.Quantize.MEDIANCUT)
            palette = quantized.getpalette() or []
            counts = quantized.getcolors(maxcolors=256) or []
    except Exception as e:
        raise ColorExtractionError(f"Could not quantize {image_path}: {e}") from e

    swatches = []
    for population, index in counts:
        offset = index * 3
        if offset + 2 >= len(palette):
            continue
        rgb_value = (palette[offset], palette[offset + 1], palette[offset + 2])
        swatches.append(Swatch(rgb=rgb_value, population=population))
    return swatches


def select_named_swatches(swatches: Sequence[Swatch]) -> Dict[str, Optional[Swatch]]:
    """
    Assign the best matching swatch to each named target.

    A swatch qualifies for a target when its luma and saturation fall inside
    the target window; among qualifying swatches the one closest to the
    target (weighted with relative population) wins. A swatch is used at
    most once. Targets without a qualifying swatch map to None.
    """
    named: Dict[str, Optional[Swatch]] = {}
    if not swatches:
        return {target.name: None for target in SWATCH_TARGETS}

    max_population = max(swatch.population for swatch in swatches) or 1
    used = set()

    for target in SWATCH_TARGETS:
        best: Optional[Swatch] = None
        best_score = -1.0

        for swatch in swatches:
            if swatch.rgb in used:
                continue
            _, luma, saturation = swatch.hls
            if not (target.min_saturation <= saturation <= target.max_saturation):
                continue
            if not (target.min_luma <= luma <= target.max_luma):
                continue

            score = _target_score(
                saturation, target.target_saturation,
                luma, target.target_luma,
                swatch.population, max_population,
            )
            if score > best_score:
                best, best_score = swatch, score

        if best is not None:
            used.add(best.rgb)
        named[target.name] = best

    return named


def _target_score(saturation, target_saturation, luma, target_luma, population, max_population) -> float:
    values = (
        (1 - abs(saturation - target_saturation), WEIGHT_SATURATION),
        (1 - abs(luma - target_luma), WEIGHT_LUMA),
        (population / max_population, WEIGHT_POPULATION),
    )
    total_weight = sum(weight for _, weight in values)
    return sum(value * weight for value, weight in values) / total_weight


class ColorAnalyzer:
    """Derives dominant-color palettes from extracted keyframes"""

    def __init__(self, max_colors: int = MAX_PALETTE_COLORS):
        self.max_colors = max_colors

    def extract_color_palette(self, image_path: str) -> ColorPalette:
        """
        Extract the dominant colors of one image, most populous first.

        Never raises: a failed image yields an empty palette.
        """
        try:
            named = select_named_swatches(quantize_image(image_path))
        except ColorExtractionError as e:
            logger.warning(f"Error extracting colors from {image_path}: {e}")
            return ColorPalette(dominant_colors=[], population=[])

        swatches = [swatch for swatch in named.values() if swatch is not None]
        swatches.sort(key=lambda swatch: swatch.population, reverse=True)
        top = swatches[:self.max_colors]

        return ColorPalette(
            dominant_colors=[swatch.hex for swatch in top],
            population=[swatch.population for swatch in top],
        )

    def analyze_video_colors(self, keyframe_paths: Sequence[str]) -> List[ColorPalette]:
        """One palette per keyframe, same order and length as the input"""
        palettes = [self.extract_color_palette(path) for path in keyframe_paths]

        failed = sum(1 for palette in palettes if palette.is_empty)
        if failed:
            logger.warning(f"Color extraction produced {failed} empty palettes out of {len(palettes)}")

        return palettes
