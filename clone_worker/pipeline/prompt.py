from typing import List, Sequence

from ..models import ColorPalette, VideoMetadata

GLOBAL_PALETTE_SIZE = 7

# Choreography phases as fractions of the total frame range
ENTRY_PHASE_START = 0.10
SECONDARY_PHASE_START = 0.30


def collect_global_palette(palettes: Sequence[ColorPalette], limit: int = GLOBAL_PALETTE_SIZE) -> List[str]:
    """Union of all dominant colors in order of first appearance, capped at limit"""
    seen = []
    for palette in palettes:
        for color in palette.dominant_colors:
            if color not in seen:
                seen.append(color)
    return seen[:limit]


def classify_aspect_ratio(width: int, height: int) -> str:
    if width == height:
        return "Square"
    return "Landscape" if width > height else "Portrait"


class PromptGenerator:
    """Renders an analysis into a replication brief for an AI coding assistant"""

    def __init__(self, palette_size: int = GLOBAL_PALETTE_SIZE):
        self.palette_size = palette_size

    def generate_replication_prompt(self, metadata: VideoMetadata, palettes: Sequence[ColorPalette]) -> str:
        colors = ", ".join(collect_global_palette(palettes, self.palette_size))
        fps = round(metadata.fps)
        duration = round(metadata.duration)
        total_frames = round(metadata.duration * metadata.fps)
        entry_frame = round(total_frames * ENTRY_PHASE_START)
        secondary_frame = round(total_frames * SECONDARY_PHASE_START)
        aspect = classify_aspect_ratio(metadata.width, metadata.height)

        return f"""Please analyze the attached UI animation for replication as an animated video template. I need a deep technical breakdown that covers the following 5 layers to ensure the generated code is production-ready.

1. VISUAL SPECS (The Design System)
- Colors: The video contains these dominant Hex codes: [{colors}]. Use these to extract specific backgrounds, accents, and text colors.
- Typography: Font style (Serif/Sans), approximated weights, and tabular figures if numbers change.
- Layout: Is it a centered card, full-screen, or split view?
- Assets: Identify any SVGs, icons, or images needed.

2. VIDEO CONFIGURATION (The Canvas)
- Dimensions: {metadata.width}x{metadata.height} ({aspect}).
- FPS: {fps}fps.
- Duration: {duration} seconds ({total_frames} frames).

3. DATA & PROPS (The Schema)
- What data is displayed? (Text headers, numbers, image URLs).
- Define the props schema: Which of these elements should be customizable props? (e.g., "Make the 'Price' and 'User Avatar' dynamic props").

4. ANIMATION LOGIC (The Choreography)
- Breakdown by Frame (approximate):
- [Frame 0-{entry_frame}]: Initial state.
- [Frame {entry_frame}-{secondary_frame}]: Entry animation (Trigger).
- [Frame {secondary_frame}-{total_frames}]: Secondary effects.
- Type of Motion:
- Spring (Bouncy/Natural) -> Suggest Stiffness/Damping settings.
- Interpolate (Linear/Eased) -> Suggest Input/Output ranges.

5. THE REPLICATION PROMPT
- Write a single, high-density prompt that I can paste into an AI coding assistant.
- It must explicitly ask for a functional component driven by the current frame, using spring and interpolate helpers, a typed props schema, and the specs above."""
