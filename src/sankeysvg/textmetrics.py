"""Label width measurement backed by Pillow fonts."""
from __future__ import annotations

from typing import Dict

from PIL import ImageFont

# Matches the CSS font stack the SVG declares, most specific first.
FONT_CANDIDATES = [
    "HelveticaNeue.ttc",
    "Helvetica.ttc",
    "Arial.ttf",
    "LiberationSans-Regular.ttf",
    "DejaVuSans.ttf",
]


class TextMeasurer:
    """Caches Pillow fonts per size and measures label widths."""

    def __init__(self) -> None:
        self._font_cache: Dict[int, ImageFont.ImageFont] = {}

    def font(self, size: float) -> ImageFont.ImageFont:
        key_size = max(1, int(round(size)))
        if key_size in self._font_cache:
            return self._font_cache[key_size]

        font = None
        for candidate in FONT_CANDIDATES:
            try:
                font = ImageFont.truetype(candidate, key_size)
                break
            except OSError:
                continue
        if font is None:
            font = ImageFont.load_default(size=key_size)

        self._font_cache[key_size] = font
        return font

    def measure(self, text: str, size: float) -> float:
        if not text:
            return 0.0
        return float(self.font(size).getlength(text))

