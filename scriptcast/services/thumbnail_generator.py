"""Thumbnail Generator - renders a title card for the finished video."""

from pathlib import Path
from typing import Any, Optional

from PIL import Image, ImageDraw, ImageFont

from scriptcast.core.config import Settings

FONT_PATHS = [
    "/System/Library/Fonts/Helvetica.ttc",  # macOS
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",  # Linux
    "C:/Windows/Fonts/arialbd.ttf",  # Windows
]


class ThumbnailGenerator:
    """Generates title cards (1280x720 by default) with word-wrapped, centered text."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize thumbnail generator.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.size = (settings.thumbnail_width, settings.thumbnail_height)

    def generate(self, title: str, output_path: Path) -> Optional[Path]:
        """
        Render a title card.

        Args:
            title: Text to render
            output_path: Destination PNG

        Returns:
            Path to the title card, or None if thumbnails are disabled
        """
        if not self.settings.thumbnail_enabled:
            self.logger.debug("Thumbnail generation is disabled")
            return None

        width, height = self.size
        image = Image.new("RGB", self.size, self.settings.thumbnail_background_color)
        draw = ImageDraw.Draw(image)
        font = self._load_font(max(12, height // 10))

        lines = self._wrap(draw, title.strip() or "Untitled", font, int(width * 0.9))
        line_height = self._text_size(draw, "Ag", font)[1] * 1.2
        block_height = line_height * len(lines)
        y = (height - block_height) / 2
        for line in lines:
            line_width = self._text_size(draw, line, font)[0]
            draw.text(((width - line_width) / 2, y), line, font=font, fill=self.settings.thumbnail_text_color)
            y += line_height

        output_path.parent.mkdir(parents=True, exist_ok=True)
        image.save(output_path, "PNG")
        self.logger.info(f"🖼️ Title card saved: {output_path}")
        return output_path

    def _load_font(self, size: int):
        for path in FONT_PATHS:
            if Path(path).exists():
                try:
                    return ImageFont.truetype(path, size)
                except OSError:
                    continue
        try:
            return ImageFont.load_default(size=size)
        except TypeError:
            # Pillow < 10.1 has no sized default font
            return ImageFont.load_default()

    @staticmethod
    def _text_size(draw: ImageDraw.ImageDraw, text: str, font) -> tuple[float, float]:
        left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
        return right - left, bottom - top

    def _wrap(self, draw: ImageDraw.ImageDraw, text: str, font, max_width: int) -> list[str]:
        lines: list[str] = []
        current = ""
        for word in text.split():
            candidate = f"{current} {word}".strip()
            if not current or self._text_size(draw, candidate, font)[0] <= max_width:
                current = candidate
            else:
                lines.append(current)
                current = word
        if current:
            lines.append(current)
        return lines
