"""Watermarking for synthesized persona images.

Every image produced by persona synthesis is stamped before it is shown or
saved: a faint diagonal tiling of "TRUTHSEEKER • SIMULATION" across the whole
frame and a dark warning banner along the bottom edge. The gateway never
alters pixels; callers apply this.
"""

from __future__ import annotations

import io
import logging
import math

from PIL import Image, ImageDraw, ImageFont

logger = logging.getLogger(__name__)

TILE_TEXT = "TRUTHSEEKER • SIMULATION"
BANNER_TEXT = "SYNTHETIC ID - NOT REAL - DO NOT DISTRIBUTE"

TILE_FILL = (255, 255, 255, 38)  # ~15% opacity
BANNER_FILL = (15, 23, 42, 230)
BANNER_TEXT_FILL = (239, 68, 68, 255)
BANNER_HEIGHT_RATIO = 0.12
JPEG_QUALITY = 90

_BOLD_FONTS = ("DejaVuSans-Bold.ttf", "Arial Bold.ttf", "arialbd.ttf")
_MONO_FONTS = ("DejaVuSansMono-Bold.ttf", "Courier New Bold.ttf", "courbd.ttf")


def _load_font(candidates: tuple[str, ...], size: int) -> ImageFont.ImageFont:
    for name in candidates:
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


def _tile_layer(width: int, height: int) -> Image.Image:
    font_size = max(24, width // 15)
    font = _load_font(_BOLD_FONTS, font_size)

    # Draw on a square covering the diagonal, rotate, then crop to the frame
    side = int(math.hypot(width, height)) + font_size * 2
    layer = Image.new("RGBA", (side, side), (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)

    step_x = font_size * 5
    step_y = max(1, int(font_size * 2.5))
    for y in range(0, side, step_y):
        offset = step_x // 2 if (y // step_y) % 2 else 0
        for x in range(-offset, side, step_x):
            draw.text((x, y), TILE_TEXT, font=font, fill=TILE_FILL)

    layer = layer.rotate(45, resample=Image.Resampling.BICUBIC)
    left = (side - width) // 2
    top = (side - height) // 2
    return layer.crop((left, top, left + width, top + height))


def _draw_banner(image: Image.Image) -> None:
    width, height = image.size
    banner_height = max(1, int(height * BANNER_HEIGHT_RATIO))

    overlay = Image.new("RGBA", image.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)
    draw.rectangle((0, height - banner_height, width, height), fill=BANNER_FILL)

    font = _load_font(_MONO_FONTS, max(14, width // 30))
    left, top, right, bottom = draw.textbbox((0, 0), BANNER_TEXT, font=font)
    text_x = (width - (right - left)) / 2 - left
    text_y = height - banner_height / 2 - (bottom - top) / 2 - top
    draw.text((text_x, text_y), BANNER_TEXT, font=font, fill=BANNER_TEXT_FILL)

    image.alpha_composite(overlay)


def apply_simulation_watermark(image_bytes: bytes) -> bytes:
    """Stamp a synthesized image and return it as JPEG bytes.

    Args:
        image_bytes: Encoded image in any format Pillow reads.

    Returns:
        JPEG-encoded bytes (quality 90) of the same dimensions.

    Raises:
        PIL.UnidentifiedImageError: If the bytes are not a readable image.
    """
    with Image.open(io.BytesIO(image_bytes)) as source:
        image = source.convert("RGBA")

    image.alpha_composite(_tile_layer(*image.size))
    _draw_banner(image)

    buffer = io.BytesIO()
    image.convert("RGB").save(buffer, format="JPEG", quality=JPEG_QUALITY)
    logger.debug(f"Watermarked {image.width}x{image.height} synthetic image")
    return buffer.getvalue()
