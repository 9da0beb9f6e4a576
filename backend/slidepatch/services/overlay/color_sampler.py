from __future__ import annotations

import math
from typing import Dict, Iterable, List, Tuple

from PIL import Image

from ...utils.logging import get_logger
from .geometry import Rect

RGB = Tuple[int, int, int]

WHITE = "#FFFFFF"
BLACK = "#000000"

INK_THRESHOLD = 30
QUANT_STEP = 32
INNER_MARGIN = 0.2
INNER_SPAN = 0.6
MIN_TEXT_SAMPLE = 5

logger = get_logger(__name__)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def hex_to_rgb(color: str) -> RGB:
    value = color.strip().lstrip("#")
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)
    if len(value) != 6:
        raise ValueError(f"Not a #RRGGBB color: {color!r}")
    return (int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16))


def rgb_to_hex(rgb: Iterable[int]) -> str:
    return "#" + "".join(f"{max(0, min(255, int(c))):02X}" for c in rgb)


def brightness_of(color: str) -> float:
    r, g, b = hex_to_rgb(color)
    return (r + g + b) / 3


def _pixel_bounds(rect: Rect) -> Tuple[int, int, int, int]:
    return (
        math.floor(rect.x),
        math.floor(rect.y),
        math.floor(rect.width),
        math.floor(rect.height),
    )


def _rgb(image: Image.Image) -> Image.Image:
    return image if image.mode == "RGB" else image.convert("RGB")


def _pixels(image: Image.Image, box: Tuple[int, int, int, int]) -> List[RGB]:
    """Pixels inside ``box`` (left, top, right, bottom) after clamping to the buffer."""
    left, top, right, bottom = box
    clamped = Rect(left, top, right - left, bottom - top).clamp_to(image.width, image.height)
    if clamped.width < 1 or clamped.height < 1:
        return []
    region = image.crop(
        (int(clamped.x), int(clamped.y), int(clamped.right), int(clamped.bottom))
    )
    return list(region.getdata())


def extract_background_color(image: Image.Image, rect: Rect) -> str:
    """Average the one-pixel border ring of ``rect`` (pixel coordinates of ``image``).

    Border pixels rarely carry the glyph ink being replaced, so their mean is a
    good estimate of the paper or slide colour behind the text.
    """
    x, y, width, height = _pixel_bounds(rect)
    if width < 1 or height < 1:
        return WHITE

    image = _rgb(image)
    samples: List[RGB] = []
    samples += _pixels(image, (x, y, x + width, y + 1))
    samples += _pixels(image, (x, y + height - 1, x + width, y + height))
    samples += _pixels(image, (x, y, x + 1, y + height))
    samples += _pixels(image, (x + width - 1, y, x + width, y + height))

    if not samples:
        logger.debug("background sample empty after clamping", rect=rect.to_dict())
        return WHITE

    count = len(samples)
    mean = tuple(_round_half_up(sum(pixel[channel] for pixel in samples) / count) for channel in range(3))
    color = rgb_to_hex(mean)
    logger.debug("background color sampled", color=color, samples=count)
    return color


def _quantize(channel: int) -> int:
    return _round_half_up(channel / QUANT_STEP) * QUANT_STEP


def extract_text_color(image: Image.Image, rect: Rect, background_color: str) -> str:
    """Pick the dominant ink colour from the centre of ``rect``.

    Pixels that differ from ``background_color`` by more than ``INK_THRESHOLD``
    (sum of absolute channel differences) vote for their 32-level bucket; the
    most frequent bucket wins, ties going to the bucket seen first. When no
    pixel stands out, black or white is returned for maximum contrast.
    """
    x, y, width, height = _pixel_bounds(rect)
    if width < MIN_TEXT_SAMPLE or height < MIN_TEXT_SAMPLE:
        return BLACK

    bg_r, bg_g, bg_b = hex_to_rgb(background_color)

    inner_x = x + math.floor(width * INNER_MARGIN)
    inner_y = y + math.floor(height * INNER_MARGIN)
    inner_w = max(1, math.floor(width * INNER_SPAN))
    inner_h = max(1, math.floor(height * INNER_SPAN))

    pixels = _pixels(_rgb(image), (inner_x, inner_y, inner_x + inner_w, inner_y + inner_h))

    counts: Dict[RGB, int] = {}
    for r, g, b in pixels:
        diff = abs(r - bg_r) + abs(g - bg_g) + abs(b - bg_b)
        if diff > INK_THRESHOLD:
            bucket = (_quantize(r), _quantize(g), _quantize(b))
            counts[bucket] = counts.get(bucket, 0) + 1

    if not counts:
        return BLACK if (bg_r + bg_g + bg_b) / 3 > 128 else WHITE

    dominant: RGB = (0, 0, 0)
    best = 0
    for bucket, count in counts.items():
        if count > best:
            best = count
            dominant = bucket

    color = rgb_to_hex(min(255, c) for c in dominant)
    logger.debug("text color sampled", color=color, candidates=sum(counts.values()))
    return color
