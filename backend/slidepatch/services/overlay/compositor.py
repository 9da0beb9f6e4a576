from __future__ import annotations

import io
from typing import Iterable, Tuple

from PIL import Image, ImageDraw

from ...utils.logging import get_logger
from .color_sampler import hex_to_rgb
from .fonts import FontCatalog
from .geometry import Rect, handle_centers
from .models import Overlay, TextAlign, move_to
from .text_layout import line_height, wrap_text

TEXT_PADDING = 4
WRAP_MARGIN = TEXT_PADDING * 2
UNDERLINE_OFFSET = 0.95
UNDERLINE_DIVISOR = 15

OUTLINE_COLOR = (99, 102, 241, 204)
OUTLINE_WIDTH = 2
OUTLINE_DASH = (5, 3)
HANDLE_SIZE = 8
HANDLE_FILL = (99, 102, 241, 255)
HANDLE_STROKE = (255, 255, 255, 255)

_ANCHORS = {TextAlign.LEFT: "la", TextAlign.CENTER: "ma", TextAlign.RIGHT: "ra"}

logger = get_logger(__name__)


def _pixel_box(rect: Rect) -> Tuple[int, int, int, int]:
    return (
        int(round(rect.x)),
        int(round(rect.y)),
        int(round(rect.right)),
        int(round(rect.bottom)),
    )


def _ink(surface: Image.Image, rgb: Tuple[int, int, int]) -> Tuple[int, ...]:
    return rgb + (255,) if surface.mode == "RGBA" else rgb


def _fill_background(surface: Image.Image, box: Tuple[int, int, int, int], rgb: Tuple[int, int, int], opacity: int) -> None:
    left, top, right, bottom = box
    width, height = right - left, bottom - top
    if width <= 0 or height <= 0 or opacity <= 0:
        return

    if opacity >= 100:
        ImageDraw.Draw(surface).rectangle((left, top, right - 1, bottom - 1), fill=_ink(surface, rgb))
        return

    alpha = int(round(255 * opacity / 100))
    layer = Image.new("RGBA", (width, height), rgb + (alpha,))
    if surface.mode == "RGBA":
        surface.alpha_composite(layer, dest=(left, top))
    else:
        surface.paste(layer, (left, top), layer)


def render_overlay(surface: Image.Image, overlay: Overlay, scale: float, fonts: FontCatalog) -> None:
    """Draw the overlay's background and text onto ``surface`` at display ``scale``.

    Only the background honours ``background_opacity``; text is always opaque.
    Used unchanged by the live preview and by export patches.
    """
    display = overlay.display_rect(scale)
    box = _pixel_box(display)
    _fill_background(surface, box, hex_to_rgb(overlay.background_color), overlay.background_opacity)

    if not overlay.text:
        return

    font_px = overlay.font_size_pt * scale
    resolved = fonts.resolve(overlay.font_family, overlay.effective_weight, overlay.is_italic, font_px)
    ink = _ink(surface, hex_to_rgb(overlay.text_color))
    anchor = _ANCHORS[overlay.text_align]

    if overlay.text_align is TextAlign.CENTER:
        text_x = display.x + display.width / 2
    elif overlay.text_align is TextAlign.RIGHT:
        text_x = display.right - TEXT_PADDING
    else:
        text_x = display.x + TEXT_PADDING

    draw = ImageDraw.Draw(surface)
    lines = wrap_text(overlay.text, display.width, resolved.measure, margin=WRAP_MARGIN)
    y = display.y + TEXT_PADDING
    for line in lines:
        if line:
            draw.text(
                (text_x, y),
                line,
                font=resolved.font,
                fill=ink,
                anchor=anchor,
                stroke_width=resolved.stroke_width,
                stroke_fill=ink,
            )
        if overlay.is_underline and line:
            _underline(draw, line, text_x, y, font_px, overlay.text_align, resolved.measure(line), ink)
        y += line_height(font_px)


def _underline(draw: ImageDraw.ImageDraw, line: str, text_x: float, y: float, font_px: float,
               align: TextAlign, line_width: float, ink: Tuple[int, ...]) -> None:
    if align is TextAlign.CENTER:
        start = text_x - line_width / 2
    elif align is TextAlign.RIGHT:
        start = text_x - line_width
    else:
        start = text_x
    stroke = max(1, int(round(font_px / UNDERLINE_DIVISOR)))
    line_y = y + font_px * UNDERLINE_OFFSET
    draw.line([(start, line_y), (start + line_width, line_y)], fill=ink, width=stroke)


def _dashed_outline(draw: ImageDraw.ImageDraw, box: Tuple[int, int, int, int]) -> None:
    left, top, right, bottom = box
    on, off = OUTLINE_DASH
    edges = (
        ((left, top), (right, top)),
        ((right, top), (right, bottom)),
        ((right, bottom), (left, bottom)),
        ((left, bottom), (left, top)),
    )
    for (x0, y0), (x1, y1) in edges:
        length = abs(x1 - x0) + abs(y1 - y0)
        step_x = (x1 - x0) / length if length else 0
        step_y = (y1 - y0) / length if length else 0
        position = 0
        while position < length:
            end = min(position + on, length)
            draw.line(
                [(x0 + step_x * position, y0 + step_y * position), (x0 + step_x * end, y0 + step_y * end)],
                fill=OUTLINE_COLOR,
                width=OUTLINE_WIDTH,
            )
            position += on + off


def render_preview(surface: Image.Image, overlay: Overlay, scale: float, fonts: FontCatalog) -> None:
    """``render_overlay`` plus the editing decoration: dashed outline and eight resize handles."""
    render_overlay(surface, overlay, scale, fonts)

    display = overlay.display_rect(scale)
    decoration = Image.new("RGBA", surface.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(decoration)
    _dashed_outline(draw, _pixel_box(display))

    half = HANDLE_SIZE / 2
    for cx, cy in handle_centers(display).values():
        draw.rectangle(
            (cx - half, cy - half, cx + half, cy + half),
            fill=HANDLE_FILL,
            outline=HANDLE_STROKE,
            width=1,
        )

    if surface.mode == "RGBA":
        surface.alpha_composite(decoration)
    else:
        surface.paste(decoration, (0, 0), decoration)


def render_page_overlays(surface: Image.Image, overlays: Iterable[Overlay], scale: float, fonts: FontCatalog) -> None:
    for overlay in overlays:
        render_overlay(surface, overlay, scale, fonts)


def render_patch(overlay: Overlay, fonts: FontCatalog, upscale: float = 2.0) -> Image.Image:
    """Render ``overlay`` alone into a transparent buffer ``upscale`` times its document size."""
    width = max(1, int(round(overlay.width * upscale)))
    height = max(1, int(round(overlay.height * upscale)))
    patch = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    render_overlay(patch, move_to(overlay, Rect(0.0, 0.0, overlay.width, overlay.height)), upscale, fonts)
    logger.debug("patch rendered", overlay_id=overlay.id, size=[width, height])
    return patch


def encode_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
