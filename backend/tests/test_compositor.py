from __future__ import annotations

import io
from dataclasses import replace

from PIL import Image, ImageChops

from slidepatch.services.overlay.compositor import (
    encode_png,
    render_overlay,
    render_page_overlays,
    render_patch,
    render_preview,
)
from slidepatch.services.overlay.fonts import FontCatalog
from slidepatch.services.overlay.models import Overlay


def _fonts() -> FontCatalog:
    return FontCatalog([])


def _overlay(**kwargs) -> Overlay:
    values = dict(id=1, page_number=1, x=10, y=10, width=20, height=20)
    values.update(kwargs)
    return Overlay(**values)


def test_opaque_background_fills_display_rect():
    surface = Image.new("RGB", (100, 100), (255, 255, 255))
    render_overlay(surface, _overlay(background_color="#FF0000"), 2.0, _fonts())

    assert surface.getpixel((30, 30)) == (255, 0, 0)
    assert surface.getpixel((59, 59)) == (255, 0, 0)
    assert surface.getpixel((60, 60)) == (255, 255, 255)
    assert surface.getpixel((5, 5)) == (255, 255, 255)


def test_background_opacity_blends_with_page():
    surface = Image.new("RGB", (100, 100), (255, 255, 255))
    render_overlay(surface, _overlay(background_color="#000000", background_opacity=50), 1.0, _fonts())

    red, green, blue = surface.getpixel((20, 20))
    assert 120 <= red <= 135
    assert red == green == blue


def test_background_opacity_on_transparent_surface_sets_alpha():
    surface = Image.new("RGBA", (50, 50), (0, 0, 0, 0))
    render_overlay(surface, _overlay(background_color="#000000", background_opacity=50), 1.0, _fonts())
    assert 120 <= surface.getpixel((20, 20))[3] <= 135


def test_text_is_drawn_inside_the_overlay():
    surface = Image.new("RGB", (100, 100), (255, 255, 255))
    overlay = _overlay(x=0, y=0, width=80, height=30, text="HELLO", font_size_pt=16)
    render_overlay(surface, overlay, 1.0, _fonts())

    region = surface.crop((0, 0, 80, 30)).convert("L")
    assert min(region.getdata()) < 128
    assert surface.crop((0, 40, 100, 100)).convert("L").getextrema() == (255, 255)


def test_underline_adds_ink_below_the_first_line():
    base = _overlay(x=0, y=0, width=100, height=50, text="HHHH", font_size_pt=20)
    plain = Image.new("RGB", (120, 60), (255, 255, 255))
    underlined = plain.copy()
    render_overlay(plain, base, 1.0, _fonts())
    render_overlay(underlined, replace(base, is_underline=True), 1.0, _fonts())

    bbox = ImageChops.difference(plain, underlined).getbbox()
    assert bbox is not None
    # first line starts 4px down and the rule sits 0.95em below that
    assert bbox[1] >= 20


def test_patch_is_upscaled_and_transparent_outside_background():
    overlay = _overlay(x=300, y=400, width=40, height=15, background_color="#00FF00")
    patch = render_patch(overlay, _fonts(), upscale=2)

    assert patch.mode == "RGBA"
    assert patch.size == (80, 30)
    assert patch.getpixel((0, 0)) == (0, 255, 0, 255)
    assert patch.getpixel((79, 29)) == (0, 255, 0, 255)


def test_fully_transparent_patch_without_text_is_empty():
    patch = render_patch(_overlay(background_opacity=0), _fonts())
    assert patch.getbbox() is None


def test_preview_adds_handles_that_export_never_sees():
    overlay = _overlay(x=50, y=50, width=50, height=50)

    decorated = Image.new("RGB", (200, 200), (255, 255, 255))
    render_preview(decorated, overlay, 1.0, _fonts())
    assert decorated.getpixel((47, 47)) == (99, 102, 241)

    plain = Image.new("RGB", (200, 200), (255, 255, 255))
    render_page_overlays(plain, [overlay], 1.0, _fonts())
    assert plain.getpixel((47, 47)) == (255, 255, 255)


def test_encode_png_round_trips_through_pillow():
    data = encode_png(Image.new("RGBA", (3, 2), (1, 2, 3, 4)))
    assert data.startswith(b"\x89PNG")
    assert Image.open(io.BytesIO(data)).size == (3, 2)
