from __future__ import annotations

from datetime import timezone

import pytest

from slidepatch.services.overlay.errors import InvalidRegion
from slidepatch.services.overlay.geometry import Rect
from slidepatch.services.overlay.models import (
    Overlay,
    TextAlign,
    normalize_overlay_options,
    overlay_from_record,
)
from slidepatch.services.overlay.repository import OverlayRepository


def test_create_then_remove_first_overlay():
    repo = OverlayRepository()
    overlay = repo.create(1, Rect(0, 0, 10, 10))

    assert overlay.id == 1
    assert repo.remove(1) is overlay
    assert repo.get(1) is None
    assert repo.get_page_overlays(1) == []


def test_ids_increase_and_are_never_reused():
    repo = OverlayRepository()
    first = repo.create(1, Rect(0, 0, 10, 10))
    repo.remove(first.id)
    second = repo.create(1, Rect(0, 0, 10, 10))
    assert second.id == 2


def test_page_index_and_insertion_order():
    repo = OverlayRepository()
    a = repo.create(2, Rect(0, 0, 10, 10))
    b = repo.create(1, Rect(0, 0, 10, 10))
    c = repo.create(2, Rect(5, 5, 10, 10))

    assert repo.get_all() == [a, b, c]
    assert repo.get_page_overlays(2) == [a, c]
    assert repo.pages() == [1, 2]
    for page in repo.pages():
        assert all(overlay.page_number == page for overlay in repo.get_page_overlays(page))


def test_create_rejects_non_positive_geometry_without_consuming_id():
    repo = OverlayRepository()
    with pytest.raises(InvalidRegion):
        repo.create(1, Rect(0, 0, 0, 10))
    assert repo.create(1, Rect(0, 0, 10, 10)).id == 1


def test_defaults_of_a_new_overlay():
    overlay = OverlayRepository().create(1, Rect(0, 0, 10, 10))
    assert overlay.text == ""
    assert overlay.font_family == "Noto Sans KR"
    assert overlay.font_weight == "400"
    assert overlay.font_size_pt == 24
    assert overlay.text_color == "#000000"
    assert overlay.background_color == "#FFFFFF"
    assert overlay.text_align is TextAlign.LEFT
    assert overlay.background_opacity == 100
    assert overlay.created_at.tzinfo is not None


def test_update_keeps_identity_and_position():
    repo = OverlayRepository()
    first = repo.create(1, Rect(0, 0, 10, 10))
    second = repo.create(1, Rect(20, 20, 10, 10))

    updated = repo.update(first.id, {"text": "new", "fontSize": 30}, x=5)

    assert updated is first
    assert first.id == 1
    assert first.text == "new"
    assert first.font_size_pt == 30
    assert first.x == 5
    assert repo.get_all() == [first, second]
    assert repo.get_page_overlays(1)[0] is first


def test_update_rejected_edit_leaves_overlay_untouched():
    repo = OverlayRepository()
    overlay = repo.create(1, Rect(0, 0, 10, 10), {"text": "keep"})

    with pytest.raises(InvalidRegion):
        repo.update(overlay.id, text="lost", width=0)

    assert overlay.text == "keep"
    assert overlay.width == 10


def test_update_cannot_move_overlay_to_another_page():
    repo = OverlayRepository()
    overlay = repo.create(1, Rect(0, 0, 10, 10))
    with pytest.raises(InvalidRegion):
        repo.update(overlay.id, pageNumber=2)
    assert repo.update(overlay.id, pageNumber=1, text="same page") is overlay


def test_unknown_ids_are_null_results():
    repo = OverlayRepository()
    assert repo.get(42) is None
    assert repo.update(42, text="x") is None
    assert repo.remove(42) is None


def test_clear_page_and_clear_all():
    repo = OverlayRepository()
    repo.create(1, Rect(0, 0, 10, 10))
    repo.create(1, Rect(0, 0, 10, 10))
    kept = repo.create(2, Rect(0, 0, 10, 10))

    assert repo.clear_page(1) == 2
    assert repo.get_all() == [kept]
    repo.clear_all()
    assert len(repo) == 0
    assert repo.pages() == []


def test_legacy_option_keys_are_normalised():
    overlay = OverlayRepository().create(
        1,
        Rect(0, 0, 10, 10),
        {"font": "NanumGothic", "size": 30, "color": "#ff0000", "bgOpacity": 50, "textAlign": "center"},
    )
    assert overlay.font_family == "NanumGothic"
    assert overlay.font == "NanumGothic"
    assert overlay.font_size_pt == 30
    assert overlay.text_color == "#FF0000"
    assert overlay.background_opacity == 50
    assert overlay.text_align is TextAlign.CENTER


def test_legacy_font_never_overrides_explicit_family():
    options = normalize_overlay_options({"font": "Pretendard", "fontFamily": "Noto Sans KR", "unknown": 1})
    assert options == {"font_family": "Noto Sans KR"}


def test_bold_overrides_weight():
    overlay = Overlay(id=None, page_number=1, x=0, y=0, width=5, height=5, font_weight="300", is_bold=True)
    assert overlay.effective_weight == "bold"


def test_opacity_is_clamped():
    overlay = Overlay(id=None, page_number=1, x=0, y=0, width=5, height=5, background_opacity=150)
    assert overlay.background_opacity == 100


def test_display_rect_is_derived_from_scale():
    overlay = Overlay(id=1, page_number=1, x=10, y=20, width=30, height=40)
    assert overlay.display_rect(2) == Rect(20, 40, 60, 80)


def test_overlay_from_legacy_record():
    overlay = overlay_from_record(
        {
            "id": 7,
            "pageNum": 3,
            "x": 1,
            "y": 2,
            "width": 30,
            "height": 40,
            "text": "hi",
            "font": "Pretendard",
            "size": 18,
            "createdAt": 1700000000000,
        }
    )
    assert overlay.id == 7
    assert overlay.page_number == 3
    assert overlay.font_family == "Pretendard"
    assert overlay.created_at.tzinfo == timezone.utc
    assert overlay.created_at.year == 2023


def test_to_dict_uses_camel_case_keys():
    payload = Overlay(id=1, page_number=1, x=0, y=0, width=5, height=5).to_dict()
    assert payload["pageNumber"] == 1
    assert payload["fontSizePt"] == 24
    assert payload["textAlign"] == "left"
    assert isinstance(payload["createdAt"], str)
