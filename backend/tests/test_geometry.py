from __future__ import annotations

import pytest

from slidepatch.services.overlay.errors import InvalidRegion
from slidepatch.services.overlay.geometry import (
    HANDLE_CURSORS,
    Handle,
    Rect,
    clamp_scale,
    hit_test_body,
    hit_test_handle,
    to_display_space,
    to_document_space,
)


def test_transform_divides_and_multiplies_by_scale():
    assert to_document_space(150.0, 1.5) == pytest.approx(100.0)
    assert to_display_space(100.0, 1.5) == pytest.approx(150.0)
    assert to_document_space((30.0, 60.0), 3.0) == pytest.approx((10.0, 20.0))


def test_rect_transform_round_trip_is_stable():
    rect = Rect(12.5, 40.0, 80.25, 33.0)
    back = to_document_space(to_display_space(rect, 1.75), 1.75)
    assert back.x == pytest.approx(rect.x)
    assert back.y == pytest.approx(rect.y)
    assert back.width == pytest.approx(rect.width)
    assert back.height == pytest.approx(rect.height)


def test_transform_rejects_non_positive_scale():
    with pytest.raises(ValueError):
        to_document_space(10.0, 0)


def test_clamp_scale_bounds():
    assert clamp_scale(5) == 3.0
    assert clamp_scale(0.1) == 0.25
    assert clamp_scale(1.2) == 1.2


def test_from_points_normalises_direction():
    assert Rect.from_points((60, 40), (10, 10)) == Rect(10, 10, 50, 30)


def test_from_dict_rejects_missing_keys():
    with pytest.raises(InvalidRegion):
        Rect.from_dict({"x": 1, "y": 2, "width": 3})


def test_clamp_to_intersects_with_bounds():
    assert Rect(-10, 40, 30, 30).clamp_to(50, 50) == Rect(0, 40, 20, 10)
    assert Rect(60, 60, 10, 10).clamp_to(50, 50).is_positive is False


def test_hit_test_handle_corners_and_edges():
    rect = Rect(100, 100, 200, 100)
    assert hit_test_handle(rect, (100, 100)) is Handle.NW
    assert hit_test_handle(rect, (300, 200)) is Handle.SE
    assert hit_test_handle(rect, (200, 100)) is Handle.N
    assert hit_test_handle(rect, (99, 150)) is Handle.W
    assert hit_test_handle(rect, (106, 106)) is Handle.NW
    assert hit_test_handle(rect, (107, 100)) is None
    assert hit_test_handle(rect, (150, 150)) is None


def test_corner_wins_over_edge_when_both_hit():
    assert hit_test_handle(Rect(0, 0, 8, 8), (2, 0)) is Handle.NW


def test_body_hit_is_inclusive():
    rect = Rect(10, 10, 20, 20)
    assert hit_test_body(rect, (10, 10))
    assert hit_test_body(rect, (30, 30))
    assert not hit_test_body(rect, (31, 20))


def test_handle_cursor_names():
    assert HANDLE_CURSORS[Handle.NE] == "ne-resize"
    assert HANDLE_CURSORS[Handle.S] == "s-resize"
