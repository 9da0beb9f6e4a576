from __future__ import annotations

import pytest

from slidepatch.services.overlay.font_sizing import (
    FontSizingConstants,
    font_size_from_metadata,
    seed_font_size,
)


@pytest.mark.parametrize(
    "text, width, height, expected",
    [
        ("안녕하세요", 100, 30, 24),   # height-bound single line
        ("가" * 30, 200, 100, 24),     # long text assumed to wrap
        ("A", 1000, 1000, 120),        # clamped to the maximum
        ("ABCDEFGHIJ", 20, 40, 12),    # clamped to the minimum
        ("", 100, 20, 16),
    ],
)
def test_seed_font_size(text, width, height, expected):
    assert seed_font_size(text, width, height) == expected


def test_metadata_size_is_rounded_and_clamped():
    assert font_size_from_metadata(10.4) == 12
    assert font_size_from_metadata(33.6) == 34
    assert font_size_from_metadata(500) == 120
    assert font_size_from_metadata(None) is None
    assert font_size_from_metadata(0) is None


def test_constants_from_config_mapping_ignore_unknown_keys():
    constants = FontSizingConstants.from_mapping({"min_size": 8, "max_size": 72, "unused": 1})
    assert constants.min_size == 8
    assert constants.max_size == 72
    assert constants.char_width_ratio == 0.65
    assert FontSizingConstants.from_mapping(None) == FontSizingConstants()
