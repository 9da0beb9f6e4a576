from __future__ import annotations

import math
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class FontSizingConstants:
    """Empirical ratios used to guess a point size from a recognised region.

    ``char_width_ratio`` is the average glyph advance as a fraction of the
    font size for mixed Hangul/Latin text.
    """

    char_width_ratio: float = 0.65
    width_fill: float = 0.95
    height_fill: float = 0.8
    multiline_threshold: float = 0.4
    multiline_min_chars: int = 10
    multiline_lines: float = 2.5
    multiline_height_fill: float = 0.4
    min_size: int = 12
    max_size: int = 120

    @classmethod
    def from_mapping(cls, values: Optional[Mapping[str, Any]]) -> "FontSizingConstants":
        known = {item.name for item in fields(cls)}
        return cls(**{key: value for key, value in (values or {}).items() if key in known})

    def clamp(self, size: float) -> int:
        return max(self.min_size, min(self.max_size, int(math.floor(size + 0.5))))


def seed_font_size(
    text: str,
    width: float,
    height: float,
    constants: FontSizingConstants = FontSizingConstants(),
) -> int:
    """Suggest a font size for ``text`` filling a ``width`` x ``height`` region (document units).

    A single-line fit is tried first. When that would shrink the text below
    ``multiline_threshold`` of the height-based size and the text is long, a
    two-to-three line layout is assumed instead.
    """
    count = len(text)
    size_by_height = height * constants.height_fill
    if count == 0:
        return constants.clamp(size_by_height)

    size_by_width = (width * constants.width_fill) / (count * constants.char_width_ratio)

    if size_by_width < size_by_height * constants.multiline_threshold and count > constants.multiline_min_chars:
        per_line = math.ceil(count / constants.multiline_lines)
        size_by_lines = min(
            height * constants.multiline_height_fill,
            (width * constants.width_fill) / (per_line * constants.char_width_ratio),
        )
        size = max(size_by_width, size_by_lines)
    else:
        size = min(size_by_width, size_by_height)

    return constants.clamp(size)


def font_size_from_metadata(
    metadata_size: Optional[float],
    constants: FontSizingConstants = FontSizingConstants(),
) -> Optional[int]:
    """Size reported by the document's own text layer, clamped; ``None`` when absent."""
    if metadata_size is None or metadata_size <= 0:
        return None
    return constants.clamp(metadata_size)
