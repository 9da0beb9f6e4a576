from __future__ import annotations

from typing import Callable, List

MeasureFn = Callable[[str], float]


def wrap_text(text: str, max_width: float, measure: MeasureFn, margin: float = 0.0) -> List[str]:
    """Greedy character-level wrap of ``text`` into lines no wider than ``max_width - margin``.

    Newlines are hard paragraph breaks; an empty paragraph yields an empty line.
    Packing is per character rather than per word because the text mixes Hangul
    and CJK with Latin, where no single word-boundary rule holds. A character
    wider than the limit on its own still gets a line of its own.
    """
    limit = max_width - margin
    lines: List[str] = []

    for paragraph in text.split("\n"):
        current = ""
        for char in paragraph:
            candidate = current + char
            if current and measure(candidate) > limit:
                lines.append(current)
                current = char
            else:
                current = candidate
        lines.append(current)

    return lines


def line_height(font_px: float) -> float:
    return font_px * 1.2
