from __future__ import annotations

import re
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import fitz
from PIL import Image

from ...utils.exceptions import DocumentLoadError, PageOutOfRange
from ...utils.logging import get_logger
from ..overlay.fonts import KOREAN_FONTS, RECOMMENDED_FONTS, WEIGHT_NAMES
from ..overlay.geometry import Rect

# PyMuPDF span flags
FLAG_ITALIC = 1 << 1
FLAG_BOLD = 1 << 4

_SUBSET_PREFIX = re.compile(r"^[A-Z]{6}\+")
_STYLE_WEIGHTS = {name: weight for weight, name in WEIGHT_NAMES.items()}
_STYLE_WEIGHTS.update({"normal": 400, "book": 400, "heavy": 900, "ultralight": 200, "demibold": 600})
_KNOWN_FAMILIES = {re.sub(r"[\s_\-]+", "", name).lower(): name for name in RECOMMENDED_FONTS + KOREAN_FONTS}


@dataclass(frozen=True)
class TextInfo:
    """Dominant font of the text found inside a page rectangle."""

    font_name: str
    font_family: str
    font_weight: str
    font_size: float
    is_bold: bool
    is_italic: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fontName": self.font_name,
            "fontFamily": self.font_family,
            "fontWeight": self.font_weight,
            "fontSize": self.font_size,
            "isBold": self.is_bold,
            "isItalic": self.is_italic,
        }


def parse_font_name(font_name: str) -> Tuple[str, int, bool]:
    """Split a PDF base font name into (family, weight, italic).

    ``ABCDEF+NotoSansKR-Bold`` -> ``("Noto Sans KR", 700, False)``. Families
    the font catalogue knows are returned under their display name; others
    keep the PDF spelling.
    """
    name = _SUBSET_PREFIX.sub("", font_name.strip())
    family_part, _, style_part = name.partition("-")
    if not style_part and "," in family_part:
        family_part, _, style_part = family_part.partition(",")

    style = style_part.lower()
    italic = "italic" in style or "oblique" in style
    style = re.sub(r"(mt|ps)$", "", style.replace("italic", "").replace("oblique", ""))
    weight = _STYLE_WEIGHTS.get(style, 400) if style else 400

    family = _KNOWN_FAMILIES.get(re.sub(r"[\s_\-]+", "", family_part).lower(), family_part)
    return family, weight, italic


class PdfDocumentSource:
    """Read-only view of a PDF: page geometry, rasterisation and text metadata."""

    def __init__(self, data: bytes):
        self.logger = get_logger(self.__class__.__name__)
        try:
            self._doc = fitz.open(stream=data, filetype="pdf")
        except (RuntimeError, ValueError) as exc:
            raise DocumentLoadError(f"Unable to open PDF: {exc}") from exc
        if self._doc.page_count < 1:
            self._doc.close()
            raise DocumentLoadError("PDF has no pages")
        self.data = bytes(data)
        self.logger.info("document opened", pages=self._doc.page_count, size=len(self.data))

    @property
    def page_count(self) -> int:
        return self._doc.page_count

    def _page(self, page_number: int) -> fitz.Page:
        if not 1 <= page_number <= self.page_count:
            raise PageOutOfRange(page_number, self.page_count)
        return self._doc[page_number - 1]

    def page_size(self, page_number: int) -> Tuple[float, float]:
        rect = self._page(page_number).rect
        return float(rect.width), float(rect.height)

    def render_page(self, page_number: int, scale: float) -> Image.Image:
        page = self._page(page_number)
        pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
        return Image.frombytes("RGB", (pix.width, pix.height), pix.samples)

    def _spans_in_rect(self, page_number: int, rect: Rect) -> List[Dict[str, Any]]:
        page = self._page(page_number)
        clip = fitz.Rect(rect.x, rect.y, rect.right, rect.bottom)
        text = page.get_text("dict", clip=clip)
        spans: List[Dict[str, Any]] = []
        for block in text.get("blocks", []):
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    if (span.get("text") or "").strip() and fitz.Rect(span["bbox"]).intersects(clip):
                        spans.append(span)
        return spans

    def get_text_info_in_rect(self, page_number: int, rect: Rect) -> Optional[TextInfo]:
        """Dominant font (by character count) of the text spans intersecting ``rect``."""
        spans = self._spans_in_rect(page_number, rect)
        if not spans:
            return None

        weight_by_font: Dict[Tuple[str, float, int], int] = defaultdict(int)
        for span in spans:
            key = (span.get("font", ""), round(float(span.get("size", 0.0)), 2), int(span.get("flags", 0)))
            weight_by_font[key] += len(span["text"].strip())

        (font_name, size, flags), _ = max(weight_by_font.items(), key=lambda item: item[1])
        family, weight, italic = parse_font_name(font_name)
        if flags & FLAG_BOLD:
            weight = max(weight, 700)
        italic = italic or bool(flags & FLAG_ITALIC)

        return TextInfo(
            font_name=font_name,
            font_family=family,
            font_weight=str(weight),
            font_size=size,
            is_bold=weight >= 600,
            is_italic=italic,
        )

    def get_text_in_rect(self, page_number: int, rect: Rect) -> str:
        """Text of the words whose boxes intersect ``rect``, one output line per text line."""
        page = self._page(page_number)
        clip = fitz.Rect(rect.x, rect.y, rect.right, rect.bottom)
        lines: Dict[Tuple[int, int], List[Tuple[int, str]]] = defaultdict(list)
        for x0, y0, x1, y1, word, block_no, line_no, word_no in page.get_text("words"):
            if fitz.Rect(x0, y0, x1, y1).intersects(clip):
                lines[(block_no, line_no)].append((word_no, word))
        return "\n".join(
            " ".join(word for _, word in sorted(words)) for _, words in sorted(lines.items())
        )

    def close(self) -> None:
        self._doc.close()
