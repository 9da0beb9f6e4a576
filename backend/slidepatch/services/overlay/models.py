from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from ...utils.time import from_epoch_millis, isoformat, utc_now
from .errors import InvalidRegion
from .geometry import Rect

DEFAULT_FONT_FAMILY = "Noto Sans KR"
DEFAULT_FONT_WEIGHT = "400"
DEFAULT_FONT_SIZE = 24.0
MIN_FONT_SIZE = 8
MAX_FONT_SIZE = 200


class TextAlign(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


@dataclass
class Overlay:
    """A rectangular replacement patch anchored to one page.

    Geometry is in document space (page units, independent of zoom). ``id`` is
    ``None`` while the overlay is only a preview and has not been committed.
    """

    id: Optional[int]
    page_number: int
    x: float
    y: float
    width: float
    height: float
    text: str = ""
    font_family: str = DEFAULT_FONT_FAMILY
    font_weight: str = DEFAULT_FONT_WEIGHT
    font_size_pt: float = DEFAULT_FONT_SIZE
    text_color: str = "#000000"
    background_color: str = "#FFFFFF"
    text_align: TextAlign = TextAlign.LEFT
    is_bold: bool = False
    is_italic: bool = False
    is_underline: bool = False
    background_opacity: int = 100
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        self.page_number = int(self.page_number)
        if self.page_number < 1:
            raise InvalidRegion(f"page number must be positive, got {self.page_number}")
        self.x, self.y = float(self.x), float(self.y)
        self.width, self.height = float(self.width), float(self.height)
        if not (self.width > 0 and self.height > 0):
            raise InvalidRegion(f"overlay size must be positive, got {self.width}x{self.height}")
        self.text = str(self.text or "")
        self.font_family = str(self.font_family or DEFAULT_FONT_FAMILY)
        self.font_weight = str(self.font_weight or DEFAULT_FONT_WEIGHT)
        self.font_size_pt = float(self.font_size_pt)
        if self.font_size_pt <= 0:
            raise InvalidRegion(f"font size must be positive, got {self.font_size_pt}")
        self.text_color = str(self.text_color).upper()
        self.background_color = str(self.background_color).upper()
        self.text_align = TextAlign(self.text_align)
        self.is_bold = bool(self.is_bold)
        self.is_italic = bool(self.is_italic)
        self.is_underline = bool(self.is_underline)
        self.background_opacity = max(0, min(100, int(self.background_opacity)))

    @property
    def font(self) -> str:
        """Legacy alias of ``font_family``."""
        return self.font_family

    @property
    def effective_weight(self) -> str:
        return "bold" if self.is_bold else self.font_weight

    @property
    def rect(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)

    def display_rect(self, scale: float) -> Rect:
        return self.rect.scaled(scale)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "pageNumber": self.page_number,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "text": self.text,
            "fontFamily": self.font_family,
            "fontWeight": self.font_weight,
            "fontSizePt": self.font_size_pt,
            "textColor": self.text_color,
            "backgroundColor": self.background_color,
            "textAlign": self.text_align.value,
            "isBold": self.is_bold,
            "isItalic": self.is_italic,
            "isUnderline": self.is_underline,
            "backgroundOpacity": self.background_opacity,
            "createdAt": isoformat(self.created_at),
        }


GEOMETRY_FIELDS = ("x", "y", "width", "height")
STYLE_FIELDS = tuple(
    f.name for f in fields(Overlay) if f.name not in GEOMETRY_FIELDS + ("id", "page_number", "created_at")
)

# Keys accepted from callers and from records saved by older clients.
_OPTION_ALIASES: Dict[str, str] = {
    "fontFamily": "font_family",
    "fontWeight": "font_weight",
    "fontSizePt": "font_size_pt",
    "fontSize": "font_size_pt",
    "size": "font_size_pt",
    "textColor": "text_color",
    "color": "text_color",
    "backgroundColor": "background_color",
    "textAlign": "text_align",
    "isBold": "is_bold",
    "isItalic": "is_italic",
    "isUnderline": "is_underline",
    "backgroundOpacity": "background_opacity",
    "bgOpacity": "background_opacity",
}


def normalize_overlay_options(options: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Map caller or legacy option keys onto canonical style field names.

    The legacy ``font`` key only fills ``font_family`` when no explicit family
    is given, matching records written before weights existed. Unknown keys
    are dropped; ``None`` values mean "keep the default".
    """
    normalized: Dict[str, Any] = {}
    legacy_font: Optional[str] = None
    for key, value in (options or {}).items():
        if value is None:
            continue
        if key == "font":
            legacy_font = value
            continue
        canonical = _OPTION_ALIASES.get(key, key)
        if canonical in STYLE_FIELDS:
            normalized[canonical] = value
    if legacy_font and "font_family" not in normalized:
        normalized["font_family"] = legacy_font
    return normalized


def move_to(overlay: Overlay, rect: Rect) -> Overlay:
    return replace(overlay, x=rect.x, y=rect.y, width=rect.width, height=rect.height)


def overlay_from_record(record: Mapping[str, Any]) -> Overlay:
    """Rebuild an overlay from a serialized record, including legacy ``pageNum``/``font`` shapes."""
    page = record.get("pageNumber", record.get("pageNum"))
    created = record.get("createdAt")
    if isinstance(created, (int, float)):
        created_at = from_epoch_millis(created)
    elif isinstance(created, str):
        created_at = datetime.fromisoformat(created)
    else:
        created_at = utc_now()
    return Overlay(
        id=int(record["id"]),
        page_number=int(page),
        x=float(record["x"]),
        y=float(record["y"]),
        width=float(record["width"]),
        height=float(record["height"]),
        created_at=created_at,
        **normalize_overlay_options(record),
    )


def apply_changes(overlay: Overlay, changes: Mapping[str, Any]) -> Dict[str, Any]:
    """Edit ``overlay`` in place from geometry keys and style options.

    The edit is validated on a copy first, so a rejected change leaves the
    overlay untouched. Returns the canonical fields that were applied.
    """
    updates = normalize_overlay_options(changes)
    for key in GEOMETRY_FIELDS:
        if changes.get(key) is not None:
            updates[key] = float(changes[key])

    candidate = replace(overlay, **updates)
    for item in fields(Overlay):
        setattr(overlay, item.name, getattr(candidate, item.name))
    return updates


def style_of(overlay: Overlay) -> Dict[str, Any]:
    return {name: getattr(overlay, name) for name in STYLE_FIELDS}
