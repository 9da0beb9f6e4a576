from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple, Union

from .errors import InvalidRegion

MIN_SCALE = 0.25
MAX_SCALE = 3.0
DEFAULT_HANDLE_HIT_RADIUS = 6.0

Point = Tuple[float, float]


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle stored as origin plus size."""

    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_points(cls, a: Point, b: Point) -> "Rect":
        x0, x1 = sorted((a[0], b[0]))
        y0, y1 = sorted((a[1], b[1]))
        return cls(x0, y0, x1 - x0, y1 - y0)

    @classmethod
    def from_dict(cls, payload: Dict[str, float]) -> "Rect":
        try:
            return cls(
                float(payload["x"]),
                float(payload["y"]),
                float(payload["width"]),
                float(payload["height"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidRegion(f"Malformed rectangle: {payload!r}") from exc

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Point:
        return (self.x + self.width / 2, self.y + self.height / 2)

    @property
    def is_positive(self) -> bool:
        return self.width > 0 and self.height > 0

    def scaled(self, factor: float) -> "Rect":
        return Rect(self.x * factor, self.y * factor, self.width * factor, self.height * factor)

    def translated(self, dx: float, dy: float) -> "Rect":
        return Rect(self.x + dx, self.y + dy, self.width, self.height)

    def contains(self, point: Point) -> bool:
        px, py = point
        return self.x <= px <= self.right and self.y <= py <= self.bottom

    def clamp_to(self, width: float, height: float) -> "Rect":
        """Intersect with the box (0, 0, width, height); may return an empty rect."""
        x0 = min(max(self.x, 0.0), width)
        y0 = min(max(self.y, 0.0), height)
        x1 = min(max(self.right, 0.0), width)
        y1 = min(max(self.bottom, 0.0), height)
        return Rect(x0, y0, max(0.0, x1 - x0), max(0.0, y1 - y0))

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


def _check_scale(scale: float) -> float:
    if scale <= 0:
        raise ValueError(f"scale must be positive, got {scale}")
    return float(scale)


def to_document_space(value: Union[float, Point, Rect], scale: float):
    """Convert a display-space scalar, point or rect into document space."""
    scale = _check_scale(scale)
    if isinstance(value, Rect):
        return value.scaled(1.0 / scale)
    if isinstance(value, tuple):
        return (value[0] / scale, value[1] / scale)
    return value / scale


def to_display_space(value: Union[float, Point, Rect], scale: float):
    """Convert a document-space scalar, point or rect into display space."""
    scale = _check_scale(scale)
    if isinstance(value, Rect):
        return value.scaled(scale)
    if isinstance(value, tuple):
        return (value[0] * scale, value[1] * scale)
    return value * scale


def clamp_scale(scale: float) -> float:
    return max(MIN_SCALE, min(MAX_SCALE, float(scale)))


class Handle(str, Enum):
    N = "n"
    NE = "ne"
    E = "e"
    SE = "se"
    S = "s"
    SW = "sw"
    W = "w"
    NW = "nw"

    @property
    def moves_west(self) -> bool:
        return "w" in self.value

    @property
    def moves_east(self) -> bool:
        return "e" in self.value

    @property
    def moves_north(self) -> bool:
        return "n" in self.value

    @property
    def moves_south(self) -> bool:
        return "s" in self.value


# Corners first so that ties between overlapping hit boxes resolve deterministically.
HANDLE_ORDER = (
    Handle.NW,
    Handle.NE,
    Handle.SE,
    Handle.SW,
    Handle.N,
    Handle.E,
    Handle.S,
    Handle.W,
)

HANDLE_CURSORS: Dict[Handle, str] = {handle: f"{handle.value}-resize" for handle in Handle}
BODY_CURSOR = "move"
DEFAULT_CURSOR = "default"


def handle_centers(rect: Rect) -> Dict[Handle, Point]:
    cx, cy = rect.center
    return {
        Handle.NW: (rect.x, rect.y),
        Handle.N: (cx, rect.y),
        Handle.NE: (rect.right, rect.y),
        Handle.E: (rect.right, cy),
        Handle.SE: (rect.right, rect.bottom),
        Handle.S: (cx, rect.bottom),
        Handle.SW: (rect.x, rect.bottom),
        Handle.W: (rect.x, cy),
    }


def hit_test_handle(
    display_rect: Rect,
    point: Point,
    radius: float = DEFAULT_HANDLE_HIT_RADIUS,
) -> Optional[Handle]:
    """Return the resize handle under ``point``, if any.

    The hit box is a square of half-size ``radius`` around each handle centre,
    expressed in display pixels so it does not shrink with zoom.
    """
    centers = handle_centers(display_rect)
    px, py = point
    for handle in HANDLE_ORDER:
        hx, hy = centers[handle]
        if abs(px - hx) <= radius and abs(py - hy) <= radius:
            return handle
    return None


def hit_test_body(display_rect: Rect, point: Point) -> bool:
    return display_rect.contains(point)
