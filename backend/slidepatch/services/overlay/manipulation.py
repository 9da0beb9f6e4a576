from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ...utils.logging import get_logger
from .geometry import (
    BODY_CURSOR,
    DEFAULT_CURSOR,
    DEFAULT_HANDLE_HIT_RADIUS,
    HANDLE_CURSORS,
    Handle,
    Point,
    Rect,
    hit_test_body,
    hit_test_handle,
)
from .models import MAX_FONT_SIZE, MIN_FONT_SIZE, Overlay


class InteractionMode(str, Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    DRAGGING = "dragging"
    RESIZING = "resizing"


class PointerKind(str, Enum):
    DOWN = "down"
    MOVE = "move"
    UP = "up"
    LEAVE = "leave"
    WHEEL = "wheel"


@dataclass(frozen=True)
class PointerEvent:
    kind: PointerKind
    x: float
    y: float
    delta: float = 0.0

    @property
    def point(self) -> Point:
        return (self.x, self.y)


@dataclass(frozen=True)
class ManipulationSettings:
    min_selection_px: float = 10.0
    min_overlay_size: float = 20.0
    handle_hit_radius: float = DEFAULT_HANDLE_HIT_RADIUS
    min_font_size: int = MIN_FONT_SIZE
    max_font_size: int = MAX_FONT_SIZE


@dataclass(frozen=True)
class _Interaction:
    mode: InteractionMode
    anchor: Point
    start_rect: Optional[Rect] = None
    handle: Optional[Handle] = None


def resize_rect(start: Rect, handle: Handle, dx: float, dy: float) -> Rect:
    """Apply a document-space pointer delta to ``start`` as dragged by ``handle``.

    West/north edges move the origin and shrink the size by the same amount so
    the opposite edge stays put; east/south edges only change the size.
    """
    x, y, width, height = start.x, start.y, start.width, start.height
    if handle.moves_west:
        x = start.x + dx
        width = start.width - dx
    elif handle.moves_east:
        width = start.width + dx
    if handle.moves_north:
        y = start.y + dy
        height = start.height - dy
    elif handle.moves_south:
        height = start.height + dy
    return Rect(x, y, width, height)


SelectionCallback = Callable[[Rect], None]
ChangeCallback = Callable[[], None]


class ManipulationStateMachine:
    """Turns pointer events into selections, drags and resizes of the preview overlay.

    States: idle, selecting, dragging, resizing(handle). The machine owns the
    pending selection (display space) and edits the active preview overlay's
    document-space geometry in place. The scale is passed with every event and
    never cached, so a zoom between events cannot leave stale geometry behind.
    """

    def __init__(
        self,
        settings: Optional[ManipulationSettings] = None,
        on_selection: Optional[SelectionCallback] = None,
        on_change: Optional[ChangeCallback] = None,
    ) -> None:
        self.settings = settings or ManipulationSettings()
        self.on_selection = on_selection
        self.on_change = on_change
        self.logger = get_logger(self.__class__.__name__)

        self.preview: Optional[Overlay] = None
        self.selection: Optional[Rect] = None
        self.pending_rect: Optional[Rect] = None
        self._interaction: Optional[_Interaction] = None

    @property
    def mode(self) -> InteractionMode:
        return self._interaction.mode if self._interaction else InteractionMode.IDLE

    @property
    def active_handle(self) -> Optional[Handle]:
        return self._interaction.handle if self._interaction else None

    def reset(self) -> None:
        self.preview = None
        self.selection = None
        self.pending_rect = None
        self._interaction = None

    def cursor_for(self, point: Point, scale: float) -> str:
        if self.preview is None:
            return DEFAULT_CURSOR
        display = self.preview.display_rect(scale)
        handle = hit_test_handle(display, point, self.settings.handle_hit_radius)
        if handle is not None:
            return HANDLE_CURSORS[handle]
        if hit_test_body(display, point):
            return BODY_CURSOR
        return DEFAULT_CURSOR

    def handle_event(self, event: PointerEvent, scale: float) -> InteractionMode:
        kind = PointerKind(event.kind)
        if kind is PointerKind.DOWN:
            self._pointer_down(event.point, scale)
        elif kind is PointerKind.MOVE:
            self._pointer_move(event.point, scale)
        elif kind in (PointerKind.UP, PointerKind.LEAVE):
            self._pointer_up(event.point)
        elif kind is PointerKind.WHEEL:
            self._wheel(event.delta)
        return self.mode

    # -- transitions -------------------------------------------------

    def _pointer_down(self, point: Point, scale: float) -> None:
        if self._interaction is not None:
            return

        if self.preview is not None:
            display = self.preview.display_rect(scale)
            handle = hit_test_handle(display, point, self.settings.handle_hit_radius)
            if handle is not None:
                self._interaction = _Interaction(
                    InteractionMode.RESIZING, point, self.preview.rect, handle
                )
                return
            if hit_test_body(display, point):
                self._interaction = _Interaction(InteractionMode.DRAGGING, point, self.preview.rect)
                return

        # A fresh selection replaces any uncommitted preview
        self.preview = None
        self.selection = None
        self.pending_rect = Rect(point[0], point[1], 0.0, 0.0)
        self._interaction = _Interaction(InteractionMode.SELECTING, point)

    def _pointer_move(self, point: Point, scale: float) -> None:
        interaction = self._interaction
        if interaction is None:
            return

        if interaction.mode is InteractionMode.SELECTING:
            self.pending_rect = Rect.from_points(interaction.anchor, point)
            return

        if self.preview is None or interaction.start_rect is None:
            return

        dx = (point[0] - interaction.anchor[0]) / scale
        dy = (point[1] - interaction.anchor[1]) / scale
        start = interaction.start_rect

        if interaction.mode is InteractionMode.DRAGGING:
            self._apply_geometry(start.translated(dx, dy))
            self._changed()
        elif interaction.mode is InteractionMode.RESIZING and interaction.handle is not None:
            candidate = resize_rect(start, interaction.handle, dx, dy)
            minimum = self.settings.min_overlay_size
            if candidate.width >= minimum and candidate.height >= minimum:
                self._apply_geometry(candidate)
                self._changed()

    def _pointer_up(self, point: Point) -> None:
        interaction = self._interaction
        if interaction is None:
            return
        self._interaction = None

        if interaction.mode is not InteractionMode.SELECTING:
            return

        rect = self.pending_rect
        self.pending_rect = None
        minimum = self.settings.min_selection_px
        if rect is None or rect.width < minimum or rect.height < minimum:
            self.logger.debug("selection discarded", rect=rect.to_dict() if rect else None)
            return

        self.selection = rect
        self.logger.debug("selection accepted", rect=rect.to_dict())
        if self.on_selection is not None:
            self.on_selection(rect)

    def _wheel(self, delta: float) -> None:
        if self.preview is None or not delta:
            return
        step = 1 if delta < 0 else -1
        current = int(round(self.preview.font_size_pt))
        new_size = max(self.settings.min_font_size, min(self.settings.max_font_size, current + step))
        if new_size != self.preview.font_size_pt:
            self.preview.font_size_pt = float(new_size)
            self._changed()

    def _apply_geometry(self, rect: Rect) -> None:
        preview = self.preview
        preview.x, preview.y = rect.x, rect.y
        preview.width, preview.height = rect.width, rect.height

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()
