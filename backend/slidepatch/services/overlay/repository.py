from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from ...utils.logging import get_logger
from .errors import InvalidRegion
from .geometry import Rect
from .models import Overlay, apply_changes, normalize_overlay_options


class OverlayRepository:
    """In-memory system of record for the overlays of one document.

    Keeps an insertion-ordered list plus a page index; both are updated
    together on every insert and removal. Not thread-safe: callers serialise
    access (one editing session, one event at a time).
    """

    def __init__(self) -> None:
        self.logger = get_logger(self.__class__.__name__)
        self._overlays: List[Overlay] = []
        self._by_page: Dict[int, List[Overlay]] = {}
        self._next_id = 0

    def __len__(self) -> int:
        return len(self._overlays)

    def create(self, page_number: int, rect: Rect, options: Optional[Mapping[str, Any]] = None) -> Overlay:
        if not rect.is_positive:
            raise InvalidRegion(f"overlay size must be positive, got {rect.width}x{rect.height}")

        overlay = Overlay(
            id=self._next_id + 1,
            page_number=page_number,
            x=rect.x,
            y=rect.y,
            width=rect.width,
            height=rect.height,
            **normalize_overlay_options(options),
        )
        # Only consume the id once the record validated
        self._next_id = overlay.id
        self._overlays.append(overlay)
        self._by_page.setdefault(overlay.page_number, []).append(overlay)

        self.logger.debug("overlay created", overlay_id=overlay.id, page=overlay.page_number)
        return overlay

    def get(self, overlay_id: int) -> Optional[Overlay]:
        for overlay in self._overlays:
            if overlay.id == overlay_id:
                return overlay
        return None

    def update(self, overlay_id: int, changes: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Optional[Overlay]:
        """Edit an overlay in place, keeping its id and its position in both orderings.

        Geometry keys (``x``, ``y``, ``width``, ``height``) and any style option
        (canonical or legacy spelling) are accepted. The page is immutable.
        """
        overlay = self.get(overlay_id)
        if overlay is None:
            return None

        payload = dict(changes or {}, **kwargs)
        page = payload.pop("page_number", payload.pop("pageNumber", None))
        if page is not None and int(page) != overlay.page_number:
            raise InvalidRegion("an overlay cannot move to another page")

        updates = apply_changes(overlay, payload)
        self.logger.debug("overlay updated", overlay_id=overlay_id, fields=sorted(updates))
        return overlay

    def remove(self, overlay_id: int) -> Optional[Overlay]:
        overlay = self.get(overlay_id)
        if overlay is None:
            return None
        self._overlays = [o for o in self._overlays if o is not overlay]
        page_overlays = [o for o in self._by_page.get(overlay.page_number, ()) if o is not overlay]
        if page_overlays:
            self._by_page[overlay.page_number] = page_overlays
        else:
            self._by_page.pop(overlay.page_number, None)
        self.logger.debug("overlay removed", overlay_id=overlay_id, page=overlay.page_number)
        return overlay

    def get_page_overlays(self, page_number: int) -> List[Overlay]:
        return list(self._by_page.get(page_number, ()))

    def get_all(self) -> List[Overlay]:
        return list(self._overlays)

    def pages(self) -> List[int]:
        return sorted(self._by_page)

    def clear_all(self) -> None:
        self._overlays = []
        self._by_page = {}

    def clear_page(self, page_number: int) -> int:
        removed = self._by_page.pop(page_number, [])
        if removed:
            removed_ids = {overlay.id for overlay in removed}
            self._overlays = [o for o in self._overlays if o.id not in removed_ids]
        return len(removed)
