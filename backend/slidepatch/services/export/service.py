from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Iterable, List, Protocol, Sequence

from ...utils.logging import get_logger
from ..overlay.compositor import encode_png, render_patch
from ..overlay.fonts import FontCatalog
from ..overlay.geometry import Rect
from ..overlay.models import Overlay


@dataclass(frozen=True)
class ExportPatch:
    page_number: int
    image_bytes: bytes
    rect: Rect


class PatchMutator(Protocol):
    y_axis_up: bool

    async def apply_patches(self, patches: Sequence[ExportPatch]) -> bytes:
        ...


def to_patch_rect(overlay: Overlay, page_height: float, y_axis_up: bool) -> Rect:
    """Overlay rectangle in the mutator's page coordinates.

    Overlays are stored with a top-left origin. Formats whose y axis points up
    (PDF user space) need the vertical flip ``page_height - y - height``.
    """
    y = page_height - overlay.y - overlay.height if y_axis_up else overlay.y
    return Rect(overlay.x, y, overlay.width, overlay.height)


class ExportService:
    """Renders committed overlays into page patches and hands them to a mutator.

    Patches are produced in repository order. The first rejected patch aborts
    the export; the mutator's failure propagates and no document is returned.
    """

    def __init__(self, fonts: FontCatalog, upscale: float = 2.0) -> None:
        self.fonts = fonts
        self.upscale = upscale
        self.logger = get_logger(self.__class__.__name__)

    def build_patches(
        self,
        overlays: Iterable[Overlay],
        page_height: Callable[[int], float],
        y_axis_up: bool,
    ) -> List[ExportPatch]:
        patches: List[ExportPatch] = []
        for overlay in overlays:
            image = render_patch(overlay, self.fonts, self.upscale)
            patches.append(
                ExportPatch(
                    page_number=overlay.page_number,
                    image_bytes=encode_png(image),
                    rect=to_patch_rect(overlay, page_height(overlay.page_number), y_axis_up),
                )
            )
        return patches

    async def run(
        self,
        overlays: Sequence[Overlay],
        mutator: PatchMutator,
        page_height: Callable[[int], float],
    ) -> bytes:
        started = time.perf_counter()
        patches = self.build_patches(overlays, page_height, mutator.y_axis_up)
        output = await mutator.apply_patches(patches)
        self.logger.info(
            "export completed",
            overlays=len(overlays),
            pages=len({patch.page_number for patch in patches}),
            elapsed_ms=int((time.perf_counter() - started) * 1000),
        )
        return output
