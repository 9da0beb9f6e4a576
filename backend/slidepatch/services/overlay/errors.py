from __future__ import annotations

from ...utils.exceptions import SlidePatchError


class OverlayError(SlidePatchError):
    """Base class for overlay engine errors."""


class InvalidRegion(OverlayError):
    pass


class SampleOutOfBounds(OverlayError):
    """A pixel region reaching past the image buffer.

    The colour sampler clamps such regions to the buffer instead of raising;
    the class names the condition for callers that want to reject it up front.
    """


class OverlayNotFound(OverlayError):
    def __init__(self, overlay_id: int):
        super().__init__(f"Overlay {overlay_id} not found")
        self.overlay_id = overlay_id


class ExportPatchFailure(OverlayError):
    def __init__(self, page_number: int, message: str):
        super().__init__(f"Patch for page {page_number} rejected: {message}")
        self.page_number = page_number
        self.message = message
