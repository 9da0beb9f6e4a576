from .errors import ExportPatchFailure, InvalidRegion, OverlayError, OverlayNotFound, SampleOutOfBounds
from .geometry import Handle, Rect, to_display_space, to_document_space
from .models import Overlay, TextAlign
from .repository import OverlayRepository

__all__ = [
    "ExportPatchFailure",
    "Handle",
    "InvalidRegion",
    "Overlay",
    "OverlayError",
    "OverlayNotFound",
    "OverlayRepository",
    "Rect",
    "SampleOutOfBounds",
    "TextAlign",
    "to_display_space",
    "to_document_space",
]
