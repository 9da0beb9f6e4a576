from __future__ import annotations

import asyncio
from typing import Sequence

import fitz

from ...utils.exceptions import DocumentLoadError
from ...utils.logging import get_logger
from ..export.service import ExportPatch
from ..overlay.errors import ExportPatchFailure


class PdfDocumentMutator:
    """Bakes image patches into a copy of the original PDF bytes.

    PyMuPDF page space has its origin at the top-left corner, so patch
    rectangles are expected with ``y`` measured downwards (``y_axis_up`` is
    False). The source bytes are never modified; every call works on a fresh
    document and returns new bytes.
    """

    y_axis_up = False

    def __init__(self, data: bytes):
        self.data = bytes(data)
        self.logger = get_logger(self.__class__.__name__)

    async def apply_patches(self, patches: Sequence[ExportPatch]) -> bytes:
        return await asyncio.to_thread(self._apply_patches, list(patches))

    def _open(self) -> fitz.Document:
        try:
            return fitz.open(stream=self.data, filetype="pdf")
        except (RuntimeError, ValueError) as exc:
            raise DocumentLoadError(f"Unable to open PDF: {exc}") from exc

    def _apply_patches(self, patches: Sequence[ExportPatch]) -> bytes:
        doc = self._open()
        try:
            for patch in patches:
                if not 1 <= patch.page_number <= doc.page_count:
                    raise ExportPatchFailure(patch.page_number, f"document has {doc.page_count} pages")
                page = doc[patch.page_number - 1]
                rect = fitz.Rect(patch.rect.x, patch.rect.y, patch.rect.right, patch.rect.bottom)
                try:
                    page.insert_image(rect, stream=patch.image_bytes, keep_proportion=False, overlay=True)
                except Exception as exc:
                    self.logger.error(
                        "patch rejected",
                        page=patch.page_number,
                        rect=patch.rect.to_dict(),
                        error=str(exc),
                    )
                    raise ExportPatchFailure(patch.page_number, str(exc)) from exc
                self.logger.debug("patch applied", page=patch.page_number, rect=patch.rect.to_dict())

            output = doc.tobytes(garbage=3, deflate=True)
        finally:
            doc.close()

        self.logger.info("document patched", patches=len(patches), size=len(output))
        return output
