from __future__ import annotations

import asyncio
from typing import Optional

from PIL import Image

from ..document.pdf_source import PdfDocumentSource
from .base import BaseRecognizer, PageRegion, RecognitionFailed, RecognitionResult


class TextLayerRecognizer(BaseRecognizer):
    """Reads the text a born-digital PDF already carries under the selection.

    The crop itself is only validated; the words come from the page's text
    layer, so confidence is 100 when anything is found and 0 otherwise.
    """

    source = "text_layer"

    def __init__(self, document: PdfDocumentSource):
        super().__init__()
        self.document = document

    def is_configured(self) -> bool:
        return True

    async def _recognize(self, image: Image.Image, region: Optional[PageRegion]) -> RecognitionResult:
        if region is None:
            raise RecognitionFailed("The text layer recogniser needs the page region of the crop")

        text = await asyncio.to_thread(self.document.get_text_in_rect, region.page_number, region.rect)
        lines = [line for line in text.split("\n") if line.strip()]
        words = [{"text": word} for line in lines for word in line.split()]
        return RecognitionResult(
            text="\n".join(lines),
            confidence=100.0 if lines else 0.0,
            words=words,
            lines=lines,
        )
