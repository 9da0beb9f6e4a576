from __future__ import annotations

from typing import Optional

from ...utils.exceptions import SlidePatchError
from ..document.pdf_source import PdfDocumentSource
from .base import (
    BaseRecognizer,
    PageRegion,
    RecognitionFailed,
    RecognitionResult,
    RecognizerBusy,
    confidence_level,
)
from .openai_vision import OpenAIVisionRecognizer
from .text_corrector import correct
from .text_layer import TextLayerRecognizer


def build_recognizer(
    kind: str,
    document: PdfDocumentSource,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    timeout: float = 60.0,
) -> BaseRecognizer:
    kind = (kind or "text_layer").lower()
    if kind == "text_layer":
        return TextLayerRecognizer(document)
    if kind == "openai":
        return OpenAIVisionRecognizer(api_key=api_key, model=model, timeout=timeout)
    raise SlidePatchError(f"Unknown recognizer '{kind}'")


__all__ = [
    "BaseRecognizer",
    "OpenAIVisionRecognizer",
    "PageRegion",
    "RecognitionFailed",
    "RecognitionResult",
    "RecognizerBusy",
    "TextLayerRecognizer",
    "build_recognizer",
    "confidence_level",
    "correct",
]
