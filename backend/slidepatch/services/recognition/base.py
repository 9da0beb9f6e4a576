from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from PIL import Image

from ...utils.exceptions import SlidePatchError
from ...utils.logging import get_logger
from ..overlay.geometry import Rect

MIN_REGION_PX = 5


class RecognitionFailed(SlidePatchError):
    pass


class RecognizerBusy(SlidePatchError):
    pass


@dataclass(frozen=True)
class PageRegion:
    """Where a recognised crop came from, in document space."""

    page_number: int
    rect: Rect


@dataclass
class RecognitionResult:
    text: str
    confidence: float  # 0 to 100
    words: List[Dict[str, Any]] = field(default_factory=list)
    lines: List[str] = field(default_factory=list)
    source: str = ""
    processing_time_ms: Optional[int] = None

    @property
    def level(self) -> str:
        return confidence_level(self.confidence)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "confidenceLevel": self.level,
            "words": self.words,
            "lines": self.lines,
            "source": self.source,
            "processingTimeMs": self.processing_time_ms,
        }


def confidence_level(confidence: float) -> str:
    if confidence >= 80:
        return "high"
    if confidence >= 50:
        return "medium"
    return "low"


class BaseRecognizer(ABC):
    """Common contract for text recognisers.

    ``recognize`` validates the crop, refuses concurrent use with
    ``RecognizerBusy`` and times the call; subclasses implement ``_recognize``.
    """

    source = "base"

    def __init__(self) -> None:
        self.logger = get_logger(self.__class__.__name__)
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the recogniser can run (credentials, libraries)."""

    async def recognize(self, image: Image.Image, region: Optional[PageRegion] = None) -> RecognitionResult:
        if image.width < MIN_REGION_PX or image.height < MIN_REGION_PX:
            raise RecognitionFailed(f"Region too small for recognition: {image.width}x{image.height}")
        if not self._lock.acquire(blocking=False):
            raise RecognizerBusy("Recognition already in progress")

        started = time.perf_counter()
        try:
            result = await self._recognize(image, region)
        finally:
            self._lock.release()

        result.source = result.source or self.source
        result.processing_time_ms = int((time.perf_counter() - started) * 1000)
        self.logger.info(
            "text recognised",
            source=result.source,
            characters=len(result.text),
            confidence=result.confidence,
            processing_time_ms=result.processing_time_ms,
        )
        return result

    @abstractmethod
    async def _recognize(self, image: Image.Image, region: Optional[PageRegion]) -> RecognitionResult:
        ...
