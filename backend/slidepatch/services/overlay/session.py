from __future__ import annotations

import asyncio
import re
import threading
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

from PIL import Image

from ...utils.exceptions import PageOutOfRange, SlidePatchError
from ...utils.logging import get_logger
from ..document.pdf_mutator import PdfDocumentMutator
from ..document.pdf_source import PdfDocumentSource
from ..export.service import ExportService, PatchMutator
from ..recognition import (
    BaseRecognizer,
    PageRegion,
    RecognitionFailed,
    RecognitionResult,
    build_recognizer,
    correct,
)
from .color_sampler import extract_background_color, extract_text_color
from .compositor import render_page_overlays, render_preview
from .errors import InvalidRegion, OverlayNotFound
from .font_sizing import FontSizingConstants, font_size_from_metadata, seed_font_size
from .fonts import FontCatalog
from .geometry import Rect, clamp_scale, to_document_space
from .manipulation import InteractionMode, ManipulationSettings, ManipulationStateMachine, PointerEvent
from .models import DEFAULT_FONT_WEIGHT, Overlay, apply_changes, normalize_overlay_options, style_of
from .repository import OverlayRepository

HANGUL = re.compile(r"[ㄱ-ㅎㅏ-ㅣ가-힣]")
HANGUL_FALLBACK_FONT = "Pretendard"
MAX_FIT_SCALE = 2.0


@dataclass(frozen=True)
class EngineSettings:
    default_scale: float = 1.5
    handle_hit_radius: float = 6.0
    min_selection_px: float = 10.0
    min_overlay_size: float = 20.0
    export_upscale: float = 2.0
    default_font_family: str = "Noto Sans KR"
    recognizer: str = "text_layer"
    openai_api_key: Optional[str] = None
    openai_vision_model: str = "gpt-4o-mini"
    recognizer_timeout: float = 60.0
    font_sizing: FontSizingConstants = field(default_factory=FontSizingConstants)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "EngineSettings":
        defaults = cls()
        return cls(
            default_scale=float(config.get("DEFAULT_SCALE", defaults.default_scale)),
            handle_hit_radius=float(config.get("HANDLE_HIT_RADIUS", defaults.handle_hit_radius)),
            min_selection_px=float(config.get("MIN_SELECTION_PX", defaults.min_selection_px)),
            min_overlay_size=float(config.get("MIN_OVERLAY_SIZE", defaults.min_overlay_size)),
            export_upscale=float(config.get("EXPORT_UPSCALE", defaults.export_upscale)),
            default_font_family=config.get("DEFAULT_FONT_FAMILY", defaults.default_font_family),
            recognizer=config.get("RECOGNIZER", defaults.recognizer),
            openai_api_key=config.get("OPENAI_API_KEY"),
            openai_vision_model=config.get("OPENAI_VISION_MODEL", defaults.openai_vision_model),
            recognizer_timeout=float(config.get("RECOGNIZER_TIMEOUT_SECONDS", defaults.recognizer_timeout)),
            font_sizing=FontSizingConstants.from_mapping(config.get("FONT_SIZING")),
        )

    @property
    def manipulation(self) -> ManipulationSettings:
        return ManipulationSettings(
            min_selection_px=self.min_selection_px,
            min_overlay_size=self.min_overlay_size,
            handle_hit_radius=self.handle_hit_radius,
        )


class EditingSession:
    """One open document and everything being edited on it.

    Owns the overlay repository, the manipulation state machine and the
    transient editing state (pending selection, sampled colours, recognised
    text, the preview overlay). Not thread-safe on its own; the HTTP layer
    holds ``lock`` while calling into a session.
    """

    def __init__(
        self,
        source: PdfDocumentSource,
        fonts: FontCatalog,
        settings: Optional[EngineSettings] = None,
        recognizer: Optional[BaseRecognizer] = None,
        mutator: Optional[PatchMutator] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.id = session_id or uuid.uuid4().hex
        self.source = source
        self.fonts = fonts
        self.settings = settings or EngineSettings()
        self.logger = get_logger(self.__class__.__name__).bind(session_id=self.id)
        self.lock = threading.RLock()

        self.repository = OverlayRepository()
        self.machine = ManipulationStateMachine(
            self.settings.manipulation,
            on_selection=self._on_selection,
            on_change=self._on_change,
        )
        self.recognizer = recognizer or build_recognizer(
            self.settings.recognizer,
            source,
            api_key=self.settings.openai_api_key,
            model=self.settings.openai_vision_model,
            timeout=self.settings.recognizer_timeout,
        )
        self.mutator = mutator or PdfDocumentMutator(source.data)
        self.exporter = ExportService(fonts, self.settings.export_upscale)

        self._scale = clamp_scale(self.settings.default_scale)
        self._current_page = 1
        self._page_image: Optional[Tuple[Tuple[int, float], Image.Image]] = None

        self.sampled_background: Optional[str] = None
        self.sampled_text_color: Optional[str] = None
        self.suggested_style: Dict[str, Any] = {}
        self.last_recognition: Optional[RecognitionResult] = None
        self.editing_id: Optional[int] = None
        self.revision = 0

    # -- view ----------------------------------------------------------

    @property
    def scale(self) -> float:
        return self._scale

    @property
    def current_page(self) -> int:
        return self._current_page

    @property
    def page_count(self) -> int:
        return self.source.page_count

    @property
    def preview(self) -> Optional[Overlay]:
        return self.machine.preview

    @property
    def selection(self) -> Optional[Rect]:
        return self.machine.selection

    @property
    def selection_in_document(self) -> Optional[Rect]:
        selection = self.machine.selection
        return to_document_space(selection, self._scale) if selection is not None else None

    def set_scale(self, scale: float) -> float:
        new_scale = clamp_scale(scale)
        if new_scale != self._scale:
            selection = self.machine.selection
            if selection is not None:
                # The pending selection is in display pixels; keep it over the same content
                self.machine.selection = selection.scaled(new_scale / self._scale)
            self._scale = new_scale
            self._page_image = None
            self.logger.debug("scale changed", scale=new_scale)
        return self._scale

    def fit_scale(self, container_width: float, container_height: float) -> float:
        """Largest scale that shows the whole current page in the container, capped at 2x."""
        page_width, page_height = self.source.page_size(self._current_page)
        fit = min(container_width / page_width, container_height / page_height, MAX_FIT_SCALE)
        return self.set_scale(fit)

    def go_to_page(self, page_number: int) -> int:
        if not 1 <= page_number <= self.page_count:
            raise PageOutOfRange(page_number, self.page_count)
        if page_number != self._current_page:
            self._current_page = page_number
            self._page_image = None
            self._reset_transient()
        return self._current_page

    def page_image(self) -> Image.Image:
        key = (self._current_page, self._scale)
        if self._page_image is None or self._page_image[0] != key:
            self._page_image = (key, self.source.render_page(self._current_page, self._scale))
        return self._page_image[1]

    # -- interaction ---------------------------------------------------

    def handle_pointer(self, event: PointerEvent) -> InteractionMode:
        mode = self.machine.handle_event(event, self._scale)
        if self.editing_id is not None and self.machine.preview is None:
            # The edit was abandoned; the committed overlay is shown again unchanged
            self.logger.debug("edit abandoned", overlay_id=self.editing_id)
            self.editing_id = None
            self.revision += 1
        return mode

    def cursor_for(self, x: float, y: float) -> str:
        return self.machine.cursor_for((x, y), self._scale)

    def _on_selection(self, rect: Rect) -> None:
        self.editing_id = None
        self.suggested_style = {}
        self.last_recognition = None
        image = self.page_image()
        self.sampled_background = extract_background_color(image, rect)
        self.sampled_text_color = extract_text_color(image, rect, self.sampled_background)
        self.logger.info(
            "region selected",
            page=self._current_page,
            rect=rect.to_dict(),
            background=self.sampled_background,
            text_color=self.sampled_text_color,
        )
        self.revision += 1

    def _on_change(self) -> None:
        preview = self.machine.preview
        if preview is not None:
            self.machine.selection = preview.display_rect(self._scale)
        self.revision += 1

    def _require_selection(self) -> Rect:
        selection = self.machine.selection
        if selection is None:
            raise InvalidRegion("no region is selected")
        return selection

    async def recognize_selection(self) -> RecognitionResult:
        """Recognise the selected region and derive text and font suggestions from it.

        A failing recogniser is logged and yields empty text so the user can
        type the replacement manually. ``RecognizerBusy`` propagates.
        """
        selection = self._require_selection()
        document_rect = to_document_space(selection, self._scale)
        crop_box = selection.clamp_to(*self.page_image().size)
        crop = self.page_image().crop(
            (int(crop_box.x), int(crop_box.y), int(round(crop_box.right)), int(round(crop_box.bottom)))
        )

        try:
            result = await self.recognizer.recognize(crop, PageRegion(self._current_page, document_rect))
        except RecognitionFailed as exc:
            self.logger.warning("recognition failed, continuing without text", error=str(exc))
            result = RecognitionResult(text="", confidence=0.0, source=self.recognizer.source)

        if result.text:
            corrected = correct(result.text)
            if corrected != result.text:
                self.logger.debug("recognised text corrected", original=result.text, corrected=corrected)
            result.text = corrected

        style: Dict[str, Any] = {"text": result.text}
        if result.text.strip():
            style["font_size_pt"] = seed_font_size(
                result.text, document_rect.width, document_rect.height, self.settings.font_sizing
            )

        info = await asyncio.to_thread(self.source.get_text_info_in_rect, self._current_page, document_rect)
        if info is not None:
            style["font_family"] = info.font_family
            style["font_weight"] = info.font_weight
            metadata_size = font_size_from_metadata(info.font_size, self.settings.font_sizing)
            if metadata_size is not None:
                style["font_size_pt"] = metadata_size
            style["is_bold"] = info.is_bold
            style["is_italic"] = info.is_italic
        elif result.text.strip():
            style["font_family"] = (
                HANGUL_FALLBACK_FONT if HANGUL.search(result.text) else self.settings.default_font_family
            )
            style["font_weight"] = DEFAULT_FONT_WEIGHT

        self.suggested_style = style
        self.last_recognition = result
        return result

    # -- preview & commit ----------------------------------------------

    def preview_overlay(self, **style: Any) -> Overlay:
        """Build the preview overlay over the current selection.

        Style precedence: engine defaults, sampled colours, recognition
        suggestions, then the caller's options.
        """
        rect = to_document_space(self._require_selection(), self._scale)
        options: Dict[str, Any] = {"font_family": self.settings.default_font_family}
        if self.sampled_background:
            options["background_color"] = self.sampled_background
        if self.sampled_text_color:
            options["text_color"] = self.sampled_text_color
        options.update(self.suggested_style)
        options.update(normalize_overlay_options(style))

        overlay = Overlay(
            id=None,
            page_number=self._current_page,
            x=rect.x,
            y=rect.y,
            width=rect.width,
            height=rect.height,
            **normalize_overlay_options(options),
        )
        self.machine.preview = overlay
        self.revision += 1
        return overlay

    def update_preview(self, **changes: Any) -> Overlay:
        preview = self.machine.preview
        if preview is None:
            raise SlidePatchError("There is no preview to update")
        apply_changes(preview, changes)
        self.revision += 1
        return preview

    def commit(self) -> Overlay:
        preview = self.machine.preview
        if preview is None:
            raise SlidePatchError("There is no preview to apply")

        overlay: Optional[Overlay] = None
        if self.editing_id is not None:
            overlay = self.repository.update(
                self.editing_id,
                style_of(preview),
                x=preview.x,
                y=preview.y,
                width=preview.width,
                height=preview.height,
            )
        if overlay is None:
            overlay = self.repository.create(preview.page_number, preview.rect, style_of(preview))

        self.logger.info("overlay applied", overlay_id=overlay.id, page=overlay.page_number)
        self._reset_transient()
        self.revision += 1
        return overlay

    def edit_overlay(self, overlay_id: int) -> Overlay:
        """Load a committed overlay back into the preview; ``commit`` updates it in place."""
        overlay = self.repository.get(overlay_id)
        if overlay is None:
            raise OverlayNotFound(overlay_id)

        self.go_to_page(overlay.page_number)
        self._reset_transient()
        preview = replace(overlay, id=None)
        self.machine.preview = preview
        self.machine.selection = overlay.display_rect(self._scale)
        self.sampled_background = overlay.background_color
        self.sampled_text_color = overlay.text_color
        self.editing_id = overlay_id
        self.revision += 1
        return preview

    def apply_to_all_pages(self) -> List[Overlay]:
        """Cover the selected region with its own page's background on every page."""
        preview = self.machine.preview
        if preview is not None:
            rect = preview.rect
        else:
            rect = to_document_space(self._require_selection(), self._scale)
        display = rect.scaled(self._scale)

        created: List[Overlay] = []
        for page_number in range(1, self.page_count + 1):
            if page_number == self._current_page:
                image = self.page_image()
            else:
                image = self.source.render_page(page_number, self._scale)
            background = extract_background_color(image, display)
            created.append(
                self.repository.create(
                    page_number,
                    rect,
                    {
                        "text": "",
                        "font_family": HANGUL_FALLBACK_FONT,
                        "font_size_pt": 1,
                        "text_color": "#000000",
                        "background_color": background,
                        "background_opacity": 100,
                    },
                )
            )

        self.logger.info("region applied to all pages", pages=len(created), rect=rect.to_dict())
        self._reset_transient()
        self.revision += 1
        return created

    def remove_overlay(self, overlay_id: int) -> Overlay:
        overlay = self.repository.remove(overlay_id)
        if overlay is None:
            raise OverlayNotFound(overlay_id)
        if self.editing_id == overlay_id:
            self.editing_id = None
        self.revision += 1
        return overlay

    def _reset_transient(self) -> None:
        self.machine.reset()
        self.sampled_background = None
        self.sampled_text_color = None
        self.suggested_style = {}
        self.last_recognition = None
        self.editing_id = None

    # -- output --------------------------------------------------------

    def render(self, page_number: Optional[int] = None) -> Image.Image:
        """Page at the current scale with committed overlays and, on the current page, the preview on top.

        Rendering another page leaves the session state (page, preview, edit) untouched.
        """
        if page_number is None or page_number == self._current_page:
            page_number = self._current_page
            surface = self.page_image().convert("RGBA")
        else:
            surface = self.source.render_page(page_number, self._scale).convert("RGBA")

        preview = self.machine.preview
        hidden = self.editing_id if preview is not None else None
        committed = [
            overlay
            for overlay in self.repository.get_page_overlays(page_number)
            if overlay.id != hidden
        ]
        render_page_overlays(surface, committed, self._scale, self.fonts)
        if preview is not None and preview.page_number == page_number:
            render_preview(surface, preview, self._scale, self.fonts)
        return surface

    async def export(self) -> bytes:
        overlays = self.repository.get_all()
        return await self.exporter.run(
            overlays,
            self.mutator,
            lambda page_number: self.source.page_size(page_number)[1],
        )

    def to_dict(self) -> Dict[str, Any]:
        preview = self.machine.preview
        selection = self.machine.selection
        return {
            "documentId": self.id,
            "pageCount": self.page_count,
            "currentPage": self._current_page,
            "scale": self._scale,
            "mode": self.machine.mode.value,
            "selection": selection.to_dict() if selection else None,
            "preview": preview.to_dict() if preview else None,
            "editingId": self.editing_id,
            "sampledBackground": self.sampled_background,
            "sampledTextColor": self.sampled_text_color,
            "lastRecognition": self.last_recognition.to_dict() if self.last_recognition else None,
            "overlayCount": len(self.repository),
            "revision": self.revision,
        }
