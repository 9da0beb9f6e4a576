from __future__ import annotations

import asyncio
from typing import Optional

import fitz
import pytest
from PIL import Image

from slidepatch.services.document.pdf_source import PdfDocumentSource
from slidepatch.services.overlay.errors import InvalidRegion, OverlayNotFound
from slidepatch.services.overlay.fonts import FontCatalog
from slidepatch.services.overlay.geometry import Rect
from slidepatch.services.overlay.manipulation import InteractionMode, PointerEvent, PointerKind
from slidepatch.services.overlay.session import EditingSession, EngineSettings
from slidepatch.services.recognition import (
    BaseRecognizer,
    PageRegion,
    RecognitionFailed,
    RecognitionResult,
    RecognizerBusy,
)
from slidepatch.utils.exceptions import PageOutOfRange


class _ScriptedRecognizer(BaseRecognizer):
    source = "scripted"

    def __init__(self, text: str = "", error: Optional[Exception] = None):
        super().__init__()
        self.text = text
        self.error = error
        self.regions = []

    def is_configured(self) -> bool:
        return True

    async def _recognize(self, image: Image.Image, region: Optional[PageRegion]) -> RecognitionResult:
        self.regions.append(region)
        if self.error is not None:
            raise self.error
        return RecognitionResult(text=self.text, confidence=90.0)


@pytest.fixture
def source(sample_pdf):
    document = PdfDocumentSource(sample_pdf)
    yield document
    document.close()


def _session(source, **kwargs) -> EditingSession:
    return EditingSession(source, FontCatalog([]), EngineSettings(default_scale=1.0), **kwargs)


def _select(session: EditingSession, start, end) -> None:
    session.handle_pointer(PointerEvent(PointerKind.DOWN, *start))
    session.handle_pointer(PointerEvent(PointerKind.MOVE, *end))
    session.handle_pointer(PointerEvent(PointerKind.UP, *end))


def test_selection_samples_page_colours(source):
    session = _session(source)
    _select(session, (40, 70), (200, 110))

    assert session.machine.mode is InteractionMode.IDLE
    assert session.selection_in_document.to_dict() == {"x": 40, "y": 70, "width": 160, "height": 40}
    assert session.sampled_background == "#0000FF"
    assert int(session.sampled_text_color[1:3], 16) >= 128


def test_recognition_suggests_text_and_font_from_text_layer(source):
    session = _session(source)
    _select(session, (40, 70), (200, 110))

    result = asyncio.run(session.recognize_selection())

    assert result.text == "Hello"
    assert session.suggested_style["font_family"] == "Helvetica"
    assert session.suggested_style["font_size_pt"] == 24
    assert session.suggested_style["is_bold"] is True


def test_recognition_requires_a_selection(source):
    with pytest.raises(InvalidRegion):
        asyncio.run(_session(source).recognize_selection())


def test_failed_recognition_continues_with_empty_text(source):
    session = _session(source, recognizer=_ScriptedRecognizer(error=RecognitionFailed("model down")))
    _select(session, (40, 70), (200, 110))

    result = asyncio.run(session.recognize_selection())

    assert result.text == ""
    assert session.suggested_style["text"] == ""
    assert session.preview_overlay().text == ""


def test_busy_recognizer_propagates(source):
    recognizer = _ScriptedRecognizer(text="x")
    session = _session(source, recognizer=recognizer)
    _select(session, (40, 70), (200, 110))

    recognizer._lock.acquire()
    try:
        with pytest.raises(RecognizerBusy):
            asyncio.run(session.recognize_selection())
    finally:
        recognizer._lock.release()


def test_hangul_without_text_layer_uses_fallback_font(source):
    recognizer = _ScriptedRecognizer(text="안녕하세요")
    session = _session(source, recognizer=recognizer)
    session.go_to_page(2)
    _select(session, (150, 20), (250, 60))

    asyncio.run(session.recognize_selection())

    assert recognizer.regions[0].page_number == 2
    assert session.suggested_style["font_family"] == "Pretendard"
    assert session.suggested_style["font_size_pt"] == 29


def test_latin_without_text_layer_uses_default_font(source):
    session = _session(source, recognizer=_ScriptedRecognizer(text="Hi"))
    session.go_to_page(2)
    _select(session, (150, 20), (250, 60))

    asyncio.run(session.recognize_selection())

    assert session.suggested_style["font_family"] == "Noto Sans KR"


def test_preview_commit_and_edit_keep_overlay_identity(source):
    session = _session(source)
    _select(session, (40, 70), (200, 110))
    asyncio.run(session.recognize_selection())

    preview = session.preview_overlay(text="World", backgroundColor="#00ff00")
    assert preview.id is None
    assert preview.text == "World"
    assert preview.background_color == "#00FF00"
    assert preview.font_family == "Helvetica"

    overlay = session.commit()
    assert overlay.id == 1
    assert session.preview is None
    assert session.selection is None

    editing = session.edit_overlay(1)
    assert editing.id is None
    assert session.editing_id == 1
    session.update_preview(text="Again", x=50)

    updated = session.commit()
    assert updated is overlay
    assert updated.text == "Again"
    assert updated.x == 50
    assert len(session.repository) == 1
    assert session.editing_id is None


def test_edit_unknown_overlay(source):
    with pytest.raises(OverlayNotFound):
        _session(source).edit_overlay(7)


def test_new_selection_discards_preview(source):
    session = _session(source)
    _select(session, (40, 70), (200, 110))
    session.preview_overlay(text="x")

    _select(session, (250, 150), (290, 190))

    assert session.preview is None
    assert session.selection.to_dict() == {"x": 250, "y": 150, "width": 40, "height": 40}


def test_apply_to_all_pages_samples_each_page(source):
    session = _session(source)
    _select(session, (40, 70), (200, 110))

    created = session.apply_to_all_pages()

    assert [overlay.page_number for overlay in created] == [1, 2]
    assert [overlay.background_color for overlay in created] == ["#0000FF", "#FFFFFF"]
    assert all(overlay.text == "" and overlay.font_family == "Pretendard" for overlay in created)
    assert created[0].rect == created[1].rect
    assert session.selection is None


def test_abandoned_edit_shows_committed_overlay_again(source):
    session = _session(source)
    session.repository.create(1, Rect(10, 10, 100, 50), {"background_color": "#FF0000"})
    session.edit_overlay(1)

    _select(session, (250, 180), (251, 181))

    assert session.preview is None
    assert session.editing_id is None
    assert session.render().getpixel((50, 30)) == (255, 0, 0, 255)


def test_dragged_preview_moves_the_selection_with_it(source):
    session = _session(source)
    _select(session, (40, 70), (200, 110))
    session.preview_overlay()

    session.handle_pointer(PointerEvent(PointerKind.DOWN, 120, 90))
    session.handle_pointer(PointerEvent(PointerKind.MOVE, 140, 100))
    session.handle_pointer(PointerEvent(PointerKind.UP, 140, 100))

    assert session.selection == Rect(60, 80, 160, 40)
    assert session.preview_overlay().rect == Rect(60, 80, 160, 40)


def test_rendering_another_page_keeps_session_state(source):
    session = _session(source)
    _select(session, (40, 70), (200, 110))
    session.preview_overlay(text="x")
    session.repository.create(2, Rect(0, 0, 30, 30), {"background_color": "#00FF00"})

    other = session.render(2)

    assert other.getpixel((10, 10)) == (0, 255, 0, 255)
    assert other.getpixel((100, 150)) == (255, 255, 255, 255)
    assert session.current_page == 1
    assert session.preview is not None


def test_render_draws_committed_overlays(source):
    session = _session(source)
    _select(session, (40, 70), (200, 110))
    session.preview_overlay(text="", background_color="#00FF00")
    session.commit()

    image = session.render()
    assert image.getpixel((190, 105)) == (0, 255, 0, 255)
    assert image.getpixel((10, 10)) == (0, 0, 255, 255)


def test_scale_changes_rescale_pending_selection(source):
    session = _session(source)
    _select(session, (40, 70), (200, 110))

    assert session.set_scale(2.0) == 2.0
    assert session.selection.to_dict() == {"x": 80, "y": 140, "width": 320, "height": 80}
    assert session.selection_in_document.to_dict() == {"x": 40, "y": 70, "width": 160, "height": 40}
    assert session.page_image().size == (600, 400)


def test_fit_scale_is_capped_and_clamped(source):
    session = _session(source)
    assert session.fit_scale(600, 1000) == 2.0
    assert session.fit_scale(30, 20) == 0.25
    assert session.set_scale(10) == 3.0


def test_page_navigation(source):
    session = _session(source)
    _select(session, (40, 70), (200, 110))

    session.go_to_page(2)
    assert session.current_page == 2
    assert session.selection is None
    with pytest.raises(PageOutOfRange):
        session.go_to_page(3)


def test_export_bakes_overlays_into_pdf(source):
    session = _session(source)
    _select(session, (40, 70), (200, 110))
    session.preview_overlay(text="Bye")
    session.commit()

    output = asyncio.run(session.export())

    exported = fitz.open(stream=output, filetype="pdf")
    try:
        assert exported.page_count == 2
        assert len(exported[0].get_images()) == 1
        assert exported[1].get_images() == []
    finally:
        exported.close()


def test_state_snapshot(source):
    state = _session(source).to_dict()
    assert state["pageCount"] == 2
    assert state["currentPage"] == 1
    assert state["scale"] == 1.0
    assert state["mode"] == "idle"
    assert state["preview"] is None
    assert state["overlayCount"] == 0
