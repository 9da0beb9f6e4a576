from __future__ import annotations

import fitz
import pytest

from slidepatch import create_app


def build_pdf(pages: int = 2, width: float = 300, height: float = 200) -> bytes:
    """Page 1: blue background with white bold "Hello"; other pages plain white."""
    doc = fitz.open()
    try:
        for index in range(pages):
            page = doc.new_page(width=width, height=height)
            if index == 0:
                page.draw_rect(fitz.Rect(0, 0, width, height), color=None, fill=(0, 0, 1))
                page.insert_text(fitz.Point(50, 100), "Hello", fontsize=24, fontname="hebo", color=(1, 1, 1))
            else:
                page.insert_text(fitz.Point(50, 100), f"Page {index + 1}", fontsize=12)
        return doc.tobytes()
    finally:
        doc.close()


@pytest.fixture
def pdf_factory():
    return build_pdf


@pytest.fixture
def sample_pdf() -> bytes:
    return build_pdf()


@pytest.fixture
def app():
    app = create_app("testing")
    yield app


@pytest.fixture
def client(app):
    return app.test_client()
