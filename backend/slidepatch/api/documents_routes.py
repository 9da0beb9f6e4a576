from __future__ import annotations

import asyncio
import io
from http import HTTPStatus
from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request, send_file

from ..extensions import get_fonts, get_sessions
from ..services.document.pdf_source import PdfDocumentSource
from ..services.overlay.compositor import encode_png
from ..services.overlay.manipulation import PointerEvent, PointerKind
from ..services.overlay.session import EditingSession, EngineSettings
from ..utils.exceptions import SlidePatchError

bp = Blueprint("documents", __name__, url_prefix="/documents")


def init_app(api_bp: Blueprint) -> None:
    api_bp.register_blueprint(bp)


def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _payload() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _number(payload: Dict[str, Any], key: str, default: float | None = None) -> float:
    value = payload.get(key, default)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise SlidePatchError(f"{key} must be numeric") from None


@bp.post("")
def open_document():
    data = request.get_data()
    if not data:
        return jsonify({"error": "Request body must contain the PDF bytes"}), HTTPStatus.BAD_REQUEST

    source = PdfDocumentSource(data)
    session = EditingSession(
        source,
        get_fonts(),
        EngineSettings.from_config(current_app.config),
    )
    get_sessions().add(session)
    return jsonify({"documentId": session.id, "pageCount": session.page_count}), HTTPStatus.CREATED


@bp.get("/<document_id>")
def get_document(document_id: str):
    session = get_sessions().get(document_id)
    with session.lock:
        return jsonify(session.to_dict())


@bp.delete("/<document_id>")
def close_document(document_id: str):
    get_sessions().remove(document_id)
    return jsonify({"documentId": document_id, "closed": True})


@bp.put("/<document_id>/view")
def update_view(document_id: str):
    session = get_sessions().get(document_id)
    payload = _payload()
    with session.lock:
        if payload.get("page") is not None:
            session.go_to_page(int(_number(payload, "page")))
        fit = payload.get("fit")
        if isinstance(fit, dict):
            session.fit_scale(_number(fit, "width"), _number(fit, "height"))
        elif payload.get("scale") is not None:
            session.set_scale(_number(payload, "scale"))
        return jsonify(session.to_dict())


@bp.get("/<document_id>/pages/<int:page_number>.png")
def page_png(document_id: str, page_number: int):
    session = get_sessions().get(document_id)
    with session.lock:
        image = session.render(page_number)
    return send_file(io.BytesIO(encode_png(image)), mimetype="image/png")


@bp.post("/<document_id>/pointer")
def pointer_event(document_id: str):
    session = get_sessions().get(document_id)
    payload = _payload()
    try:
        kind = PointerKind(payload.get("kind"))
    except ValueError:
        return jsonify({"error": f"Unknown pointer event kind: {payload.get('kind')!r}"}), HTTPStatus.BAD_REQUEST

    event = PointerEvent(
        kind=kind,
        x=_number(payload, "x", 0.0),
        y=_number(payload, "y", 0.0),
        delta=_number(payload, "delta", 0.0),
    )
    with session.lock:
        session.handle_pointer(event)
        state = session.to_dict()
        state["cursor"] = session.cursor_for(event.x, event.y)
    return jsonify(state)


@bp.post("/<document_id>/recognize")
def recognize(document_id: str):
    session = get_sessions().get(document_id)
    with session.lock:
        result = asyncio.run(session.recognize_selection())
        suggested = {_camel(key): value for key, value in session.suggested_style.items()}
    return jsonify({"recognition": result.to_dict(), "suggestedStyle": suggested})


@bp.post("/<document_id>/preview")
def create_preview(document_id: str):
    session = get_sessions().get(document_id)
    with session.lock:
        overlay = session.preview_overlay(**_payload())
        return jsonify(overlay.to_dict())


@bp.patch("/<document_id>/preview")
def update_preview(document_id: str):
    session = get_sessions().get(document_id)
    with session.lock:
        overlay = session.update_preview(**_payload())
        return jsonify(overlay.to_dict())


@bp.post("/<document_id>/commit")
def commit_preview(document_id: str):
    session = get_sessions().get(document_id)
    with session.lock:
        overlay = session.commit()
        return jsonify(overlay.to_dict()), HTTPStatus.CREATED


@bp.post("/<document_id>/apply-all")
def apply_to_all_pages(document_id: str):
    session = get_sessions().get(document_id)
    with session.lock:
        created = session.apply_to_all_pages()
        return jsonify({"overlays": [overlay.to_dict() for overlay in created]}), HTTPStatus.CREATED


@bp.post("/<document_id>/export")
def export_document(document_id: str):
    session = get_sessions().get(document_id)
    with session.lock:
        output = asyncio.run(session.export())
    return send_file(
        io.BytesIO(output),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=request.args.get("filename", "edited.pdf"),
    )
