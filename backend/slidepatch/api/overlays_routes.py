from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from ..extensions import get_sessions
from ..services.overlay.errors import OverlayNotFound
from ..services.overlay.geometry import Rect
from ..utils.exceptions import PageOutOfRange, SlidePatchError

bp = Blueprint("overlays", __name__, url_prefix="/documents/<document_id>/overlays")


def init_app(api_bp: Blueprint) -> None:
    api_bp.register_blueprint(bp)


def _payload() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


@bp.get("")
def list_overlays(document_id: str):
    session = get_sessions().get(document_id)
    page = request.args.get("page", type=int)
    with session.lock:
        overlays = session.repository.get_page_overlays(page) if page else session.repository.get_all()
        return jsonify({"overlays": [overlay.to_dict() for overlay in overlays]})


@bp.post("")
def create_overlay(document_id: str):
    session = get_sessions().get(document_id)
    payload = _payload()
    try:
        page_number = int(payload.get("pageNumber", payload.get("pageNum")))
    except (TypeError, ValueError):
        raise SlidePatchError("pageNumber is required") from None
    rect = Rect.from_dict(payload)

    with session.lock:
        if not 1 <= page_number <= session.page_count:
            raise PageOutOfRange(page_number, session.page_count)
        overlay = session.repository.create(page_number, rect, payload)
        return jsonify(overlay.to_dict()), HTTPStatus.CREATED


@bp.delete("")
def clear_overlays(document_id: str):
    session = get_sessions().get(document_id)
    page = request.args.get("page", type=int)
    with session.lock:
        if page:
            removed = session.repository.clear_page(page)
        else:
            removed = len(session.repository)
            session.repository.clear_all()
        session.revision += 1
        return jsonify({"removed": removed})


@bp.get("/<int:overlay_id>")
def get_overlay(document_id: str, overlay_id: int):
    session = get_sessions().get(document_id)
    with session.lock:
        overlay = session.repository.get(overlay_id)
        if overlay is None:
            raise OverlayNotFound(overlay_id)
        return jsonify(overlay.to_dict())


@bp.patch("/<int:overlay_id>")
def update_overlay(document_id: str, overlay_id: int):
    session = get_sessions().get(document_id)
    payload = _payload()
    payload.pop("id", None)
    with session.lock:
        overlay = session.repository.update(overlay_id, payload)
        if overlay is None:
            raise OverlayNotFound(overlay_id)
        session.revision += 1
        return jsonify(overlay.to_dict())


@bp.delete("/<int:overlay_id>")
def delete_overlay(document_id: str, overlay_id: int):
    session = get_sessions().get(document_id)
    with session.lock:
        overlay = session.remove_overlay(overlay_id)
        return jsonify(overlay.to_dict())


@bp.post("/<int:overlay_id>/edit")
def edit_overlay(document_id: str, overlay_id: int):
    session = get_sessions().get(document_id)
    with session.lock:
        preview = session.edit_overlay(overlay_id)
        state = session.to_dict()
        state["preview"] = preview.to_dict()
        return jsonify(state)
