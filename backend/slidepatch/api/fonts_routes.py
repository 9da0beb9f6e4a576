from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..extensions import get_fonts
from ..services.overlay.fonts import RECOMMENDED_FONTS

bp = Blueprint("fonts", __name__, url_prefix="/fonts")


def init_app(api_bp: Blueprint) -> None:
    api_bp.register_blueprint(bp)


@bp.get("")
def list_fonts():
    families = request.args.getlist("family") or list(RECOMMENDED_FONTS)
    return jsonify({"fonts": get_fonts().availability_report(families)})


@bp.get("/<family>")
def font_status(family: str):
    return jsonify(get_fonts().availability_report([family])[0])
