from __future__ import annotations

from flask import Blueprint, Flask

from . import documents_routes, fonts_routes, overlays_routes


def register_blueprints(app: Flask) -> None:
    api_bp = Blueprint("api", __name__, url_prefix="/api")
    documents_routes.init_app(api_bp)
    overlays_routes.init_app(api_bp)
    fonts_routes.init_app(api_bp)
    app.register_blueprint(api_bp)
