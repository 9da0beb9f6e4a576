from __future__ import annotations

from http import HTTPStatus
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, jsonify, request

load_dotenv(Path.cwd() / ".env")

from .config import get_config
from .extensions import init_extensions
from .services.overlay.errors import ExportPatchFailure, InvalidRegion, OverlayNotFound
from .services.recognition import RecognitionFailed, RecognizerBusy
from .utils.exceptions import (
    DocumentLoadError,
    PageOutOfRange,
    SessionNotFound,
    SlidePatchError,
)
from .utils.json import ORJSONProvider
from .utils.logging import bind_request_context, configure_logging, get_logger

ERROR_STATUS = {
    SessionNotFound: HTTPStatus.NOT_FOUND,
    OverlayNotFound: HTTPStatus.NOT_FOUND,
    PageOutOfRange: HTTPStatus.NOT_FOUND,
    InvalidRegion: HTTPStatus.BAD_REQUEST,
    DocumentLoadError: HTTPStatus.BAD_REQUEST,
    RecognizerBusy: HTTPStatus.CONFLICT,
    RecognitionFailed: HTTPStatus.UNPROCESSABLE_ENTITY,
    ExportPatchFailure: HTTPStatus.BAD_GATEWAY,
}


def create_app(config_name: str | None = None) -> Flask:
    config_class = get_config(config_name)
    app = Flask(__name__)
    app.config.from_object(config_class)

    app.json = ORJSONProvider(app)

    configure_logging(app)
    init_extensions(app)

    from .api import register_blueprints
    register_blueprints(app)

    register_error_handlers(app)

    @app.before_request
    def _bind_log_context() -> None:
        view_args = request.view_args or {}
        bind_request_context(method=request.method, path=request.path, document_id=view_args.get("document_id"))

    return app


def register_error_handlers(app: Flask) -> None:
    logger = get_logger("slidepatch.errors")

    @app.errorhandler(SlidePatchError)
    def handle_domain_error(error: SlidePatchError):
        status = next(
            (code for error_type, code in ERROR_STATUS.items() if isinstance(error, error_type)),
            HTTPStatus.BAD_REQUEST,
        )
        if status >= 500:
            logger.error("request failed", error=str(error), error_type=type(error).__name__)
        else:
            logger.info("request rejected", error=str(error), error_type=type(error).__name__)
        return jsonify({"error": str(error), "type": type(error).__name__}), status

    @app.errorhandler(404)
    def handle_not_found(error):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(413)
    def handle_too_large(error):
        return jsonify({"error": "Document too large"}), 413

    @app.errorhandler(500)
    def handle_server_error(error):
        app.logger.exception("Unhandled server error")
        return jsonify({"error": "Internal server error"}), 500
