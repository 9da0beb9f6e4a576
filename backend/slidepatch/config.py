from __future__ import annotations

import os
from pathlib import Path
from typing import Any


def _parse_cors_origins() -> str | list[str]:
    default = (
        "http://localhost:3000,http://localhost:5173,"
        "http://127.0.0.1:3000,http://127.0.0.1:5173"
    )
    raw = os.getenv("SLIDEPATCH_CORS_ORIGINS", default)
    if raw.strip() == "*":
        return "*"
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    return origins or "*"


def _parse_font_dirs() -> list[Path]:
    raw = os.getenv("SLIDEPATCH_FONT_DIRS", "")
    configured = [Path(entry).expanduser() for entry in raw.split(os.pathsep) if entry.strip()]
    system_dirs = [
        Path("/usr/share/fonts"),
        Path("/usr/local/share/fonts"),
        Path.home() / ".fonts",
        Path("/Library/Fonts"),
        Path("/System/Library/Fonts"),
        Path("C:/Windows/Fonts"),
    ]
    return configured + system_dirs


class BaseConfig:
    SECRET_KEY = os.getenv("SLIDEPATCH_SECRET_KEY", "dev-secret-key")
    JSON_SORT_KEYS = False
    MAX_CONTENT_LENGTH = int(os.getenv("SLIDEPATCH_MAX_UPLOAD_MB", "100")) * 1024 * 1024
    CORS_ORIGINS = _parse_cors_origins()
    LOG_LEVEL = os.getenv("SLIDEPATCH_LOG_LEVEL", "INFO")
    LOG_FORMAT = os.getenv("SLIDEPATCH_LOG_FORMAT", "json")

    # Viewer / interaction
    DEFAULT_SCALE = float(os.getenv("SLIDEPATCH_DEFAULT_SCALE", "1.5"))
    HANDLE_HIT_RADIUS = float(os.getenv("SLIDEPATCH_HANDLE_HIT_RADIUS", "6"))
    MIN_SELECTION_PX = float(os.getenv("SLIDEPATCH_MIN_SELECTION_PX", "10"))
    MIN_OVERLAY_SIZE = float(os.getenv("SLIDEPATCH_MIN_OVERLAY_SIZE", "20"))

    # Export
    EXPORT_UPSCALE = float(os.getenv("SLIDEPATCH_EXPORT_UPSCALE", "2"))

    # Fonts
    FONT_DIRS = _parse_font_dirs()
    DEFAULT_FONT_FAMILY = os.getenv("SLIDEPATCH_DEFAULT_FONT", "Noto Sans KR")

    # Text recognition: "text_layer" reads the PDF's own text, "openai" uses a vision model
    RECOGNIZER = os.getenv("SLIDEPATCH_RECOGNIZER", "text_layer")
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
    OPENAI_VISION_MODEL = os.getenv("SLIDEPATCH_OPENAI_VISION_MODEL", "gpt-4o-mini")
    RECOGNIZER_TIMEOUT_SECONDS = float(os.getenv("SLIDEPATCH_RECOGNIZER_TIMEOUT", "60"))

    # Font size seeding heuristics (empirical, kept configurable)
    FONT_SIZING: dict[str, Any] = {
        "char_width_ratio": float(os.getenv("SLIDEPATCH_FONT_CHAR_RATIO", "0.65")),
        "width_fill": float(os.getenv("SLIDEPATCH_FONT_WIDTH_FILL", "0.95")),
        "height_fill": float(os.getenv("SLIDEPATCH_FONT_HEIGHT_FILL", "0.8")),
        "multiline_threshold": float(os.getenv("SLIDEPATCH_FONT_MULTILINE_THRESHOLD", "0.4")),
        "multiline_min_chars": int(os.getenv("SLIDEPATCH_FONT_MULTILINE_MIN_CHARS", "10")),
        "multiline_lines": float(os.getenv("SLIDEPATCH_FONT_MULTILINE_LINES", "2.5")),
        "multiline_height_fill": float(os.getenv("SLIDEPATCH_FONT_MULTILINE_HEIGHT_FILL", "0.4")),
        "min_size": int(os.getenv("SLIDEPATCH_FONT_MIN_SIZE", "12")),
        "max_size": int(os.getenv("SLIDEPATCH_FONT_MAX_SIZE", "120")),
    }


class TestConfig(BaseConfig):
    TESTING = True
    LOG_LEVEL = "DEBUG"
    RECOGNIZER = "text_layer"
    FONT_DIRS: list[Path] = []


class DevConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = "DEBUG"
    LOG_FORMAT = os.getenv("SLIDEPATCH_LOG_FORMAT", "console")


config_by_name = {
    "development": DevConfig,
    "testing": TestConfig,
    "production": BaseConfig,
}


def get_config(config_name: str | None = None):
    if not config_name:
        config_name = os.getenv("SLIDEPATCH_ENV", "development")
    return config_by_name.get(config_name.lower(), BaseConfig)
