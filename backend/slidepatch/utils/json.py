from __future__ import annotations

from dataclasses import asdict, is_dataclass
from typing import Any

import orjson
from flask.json.provider import DefaultJSONProvider


def _default(obj: Any) -> Any:
    # Engine value objects (Overlay, Rect, RecognitionResult ...) expose to_dict()
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


class ORJSONProvider(DefaultJSONProvider):
    """Flask JSON provider backed by orjson that understands engine value objects."""

    def dumps(self, obj: Any, *, option: int | None = None, **kwargs: Any) -> str:
        opts = option or orjson.OPT_INDENT_2
        return orjson.dumps(obj, default=_default, option=opts | orjson.OPT_PASSTHROUGH_DATACLASS).decode()

    def loads(self, s: str | bytes | bytearray, **kwargs: Any) -> Any:
        return orjson.loads(s)
