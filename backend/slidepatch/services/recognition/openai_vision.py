from __future__ import annotations

import asyncio
import base64
import io
import json
import os
from typing import Any, Dict, Optional

import openai
from PIL import Image

from .base import BaseRecognizer, PageRegion, RecognitionFailed, RecognitionResult

PROMPT = (
    "Transcribe every piece of text visible in this image exactly as written, "
    "keeping line breaks. The text is usually Korean, English or a mix of both. "
    "Respond with a JSON object only: "
    '{"text": "<transcription>", "confidence": <0-100>, "lines": ["<line>", ...]}. '
    'If there is no text, respond with {"text": "", "confidence": 0, "lines": []}.'
)


class OpenAIVisionRecognizer(BaseRecognizer):
    """Recognises text in a crop with an OpenAI vision-capable chat model."""

    source = "openai_vision"

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, timeout: float = 60.0):
        super().__init__()
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.model = (model or os.getenv("SLIDEPATCH_OPENAI_VISION_MODEL", "gpt-4o-mini")).strip()
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _get_openai_client(self) -> openai.OpenAI:
        return openai.OpenAI(api_key=self.api_key, timeout=self.timeout)

    async def _recognize(self, image: Image.Image, region: Optional[PageRegion]) -> RecognitionResult:
        if not self.is_configured():
            raise RecognitionFailed("OpenAI vision recogniser not configured - missing API key")
        return await asyncio.to_thread(self._recognize_sync, image)

    def _recognize_sync(self, image: Image.Image) -> RecognitionResult:
        buffer = io.BytesIO()
        image.convert("RGB").save(buffer, format="PNG")
        b64_image = base64.b64encode(buffer.getvalue()).decode("utf-8")

        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": PROMPT},
                    {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{b64_image}"}},
                ],
            }
        ]

        try:
            response = self._get_openai_client().chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=2000,
                temperature=0.0,
            )
        except openai.OpenAIError as exc:
            self.logger.error("OpenAI vision request failed", model=self.model, error=str(exc))
            raise RecognitionFailed(f"Text recognition failed: {exc}") from exc

        content = response.choices[0].message.content or ""
        return self._parse_response(content)

    def _parse_response(self, content: str) -> RecognitionResult:
        payload = _extract_json(content)
        if payload is None:
            # Model ignored the format; treat the reply as plain transcription
            text = content.strip()
            return RecognitionResult(text=text, confidence=50.0 if text else 0.0, lines=text.splitlines())

        text = str(payload.get("text") or "").strip()
        lines = [str(line) for line in payload.get("lines") or text.splitlines()]
        try:
            confidence = float(payload.get("confidence", 0))
        except (TypeError, ValueError):
            confidence = 0.0
        return RecognitionResult(
            text=text,
            confidence=max(0.0, min(100.0, confidence)),
            words=[{"text": word} for line in lines for word in line.split()],
            lines=lines,
        )


def _extract_json(content: str) -> Optional[Dict[str, Any]]:
    content = content.strip()
    if content.startswith("```json"):
        content = content[7:]
    elif content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]

    start = content.find("{")
    end = content.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        payload = json.loads(content[start : end + 1])
    except json.JSONDecodeError:
        return None
    return payload if isinstance(payload, dict) else None
