from __future__ import annotations

import re

PARTICLES = ("은", "는", "이", "가", "을", "를", "에", "의", "와", "과", "로", "으로", "에서", "에게", "도", "만", "처럼")
ENDINGS = ("입니다", "습니다", "합니다", "나요", "까요", "세요", "네요", "구나", "아요", "어요", "하죠", "하네")

_SOFT_BREAK = re.compile(r"([가-힣a-zA-Z0-9,])\n([가-힣a-zA-Z0-9])")
_STRAY_MARK = re.compile(r"\s+[|_]\s+")
_REPEATED_PERIOD = re.compile(r"\.{2,}")
_REPEATED_COMMA = re.compile(r",{2,}")
_DETACHED_SUFFIX = re.compile(r"([가-힣])\s+(" + "|".join(PARTICLES + ENDINGS) + r")(?=[\s.,!?]|\Z)")
_WHITESPACE = re.compile(r"\s+")


def correct(text: str) -> str:
    """Clean up common OCR artefacts in Korean/English text.

    Line breaks inside a sentence become spaces, isolated ``|``/``_`` noise is
    dropped, repeated periods and commas collapse, and particles or verb
    endings split off their word ("학교 에" -> "학교에") are re-attached.
    """
    if not text:
        return text

    corrected = _SOFT_BREAK.sub(r"\1 \2", text)
    corrected = _STRAY_MARK.sub(" ", corrected)
    corrected = _REPEATED_PERIOD.sub(".", corrected)
    corrected = _REPEATED_COMMA.sub(",", corrected)
    corrected = _DETACHED_SUFFIX.sub(r"\1\2", corrected)
    corrected = _WHITESPACE.sub(" ", corrected)
    return corrected.strip()
