from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from PIL import ImageFont

from ...utils.logging import get_logger

FontObject = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]

FONT_SUFFIXES = (".ttf", ".otf", ".ttc")

FONT_ALIASES: Dict[str, str] = {
    "맑은 고딕": "Malgun Gothic",
    "나눔고딕": "NanumGothic",
}

# Families tried, in order, when the requested one is not installed.
FALLBACK_FAMILIES = ("Noto Sans KR", "Malgun Gothic")

RECOMMENDED_FONTS = (
    "Noto Sans KR",
    "Malgun Gothic",
    "NanumGothic",
    "Pretendard",
    "Apple SD Gothic Neo",
)

KOREAN_FONTS = (
    "Noto Sans KR",
    "Malgun Gothic",
    "맑은 고딕",
    "NanumGothic",
    "나눔고딕",
    "Pretendard",
    "Apple SD Gothic Neo",
    "Dotum",
    "돋움",
    "Gulim",
    "굴림",
    "Batang",
    "바탕",
)

DOWNLOAD_HINTS: Dict[str, Dict[str, str]] = {
    "Noto Sans KR": {"url": "https://fonts.google.com/specimen/Noto+Sans+KR", "name": "Google Fonts"},
    "NanumGothic": {"url": "https://hangeul.naver.com/font", "name": "네이버 한글"},
    "Pretendard": {"url": "https://github.com/orioncactus/pretendard/releases", "name": "GitHub"},
    "Malgun Gothic": {
        "url": "https://docs.microsoft.com/ko-kr/typography/font-list/malgun-gothic",
        "name": "Windows 기본 폰트",
    },
    "Apple SD Gothic Neo": {"url": "https://developer.apple.com/fonts/", "name": "macOS 기본 폰트"},
}

WEIGHT_NAMES = {
    100: "thin",
    200: "extralight",
    300: "light",
    400: "regular",
    500: "medium",
    600: "semibold",
    700: "bold",
    800: "extrabold",
    900: "black",
}

# Font files whose names do not follow the "<Family>-<Style>" convention.
_FILE_STEMS: Dict[str, Dict[str, Tuple[str, ...]]] = {
    "malgungothic": {"regular": ("malgun",), "bold": ("malgunbd",), "light": ("malgunsl",)},
    "notosanskr": {"regular": ("notosanscjkkrregular", "notosanscjkregular"), "bold": ("notosanscjkkrbold", "notosanscjkbold")},
    "applesdgothicneo": {"regular": ("applesdgothicneo",)},
}


def _key(name: str) -> str:
    return re.sub(r"[\s_\-]+", "", name).lower()


def canonical_family(family: str) -> str:
    return FONT_ALIASES.get(family.strip(), family.strip())


def weight_value(weight: Union[str, int, None]) -> int:
    """CSS-style weight (``"400"``, ``"bold"``, ``700``) as a number in 100..900."""
    if weight is None:
        return 400
    text = str(weight).strip().lower()
    if text == "bold":
        return 700
    if text in ("normal", "regular", ""):
        return 400
    try:
        value = int(float(text))
    except ValueError:
        return 400
    return max(100, min(900, int(round(value / 100.0)) * 100))


def is_korean_compatible(family: str) -> bool:
    wanted = family.strip().lower()
    return any(name.lower() == wanted for name in KOREAN_FONTS)


def download_hint(family: str) -> Optional[Dict[str, str]]:
    return DOWNLOAD_HINTS.get(family) or DOWNLOAD_HINTS.get(FONT_ALIASES.get(family, ""))


@dataclass(frozen=True)
class ResolvedFont:
    font: FontObject
    path: Optional[Path]
    synthetic_bold: bool = False

    def measure(self, text: str) -> float:
        return float(self.font.getlength(text))

    @property
    def stroke_width(self) -> int:
        return 1 if self.synthetic_bold else 0


class FontCatalog:
    """Resolve (family, weight, italic, pixel size) to a Pillow font.

    Font files are discovered once by walking the configured directories and
    indexed by a normalised file stem (``NotoSansKR-Bold.otf`` ->
    ``notosanskrbold``). Loaded fonts are cached per request key. When no file
    matches, the fallback families are tried and finally Pillow's bundled
    default face at the requested size.
    """

    def __init__(self, font_dirs: Iterable[Union[str, Path]] = ()) -> None:
        self.font_dirs: List[Path] = [Path(entry) for entry in font_dirs]
        self.logger = get_logger(self.__class__.__name__)
        self._index: Optional[Dict[str, Path]] = None
        self._cache: Dict[Tuple[str, int, bool, int], ResolvedFont] = {}

    @property
    def index(self) -> Dict[str, Path]:
        if self._index is None:
            self._index = self._scan()
        return self._index

    def _scan(self) -> Dict[str, Path]:
        index: Dict[str, Path] = {}
        for directory in self.font_dirs:
            if not directory.is_dir():
                continue
            for root, _dirs, files in os.walk(directory):
                for filename in files:
                    path = Path(root) / filename
                    if path.suffix.lower() not in FONT_SUFFIXES:
                        continue
                    index.setdefault(_key(path.stem), path)
        self.logger.debug("font directories indexed", fonts=len(index), dirs=len(self.font_dirs))
        return index

    def _style_stems(self, family_key: str, style: str) -> List[str]:
        stems = [family_key + style]
        if style == "regular":
            stems.append(family_key)
        stems.extend(_FILE_STEMS.get(family_key, {}).get(style, ()))
        return stems

    def find_file(self, family: str, weight: int = 400, italic: bool = False) -> Optional[Path]:
        """Path of the best installed face for the request, or ``None``.

        Exact weight (with italic when asked) wins, then upright at the same
        weight, then the regular face.
        """
        family_key = _key(canonical_family(family))
        weight_name = WEIGHT_NAMES.get(weight, "regular")
        styles: List[str] = []
        if italic:
            styles.append("italic" if weight_name == "regular" else f"{weight_name}italic")
        styles.append(weight_name)
        if weight_name != "regular":
            styles.append("regular")

        for style in styles:
            for stem in self._style_stems(family_key, style):
                path = self.index.get(stem)
                if path is not None:
                    return path
        return None

    def is_font_available(self, family: str) -> bool:
        return self.find_file(family) is not None

    def resolve(
        self,
        family: str,
        weight: Union[str, int, None] = "400",
        italic: bool = False,
        size_px: float = 16.0,
    ) -> ResolvedFont:
        numeric_weight = weight_value(weight)
        size = max(1, int(round(size_px)))
        cache_key = (canonical_family(family), numeric_weight, bool(italic), size)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        resolved = self._load(cache_key[0], numeric_weight, bool(italic), size)
        self._cache[cache_key] = resolved
        return resolved

    def _load(self, family: str, weight: int, italic: bool, size: int) -> ResolvedFont:
        wants_bold = weight >= 600
        families: Sequence[str] = (family,) + tuple(f for f in FALLBACK_FAMILIES if f != family)

        for candidate in families:
            path = self.find_file(candidate, weight, italic)
            if path is None:
                continue
            try:
                font = ImageFont.truetype(str(path), size)
            except OSError as exc:
                self.logger.warning("font file unreadable", path=str(path), error=str(exc))
                continue
            synthetic = wants_bold and not self._is_bold_file(path)
            if candidate != family:
                self.logger.debug("font fallback", requested=family, used=candidate)
            return ResolvedFont(font=font, path=path, synthetic_bold=synthetic)

        self.logger.debug("no installed font matched, using default face", family=family, size=size)
        return ResolvedFont(font=ImageFont.load_default(size), path=None, synthetic_bold=wants_bold)

    @staticmethod
    def _is_bold_file(path: Path) -> bool:
        stem = _key(path.stem)
        return any(token in stem for token in ("bold", "black", "heavy", "semibold")) or stem.endswith("bd")

    def availability_report(self, families: Iterable[str] = RECOMMENDED_FONTS) -> List[Dict[str, object]]:
        return [
            {
                "name": family,
                "installed": self.is_font_available(family),
                "koreanCompatible": is_korean_compatible(family),
                "downloadInfo": download_hint(family),
            }
            for family in families
        ]
