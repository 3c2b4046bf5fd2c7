from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Mapping

from fontTools.ttLib import TTFont, TTLibError

from .settings import get_settings

logger = logging.getLogger(__name__)

# Text is laid out at this many internal pixels per millimeter of font size.
INTERNAL_SCALING = 100.0

FONT_SUFFIXES = frozenset({".ttf", ".otf", ".ttc"})

# Used only when no font file of the family is installed:
# (ascent, descent, leading, average advance) as fractions of the em size.
_FAMILY_RATIOS: dict[str, tuple[float, float, float, float]] = {
    "arial": (0.905, 0.212, 0.033, 0.52),
    "helvetica": (0.905, 0.212, 0.033, 0.52),
    "times new roman": (0.891, 0.216, 0.042, 0.46),
    "courier new": (0.833, 0.300, 0.0, 0.60),
    "verdana": (1.005, 0.210, 0.0, 0.58),
}
_DEFAULT_RATIOS = _FAMILY_RATIOS["arial"]
_BOLD_ADVANCE = 1.08


@dataclass(frozen=True)
class FontFace:
    """Metrics of one face as fractions of the em size."""

    family: str
    ascent: float
    descent: float
    leading: float
    average_advance: float
    advances: Mapping[str, float] = field(default_factory=dict)
    path: str | None = None


@dataclass(frozen=True)
class FontMetrics:
    """Vertical metrics of a font in internal pixels."""

    family: str
    ascent: float
    descent: float
    leading: float
    average_advance: float
    internal_scaling: float = INTERNAL_SCALING
    pixel_size: float = 0.0
    advances: Mapping[str, float] = field(default_factory=dict)

    @property
    def line_spacing(self) -> float:
        return self.ascent + self.descent + self.leading

    def text_width(self, text: str) -> float:
        if not self.advances:
            return self.average_advance * len(text)
        fallback = self.average_advance / self.pixel_size if self.pixel_size else 0.0
        return self.pixel_size * sum(self.advances.get(char, fallback) for char in text)


def font_metrics(family: str, font_size_mm: float, bold: bool = False) -> FontMetrics:
    face = load_face(family, bold)
    pixel_size = font_size_mm * INTERNAL_SCALING
    return FontMetrics(
        family=family,
        ascent=face.ascent * pixel_size,
        descent=face.descent * pixel_size,
        leading=face.leading * pixel_size,
        average_advance=face.average_advance * pixel_size,
        pixel_size=pixel_size,
        advances=face.advances,
    )


def load_face(family: str, bold: bool = False) -> FontFace:
    return _load_face(normalize_family(family), bold, tuple(get_settings().font_dirs))


def normalize_family(family: str) -> str:
    return re.sub(r"[^a-z0-9]+", "", family.strip().lower())


@lru_cache(maxsize=None)
def _load_face(family_key: str, bold: bool, font_dirs: tuple[str, ...]) -> FontFace:
    path = find_font_file(family_key, bold, font_dirs)
    if path is not None:
        try:
            return read_face(path)
        except (TTLibError, OSError, KeyError) as exc:
            logger.warning("cannot read font metrics from %s: %s", path, exc)
    logger.info("no font file for family %r, using built-in metrics", family_key)
    return _builtin_face(family_key, bold)


def find_font_file(family_key: str, bold: bool, font_dirs: tuple[str, ...]) -> Path | None:
    index = _font_index(font_dirs)
    return index.get((family_key, bold)) or index.get((family_key, not bold))


@lru_cache(maxsize=None)
def _font_index(font_dirs: tuple[str, ...]) -> dict[tuple[str, bool], Path]:
    """Upright faces first: an italic face is only kept when nothing else matches."""
    index: dict[tuple[str, bool], Path] = {}
    italic: dict[tuple[str, bool], Path] = {}
    for directory in font_dirs:
        root = Path(directory).expanduser()
        if not root.is_dir():
            continue
        for path in sorted(root.rglob("*")):
            if path.suffix.lower() not in FONT_SUFFIXES:
                continue
            try:
                font = TTFont(str(path), lazy=True, fontNumber=0)
                try:
                    key, is_italic = _face_key(font)
                finally:
                    font.close()
            except (TTLibError, OSError, KeyError) as exc:
                logger.debug("skipping font %s: %s", path, exc)
                continue
            if not key[0]:
                continue
            target = italic if is_italic else index
            target.setdefault(key, path)
    for key, path in italic.items():
        index.setdefault(key, path)
    return index


def _face_key(font: TTFont) -> tuple[tuple[str, bool], bool]:
    name = font["name"]
    family = name.getDebugName(16) or name.getDebugName(1) or ""
    if "OS/2" in font:
        os2 = font["OS/2"]
        bold = os2.usWeightClass >= 600
        italic = bool(os2.fsSelection & 1)
    else:
        mac_style = font["head"].macStyle
        bold = bool(mac_style & 1)
        italic = bool(mac_style & 2)
    return (normalize_family(family), bold), italic


def read_face(path: Path) -> FontFace:
    font = TTFont(str(path), fontNumber=0)
    try:
        units = float(font["head"].unitsPerEm)
        hhea = font["hhea"]
        if "OS/2" in font and font["OS/2"].usWinAscent > 0:
            os2 = font["OS/2"]
            ascent = os2.usWinAscent
            descent = os2.usWinDescent
        else:
            ascent = hhea.ascent
            descent = -hhea.descent
        leading = max(0, hhea.lineGap)

        widths = font["hmtx"].metrics
        advances = {
            chr(code): widths[glyph][0] / units
            for code, glyph in (font.getBestCmap() or {}).items()
            if glyph in widths
        }
        nonzero = [advance for advance, _lsb in widths.values() if advance > 0]
        average = sum(nonzero) / len(nonzero) / units if nonzero else 0.5
        family = font["name"].getDebugName(16) or font["name"].getDebugName(1) or path.stem
    finally:
        font.close()
    return FontFace(
        family=family,
        ascent=ascent / units,
        descent=descent / units,
        leading=leading / units,
        average_advance=average,
        advances=advances,
        path=str(path),
    )


def _builtin_face(family_key: str, bold: bool) -> FontFace:
    ratios = {normalize_family(name): value for name, value in _FAMILY_RATIOS.items()}
    ascent, descent, leading, advance = ratios.get(family_key, _DEFAULT_RATIOS)
    if bold:
        advance *= _BOLD_ADVANCE
    return FontFace(family=family_key, ascent=ascent, descent=descent, leading=leading, average_advance=advance)
