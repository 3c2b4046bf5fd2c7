from __future__ import annotations

from typing import Iterable

from .errors import WarningLog
from .map import Map, MapColor
from .records import MAX_COLORS, OcdColor
from .strings import StringCodec
from .symbol import Symbol

# Legacy CMYK components run from 0 to 200.
_CMYK_STEP = 0.005


class ColorImporter:
    def __init__(self, strings: StringCodec, warnings: WarningLog) -> None:
        self.strings = strings
        self.warnings = warnings
        self.by_ordinal: dict[int, MapColor] = {}
        # Names the symbol being imported in lookup warnings.
        self.context = ""

    def import_colors(self, records: Iterable[OcdColor]) -> list[MapColor]:
        colors: list[MapColor] = []
        for position, record in enumerate(records):
            color = MapColor(
                name=self.strings.decode_pascal(record.name),
                c=_CMYK_STEP * record.cyan,
                m=_CMYK_STEP * record.magenta,
                y=_CMYK_STEP * record.yellow,
                k=_CMYK_STEP * record.black,
                opacity=1.0,
                priority=position,
            )
            colors.append(color)
            self.by_ordinal[record.number] = color
        return colors

    def resolve(self, ordinal: int) -> MapColor | None:
        color = self.by_ordinal.get(ordinal)
        if color is None:
            where = f" ({self.context})" if self.context else ""
            self.warnings.add(f"Color id not found: {ordinal}{where}, ignoring this color")
        return color


class ColorExporter:
    def __init__(self, map: Map, strings: StringCodec) -> None:
        self.map = map
        self.strings = strings

    def export_colors(self) -> list[OcdColor]:
        records: list[OcdColor] = []
        for position, color in enumerate(self.map.colors):
            records.append(
                OcdColor(
                    number=position,
                    cyan=round(color.c / _CMYK_STEP),
                    magenta=round(color.m / _CMYK_STEP),
                    yellow=round(color.y / _CMYK_STEP),
                    black=round(color.k / _CMYK_STEP),
                    name=self.strings.encode_pascal(color.name, 32),
                )
            )
        return records

    def ordinal(self, color: MapColor | None) -> int:
        """Position of ``color`` in the map; 0 doubles as the fallback for absent colors."""
        index = self.map.find_color_index(color)
        return index if index > 0 else 0

    def color_set(self, symbol: Symbol) -> bytes:
        bits = bytearray(MAX_COLORS // 8)
        used = {id(color) for color in symbol.iter_colors(self.map.symbols)}
        for position, color in enumerate(self.map.colors[:MAX_COLORS]):
            if id(color) in used:
                bits[position // 8] |= 1 << (position % 8)
        return bytes(bits)
