from __future__ import annotations

from dataclasses import dataclass, field

from .objects import MapObject
from .symbol import CombinedSymbol, LineSymbol, PointSymbol, Symbol, SymbolNumber


@dataclass(eq=False)
class MapColor:
    name: str = ""
    c: float = 0.0
    m: float = 0.0
    y: float = 0.0
    k: float = 0.0
    opacity: float = 1.0
    priority: int = 0

    def to_rgb(self) -> tuple[int, int, int]:
        return (
            round(255 * (1.0 - self.c) * (1.0 - self.k)),
            round(255 * (1.0 - self.m) * (1.0 - self.k)),
            round(255 * (1.0 - self.y) * (1.0 - self.k)),
        )


@dataclass(eq=False)
class MapLayer:
    name: str
    objects: list[MapObject] = field(default_factory=list)


@dataclass(eq=False)
class TemplateImage:
    filename: str
    x: int = 0
    y: int = 0
    rotation: float = 0.0
    scale_x: float = 1.0
    scale_y: float = 1.0


@dataclass(eq=False)
class MapView:
    ZOOM_IN_LIMIT = 512.0
    ZOOM_OUT_LIMIT = 1 / 16.0

    zoom: float = 1.0
    center_x: int = 0
    center_y: int = 0
    template_visibility: dict[int, bool] = field(default_factory=dict)

    def set_template_visible(self, template: TemplateImage, visible: bool = True) -> None:
        self.template_visibility[id(template)] = visible

    def is_template_visible(self, template: TemplateImage) -> bool:
        return self.template_visibility.get(id(template), False)


def _undefined_point() -> PointSymbol:
    return PointSymbol(number=SymbolNumber(-1), name="Undefined point", rotatable=True)


def _undefined_line() -> LineSymbol:
    return LineSymbol(number=SymbolNumber(-1), name="Undefined line", line_width=100)


@dataclass(eq=False)
class Map:
    colors: list[MapColor] = field(default_factory=list)
    symbols: list[Symbol] = field(default_factory=list)
    layers: list[MapLayer] = field(default_factory=lambda: [MapLayer("default layer")])
    templates: list[TemplateImage] = field(default_factory=list)
    notes: str = ""
    scale_denominator: int = 15000
    current_layer_index: int = 0
    first_front_template: int = 0
    undefined_point: PointSymbol = field(default_factory=_undefined_point)
    undefined_line: LineSymbol = field(default_factory=_undefined_line)

    def add_symbol_group(self, group: list[Symbol]) -> list[int]:
        """Append symbols whose combined parts index into ``group``; returns the new indices."""
        base = len(self.symbols)
        for symbol in group:
            if isinstance(symbol, CombinedSymbol):
                symbol.parts = [base + part for part in symbol.parts]
            self.symbols.append(symbol)
        return list(range(base, base + len(group)))

    def find_color_index(self, color: MapColor | None) -> int:
        if color is None:
            return -1
        for index, candidate in enumerate(self.colors):
            if candidate is color:
                return index
        return -1

    def find_symbol_index(self, symbol: Symbol) -> int:
        for index, candidate in enumerate(self.symbols):
            if candidate is symbol:
                return index
        return -1

    def determine_symbol_use_closure(self, marked: list[bool]) -> list[bool]:
        """Extend ``marked`` with every symbol transitively used by a marked combined symbol."""
        changed = True
        while changed:
            changed = False
            for index, symbol in enumerate(self.symbols):
                if not marked[index] or not isinstance(symbol, CombinedSymbol):
                    continue
                for part in symbol.parts:
                    if 0 <= part < len(marked) and not marked[part]:
                        marked[part] = True
                        changed = True
        return marked

    def iter_objects(self):
        for layer in self.layers:
            yield from layer.objects

    @property
    def object_count(self) -> int:
        return sum(len(layer.objects) for layer in self.layers)
