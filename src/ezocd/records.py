from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Any, ClassVar, Iterator

from .errors import FormatError

MAGIC = b"\xad\x0c"
FILE_TYPE_MAP = 2
SUPPORTED_MAJOR_VERSIONS = (6, 7, 8)

# Point flags, low byte of the x and y words.
PX_CTL1 = 0x01
PX_CTL2 = 0x02
PX_LEFT = 0x04
PY_CORNER = 0x01
PY_HOLE = 0x02
PY_RIGHT = 0x04
PY_DASH = 0x08

SYMBOL_POINT = 1
SYMBOL_LINE = 2
SYMBOL_AREA = 3
SYMBOL_TEXT = 4
SYMBOL_RECT = 5

ELEMENT_LINE = 1
ELEMENT_AREA = 2
ELEMENT_CIRCLE = 3
ELEMENT_DOT = 4

OBJECT_POINT = 1
OBJECT_LINE = 2
OBJECT_AREA = 3
OBJECT_UNFORMATTED_TEXT = 4
OBJECT_FORMATTED_TEXT = 5
OBJECT_LINE_TEXT = 6
OBJECT_RECTANGLE = 7

STRING_BACKGROUND = 8

MAX_COLORS = 256
MAX_TABS = 32
# Coordinates plus 8-byte text units of one object, stored as int16.
MAX_OBJECT_UNITS = 32767
ICON_SIZE = 22
BLOCK_ENTRIES = 256

_HEADER = struct.Struct("<4H10i")
_SYMBOL_HEADER = struct.Struct("<12h")
_COLOR = struct.Struct("<hh4B32s32s")
_COLOR_SEPARATION_SIZE = 24
_COLOR_TABLE_OFFSET = _HEADER.size + _SYMBOL_HEADER.size
HEADER_END = _COLOR_TABLE_OFFSET + MAX_COLORS * _COLOR.size + 32 * _COLOR_SEPARATION_SIZE

SETUP_SIZE = 912
_SETUP_CENTER_OFFSET = 0
_SETUP_GRID_OFFSET = 8
_SETUP_SCALE_OFFSET = 24
_SETUP_ZOOM_OFFSET = 904

_POINT = struct.Struct("<ii")
_BLOCK_NEXT = struct.Struct("<i")
_SYMBOL_BLOCK = struct.Struct("<i256i")
_BASE_SYMBOL = struct.Struct("<hhhBBhBBhhi32s32s264s")
_ELEMENT = struct.Struct("<hHhhhhhh")
_POINT_SYMBOL = struct.Struct("<hh")
_LINE_SYMBOL = struct.Struct("<38h")
_AREA_SYMBOL = struct.Struct("<15h")
_TEXT_SYMBOL = struct.Struct("<32s4h2B8h32i5h2B32s10h")
_RECT_SYMBOL = struct.Struct("<9h4sh32s6h")
_OBJECT_ENTRY = struct.Struct("<4iihh")
_OBJECT = struct.Struct("<hBBhhhhi16s")
_STRING_ENTRY = struct.Struct("<4i")

BLANK_ICON = (b"\xff" * 11 + b"\x00") * ICON_SIZE


@dataclass(frozen=True)
class OcdPoint:
    """Raw legacy point: 24-bit coordinates shifted left by 8, flags in the low byte."""

    x: int
    y: int

    @classmethod
    def from_coords(cls, x: int, y: int, x_flags: int = 0, y_flags: int = 0) -> OcdPoint:
        return cls(_to_i32((x << 8) | x_flags), _to_i32((y << 8) | y_flags))

    @property
    def coord_x(self) -> int:
        return self.x >> 8

    @property
    def coord_y(self) -> int:
        return self.y >> 8

    @property
    def x_flags(self) -> int:
        return self.x & 0xFF

    @property
    def y_flags(self) -> int:
        return self.y & 0xFF


def _to_i32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _read_points(data: bytes, offset: int, count: int) -> list[OcdPoint]:
    end = offset + count * _POINT.size
    if count < 0 or end > len(data):
        raise FormatError(f"point list at 0x{offset:X} runs past the end of the file")
    return [OcdPoint(*_POINT.unpack_from(data, offset + i * _POINT.size)) for i in range(count)]


def _pack_points(points: list[OcdPoint]) -> bytes:
    return b"".join(_POINT.pack(point.x, point.y) for point in points)


@dataclass
class OcdHeader:
    file_type: int = FILE_TYPE_MAP
    major: int = 8
    minor: int = 0
    first_symbol_block: int = 0
    first_object_block: int = 0
    setup_pos: int = 0
    setup_size: int = 0
    info_pos: int = 0
    info_size: int = 0
    first_string_block: int = 0

    def pack(self) -> bytes:
        return _HEADER.pack(
            0x0CAD,
            self.file_type,
            self.major,
            self.minor,
            self.first_symbol_block,
            self.first_object_block,
            self.setup_pos,
            self.setup_size,
            self.info_pos,
            self.info_size,
            self.first_string_block,
            0,
            0,
            0,
        )


@dataclass
class OcdColor:
    number: int = 0
    cyan: int = 0
    magenta: int = 0
    yellow: int = 0
    black: int = 0
    name: bytes = b""

    @classmethod
    def unpack_from(cls, data: bytes, offset: int) -> OcdColor:
        number, _reserved, cyan, magenta, yellow, black, name, _sep = _COLOR.unpack_from(data, offset)
        return cls(number, cyan, magenta, yellow, black, name)

    def pack(self) -> bytes:
        return _COLOR.pack(
            self.number, 0, self.cyan, self.magenta, self.yellow, self.black, self.name, bytes(32)
        )


@dataclass
class OcdSetup:
    center: OcdPoint = field(default_factory=lambda: OcdPoint(0, 0))
    grid_distance: float = 500.0
    scale: float = 15000.0
    zoom: float | None = 1.0

    @classmethod
    def unpack_from(cls, data: bytes, offset: int, size: int) -> OcdSetup:
        if offset <= 0 or offset + _SETUP_SCALE_OFFSET + 8 > len(data):
            raise FormatError("setup record is missing or truncated")
        center = OcdPoint(*_POINT.unpack_from(data, offset + _SETUP_CENTER_OFFSET))
        (grid,) = struct.unpack_from("<d", data, offset + _SETUP_GRID_OFFSET)
        (scale,) = struct.unpack_from("<d", data, offset + _SETUP_SCALE_OFFSET)
        zoom: float | None = None
        if size >= _SETUP_ZOOM_OFFSET + 8 and offset + _SETUP_ZOOM_OFFSET + 8 <= len(data):
            (zoom,) = struct.unpack_from("<d", data, offset + _SETUP_ZOOM_OFFSET)
        return cls(center=center, grid_distance=grid, scale=scale, zoom=zoom)

    def pack(self) -> bytes:
        out = bytearray(SETUP_SIZE)
        _POINT.pack_into(out, _SETUP_CENTER_OFFSET, self.center.x, self.center.y)
        struct.pack_into("<d", out, _SETUP_GRID_OFFSET, self.grid_distance)
        struct.pack_into("<d", out, _SETUP_SCALE_OFFSET, self.scale)
        struct.pack_into("<d", out, _SETUP_ZOOM_OFFSET, 1.0 if self.zoom is None else self.zoom)
        return bytes(out)


@dataclass
class OcdElement:
    """Pattern element of a point symbol, line sub-symbol or area structure."""

    type: int = ELEMENT_DOT
    flags: int = 0
    color: int = 0
    width: int = 0
    diameter: int = 0
    points: list[OcdPoint] = field(default_factory=list)

    @property
    def units(self) -> int:
        return 2 + len(self.points)

    def pack(self) -> bytes:
        header = _ELEMENT.pack(
            self.type, self.flags, self.color, self.width, self.diameter, len(self.points), 0, 0
        )
        return header + _pack_points(self.points)


def _read_elements(data: bytes, offset: int, units: int) -> list[OcdElement]:
    elements: list[OcdElement] = []
    consumed = 0
    while consumed < units:
        position = offset + consumed * 8
        if position + _ELEMENT.size > len(data):
            raise FormatError(f"symbol element at 0x{position:X} runs past the end of the file")
        etype, flags, color, width, diameter, npts, _r1, _r2 = _ELEMENT.unpack_from(data, position)
        if npts < 0 or consumed + 2 + npts > units:
            raise FormatError(f"symbol element at 0x{position:X} has an invalid point count {npts}")
        points = _read_points(data, position + _ELEMENT.size, npts)
        elements.append(OcdElement(etype, flags, color, width, diameter, points))
        consumed += 2 + npts
    return elements


def pattern_units(elements: list[OcdElement]) -> int:
    return sum(element.units for element in elements)


def _pack_elements(elements: list[OcdElement]) -> bytes:
    return b"".join(element.pack() for element in elements)


@dataclass
class OcdSymbol:
    """Fields shared by all legacy symbol records."""

    number: int = 0
    type: int = 0
    subtype: int = 0
    flags: int = 0
    extent: int = 0
    status: int = 0
    colors: bytes = bytes(32)
    name: bytes = bytes(32)
    icon: bytes = BLANK_ICON

    _BODY: ClassVar[struct.Struct | None] = None
    _FIELDS: ClassVar[tuple[str | None, ...]] = ()

    @property
    def rotatable(self) -> bool:
        return bool(self.flags & 1)

    def _unpack_body(self, data: bytes, offset: int) -> int:
        if self._BODY is None:
            return offset
        if offset + self._BODY.size > len(data):
            raise FormatError(f"symbol {self.number} record is truncated")
        values = self._BODY.unpack_from(data, offset)
        for name, value in zip(self._FIELDS, values):
            if name is not None:
                setattr(self, name, value)
        return offset + self._BODY.size

    def _pack_body(self) -> bytes:
        if self._BODY is None:
            return b""
        values = [0 if name is None else getattr(self, name) for name in self._FIELDS]
        return self._BODY.pack(*values)

    def _pack_tail(self) -> bytes:
        return b""

    def pack(self) -> bytes:
        body = self._pack_body() + self._pack_tail()
        size = _BASE_SYMBOL.size + len(body)
        base = _BASE_SYMBOL.pack(
            size,
            self.number,
            self.type,
            self.subtype,
            self.flags,
            self.extent,
            0,
            self.status,
            0,
            0,
            0,
            self.colors,
            self.name,
            self.icon,
        )
        return base + body


@dataclass
class OcdPointSymbol(OcdSymbol):
    type: int = SYMBOL_POINT
    elements: list[OcdElement] = field(default_factory=list)

    def _unpack_tail(self, data: bytes, offset: int) -> None:
        if offset + _POINT_SYMBOL.size > len(data):
            raise FormatError(f"point symbol {self.number} record is truncated")
        units, _reserved = _POINT_SYMBOL.unpack_from(data, offset)
        self.elements = _read_elements(data, offset + _POINT_SYMBOL.size, units)

    def _pack_tail(self) -> bytes:
        return _POINT_SYMBOL.pack(pattern_units(self.elements), 0) + _pack_elements(self.elements)


_LINE_FIELDS = (
    "color", "width", "ends", "bdist", "edist", "len", "elen", "gap", "gap2", "egap",
    "smin", "snum", "sdist", "dmode", "dflags", "dcolor", "lcolor", "rcolor", "dwidth",
    "lwidth", "rwidth", "dlen", "dgap", None, None, None, "tmode", "tlast", None,
    "fcolor", "fwidth", "fstyle", "smnpts", "ssnpts", "scnpts", "sbnpts", "senpts", None,
)


@dataclass
class OcdLineSymbol(OcdSymbol):
    type: int = SYMBOL_LINE
    color: int = 0
    width: int = 0
    ends: int = 0
    bdist: int = 0
    edist: int = 0
    len: int = 0
    elen: int = 0
    gap: int = 0
    gap2: int = 0
    egap: int = 0
    smin: int = 0
    snum: int = 0
    sdist: int = 0
    dmode: int = 0
    dflags: int = 0
    dcolor: int = 0
    lcolor: int = 0
    rcolor: int = 0
    dwidth: int = 0
    lwidth: int = 0
    rwidth: int = 0
    dlen: int = 0
    dgap: int = 0
    tmode: int = 0
    tlast: int = 0
    fcolor: int = 0
    fwidth: int = 0
    fstyle: int = 0
    smnpts: int = 0
    ssnpts: int = 0
    scnpts: int = 0
    sbnpts: int = 0
    senpts: int = 0
    main_elements: list[OcdElement] = field(default_factory=list)
    secondary_elements: list[OcdElement] = field(default_factory=list)
    corner_elements: list[OcdElement] = field(default_factory=list)
    start_elements: list[OcdElement] = field(default_factory=list)
    end_elements: list[OcdElement] = field(default_factory=list)

    _BODY: ClassVar[struct.Struct | None] = _LINE_SYMBOL
    _FIELDS: ClassVar[tuple[str | None, ...]] = _LINE_FIELDS

    def _unpack_tail(self, data: bytes, offset: int) -> None:
        groups = []
        for units in (self.smnpts, self.ssnpts, self.scnpts, self.sbnpts, self.senpts):
            groups.append(_read_elements(data, offset, units))
            offset += 8 * units
        (
            self.main_elements,
            self.secondary_elements,
            self.corner_elements,
            self.start_elements,
            self.end_elements,
        ) = groups

    def _pack_body(self) -> bytes:
        self.smnpts = pattern_units(self.main_elements)
        self.ssnpts = pattern_units(self.secondary_elements)
        self.scnpts = pattern_units(self.corner_elements)
        self.sbnpts = pattern_units(self.start_elements)
        self.senpts = pattern_units(self.end_elements)
        return super()._pack_body()

    def _pack_tail(self) -> bytes:
        return b"".join(
            _pack_elements(group)
            for group in (
                self.main_elements,
                self.secondary_elements,
                self.corner_elements,
                self.start_elements,
                self.end_elements,
            )
        )


_AREA_FIELDS = (
    "area_flags", "fill", "color", "hmode", "hcolor", "hwidth", "hdist", "hangle1",
    "hangle2", "pmode", "pwidth", "pheight", "pangle", None, "npts",
)


@dataclass
class OcdAreaSymbol(OcdSymbol):
    type: int = SYMBOL_AREA
    area_flags: int = 0
    fill: int = 0
    color: int = 0
    hmode: int = 0
    hcolor: int = 0
    hwidth: int = 0
    hdist: int = 0
    hangle1: int = 0
    hangle2: int = 0
    pmode: int = 0
    pwidth: int = 0
    pheight: int = 0
    pangle: int = 0
    npts: int = 0
    elements: list[OcdElement] = field(default_factory=list)

    _BODY: ClassVar[struct.Struct | None] = _AREA_SYMBOL
    _FIELDS: ClassVar[tuple[str | None, ...]] = _AREA_FIELDS

    def _unpack_tail(self, data: bytes, offset: int) -> None:
        self.elements = _read_elements(data, offset, self.npts)

    def _pack_body(self) -> bytes:
        self.npts = pattern_units(self.elements)
        return super()._pack_body()

    def _pack_tail(self) -> bytes:
        return _pack_elements(self.elements)


_TEXT_FIELDS = (
    "font", "color", "dpts", "bold", "italic", "charset", None,
    "cspace", "wspace", "halign", "lspace", "pspace", "indent1", "indent2", "ntabs",
    *([None] * MAX_TABS),
    "under", "ucolor", "uwidth", "udist", None,
    "fmode", None, "ffont", "fcolor", "fdpts", "fbold", "fitalic",
    "fleft", "fbottom", "fright", "ftop", "fdx", "fdy",
)
_TABS_START = 15


@dataclass
class OcdTextSymbol(OcdSymbol):
    type: int = SYMBOL_TEXT
    subtype: int = 1
    font: bytes = bytes(32)
    color: int = 0
    dpts: int = 0
    bold: int = 400
    italic: int = 0
    charset: int = 0
    cspace: int = 0
    wspace: int = 100
    halign: int = 0
    lspace: int = 0
    pspace: int = 0
    indent1: int = 0
    indent2: int = 0
    ntabs: int = 0
    tabs: list[int] = field(default_factory=lambda: [0] * MAX_TABS)
    under: int = 0
    ucolor: int = 0
    uwidth: int = 0
    udist: int = 0
    fmode: int = 0
    ffont: bytes = bytes(32)
    fcolor: int = 0
    fdpts: int = 0
    fbold: int = 0
    fitalic: int = 0
    fleft: int = 0
    fbottom: int = 0
    fright: int = 0
    ftop: int = 0
    fdx: int = 0
    fdy: int = 0

    _BODY: ClassVar[struct.Struct | None] = _TEXT_SYMBOL
    _FIELDS: ClassVar[tuple[str | None, ...]] = _TEXT_FIELDS

    def _unpack_body(self, data: bytes, offset: int) -> int:
        end = super()._unpack_body(data, offset)
        values = self._BODY.unpack_from(data, offset)
        self.tabs = list(values[_TABS_START : _TABS_START + MAX_TABS])
        return end

    def _pack_body(self) -> bytes:
        values: list[Any] = [0 if name is None else getattr(self, name) for name in self._FIELDS]
        tabs = (list(self.tabs) + [0] * MAX_TABS)[:MAX_TABS]
        values[_TABS_START : _TABS_START + MAX_TABS] = tabs
        return self._BODY.pack(*values)


_RECT_FIELDS = (
    "color", "width", "corner", "grid_flags", "cwidth", "cheight", None, None, "gcells",
    "gtext", None, None, None, None, None, None, None, None,
)


@dataclass
class OcdRectSymbol(OcdSymbol):
    type: int = SYMBOL_RECT
    color: int = 0
    width: int = 0
    corner: int = 0
    grid_flags: int = 0
    cwidth: int = 0
    cheight: int = 0
    gcells: int = 0
    gtext: bytes = bytes(4)

    _BODY: ClassVar[struct.Struct | None] = _RECT_SYMBOL
    _FIELDS: ClassVar[tuple[str | None, ...]] = _RECT_FIELDS

    def _pack_body(self) -> bytes:
        values = [0 if name is None else getattr(self, name) for name in self._FIELDS]
        values[11] = bytes(32)
        return self._BODY.pack(*values)


_SYMBOL_CLASSES: dict[int, type[OcdSymbol]] = {
    SYMBOL_POINT: OcdPointSymbol,
    SYMBOL_LINE: OcdLineSymbol,
    SYMBOL_AREA: OcdAreaSymbol,
    SYMBOL_TEXT: OcdTextSymbol,
    SYMBOL_RECT: OcdRectSymbol,
}


def unpack_symbol(data: bytes, offset: int) -> OcdSymbol:
    if offset + _BASE_SYMBOL.size > len(data):
        raise FormatError(f"symbol record at 0x{offset:X} runs past the end of the file")
    (
        _size,
        number,
        symbol_type,
        subtype,
        flags,
        extent,
        _selected,
        status,
        _r1,
        _r2,
        _file_pos,
        colors,
        name,
        icon,
    ) = _BASE_SYMBOL.unpack_from(data, offset)
    symbol_cls = _SYMBOL_CLASSES.get(symbol_type, OcdSymbol)
    symbol = symbol_cls(
        number=number,
        subtype=subtype,
        flags=flags,
        extent=extent,
        status=status,
        colors=colors,
        name=name,
        icon=icon,
    )
    symbol.type = symbol_type
    body_offset = symbol._unpack_body(data, offset + _BASE_SYMBOL.size)
    unpack_tail = getattr(symbol, "_unpack_tail", None)
    if unpack_tail is not None:
        unpack_tail(data, body_offset)
    return symbol


@dataclass
class OcdObject:
    symbol: int = 0
    type: int = OBJECT_POINT
    unicode: int = 0
    angle: int = 0
    points: list[OcdPoint] = field(default_factory=list)
    text: bytes = b""

    @property
    def ntext(self) -> int:
        return (len(self.text) + 7) // 8

    @classmethod
    def unpack_from(cls, data: bytes, offset: int) -> OcdObject:
        if offset + _OBJECT.size > len(data):
            raise FormatError(f"object record at 0x{offset:X} runs past the end of the file")
        symbol, otype, unicode, npts, ntext, angle, _r1, _r2, _r3 = _OBJECT.unpack_from(data, offset)
        points = _read_points(data, offset + _OBJECT.size, npts)
        text_offset = offset + _OBJECT.size + 8 * npts
        text = bytes(data[text_offset : text_offset + 8 * max(0, ntext)])
        return cls(symbol, otype, unicode, angle, points, text)

    def pack(self) -> bytes:
        if len(self.points) + self.ntext > MAX_OBJECT_UNITS:
            raise FormatError(
                f"object with {len(self.points)} coordinates and {self.ntext} text units "
                f"exceeds {MAX_OBJECT_UNITS} units"
            )
        padded = self.text + bytes(8 * self.ntext - len(self.text))
        header = _OBJECT.pack(
            self.symbol, self.type, self.unicode, len(self.points), self.ntext, self.angle, 0, 0, bytes(16)
        )
        return header + _pack_points(self.points) + padded


@dataclass(frozen=True)
class OcdString:
    type: int
    data: bytes


class OcdFile:
    """Read-only view of a legacy buffer."""

    def __init__(self, data: bytes) -> None:
        if len(data) < HEADER_END:
            raise FormatError("file is too short to be a legacy map")
        if data[:2] != MAGIC:
            raise FormatError("not a legacy map file (bad magic bytes)")
        self.data = data
        values = _HEADER.unpack_from(data, 0)
        self.header = OcdHeader(*values[1:11])

    @property
    def version(self) -> tuple[int, int]:
        return (self.header.major, self.header.minor)

    def colors(self) -> list[OcdColor]:
        count = _SYMBOL_HEADER.unpack_from(self.data, _HEADER.size)[0]
        if not 0 <= count <= MAX_COLORS:
            raise FormatError(f"invalid color count {count}")
        return [OcdColor.unpack_from(self.data, _COLOR_TABLE_OFFSET + i * _COLOR.size) for i in range(count)]

    def setup(self) -> OcdSetup:
        return OcdSetup.unpack_from(self.data, self.header.setup_pos, self.header.setup_size)

    def notes(self) -> bytes:
        start = self.header.info_pos
        if start <= 0 or self.header.info_size <= 0:
            return b""
        return bytes(self.data[start : start + self.header.info_size])

    def _iter_blocks(self, first: int, block_size: int) -> Iterator[int]:
        seen: set[int] = set()
        position = first
        while position > 0:
            if position in seen:
                raise FormatError(f"index block chain loops at 0x{position:X}")
            if position + block_size > len(self.data):
                raise FormatError(f"index block at 0x{position:X} runs past the end of the file")
            seen.add(position)
            yield position
            (position,) = _BLOCK_NEXT.unpack_from(self.data, position)

    def iter_symbols(self) -> Iterator[OcdSymbol]:
        for block in self._iter_blocks(self.header.first_symbol_block, _SYMBOL_BLOCK.size):
            positions = _SYMBOL_BLOCK.unpack_from(self.data, block)[1:]
            for position in positions:
                if position > 0:
                    yield unpack_symbol(self.data, position)

    def iter_objects(self) -> Iterator[OcdObject]:
        block_size = _BLOCK_NEXT.size + BLOCK_ENTRIES * _OBJECT_ENTRY.size
        for block in self._iter_blocks(self.header.first_object_block, block_size):
            for i in range(BLOCK_ENTRIES):
                entry = _OBJECT_ENTRY.unpack_from(self.data, block + _BLOCK_NEXT.size + i * _OBJECT_ENTRY.size)
                position = entry[4]
                if position > 0:
                    yield OcdObject.unpack_from(self.data, position)

    def iter_strings(self) -> Iterator[OcdString]:
        block_size = _BLOCK_NEXT.size + BLOCK_ENTRIES * _STRING_ENTRY.size
        for block in self._iter_blocks(self.header.first_string_block, block_size):
            for i in range(BLOCK_ENTRIES):
                position, length, string_type, _obj = _STRING_ENTRY.unpack_from(
                    self.data, block + _BLOCK_NEXT.size + i * _STRING_ENTRY.size
                )
                if string_type == 0 or length <= 0 or position <= 0:
                    continue
                yield OcdString(string_type, bytes(self.data[position : position + length]))


@dataclass
class OcdBuilder:
    """Assembles a legacy buffer from records."""

    header: OcdHeader = field(default_factory=OcdHeader)
    setup: OcdSetup = field(default_factory=OcdSetup)
    notes: bytes = b""
    colors: list[OcdColor] = field(default_factory=list)
    symbols: list[OcdSymbol] = field(default_factory=list)
    objects: list[OcdObject] = field(default_factory=list)
    strings: list[OcdString] = field(default_factory=list)

    def add_symbol(self, symbol: OcdSymbol) -> OcdSymbol:
        self.symbols.append(symbol)
        return symbol

    def to_bytes(self) -> bytes:
        if len(self.colors) > MAX_COLORS:
            raise FormatError(f"cannot store {len(self.colors)} colors, the limit is {MAX_COLORS}")
        out = bytearray(HEADER_END)
        struct.pack_into("<h", out, _HEADER.size, len(self.colors))
        for i, color in enumerate(self.colors):
            offset = _COLOR_TABLE_OFFSET + i * _COLOR.size
            out[offset : offset + _COLOR.size] = color.pack()

        header = self.header
        header.setup_pos = len(out)
        header.setup_size = SETUP_SIZE
        out += self.setup.pack()

        if self.notes:
            header.info_pos = len(out)
            header.info_size = len(self.notes)
            out += self.notes
        else:
            header.info_pos = header.info_size = 0

        header.first_symbol_block = self._append_symbols(out)
        header.first_object_block = self._append_objects(out)
        header.first_string_block = self._append_strings(out)
        out[: _HEADER.size] = header.pack()
        return bytes(out)

    def _append_symbols(self, out: bytearray) -> int:
        first = 0
        previous_block = 0
        for start in range(0, len(self.symbols), BLOCK_ENTRIES):
            chunk = self.symbols[start : start + BLOCK_ENTRIES]
            block = len(out)
            out += bytes(_SYMBOL_BLOCK.size)
            if previous_block:
                _BLOCK_NEXT.pack_into(out, previous_block, block)
            else:
                first = block
            previous_block = block
            for i, symbol in enumerate(chunk):
                struct.pack_into("<i", out, block + _BLOCK_NEXT.size + 4 * i, len(out))
                out += symbol.pack()
        return first

    def _append_objects(self, out: bytearray) -> int:
        extents = {symbol.number: max(0, symbol.extent) for symbol in self.symbols}
        first = 0
        previous_block = 0
        block_size = _BLOCK_NEXT.size + BLOCK_ENTRIES * _OBJECT_ENTRY.size
        for start in range(0, len(self.objects), BLOCK_ENTRIES):
            chunk = self.objects[start : start + BLOCK_ENTRIES]
            block = len(out)
            out += bytes(block_size)
            if previous_block:
                _BLOCK_NEXT.pack_into(out, previous_block, block)
            else:
                first = block
            previous_block = block
            for i, obj in enumerate(chunk):
                extent = extents.get(obj.symbol, 0)
                xs = [point.coord_x for point in obj.points] or [0]
                ys = [point.coord_y for point in obj.points] or [0]
                _OBJECT_ENTRY.pack_into(
                    out,
                    block + _BLOCK_NEXT.size + i * _OBJECT_ENTRY.size,
                    _to_i32((min(xs) - extent) << 8),
                    _to_i32((min(ys) - extent) << 8),
                    _to_i32((max(xs) + extent) << 8),
                    _to_i32((max(ys) + extent) << 8),
                    len(out),
                    len(obj.points) + obj.ntext,
                    obj.symbol,
                )
                out += obj.pack()
        return first

    def _append_strings(self, out: bytearray) -> int:
        first = 0
        previous_block = 0
        block_size = _BLOCK_NEXT.size + BLOCK_ENTRIES * _STRING_ENTRY.size
        for start in range(0, len(self.strings), BLOCK_ENTRIES):
            chunk = self.strings[start : start + BLOCK_ENTRIES]
            block = len(out)
            out += bytes(block_size)
            if previous_block:
                _BLOCK_NEXT.pack_into(out, previous_block, block)
            else:
                first = block
            previous_block = block
            for i, string in enumerate(chunk):
                _STRING_ENTRY.pack_into(
                    out,
                    block + _BLOCK_NEXT.size + i * _STRING_ENTRY.size,
                    len(out),
                    len(string.data),
                    string.type,
                    0,
                )
                out += string.data
        return first
