from __future__ import annotations

import codecs
import math

from .errors import WarningLog

TRUNCATION_MARKER = "|||"


def decode_rotation(tenths_of_degree: int) -> float:
    """Counter-clockwise tenths of a degree to radians in [0, 2*pi).

    Negative angles are never returned; hatch pattern rendering relies on it.
    """
    return math.pi / 1800 * (int(tenths_of_degree) % 3600)


def encode_rotation(radians: float) -> int:
    return round(radians * 1800 / math.pi)


def _trunc_div(value: int, divisor: int) -> int:
    quotient = abs(value) // abs(divisor)
    return quotient if (value >= 0) == (divisor > 0) else -quotient


def decode_size(value: int) -> int:
    """Hundredths of a millimeter to 1/1000 mm."""
    return int(value) * 10


def encode_size(value: float) -> int:
    """1/1000 mm to hundredths of a millimeter, truncating toward zero."""
    if isinstance(value, float):
        return int(value / 10)
    return _trunc_div(value, 10)


def decode_point(x: int, y: int) -> tuple[int, int]:
    return (int(x) * 10, int(y) * -10)


def encode_point(raw_x: int, raw_y: int) -> tuple[int, int]:
    return (_trunc_div(int(raw_x), 10), _trunc_div(int(raw_y), -10))


class StringCodec:
    """Text conversion with the configured single-byte and double-byte encodings."""

    def __init__(
        self,
        narrow: str = "cp1252",
        wide: str = "utf-16-le",
        warnings: WarningLog | None = None,
    ) -> None:
        self.warnings = warnings if warnings is not None else WarningLog()
        self.narrow = narrow
        self.wide = wide
        self.set_encodings(narrow, wide)

    def set_encodings(self, narrow: str, wide: str) -> None:
        # Unknown names raise LookupError here rather than midway through a file.
        self.narrow = codecs.lookup(narrow).name
        self.wide = codecs.lookup(wide).name

    def decode_pascal(self, data: bytes) -> str:
        if not data:
            return ""
        length = data[0]
        return data[1 : 1 + length].decode(self.narrow, errors="replace")

    def encode_pascal(self, text: str, field_width: int) -> bytes:
        if not 1 <= field_width <= 256:
            raise ValueError(f"invalid pascal string field width: {field_width}")
        max_size = field_width - 1
        data = text.encode(self.narrow, errors="replace")
        if len(data) > max_size:
            self._warn_truncation(text, max_size)
            data = data[:max_size]
        return bytes([len(data)]) + data + bytes(max_size - len(data))

    def decode_cstring(self, data: bytes, max_len: int, ignore_first_newline: bool = False) -> str:
        limit = min(max_len, len(data))
        end = data.find(b"\x00", 0, limit)
        if end < 0:
            end = limit
        start = 0
        if ignore_first_newline and limit >= 2 and data[0:2] == b"\r\n":
            start = 2
            end = max(end, start)
        return data[start:end].decode(self.narrow, errors="replace")

    def encode_cstring(self, text: str, field_width: int) -> bytes:
        if len(text) + 1 > field_width:
            self._warn_truncation(text, field_width - 1)
        data = text.encode(self.narrow, errors="replace")[: field_width - 1]
        return data + b"\x00"

    def decode_wide_cstring(self, data: bytes, max_len: int, ignore_first_newline: bool = False) -> str:
        limit = min(max_len, len(data)) // 2
        end = limit
        for index in range(limit):
            if data[2 * index] == 0 and data[2 * index + 1] == 0:
                end = index
                break
        start = 0
        if ignore_first_newline and limit >= 2 and data[0:1] == b"\r" and data[2:3] == b"\n":
            start = 2
            end = max(end, start)
        return data[2 * start : 2 * end].decode(self.wide, errors="replace")

    def encode_wide_cstring(self, text: str, field_width: int) -> bytes:
        """Zero-terminated double-byte text in legacy line break convention."""
        exported = "\n" + text if text.startswith("\n") else text
        exported = exported.replace("\n", "\r\n")
        if 2 * (len(exported) + 1) > field_width:
            self._warn_truncation(exported, max(0, (field_width - 2) // 2))
        data = exported.encode(self.wide, errors="replace")
        max_payload = max(0, field_width - 2)
        max_payload -= max_payload % 2
        return data[:max_payload] + b"\x00\x00"

    def _warn_truncation(self, text: str, position: int) -> None:
        marked = text[:position] + TRUNCATION_MARKER + text[position:]
        self.warnings.add(f"String truncated (truncation marked with three '|'): {marked}")
