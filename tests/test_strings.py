from __future__ import annotations

import math

import pytest

from ezocd.errors import WarningLog
from ezocd.records import OcdPoint
from ezocd.strings import (
    TRUNCATION_MARKER,
    StringCodec,
    decode_point,
    decode_rotation,
    decode_size,
    encode_point,
    encode_rotation,
    encode_size,
)


def test_encode_pascal_truncates_to_field_width_and_warns() -> None:
    warnings = WarningLog()
    codec = StringCodec(warnings=warnings)

    data = codec.encode_pascal("x" * 300, 32)

    assert len(data) == 32
    assert data[0] == 31
    assert codec.decode_pascal(data) == "x" * 31
    assert len(warnings) == 1
    assert TRUNCATION_MARKER in warnings.messages[0]


def test_encode_pascal_pads_short_text_without_warning() -> None:
    warnings = WarningLog()
    codec = StringCodec(warnings=warnings)

    data = codec.encode_pascal("Road", 32)

    assert data[:5] == b"\x04Road"
    assert data[5:] == bytes(27)
    assert not warnings


def test_encode_pascal_rejects_invalid_width() -> None:
    with pytest.raises(ValueError):
        StringCodec().encode_pascal("a", 0)


def test_decode_pascal_uses_narrow_encoding() -> None:
    codec = StringCodec(narrow="cp1252")
    assert codec.decode_pascal(b"\x03St\xe0") == "Stà"
    codec.set_encodings("latin-1", "utf-16-le")
    assert codec.narrow == "iso8859-1"


def test_unknown_encoding_is_rejected_up_front() -> None:
    with pytest.raises(LookupError):
        StringCodec(narrow="no-such-encoding")


def test_cstring_stops_at_terminator_and_skips_leading_crlf() -> None:
    codec = StringCodec()
    assert codec.decode_cstring(b"abc\x00def", 7) == "abc"
    assert codec.decode_cstring(b"abcdef", 3) == "abc"
    assert codec.decode_cstring(b"\r\nabc\x00", 6, ignore_first_newline=True) == "abc"
    assert codec.decode_cstring(b"\r\nabc\x00", 6) == "\r\nabc"


def test_encode_cstring_truncates_with_warning() -> None:
    warnings = WarningLog()
    codec = StringCodec(warnings=warnings)

    assert codec.encode_cstring("abc", 4) == b"abc\x00"
    assert not warnings
    assert codec.encode_cstring("abc", 2) == b"a\x00"
    assert len(warnings) == 1


def test_wide_cstring_round_trip_uses_crlf() -> None:
    codec = StringCodec()

    data = codec.encode_wide_cstring("a\nb", 100)

    assert data == "a\r\nb".encode("utf-16-le") + b"\x00\x00"
    decoded = codec.decode_wide_cstring(data, len(data), ignore_first_newline=True)
    assert decoded == "a\r\nb"


def test_wide_cstring_keeps_leading_newline_of_text() -> None:
    codec = StringCodec()

    data = codec.encode_wide_cstring("\nfoo", 100)
    decoded = codec.decode_wide_cstring(data, len(data), ignore_first_newline=True)

    assert decoded.replace("\r\n", "\n") == "\nfoo"


def test_encode_wide_cstring_truncates_to_field() -> None:
    warnings = WarningLog()
    codec = StringCodec(warnings=warnings)

    data = codec.encode_wide_cstring("abcdef", 8)

    assert len(data) == 8
    assert data.endswith(b"\x00\x00")
    assert len(warnings) == 1


def test_rotation_is_normalized_to_positive_radians() -> None:
    assert decode_rotation(0) == 0.0
    assert decode_rotation(900) == pytest.approx(math.pi / 2)
    assert decode_rotation(-900) == pytest.approx(3 * math.pi / 2)
    assert decode_rotation(3600) == 0.0
    assert encode_rotation(math.pi) == 1800


def test_sizes_scale_by_ten_and_truncate_toward_zero() -> None:
    assert decode_size(25) == 250
    assert encode_size(259) == 25
    assert encode_size(-15) == -1
    assert encode_size(0.5 * 155) == 7


def test_points_flip_the_y_axis() -> None:
    assert decode_point(12, 34) == (120, -340)
    assert encode_point(120, -340) == (12, 34)
    assert encode_point(-15, 25) == (-1, -2)


def test_rotation_round_trips_every_tenth_of_a_degree() -> None:
    for tenths in range(-3600, 7201):
        radians = decode_rotation(tenths)
        assert 0.0 <= radians < 2 * math.pi
        assert encode_rotation(radians) == tenths % 3600


def test_size_survives_decode_then_encode() -> None:
    for value in range(-2000, 2001):
        assert encode_size(decode_size(value)) == value
        assert encode_size(float(decode_size(value))) == value


@pytest.mark.parametrize(
    ("raw", "legacy"),
    [(9, 0), (-9, 0), (10, 1), (-10, -1), (19, 1), (-19, -1), (9.99, 0), (-9.99, 0), (-10.0, -1)],
)
def test_size_truncation_boundary(raw: float, legacy: int) -> None:
    assert encode_size(raw) == legacy


def test_point_survives_decode_then_encode() -> None:
    for x, y in ((0, 0), (1, -1), (-8388608, 8388607), (123, -4567)):
        assert encode_point(*decode_point(x, y)) == (x, y)


def test_point_words_keep_flags_and_signed_coordinates() -> None:
    for flags in range(256):
        for x, y in ((0, 0), (-1, 1), (123456, -654321), (-8388608, 8388607)):
            point = OcdPoint.from_coords(x, y, flags, 255 - flags)
            assert (point.coord_x, point.coord_y) == (x, y)
            assert (point.x_flags, point.y_flags) == (flags, 255 - flags)
