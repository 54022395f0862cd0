import struct

import pytest

from mysql_conduit.errors import FormatError
from mysql_conduit.geometry import Geometry, GeometryCodec, to_geometry_bytes
from mysql_conduit.packet import Packet


def test_parse() -> None:
    assert Geometry.parse("POINT(1 1)") == Geometry(1.0, 1.0)
    assert Geometry.parse("POINT (1.5 -2)") == Geometry(1.5, -2.0)
    assert Geometry.parse("SRID=4326;POINT(10 20)") == Geometry(10.0, 20.0, 4326)


def test_parse_invalid() -> None:
    with pytest.raises(FormatError):
        Geometry.parse("LINESTRING(0 0, 1 1)")


def test_try_parse() -> None:
    assert Geometry.try_parse("POINT(a b)").is_null
    assert Geometry.try_parse("garbage").is_null
    assert Geometry.try_parse("SRID=x;POINT(1 2)") == Geometry(1.0, 2.0, 0)


def test_str() -> None:
    assert str(Geometry(1.0, 1.0)) == "POINT(1 1)"
    assert str(Geometry(1.5, -2.25, 4326)) == "SRID=4326;POINT(1.5 -2.25)"
    assert str(Geometry.parse(str(Geometry(3.0, 4.0, 7)))) == "SRID=7;POINT(3 4)"
    assert str(Geometry.null()) == ""

    text = "SRID=4326;POINT(12.5 -3.25)"
    assert str(Geometry.parse(text)) == text


def test_bytes() -> None:
    point = Geometry(1.0, 2.0, 4326)
    data = point.to_bytes()
    assert len(data) == 25
    assert data == struct.pack("<iBIdd", 4326, 1, 1, 1.0, 2.0)
    assert Geometry.from_bytes(data) == point

    # A bare WKB point has no SRID
    assert Geometry.from_bytes(data[4:]) == Geometry(1.0, 2.0)
    # Big-endian WKB
    big = struct.pack(">BIdd", 0, 1, 1.0, 2.0)
    assert Geometry.from_bytes(big) == Geometry(1.0, 2.0)

    with pytest.raises(FormatError):
        Geometry.from_bytes(b"\x00" * 10)
    with pytest.raises(FormatError):
        Geometry.null().to_bytes()


def test_to_geometry_bytes() -> None:
    frame = Geometry(1.0, 2.0).to_bytes()
    assert to_geometry_bytes(frame) == frame
    assert to_geometry_bytes(frame[4:]) == frame
    assert to_geometry_bytes("POINT(1 2)") == frame
    with pytest.raises(FormatError):
        to_geometry_bytes(b"\x01\x02")


def test_codec() -> None:
    codec = GeometryCodec()
    p = Packet()
    codec.write(p, "SRID=4326;POINT(1 2)")
    data = p.getvalue()
    assert data[0] == 25
    assert len(data) == 26
    assert codec.read(Packet(data)).value == Geometry(1.0, 2.0, 4326)

    p = Packet()
    codec.write(p, Geometry(0.0, 0.0), binary=False)
    assert p.getvalue().startswith(b"_binary '")
