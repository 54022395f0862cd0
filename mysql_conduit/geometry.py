from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Any, List, Optional

from mysql_conduit.codecs import Codec, skip_len_bytes
from mysql_conduit.errors import FormatError
from mysql_conduit.packet import Packet
from mysql_conduit.types import WireType
from mysql_conduit.utils import escape_bytes
from mysql_conduit.values import DatabaseValue, TypeInfo, type_info

# SRID (4) + byte order (1) + WKB type (4) + X (8) + Y (8)
GEOMETRY_LENGTH = 25
# Same thing without the SRID
POINT_LENGTH = 21

WKB_POINT = 1
MARKERS = ("SRID", "POINT(", "POINT (")


def _format_coordinate(value: float) -> str:
    s = repr(value)
    return s[:-2] if s.endswith(".0") else s


def _to_float(s: str) -> Optional[float]:
    try:
        return float(s)
    except ValueError:
        return None


def _to_int(s: str) -> int:
    return int(s) if s.strip().lstrip("-").isdigit() else 0


@dataclass(frozen=True)
class Geometry:
    """
    A spatial point.

    Args:
        x: X coordinate
        y: Y coordinate
        srid: spatial reference system id, 0 if unset
        is_null: True for the null geometry produced by unparsable text
    """

    x: float = 0.0
    y: float = 0.0
    srid: int = 0
    is_null: bool = False

    @classmethod
    def null(cls) -> Geometry:
        return cls(is_null=True)

    @classmethod
    def from_bytes(cls, data: bytes) -> Geometry:
        """Decode a 25 byte frame, or a 21 byte point without the SRID"""
        if len(data) == GEOMETRY_LENGTH:
            srid = struct.unpack_from("<i", data)[0]
            point = data[4:]
        elif len(data) == POINT_LENGTH:
            srid = 0
            point = data
        else:
            raise FormatError(f"Invalid geometry length {len(data)}")

        order = "<" if point[0] == 1 else ">"
        x, y = struct.unpack_from(f"{order}dd", point, 5)
        return cls(x, y, srid)

    @classmethod
    def parse(cls, text: str) -> Geometry:
        if not any(marker in text for marker in MARKERS):
            raise FormatError(
                f"String does not contain a valid geometry value: {text!r}"
            )
        return cls.try_parse(text)

    @classmethod
    def try_parse(cls, text: str) -> Geometry:
        """Parse `SRID=n;POINT(x y)` or `POINT(x y)`, or return a null geometry"""
        srid = 0
        point = text
        if ";" in text:
            parts = text.split(";")
            point = parts[1]
            srid = _to_int(parts[0].replace("SRID=", ""))

        coords = point.replace("POINT (", "").replace("POINT(", "").replace(")", "")
        coords_list = coords.split(" ")
        if len(coords_list) > 1:
            x = _to_float(coords_list[0])
            y = _to_float(coords_list[1])
            if x is not None and y is not None:
                return cls(x, y, srid)
        return cls.null()

    def to_bytes(self) -> bytes:
        if self.is_null:
            raise FormatError("A null geometry has no binary form")
        return struct.pack("<iBIdd", self.srid, 1, WKB_POINT, self.x, self.y)

    @property
    def wkt(self) -> str:
        if self.is_null:
            return ""
        return f"POINT({_format_coordinate(self.x)} {_format_coordinate(self.y)})"

    def __str__(self) -> str:
        if self.srid and not self.is_null:
            return f"SRID={self.srid};{self.wkt}"
        return self.wkt


def to_geometry_bytes(value: Any) -> bytes:
    if isinstance(value, Geometry):
        return value.to_bytes()
    if isinstance(value, (bytes, bytearray)):
        data = bytes(value)
        if len(data) == POINT_LENGTH:
            return bytes(4) + data
        if len(data) != GEOMETRY_LENGTH:
            raise FormatError(f"Invalid geometry length {len(data)}")
        return data
    return Geometry.try_parse(str(value)).to_bytes()


class GeometryCodec(Codec):
    """GEOMETRY columns holding points"""

    def __init__(self, wire_type: WireType = WireType.GEOMETRY):
        super().__init__(wire_type)

    def write(
        self, packet: Packet, value: Any, binary: bool = True, length: int = 0
    ) -> None:
        data = to_geometry_bytes(value)
        if binary:
            packet.write_len_bytes(data)
        else:
            packet.write(b"_binary '" + escape_bytes(data) + b"'")

    def read(
        self, packet: Packet, length: int = -1, is_null: bool = False
    ) -> DatabaseValue:
        if is_null:
            return self.null()
        if length == -1:
            length = packet.read_field_length()
            if length == -1:
                return self.null()
        return DatabaseValue(self.wire_type, Geometry.from_bytes(packet.read(length)))

    def skip(self, packet: Packet) -> None:
        skip_len_bytes(packet)

    @classmethod
    def describe_type(cls, rows: List[TypeInfo]) -> None:
        rows.append(
            type_info(
                "GEOMETRY",
                WireType.GEOMETRY,
                column_size=GEOMETRY_LENGTH,
                is_fixed_length=False,
            )
        )
