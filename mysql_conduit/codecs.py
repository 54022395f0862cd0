"""
Value codecs for the scalar column types.

A codec converts between native Python values and the binary or text protocol
encoding of a column. Each one exposes the same four operations:

* `write` appends a value to a packet
* `read` decodes one value. A `length` of -1 means the length (or fixed width)
  comes from the wire, otherwise exactly `length` bytes of text follow.
* `skip` advances past a binary encoded value without decoding it
* `describe_type` appends DataTypes metadata rows to a list
"""

from __future__ import annotations

import abc
import math
import re
import struct
import sys
import uuid
from typing import Any, Dict, List, Tuple

from mysql_conduit.errors import ErrorCode, FormatError, MysqlError
from mysql_conduit.packet import Packet
from mysql_conduit.types import WireType
from mysql_conduit.utils import escape_bytes, escape_string
from mysql_conduit.values import DatabaseValue, TypeInfo, type_info


class Codec(abc.ABC):
    def __init__(self, wire_type: WireType):
        self.wire_type = wire_type

    @abc.abstractmethod
    def write(
        self, packet: Packet, value: Any, binary: bool = True, length: int = 0
    ) -> None:
        """
        Encode `value` into `packet`.

        Args:
            packet: destination packet
            value: native value to encode
            binary: binary protocol encoding if True, otherwise a SQL literal
            length: maximum length for variable length values. 0 means no limit.
        """

    @abc.abstractmethod
    def read(
        self, packet: Packet, length: int = -1, is_null: bool = False
    ) -> DatabaseValue:
        """
        Decode one value from `packet`.

        Args:
            packet: source packet
            length: -1 to read a binary encoded value, otherwise the number of
                bytes of text encoded value that follow
            is_null: return a null value without touching the packet
        """

    @abc.abstractmethod
    def skip(self, packet: Packet) -> None:
        """Move past one binary encoded value"""

    @classmethod
    def describe_type(cls, rows: List[TypeInfo]) -> None:
        """Append the DataTypes metadata rows for this codec's types"""

    def null(self) -> DatabaseValue:
        return DatabaseValue.null(self.wire_type)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.wire_type.name})"


def skip_len_bytes(packet: Packet) -> None:
    length = packet.read_field_length()
    packet.position += max(length, 0)


def _truncate(value: Any, length: int) -> Any:
    return value[:length] if length > 0 else value


# wire type: (type name, width, signed)
INTEGER_TYPES: Dict[WireType, Tuple[str, int, bool]] = {
    WireType.BYTE: ("TINYINT", 1, True),
    WireType.UBYTE: ("TINYINT", 1, False),
    WireType.INT16: ("SMALLINT", 2, True),
    WireType.UINT16: ("SMALLINT", 2, False),
    WireType.INT24: ("MEDIUMINT", 3, True),
    WireType.UINT24: ("MEDIUMINT", 3, False),
    WireType.INT32: ("INT", 4, True),
    WireType.UINT32: ("INT", 4, False),
    WireType.YEAR: ("YEAR", 2, False),
    WireType.INT64: ("BIGINT", 8, True),
    WireType.UINT64: ("BIGINT", 8, False),
}


class IntegerCodec(Codec):
    """
    Fixed width integers, signed or unsigned.

    Args:
        wire_type: one of the integer wire types
        treat_as_boolean: read values as bool, e.g. for TINYINT(1) columns
    """

    def __init__(self, wire_type: WireType, treat_as_boolean: bool = False):
        super().__init__(wire_type)
        self.type_name, self.width, self.signed = INTEGER_TYPES[wire_type]
        self.treat_as_boolean = treat_as_boolean
        if self.signed:
            self.min_value = -(2 ** (self.width * 8 - 1))
            self.max_value = 2 ** (self.width * 8 - 1) - 1
        else:
            self.min_value = 0
            self.max_value = 2 ** (self.width * 8) - 1

    def write(
        self, packet: Packet, value: Any, binary: bool = True, length: int = 0
    ) -> None:
        i = int(value)
        if not self.min_value <= i <= self.max_value:
            raise MysqlError(
                f"Value {i} is out of range for {self.type_name}",
                ErrorCode.DATA_OUT_OF_RANGE,
            )
        if not binary:
            packet.write_string(str(i))
        elif self.signed:
            packet.write_integer(i, self.width)
        else:
            packet.write_uinteger(i, self.width)

    def read(
        self, packet: Packet, length: int = -1, is_null: bool = False
    ) -> DatabaseValue:
        if is_null:
            return self.null()
        if length == -1:
            if self.signed:
                i = packet.read_integer(self.width)
            else:
                i = packet.read_uinteger(self.width)
        else:
            i = int(packet.read_string(length))
        return DatabaseValue(self.wire_type, bool(i) if self.treat_as_boolean else i)

    def skip(self, packet: Packet) -> None:
        packet.position += self.width

    @classmethod
    def describe_type(cls, rows: List[TypeInfo]) -> None:
        for wire_type, (name, _, signed) in INTEGER_TYPES.items():
            is_year = wire_type == WireType.YEAR
            rows.append(
                type_info(
                    name if signed or is_year else f"{name} UNSIGNED",
                    wire_type,
                    is_auto_incrementable=not is_year,
                    is_unsigned=not signed and not is_year,
                )
            )


class BitCodec(Codec):
    """
    BIT(n) columns, up to 64 bits.

    Values travel as big-endian byte runs. Some servers send text protocol
    values as a decimal string instead, set `read_as_string` to handle that.
    """

    def __init__(
        self, wire_type: WireType = WireType.BIT, read_as_string: bool = False
    ):
        super().__init__(wire_type)
        self.read_as_string = read_as_string

    def write(
        self, packet: Packet, value: Any, binary: bool = True, length: int = 0
    ) -> None:
        i = int.from_bytes(value, "big") if isinstance(value, bytes) else int(value)
        if not 0 <= i < 2**64:
            raise MysqlError(
                f"Value {i} is out of range for BIT", ErrorCode.DATA_OUT_OF_RANGE
            )
        if binary:
            packet.write_len_bytes(i.to_bytes(8, "big"))
        else:
            packet.write_string(str(i))

    def read(
        self, packet: Packet, length: int = -1, is_null: bool = False
    ) -> DatabaseValue:
        if is_null:
            return self.null()
        if length == -1:
            length = packet.read_field_length()
            if length == -1:
                return self.null()
        if self.read_as_string:
            return DatabaseValue(self.wire_type, int(packet.read_string(length)))
        return DatabaseValue(self.wire_type, int.from_bytes(packet.read(length), "big"))

    def skip(self, packet: Packet) -> None:
        skip_len_bytes(packet)

    @classmethod
    def describe_type(cls, rows: List[TypeInfo]) -> None:
        rows.append(
            type_info("BIT", WireType.BIT, column_size=64, is_unsigned=True)
        )


# Plain ASCII numeric literal, as the server parses it
DECIMAL_LITERAL = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?", re.ASCII)


class DecimalCodec(Codec):
    """
    DECIMAL columns. Values are exact digit strings, never floats.
    """

    def __init__(self, wire_type: WireType = WireType.NEW_DECIMAL):
        super().__init__(wire_type)

    @staticmethod
    def to_text(value: Any) -> str:
        if isinstance(value, float):
            value = repr(value)
        text = str(value).strip()
        if not DECIMAL_LITERAL.fullmatch(text):
            raise FormatError(f"Invalid decimal value: {value!r}")
        return text

    def write(
        self, packet: Packet, value: Any, binary: bool = True, length: int = 0
    ) -> None:
        text = self.to_text(value)
        if binary:
            packet.write_len_string(text)
        else:
            packet.write_string(text)

    def read(
        self, packet: Packet, length: int = -1, is_null: bool = False
    ) -> DatabaseValue:
        if is_null:
            return self.null()
        if length == -1:
            length = packet.read_field_length()
            if length == -1:
                return self.null()
        return DatabaseValue(self.wire_type, packet.read_string(length))

    def skip(self, packet: Packet) -> None:
        skip_len_bytes(packet)

    @classmethod
    def describe_type(cls, rows: List[TypeInfo]) -> None:
        rows.append(
            type_info(
                "DECIMAL",
                WireType.NEW_DECIMAL,
                create_format="DECIMAL({0},{1})",
                create_parameters="precision,scale",
            )
        )


def parse_double(text: str) -> float:
    """
    Parse a floating point value sent as text.

    Old servers can send values outside of the double range. Those map to the
    largest finite double with the sign of the text.
    """
    try:
        d = float(text)
    except ValueError as e:
        raise FormatError(f"Invalid floating point value: {text!r}") from e
    if math.isinf(d):
        if text.lstrip().startswith("-"):
            return -sys.float_info.max
        return sys.float_info.max
    return d


class FloatingPointCodec(Codec):
    """DOUBLE (8 byte) and FLOAT (4 byte) columns"""

    FORMATS = {WireType.DOUBLE: "<d", WireType.FLOAT: "<f"}

    def __init__(self, wire_type: WireType = WireType.DOUBLE):
        super().__init__(wire_type)
        self.format = self.FORMATS[wire_type]
        self.width = struct.calcsize(self.format)

    def write(
        self, packet: Packet, value: Any, binary: bool = True, length: int = 0
    ) -> None:
        d = float(value)
        if binary:
            try:
                data = struct.pack(self.format, d)
            except (OverflowError, struct.error) as e:
                raise MysqlError(
                    f"Value {d} is out of range for {self.wire_type.name}",
                    ErrorCode.DATA_OUT_OF_RANGE,
                ) from e
            packet.write(data)
        else:
            packet.write_string(repr(d))

    def read(
        self, packet: Packet, length: int = -1, is_null: bool = False
    ) -> DatabaseValue:
        if is_null:
            return self.null()
        if length == -1:
            return DatabaseValue(
                self.wire_type, struct.unpack(self.format, packet.read(self.width))[0]
            )
        return DatabaseValue(self.wire_type, parse_double(packet.read_string(length)))

    def skip(self, packet: Packet) -> None:
        packet.position += self.width

    @classmethod
    def describe_type(cls, rows: List[TypeInfo]) -> None:
        rows.append(type_info("DOUBLE", WireType.DOUBLE))
        rows.append(type_info("FLOAT", WireType.FLOAT))


STRING_TYPES = [
    # type name, wire type, sized
    ("CHAR", WireType.STRING, True),
    ("NCHAR", WireType.STRING, True),
    ("VARCHAR", WireType.VARCHAR, True),
    ("NVARCHAR", WireType.VARCHAR, True),
    ("SET", WireType.SET, False),
    ("ENUM", WireType.ENUM, False),
    ("TINYTEXT", WireType.TINY_TEXT, False),
    ("TEXT", WireType.TEXT, False),
    ("MEDIUMTEXT", WireType.MEDIUM_TEXT, False),
    ("LONGTEXT", WireType.LONG_TEXT, False),
]


class StringCodec(Codec):
    """Character columns: CHAR, VARCHAR, the TEXT family, ENUM and SET"""

    def __init__(self, wire_type: WireType = WireType.VARCHAR):
        super().__init__(wire_type)

    def write(
        self, packet: Packet, value: Any, binary: bool = True, length: int = 0
    ) -> None:
        s = _truncate(str(value), length)
        if binary:
            packet.write_len_string(s)
        else:
            packet.write_string(f"'{escape_string(s)}'")

    def read(
        self, packet: Packet, length: int = -1, is_null: bool = False
    ) -> DatabaseValue:
        if is_null:
            return self.null()
        if length == -1:
            length = packet.read_field_length()
            if length == -1:
                return self.null()
        return DatabaseValue(self.wire_type, packet.read_string(length))

    def skip(self, packet: Packet) -> None:
        skip_len_bytes(packet)

    @classmethod
    def describe_type(cls, rows: List[TypeInfo]) -> None:
        for name, wire_type, sized in STRING_TYPES:
            rows.append(
                type_info(
                    name,
                    wire_type,
                    create_format=f"{name}({{0}})" if sized else name,
                    create_parameters="size" if sized else None,
                    is_fixed_length=False,
                    is_searchable_with_like=True,
                    literal_prefix="'",
                    literal_suffix="'",
                    is_literal_supported=True,
                )
            )


BINARY_TYPES = [
    # type name, wire type, column size, create format
    ("BLOB", WireType.BLOB, 65535, None),
    ("TINYBLOB", WireType.TINY_BLOB, 255, None),
    ("MEDIUMBLOB", WireType.MEDIUM_BLOB, 16777215, None),
    ("LONGBLOB", WireType.LONG_BLOB, 4294967295, None),
    ("BINARY", WireType.BINARY, 255, "binary({0})"),
    ("VARBINARY", WireType.VARBINARY, 65535, "varbinary({0})"),
]


class BinaryCodec(Codec):
    """Byte columns: BINARY, VARBINARY and the BLOB family"""

    def __init__(self, wire_type: WireType = WireType.BLOB):
        super().__init__(wire_type)

    def write(
        self, packet: Packet, value: Any, binary: bool = True, length: int = 0
    ) -> None:
        if isinstance(value, str):
            value = packet.encode(value)
        data = _truncate(bytes(value), length)
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
        return DatabaseValue(self.wire_type, packet.read(length))

    def skip(self, packet: Packet) -> None:
        skip_len_bytes(packet)

    @classmethod
    def describe_type(cls, rows: List[TypeInfo]) -> None:
        for i, (name, wire_type, size, create_format) in enumerate(BINARY_TYPES):
            rows.append(
                TypeInfo(
                    type_name=name,
                    provider_type=wire_type,
                    column_size=size,
                    create_format=create_format,
                    create_parameters="length" if create_format else None,
                    is_fixed_length=i >= 4,
                    is_fixed_precision_scale=False,
                    is_long=i < 4,
                    is_literal_supported=True,
                    literal_prefix="0x",
                )
            )


class GuidCodec(Codec):
    """
    UUIDs stored as CHAR(36) text, or as BINARY(16) when `old_guids` is set.
    """

    def __init__(self, wire_type: WireType = WireType.GUID, old_guids: bool = False):
        super().__init__(wire_type)
        self.old_guids = old_guids

    @staticmethod
    def to_uuid(value: Any) -> uuid.UUID:
        if isinstance(value, uuid.UUID):
            return value
        try:
            if isinstance(value, bytes):
                return uuid.UUID(bytes=value)
            return uuid.UUID(str(value))
        except ValueError as e:
            raise FormatError(f"Invalid GUID value: {value!r}") from e

    def write(
        self, packet: Packet, value: Any, binary: bool = True, length: int = 0
    ) -> None:
        guid = self.to_uuid(value)
        if self.old_guids:
            if binary:
                packet.write_len_bytes(guid.bytes)
            else:
                packet.write(b"_binary '" + escape_bytes(guid.bytes) + b"'")
        elif binary:
            packet.write_len_string(str(guid))
        else:
            packet.write_string(f"'{guid}'")

    def read(
        self, packet: Packet, length: int = -1, is_null: bool = False
    ) -> DatabaseValue:
        if is_null:
            return self.null()
        if length == -1:
            length = packet.read_field_length()
            if length == -1:
                return self.null()
        data = packet.read(length)
        if self.old_guids:
            return DatabaseValue(self.wire_type, self.to_uuid(data))
        return DatabaseValue(self.wire_type, self.to_uuid(packet.decode(data)))

    def skip(self, packet: Packet) -> None:
        skip_len_bytes(packet)

    @classmethod
    def describe_type(cls, rows: List[TypeInfo]) -> None:
        rows.append(
            type_info(
                "GUID",
                WireType.GUID,
                create_format="BINARY(16)",
                is_searchable=False,
            )
        )

