from __future__ import annotations

import io
import struct
from enum import IntEnum, IntFlag, auto

from mysql_conduit.errors import ProtocolViolation


class ColumnType(IntEnum):
    DECIMAL = 0x00
    TINY = 0x01
    SHORT = 0x02
    LONG = 0x03
    FLOAT = 0x04
    DOUBLE = 0x05
    NULL = 0x06
    TIMESTAMP = 0x07
    LONGLONG = 0x08
    INT24 = 0x09
    DATE = 0x0A
    TIME = 0x0B
    DATETIME = 0x0C
    YEAR = 0x0D
    NEWDATE = 0x0E
    VARCHAR = 0x0F
    BIT = 0x10
    JSON = 0xF5
    NEWDECIMAL = 0xF6
    ENUM = 0xF7
    SET = 0xF8
    TINY_BLOB = 0xF9
    MEDIUM_BLOB = 0xFA
    LONG_BLOB = 0xFB
    BLOB = 0xFC
    VAR_STRING = 0xFD
    STRING = 0xFE
    GEOMETRY = 0xFF


class WireType(IntEnum):
    """
    Provider-level type codes.

    Codes below 256 are the on-wire column types. Unsigned integers add 500,
    the binary, text and guid families live above that and map back onto a
    column type through `column_type`.
    """

    DECIMAL = 0
    BYTE = 1
    INT16 = 2
    INT32 = 3
    FLOAT = 4
    DOUBLE = 5
    TIMESTAMP = 7
    INT64 = 8
    INT24 = 9
    DATE = 10
    TIME = 11
    DATETIME = 12
    YEAR = 13
    NEWDATE = 14
    VAR_STRING = 15
    BIT = 16
    NEW_DECIMAL = 246
    ENUM = 247
    SET = 248
    TINY_BLOB = 249
    MEDIUM_BLOB = 250
    LONG_BLOB = 251
    BLOB = 252
    VARCHAR = 253
    STRING = 254
    GEOMETRY = 255
    UBYTE = 501
    UINT16 = 502
    UINT32 = 503
    UINT64 = 508
    UINT24 = 509
    BINARY = 600
    VARBINARY = 601
    TINY_TEXT = 749
    MEDIUM_TEXT = 750
    LONG_TEXT = 751
    TEXT = 752
    GUID = 800

    @property
    def is_unsigned(self) -> bool:
        return 500 < self < 600

    @property
    def column_type(self) -> ColumnType:
        if self.is_unsigned:
            return ColumnType(self - 500)
        if self == WireType.BINARY:
            return ColumnType.STRING
        if self == WireType.VARBINARY:
            return ColumnType.VAR_STRING
        if 700 < self < 800:
            return ColumnType(self - 500)
        if self == WireType.GUID:
            return ColumnType.STRING
        return ColumnType(self)


class Commands(IntEnum):
    COM_SLEEP = 0x00
    COM_QUIT = 0x01
    COM_INIT_DB = 0x02
    COM_QUERY = 0x03
    COM_PING = 0x0E
    COM_CHANGE_USER = 0x11
    COM_RESET_CONNECTION = 0x1F


class Capabilities(IntFlag):
    CLIENT_LONG_PASSWORD = auto()
    CLIENT_FOUND_ROWS = auto()
    CLIENT_LONG_FLAG = auto()
    CLIENT_CONNECT_WITH_DB = auto()
    CLIENT_NO_SCHEMA = auto()
    CLIENT_COMPRESS = auto()
    CLIENT_ODBC = auto()
    CLIENT_LOCAL_FILES = auto()
    CLIENT_IGNORE_SPACE = auto()
    CLIENT_PROTOCOL_41 = auto()
    CLIENT_INTERACTIVE = auto()
    CLIENT_SSL = auto()
    CLIENT_IGNORE_SIGPIPE = auto()
    CLIENT_TRANSACTIONS = auto()
    CLIENT_RESERVED = auto()
    CLIENT_SECURE_CONNECTION = auto()
    CLIENT_MULTI_STATEMENTS = auto()
    CLIENT_MULTI_RESULTS = auto()
    CLIENT_PS_MULTI_RESULTS = auto()
    CLIENT_PLUGIN_AUTH = auto()
    CLIENT_CONNECT_ATTRS = auto()
    CLIENT_PLUGIN_AUTH_LENENC_CLIENT_DATA = auto()
    CLIENT_CAN_HANDLE_EXPIRED_PASSWORDS = auto()
    CLIENT_SESSION_TRACK = auto()
    CLIENT_DEPRECATE_EOF = auto()
    CLIENT_OPTIONAL_RESULTSET_METADATA = auto()
    CLIENT_ZSTD_COMPRESSION_ALGORITHM = auto()
    CLIENT_QUERY_ATTRIBUTES = auto()
    MULTI_FACTOR_AUTHENTICATION = auto()
    CLIENT_CAPABILITY_EXTENSION = auto()
    CLIENT_SSL_VERIFY_SERVER_CERT = auto()
    CLIENT_REMEMBER_OPTIONS = auto()


class ServerStatus(IntFlag):
    SERVER_STATUS_IN_TRANS = 0x0001
    SERVER_STATUS_AUTOCOMMIT = 0x0002
    SERVER_MORE_RESULTS_EXISTS = 0x0008
    SERVER_STATUS_NO_GOOD_INDEX_USED = 0x0010
    SERVER_STATUS_NO_INDEX_USED = 0x0020
    SERVER_STATUS_CURSOR_EXISTS = 0x0040
    SERVER_STATUS_LAST_ROW_SENT = 0x0080
    SERVER_STATUS_DB_DROPPED = 0x0100
    SERVER_STATUS_NO_BACKSLASH_ESCAPES = 0x0200
    SERVER_STATUS_METADATA_CHANGED = 0x0400
    SERVER_QUERY_WAS_SLOW = 0x0800
    SERVER_PS_OUT_PARAMS = 0x1000
    SERVER_STATUS_IN_TRANS_READONLY = 0x2000
    SERVER_SESSION_STATE_CHANGED = 0x4000


# Marker byte for a NULL column in a text protocol row
NULL_FIELD = 0xFB


def uint_len(i: int) -> bytes:
    if i < 251:
        return struct.pack("<B", i)
    if i < 2**16:
        return struct.pack("<BH", 0xFC, i)
    if i < 2**24:
        return struct.pack("<B", 0xFD) + uint_3(i)
    return struct.pack("<BQ", 0xFE, i)


def uint_1(i: int) -> bytes:
    return struct.pack("<B", i)


def uint_2(i: int) -> bytes:
    return struct.pack("<H", i)


def uint_3(i: int) -> bytes:
    if not 0 <= i < 2**24:
        raise struct.error(f"uint_3 requires 0 <= number <= {2**24 - 1}")
    return struct.pack("<I", i)[:3]


def uint_4(i: int) -> bytes:
    return struct.pack("<I", i)


def str_fixed(l: int, s: bytes) -> bytes:
    return struct.pack(f"<{l}s", s)


def str_null(s: bytes) -> bytes:
    return s + b"\x00"


def str_len(s: bytes) -> bytes:
    return uint_len(len(s)) + s


# Readers raise ProtocolViolation on short reads


def read_str_fixed(reader: io.BytesIO, l: int) -> bytes:
    data = reader.read(l)
    if len(data) != l:
        raise ProtocolViolation(f"Packet too short: wanted {l} bytes, got {len(data)}")
    return data


def _unpack(reader: io.BytesIO, fmt: str) -> int:
    return struct.unpack(fmt, read_str_fixed(reader, struct.calcsize(fmt)))[0]


def read_uint_1(reader: io.BytesIO) -> int:
    return _unpack(reader, "<B")


def read_uint_2(reader: io.BytesIO) -> int:
    return _unpack(reader, "<H")


def read_uint_3(reader: io.BytesIO) -> int:
    return int.from_bytes(read_str_fixed(reader, 3), "little")


def read_uint_4(reader: io.BytesIO) -> int:
    return _unpack(reader, "<I")


def read_uint_len(reader: io.BytesIO) -> int:
    i = read_uint_1(reader)
    if i == 0xFC:
        return read_uint_2(reader)
    if i == 0xFD:
        return read_uint_3(reader)
    if i == 0xFE:
        return _unpack(reader, "<Q")
    if i == NULL_FIELD or i == 0xFF:
        raise ProtocolViolation(f"Unexpected length prefix 0x{i:x}")
    return i


def read_str_null(reader: io.BytesIO) -> bytes:
    """Read up to a NUL byte or the end of the packet"""
    data = bytearray()
    while True:
        b = reader.read(1)
        if b in (b"\x00", b""):
            return bytes(data)
        data += b


def read_str_rest(reader: io.BytesIO) -> bytes:
    return reader.read()


def peek(reader: io.BytesIO, num_bytes: int = 1) -> bytes:
    pos = reader.tell()
    val = reader.read(num_bytes)
    reader.seek(pos)
    return val
