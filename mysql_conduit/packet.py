from __future__ import annotations

import io
from typing import Optional

from mysql_conduit.charset import CharacterSet
from mysql_conduit.errors import ProtocolViolation
from mysql_conduit.types import NULL_FIELD, str_len, uint_len


class Packet:
    """
    Cursor over the payload of one protocol packet.

    Reads and writes happen at `position`, which can be moved freely to skip
    or re-read fields. Integers are little-endian.

    Args:
        data: initial payload
        charset: character set used to encode and decode text
    """

    def __init__(
        self, data: bytes = b"", charset: CharacterSet = CharacterSet.utf8mb4
    ):
        self.buffer = io.BytesIO(data)
        self.charset = charset

    @property
    def position(self) -> int:
        return self.buffer.tell()

    @position.setter
    def position(self, value: int) -> None:
        self.buffer.seek(value)

    @property
    def length(self) -> int:
        return len(self.buffer.getbuffer())

    @property
    def has_more_data(self) -> bool:
        return self.position < self.length

    def getvalue(self) -> bytes:
        return self.buffer.getvalue()

    def encode(self, s: str) -> bytes:
        return self.charset.encode(s)

    def decode(self, b: bytes) -> str:
        return self.charset.decode(b)

    # Reads

    def read(self, count: int) -> bytes:
        data = self.buffer.read(count)
        if len(data) != count:
            offset = self.position - len(data)
            raise ProtocolViolation(
                f"Expected {count} bytes at offset {offset}, got {len(data)}"
            )
        return data

    def read_byte(self) -> int:
        return self.read(1)[0]

    def read_integer(self, width: int) -> int:
        return int.from_bytes(self.read(width), "little", signed=True)

    def read_uinteger(self, width: int) -> int:
        return int.from_bytes(self.read(width), "little", signed=False)

    def read_field_length(self) -> int:
        """Read a length-encoded integer. Returns -1 for the NULL marker."""
        first = self.read_byte()
        if first < NULL_FIELD:
            return first
        if first == NULL_FIELD:
            return -1
        if first == 0xFC:
            return self.read_uinteger(2)
        if first == 0xFD:
            return self.read_uinteger(3)
        if first == 0xFE:
            return self.read_uinteger(8)
        raise ProtocolViolation(f"Invalid length prefix 0x{first:x}")

    def read_len_bytes(self) -> Optional[bytes]:
        """Read a length-prefixed field. Returns None for the NULL marker."""
        length = self.read_field_length()
        if length == -1:
            return None
        return self.read(length)

    def read_string(self, length: int) -> str:
        return self.decode(self.read(length))

    def read_len_string(self) -> Optional[str]:
        data = self.read_len_bytes()
        return None if data is None else self.decode(data)

    def read_null_string(self) -> str:
        data = bytearray()
        while True:
            b = self.read_byte()
            if b == 0:
                return self.decode(bytes(data))
            data.append(b)

    def read_rest(self) -> bytes:
        return self.buffer.read()

    # Writes

    def write(self, data: bytes) -> None:
        self.buffer.write(data)

    def write_byte(self, b: int) -> None:
        self.write(bytes((b,)))

    def write_integer(self, value: int, width: int) -> None:
        self.write(value.to_bytes(width, "little", signed=True))

    def write_uinteger(self, value: int, width: int) -> None:
        self.write(value.to_bytes(width, "little", signed=False))

    def write_length(self, length: int) -> None:
        self.write(uint_len(length))

    def write_len_bytes(self, data: bytes) -> None:
        self.write(str_len(data))

    def write_len_string(self, s: str) -> None:
        self.write_len_bytes(self.encode(s))

    def write_string(self, s: str) -> None:
        self.write(self.encode(s))
