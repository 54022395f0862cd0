import pytest

from mysql_conduit.charset import CharacterSet
from mysql_conduit.errors import ProtocolViolation
from mysql_conduit.packet import Packet


def test_integers() -> None:
    p = Packet()
    p.write_integer(-2, 2)
    p.write_uinteger(0xFFFFFF, 3)
    p.write_byte(7)
    assert p.getvalue() == b"\xfe\xff\xff\xff\xff\x07"

    p.position = 0
    assert p.read_integer(2) == -2
    assert p.read_uinteger(3) == 0xFFFFFF
    assert p.read_byte() == 7
    assert not p.has_more_data


def test_field_length() -> None:
    p = Packet(b"\x05\xfb\xfc\x00\x01\xfd\x00\x00\x01\xfe" + bytes(7) + b"\x01")
    assert p.read_field_length() == 5
    assert p.read_field_length() == -1
    assert p.read_field_length() == 256
    assert p.read_field_length() == 2**16
    assert p.read_field_length() == 2**56


def test_invalid_field_length() -> None:
    with pytest.raises(ProtocolViolation):
        Packet(b"\xff").read_field_length()


def test_strings() -> None:
    p = Packet()
    p.write_len_string("kelsin")
    p.write_string("abc\x00")
    p.write_len_bytes(b"\x00\x01")
    assert p.length == 7 + 4 + 3

    p.position = 0
    assert p.read_len_string() == "kelsin"
    assert p.read_null_string() == "abc"
    assert p.read_len_bytes() == b"\x00\x01"


def test_null_len_bytes() -> None:
    assert Packet(b"\xfb").read_len_bytes() is None
    assert Packet(b"\xfb").read_len_string() is None


def test_short_read() -> None:
    p = Packet(b"\x01\x02")
    with pytest.raises(ProtocolViolation):
        p.read(3)


def test_missing_null_terminator() -> None:
    with pytest.raises(ProtocolViolation):
        Packet(b"abc").read_null_string()


def test_position() -> None:
    p = Packet(b"kelsin")
    p.position = 3
    assert p.read_rest() == b"sin"
    p.position = 0
    assert p.read_string(3) == "kel"


def test_charset() -> None:
    p = Packet(charset=CharacterSet.latin1)
    p.write_string("café")
    assert p.getvalue() == b"caf\xe9"
    p.position = 0
    assert p.read_string(4) == "café"
