import asyncio
from typing import List

import pytest

from mysql_conduit.errors import (
    ConnectionClosed,
    MysqlError,
    ProtocolViolation,
    Timeout,
)
from mysql_conduit.stream import MysqlStream

MAX = 0xFFFFFF


class RecordingWriter:
    def __init__(self) -> None:
        self.writes: List[bytes] = []

    @property
    def data(self) -> bytes:
        return b"".join(self.writes)

    def write(self, data: bytes) -> None:
        self.writes.append(bytes(data))

    async def drain(self) -> None:
        return


class SilentReader:
    async def readexactly(self, n: int) -> bytes:
        await asyncio.sleep(10)
        return bytes(n)


def reader_for(data: bytes, eof: bool = True) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    if eof:
        reader.feed_eof()
    return reader


@pytest.mark.asyncio
async def test_handshake_exchange() -> None:
    greeting = b"\x05\x00\x00\x00hello"
    ok = b"\x07\x00\x00\x02\x00\x00\x00\x02\x00\x00\x00"
    writer = RecordingWriter()
    s = MysqlStream(reader=reader_for(greeting + ok), writer=writer)  # type: ignore

    assert await s.read() == b"hello"
    await s.write(b"resp")
    assert writer.data == b"\x04\x00\x00\x01resp"
    assert await s.read() == ok[4:]

    # Each command starts a new sequence
    s.reset_seq()
    await s.write(b"\x0e")
    assert writer.writes[-1] == b"\x01\x00\x00\x00\x0e"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "frames, payload, next_seq",
    [
        (b"\x00\x00\x00\x00", b"", 1),
        (b"\x01\x00\x00\x00k", b"k", 1),
        (b"\xff\xff\x00\x00" + bytes(0xFFFF), bytes(0xFFFF), 1),
        (b"\xff\xff\xff\x00" + bytes(MAX) + b"\x00\x00\x00\x01", bytes(MAX), 2),
        (
            b"\xff\xff\xff\x00" + bytes(MAX) + b"\x03\x00\x00\x01abc",
            bytes(MAX) + b"abc",
            2,
        ),
    ],
)
async def test_read_frames(frames: bytes, payload: bytes, next_seq: int) -> None:
    s = MysqlStream(reader=reader_for(frames), writer=None)  # type: ignore
    assert await s.read() == payload
    assert next(s.seq) == next_seq


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, frames, next_seq",
    [
        (b"", b"\x00\x00\x00\x00", 1),
        (b"abc", b"\x03\x00\x00\x00abc", 1),
        (bytes(MAX), b"\xff\xff\xff\x00" + bytes(MAX) + b"\x00\x00\x00\x01", 2),
        (
            bytes(MAX) + b"abc",
            b"\xff\xff\xff\x00" + bytes(MAX) + b"\x03\x00\x00\x01abc",
            2,
        ),
    ],
)
async def test_write_frames(payload: bytes, frames: bytes, next_seq: int) -> None:
    writer = RecordingWriter()
    s = MysqlStream(reader=None, writer=writer)  # type: ignore
    await s.write(payload)
    assert writer.data == frames
    assert next(s.seq) == next_seq


@pytest.mark.asyncio
async def test_buffered_write() -> None:
    writer = RecordingWriter()
    s = MysqlStream(reader=None, writer=writer, buffer_size=16)  # type: ignore

    await s.write(b"abc", drain=False)
    assert writer.writes == []

    await s.write(bytes(16), drain=False)
    assert writer.data == b"\x03\x00\x00\x00abc\x10\x00\x00\x01" + bytes(16)

    await s.write(b"x", drain=False)
    await s.drain()
    assert writer.writes[-1] == b"\x01\x00\x00\x02x"


@pytest.mark.asyncio
async def test_bad_seq() -> None:
    s = MysqlStream(reader=reader_for(b"\x00\x00\x00\x01"), writer=None)  # type: ignore
    with pytest.raises(ProtocolViolation) as ctx:
        await s.read()
    assert isinstance(ctx.value, MysqlError)


@pytest.mark.asyncio
@pytest.mark.parametrize("data", [b"", b"\x01\x00", b"\x05\x00\x00\x00ab"])
async def test_closed_by_server(data: bytes) -> None:
    s = MysqlStream(reader=reader_for(data), writer=None)  # type: ignore
    with pytest.raises(ConnectionClosed):
        await s.read()


@pytest.mark.asyncio
async def test_read_timeout() -> None:
    s = MysqlStream(reader=SilentReader(), writer=None, timeout=0.01)  # type: ignore
    with pytest.raises(Timeout):
        await s.read()
