from __future__ import annotations

import asyncio
import struct
from ssl import SSLContext
from typing import Optional

from mysql_conduit.errors import ConnectionClosed, ProtocolViolation, Timeout
from mysql_conduit.types import uint_3, uint_1
from mysql_conduit.utils import seq


class MysqlStream:
    """
    Packet framing over an asyncio stream pair.

    Args:
        reader: stream reader
        writer: stream writer
        buffer_size: flush buffered writes once they reach this size
        timeout: seconds to wait for a packet before raising `Timeout`
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        buffer_size: int = 2**15,
        timeout: Optional[float] = None,
    ):
        self.reader = reader
        self.writer = writer
        self.seq = seq(256)
        self.timeout = timeout
        self._buffer = bytearray()
        self._buffer_size = buffer_size

    async def read(self) -> bytes:
        if not self.timeout:
            return await self._read()
        try:
            return await asyncio.wait_for(self._read(), self.timeout)
        except asyncio.TimeoutError as e:
            raise Timeout(f"No reply from server after {self.timeout} seconds") from e

    async def _read(self) -> bytes:
        data = b""
        while True:
            header = await self._readexactly(4)
            i = struct.unpack("<I", header)[0]
            payload_length = i & 0x00FFFFFF
            sequence_id = (i & 0xFF000000) >> 24

            expected = next(self.seq)
            if sequence_id != expected:
                raise ProtocolViolation(
                    f"Expected seq({expected}) got seq({sequence_id})"
                )

            if payload_length == 0:
                return data

            data += await self._readexactly(payload_length)

            if payload_length < 0xFFFFFF:
                return data

    async def _readexactly(self, n: int) -> bytes:
        try:
            return await self.reader.readexactly(n)
        except asyncio.IncompleteReadError as e:
            raise ConnectionClosed() from e

    async def write(self, data: bytes, drain: bool = True) -> None:
        while True:
            # Grab first 0xFFFFFF bytes to send
            payload = data[:0xFFFFFF]
            data = data[0xFFFFFF:]

            payload_length = uint_3(len(payload))
            sequence_id = uint_1(next(self.seq))
            packet = payload_length + sequence_id + payload

            self._buffer.extend(packet)
            if drain or len(self._buffer) >= self._buffer_size:
                await self.drain()

            # We are done unless len(send) == 0xFFFFFF
            if len(payload) != 0xFFFFFF:
                return

    async def drain(self) -> None:
        if self._buffer:
            self.writer.write(self._buffer)
            self._buffer.clear()
        await self.writer.drain()

    def reset_seq(self) -> None:
        self.seq.reset()

    @property
    def is_closing(self) -> bool:
        return self.writer.is_closing()

    async def close(self) -> None:
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError:
            # The server may already be gone
            pass

    async def start_tls(self, ssl: SSLContext, server_hostname: Optional[str]) -> None:
        transport = self.writer.transport
        protocol = transport.get_protocol()
        loop = asyncio.get_running_loop()
        new_transport = await loop.start_tls(
            transport=transport,
            protocol=protocol,
            sslcontext=ssl,
            server_side=False,
            server_hostname=server_hostname,
        )

        # This seems to be the easiest way to wrap the socket created by asyncio
        self.writer._transport = new_transport  # type: ignore # pylint: disable=protected-access
        self.reader._transport = new_transport  # type: ignore # pylint: disable=protected-access
