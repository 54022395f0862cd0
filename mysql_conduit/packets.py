"""Client side protocol packets"""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import Dict, Optional

from mysql_conduit.charset import CharacterSet
from mysql_conduit.errors import MysqlError, ProtocolViolation
from mysql_conduit.types import (
    Capabilities,
    ServerStatus,
    peek,
    read_str_fixed,
    read_str_null,
    read_str_rest,
    read_uint_1,
    read_uint_2,
    read_uint_4,
    read_uint_len,
    str_fixed,
    str_len,
    str_null,
    uint_1,
    uint_4,
    uint_len,
)

OK = 0x00
AUTH_MORE_DATA = 0x01
AUTH_SWITCH_REQUEST = 0xFE
ERR = 0xFF

MAX_PACKET_SIZE = 2**24


@dataclass
class HandshakeV10:
    protocol_version: int
    server_version: str
    connection_id: int
    auth_data: bytes
    capabilities: Capabilities
    server_charset: CharacterSet
    status_flags: ServerStatus
    auth_plugin_name: str = ""


@dataclass
class OkPacket:
    affected_rows: int = 0
    last_insert_id: int = 0
    status_flags: ServerStatus = ServerStatus(0)
    warnings: int = 0
    info: str = ""


@dataclass
class AuthSwitchRequest:
    plugin_name: str
    plugin_data: bytes = b""


@dataclass
class HandshakeResponse41:
    capabilities: Capabilities
    client_charset: CharacterSet
    username: str
    auth_response: bytes
    database: Optional[str] = None
    client_plugin: Optional[str] = None
    connect_attrs: Dict[str, str] = field(default_factory=dict)
    max_packet_size: int = MAX_PACKET_SIZE


def parse_handshake_v10(data: bytes) -> HandshakeV10:
    r = io.BytesIO(data)

    protocol_version = read_uint_1(r)
    if protocol_version != 10:
        raise ProtocolViolation(f"Unsupported protocol version {protocol_version}")

    server_version = read_str_null(r).decode("ascii", errors="replace")
    connection_id = read_uint_4(r)
    auth_data = read_str_fixed(r, 8)
    read_str_fixed(r, 1)  # filler
    capabilities = read_uint_2(r)

    handshake = HandshakeV10(
        protocol_version=protocol_version,
        server_version=server_version,
        connection_id=connection_id,
        auth_data=auth_data,
        capabilities=Capabilities(capabilities),
        server_charset=CharacterSet.utf8mb4,
        status_flags=ServerStatus(0),
    )

    if not peek(r):
        return handshake

    handshake.server_charset = CharacterSet.from_collation(read_uint_1(r))
    handshake.status_flags = ServerStatus(read_uint_2(r))
    capabilities |= read_uint_2(r) << 16
    handshake.capabilities = Capabilities(capabilities)

    auth_plugin_data_len = read_uint_1(r)
    read_str_fixed(r, 10)  # reserved

    if Capabilities.CLIENT_SECURE_CONNECTION in handshake.capabilities:
        handshake.auth_data += read_str_fixed(r, max(12, auth_plugin_data_len - 9))
        read_str_fixed(r, 1)  # filler

    if Capabilities.CLIENT_PLUGIN_AUTH in handshake.capabilities:
        handshake.auth_plugin_name = read_str_null(r).decode("ascii")

    return handshake


def make_ssl_request(
    capabilities: Capabilities,
    client_charset: CharacterSet,
    max_packet_size: int = MAX_PACKET_SIZE,
) -> bytes:
    return _concat(
        uint_4(capabilities),
        uint_4(max_packet_size),
        uint_1(client_charset.default_collation),
        str_fixed(23, bytes(23)),
    )


def make_handshake_response_41(response: HandshakeResponse41) -> bytes:
    capabilities = response.capabilities
    charset = response.client_charset

    parts = [
        uint_4(capabilities),
        uint_4(response.max_packet_size),
        uint_1(charset.default_collation),
        str_fixed(23, bytes(23)),
        str_null(charset.encode(response.username)),
    ]

    if Capabilities.CLIENT_PLUGIN_AUTH_LENENC_CLIENT_DATA in capabilities:
        parts.append(str_len(response.auth_response))
    elif Capabilities.CLIENT_SECURE_CONNECTION in capabilities:
        parts.append(uint_1(len(response.auth_response)))
        parts.append(response.auth_response)
    else:
        parts.append(str_null(response.auth_response))

    if Capabilities.CLIENT_CONNECT_WITH_DB in capabilities:
        parts.append(str_null(charset.encode(response.database or "")))

    if Capabilities.CLIENT_PLUGIN_AUTH in capabilities:
        parts.append(str_null(charset.encode(response.client_plugin or "")))

    if Capabilities.CLIENT_CONNECT_ATTRS in capabilities:
        attrs = b"".join(
            str_len(charset.encode(k)) + str_len(charset.encode(v))
            for k, v in response.connect_attrs.items()
        )
        parts.append(uint_len(len(attrs)) + attrs)

    return _concat(*parts)


def parse_ok(capabilities: Capabilities, data: bytes) -> OkPacket:
    r = io.BytesIO(data)
    header = read_uint_1(r)
    if header not in (OK, AUTH_SWITCH_REQUEST):
        raise ProtocolViolation(f"Expected OK packet, got 0x{header:x}")

    ok = OkPacket(affected_rows=read_uint_len(r), last_insert_id=read_uint_len(r))
    if Capabilities.CLIENT_PROTOCOL_41 in capabilities:
        ok.status_flags = ServerStatus(read_uint_2(r))
        ok.warnings = read_uint_2(r)
    elif Capabilities.CLIENT_TRANSACTIONS in capabilities:
        ok.status_flags = ServerStatus(read_uint_2(r))
    ok.info = read_str_rest(r).decode("utf-8", errors="replace")
    return ok


def parse_error(
    data: bytes, charset: CharacterSet = CharacterSet.utf8mb4
) -> MysqlError:
    r = io.BytesIO(data)
    header = read_uint_1(r)
    if header != ERR:
        raise ProtocolViolation(f"Expected ERR packet, got 0x{header:x}")

    code = read_uint_2(r)
    if peek(r) == b"#":
        read_str_fixed(r, 6)  # sql state marker and sql state
    msg = read_str_rest(r).decode(charset.codec, errors="replace")
    return MysqlError(msg, code)


def parse_auth_switch_request(
    data: bytes, charset: CharacterSet = CharacterSet.utf8mb4
) -> AuthSwitchRequest:
    r = io.BytesIO(data)
    header = read_uint_1(r)
    if header != AUTH_SWITCH_REQUEST:
        raise ProtocolViolation(f"Expected auth switch request, got 0x{header:x}")
    if not peek(r):
        raise ProtocolViolation("Old style auth switch requests are not supported")

    plugin_name = charset.decode(read_str_null(r))
    # Plugin data is null terminated by most servers
    plugin_data = read_str_rest(r)
    if plugin_data.endswith(b"\x00"):
        plugin_data = plugin_data[:-1]
    return AuthSwitchRequest(plugin_name=plugin_name, plugin_data=plugin_data)


def _concat(*parts: bytes) -> bytes:
    return b"".join(parts)
