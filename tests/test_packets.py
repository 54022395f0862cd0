import pytest
from mysql_mimic import packets as server_packets
from mysql_mimic import types as server_types
from mysql_mimic.charset import CharacterSet as ServerCharacterSet
from mysql_mimic.constants import DEFAULT_SERVER_CAPABILITIES
from mysql_mimic.errors import ErrorCode as ServerErrorCode

from mysql_conduit.charset import CharacterSet
from mysql_conduit.constants import DEFAULT_CLIENT_CAPABILITIES
from mysql_conduit.errors import ErrorCode, ProtocolViolation
from mysql_conduit.packets import (
    HandshakeResponse41,
    make_handshake_response_41,
    make_ssl_request,
    parse_auth_switch_request,
    parse_error,
    parse_handshake_v10,
    parse_ok,
)
from mysql_conduit.types import Capabilities, ServerStatus

NONCE = bytes(range(1, 21))


def test_parse_handshake() -> None:
    data = server_packets.make_handshake_v10(
        capabilities=DEFAULT_SERVER_CAPABILITIES,
        server_charset=ServerCharacterSet.utf8mb4,
        server_version="8.0.29",
        connection_id=7,
        auth_data=NONCE + b"\x00",
        status_flags=server_types.ServerStatus.SERVER_STATUS_AUTOCOMMIT,
        auth_plugin_name="mysql_native_password",
    )

    handshake = parse_handshake_v10(data)

    assert handshake.protocol_version == 10
    assert handshake.server_version == "8.0.29"
    assert handshake.connection_id == 7
    assert handshake.auth_data == NONCE
    assert handshake.auth_plugin_name == "mysql_native_password"
    assert handshake.capabilities == int(DEFAULT_SERVER_CAPABILITIES)
    assert Capabilities.CLIENT_SECURE_CONNECTION in handshake.capabilities
    assert handshake.status_flags == ServerStatus.SERVER_STATUS_AUTOCOMMIT
    assert handshake.server_charset == CharacterSet.utf8mb4


def test_parse_handshake_bad_protocol() -> None:
    with pytest.raises(ProtocolViolation):
        parse_handshake_v10(b"\x09" + b"5.0\x00" + bytes(20))


def test_handshake_response() -> None:
    response = HandshakeResponse41(
        capabilities=DEFAULT_CLIENT_CAPABILITIES | Capabilities.CLIENT_CONNECT_WITH_DB,
        client_charset=CharacterSet.utf8mb4,
        username="levon_helm",
        auth_response=b"\x01\x02\x03",
        database="music",
        client_plugin="mysql_native_password",
        connect_attrs={"_client_name": "mysql-conduit"},
    )

    data = make_handshake_response_41(response)
    parsed = server_packets.parse_handshake_response_41(
        server_types.Capabilities(int(response.capabilities)), data
    )

    assert parsed.username == "levon_helm"
    assert parsed.auth_response == b"\x01\x02\x03"
    assert parsed.database == "music"
    assert parsed.client_plugin == "mysql_native_password"
    assert parsed.connect_attrs == {"_client_name": "mysql-conduit"}
    assert parsed.client_charset == ServerCharacterSet.utf8mb4


def test_ssl_request() -> None:
    data = make_ssl_request(
        DEFAULT_CLIENT_CAPABILITIES | Capabilities.CLIENT_SSL, CharacterSet.utf8mb4
    )
    assert len(data) == 32
    parsed = server_packets.parse_handshake_response(
        DEFAULT_SERVER_CAPABILITIES | server_types.Capabilities.CLIENT_SSL, data
    )
    assert isinstance(parsed, server_packets.SSLRequest)
    assert server_types.Capabilities.CLIENT_SSL in parsed.capabilities


def test_parse_ok() -> None:
    data = server_packets.make_ok(
        capabilities=DEFAULT_SERVER_CAPABILITIES,
        status_flags=server_types.ServerStatus.SERVER_STATUS_AUTOCOMMIT,
        affected_rows=3,
        last_insert_id=1000,
        warnings=2,
    )
    ok = parse_ok(DEFAULT_CLIENT_CAPABILITIES, data)
    assert ok.affected_rows == 3
    assert ok.last_insert_id == 1000
    assert ok.warnings == 2
    assert ok.status_flags == ServerStatus.SERVER_STATUS_AUTOCOMMIT

    with pytest.raises(ProtocolViolation):
        parse_ok(DEFAULT_CLIENT_CAPABILITIES, b"\xff\x00\x00")


def test_parse_error() -> None:
    data = server_packets.make_error(
        msg="Access denied", code=ServerErrorCode.ACCESS_DENIED_ERROR
    )
    error = parse_error(data)
    assert error.code == ErrorCode.ACCESS_DENIED_ERROR
    assert error.msg == "Access denied"
    assert str(error) == "1045: Access denied"


def test_parse_auth_switch_request() -> None:
    data = server_packets.make_auth_switch_request(
        ServerCharacterSet.utf8mb4, "mysql_native_password", NONCE + b"\x00"
    )
    request = parse_auth_switch_request(data)
    assert request.plugin_name == "mysql_native_password"
    assert request.plugin_data == NONCE

    with pytest.raises(ProtocolViolation):
        parse_auth_switch_request(b"\xfe")
    with pytest.raises(ProtocolViolation):
        parse_auth_switch_request(b"\x00")
