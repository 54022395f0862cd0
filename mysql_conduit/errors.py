from __future__ import annotations

from enum import IntEnum


class ErrorCode(IntEnum):
    """
    https://dev.mysql.com/doc/mysql-errors/8.0/en/server-error-reference.html
    https://dev.mysql.com/doc/mysql-errors/8.0/en/client-error-reference.html
    """

    UNABLE_TO_CONNECT_TO_HOST = 1042
    HANDSHAKE_ERROR = 1043
    ACCESS_DENIED_ERROR = 1045
    UNKNOWN_ERROR = 1105
    NOT_SUPPORTED_YET = 1235
    DATA_OUT_OF_RANGE = 1264
    MALFORMED_PACKET = 1835
    CLIENT_UNKNOWN_ERROR = 2000
    SERVER_LOST = 2013
    SSL_CONNECTION_ERROR = 2026
    AUTH_PLUGIN_CANNOT_LOAD = 2059
    AUTH_PLUGIN_ERROR = 2061


class MysqlError(Exception):
    def __init__(self, msg: str, code: ErrorCode | int = ErrorCode.UNKNOWN_ERROR):
        super().__init__(f"{code}: {msg}")
        self.msg = msg
        self.code = code


class ProtocolViolation(MysqlError):
    def __init__(self, msg: str, code: ErrorCode = ErrorCode.MALFORMED_PACKET):
        super().__init__(msg, code)


class ConfigurationError(MysqlError):
    def __init__(self, msg: str, code: ErrorCode = ErrorCode.CLIENT_UNKNOWN_ERROR):
        super().__init__(msg, code)


class GroupNotFound(ConfigurationError):
    def __init__(self, name: str):
        super().__init__(f"Replication group '{name}' not found")
        self.name = name


class ConnectionFailure(MysqlError):
    """The server could not be reached or dropped the connection."""

    def __init__(
        self, msg: str, code: ErrorCode = ErrorCode.UNABLE_TO_CONNECT_TO_HOST
    ):
        super().__init__(msg, code)


class ConnectionClosed(ConnectionFailure):
    def __init__(self, msg: str = "Connection closed by server"):
        super().__init__(msg, ErrorCode.SERVER_LOST)


class Timeout(ConnectionFailure):
    pass


class NoAvailableServer(MysqlError):
    def __init__(self, group: str):
        super().__init__(f"No available server found in replication group '{group}'")
        self.group = group


class FormatError(MysqlError):
    pass


class SecurityError(MysqlError):
    """The native security provider reported a status we don't understand."""

    def __init__(self, status: int):
        super().__init__(
            f"Security provider returned status 0x{status:x}",
            ErrorCode.AUTH_PLUGIN_ERROR,
        )
        self.status = status
