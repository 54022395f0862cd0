from __future__ import annotations

import asyncio
import logging
import ssl
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, Union

from mysql_conduit.auth import (
    PLUGINS,
    Authenticator,
    NativePasswordAuthPlugin,
    WindowsAuthPlugin,
    get_plugin,
)
from mysql_conduit.config import ConnectionSettings, SslMode
from mysql_conduit.constants import CLIENT_NAME, DEFAULT_CLIENT_CAPABILITIES
from mysql_conduit.errors import (
    ConfigurationError,
    ConnectionFailure,
    ErrorCode,
    NoAvailableServer,
    Timeout,
)
from mysql_conduit.packets import (
    ERR,
    HandshakeResponse41,
    HandshakeV10,
    make_handshake_response_41,
    make_ssl_request,
    parse_error,
    parse_handshake_v10,
    parse_ok,
)
from mysql_conduit.stream import MysqlStream
from mysql_conduit.types import Capabilities, Commands, uint_1
from mysql_conduit.version import __version__

if TYPE_CHECKING:
    from mysql_conduit.replication import ReplicationManager

logger = logging.getLogger(__name__)


def make_ssl_context(settings: ConnectionSettings) -> ssl.SSLContext:
    if settings.ssl_mode >= SslMode.VERIFY_CA:
        context = ssl.create_default_context(cafile=settings.ssl_ca)
        context.check_hostname = settings.ssl_mode == SslMode.VERIFY_FULL
        return context

    # PREFERRED and REQUIRED encrypt without checking who we're talking to
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


class Connection:
    """
    An authenticated connection to a single server.

    Use `Connection.open` to create one.
    """

    def __init__(
        self,
        stream: MysqlStream,
        settings: ConnectionSettings,
        handshake: HandshakeV10,
        capabilities: Capabilities,
        secure: bool = False,
    ):
        self.stream = stream
        self.settings = settings
        self.handshake = handshake
        self.capabilities = capabilities
        self.secure = secure
        self._closed = False

    @property
    def connection_id(self) -> int:
        return self.handshake.connection_id

    @property
    def server_version(self) -> str:
        return self.handshake.server_version

    @property
    def is_open(self) -> bool:
        return not self._closed and not self.stream.is_closing

    @classmethod
    async def open(cls, settings: ConnectionSettings) -> Connection:
        address = f"{settings.server}:{settings.port}"
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(settings.server, settings.port),
                settings.connect_timeout,
            )
        except asyncio.TimeoutError as e:
            raise Timeout(f"Timed out connecting to {address}") from e
        except OSError as e:
            raise ConnectionFailure(f"Unable to connect to {address}: {e}") from e

        stream = MysqlStream(reader, writer, timeout=settings.connect_timeout)
        try:
            connection = await cls._handshake(stream, settings)
        except BaseException:
            writer.close()
            raise

        logger.info(
            "Connected to %s (server %s, connection id %s)",
            address,
            connection.server_version,
            connection.connection_id,
        )
        return connection

    @classmethod
    async def _handshake(
        cls, stream: MysqlStream, settings: ConnectionSettings
    ) -> Connection:
        data = await stream.read()
        if data[:1] == bytes((ERR,)):
            raise parse_error(data)
        handshake = parse_handshake_v10(data)
        charset = settings.charset

        capabilities = DEFAULT_CLIENT_CAPABILITIES
        if settings.database:
            capabilities |= Capabilities.CLIENT_CONNECT_WITH_DB
        capabilities &= handshake.capabilities

        secure = False
        if settings.ssl_mode != SslMode.NONE:
            if Capabilities.CLIENT_SSL in handshake.capabilities:
                capabilities |= Capabilities.CLIENT_SSL
                await stream.write(make_ssl_request(capabilities, charset))
                await stream.start_tls(make_ssl_context(settings), settings.server)
                secure = True
                logger.debug("TLS established with %s", settings.server)
            elif settings.ssl_mode >= SslMode.REQUIRED:
                raise ConfigurationError(
                    "The server does not support SSL connections",
                    ErrorCode.SSL_CONNECTION_ERROR,
                )

        if settings.integrated_security:
            plugin_name = WindowsAuthPlugin.name
        elif handshake.auth_plugin_name in PLUGINS:
            plugin_name = handshake.auth_plugin_name
        else:
            # The server will ask us to switch if it wants something else
            plugin_name = NativePasswordAuthPlugin.name

        auth_data = handshake.auth_data
        if (
            plugin_name != handshake.auth_plugin_name
            and plugin_name != NativePasswordAuthPlugin.name
        ):
            # Greeting data belongs to another plugin
            auth_data = b""

        plugin = get_plugin(plugin_name, settings, auth_data, secure)

        async def respond(auth_response: bytes) -> None:
            response = HandshakeResponse41(
                capabilities=capabilities,
                client_charset=charset,
                username=plugin.username,
                auth_response=auth_response,
                database=settings.database or None,
                client_plugin=plugin.name,
                connect_attrs={
                    "_client_name": CLIENT_NAME,
                    "_client_version": __version__,
                },
            )
            await stream.write(make_handshake_response_41(response))

        await Authenticator(plugin).authenticate(stream, respond)
        stream.reset_seq()
        return cls(stream, settings, handshake, capabilities, secure)

    async def ping(self) -> None:
        self.stream.reset_seq()
        await self.stream.write(uint_1(Commands.COM_PING))
        data = await self.stream.read()
        if data[:1] == bytes((ERR,)):
            raise parse_error(data)
        parse_ok(self.capabilities, data)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.stream.reset_seq()
            await self.stream.write(uint_1(Commands.COM_QUIT))
        except OSError:
            logger.debug("Server went away before COM_QUIT")
        await self.stream.close()


Connector = Callable[[ConnectionSettings], Awaitable[Connection]]


class Session:
    """
    The connection (driver) backing one client session.

    If `settings.server` names a replication group registered with `manager`,
    the connection is assigned by that group instead.

    Args:
        settings: connection settings or a connection string
        manager: replication registry
        connector: opens a connection from settings, defaults to `Connection.open`
    """

    def __init__(
        self,
        settings: Union[ConnectionSettings, str],
        manager: Optional[ReplicationManager] = None,
        connector: Optional[Connector] = None,
    ):
        if isinstance(settings, str):
            settings = ConnectionSettings.parse(settings)
        self.settings = settings
        self.manager = manager
        self.connector = connector or Connection.open
        self.driver: Optional[Connection] = None

    @property
    def is_open(self) -> bool:
        return self.driver is not None and self.driver.is_open

    async def open(self, master: bool = True) -> Connection:
        group = self.settings.server
        if self.manager is not None and self.manager.is_replication_group(group):
            await self.manager.assign_connection(group, master, self)
            if self.driver is None:
                raise NoAvailableServer(group)
        elif not self.is_open:
            self.driver = await self.connector(self.settings)
        assert self.driver is not None
        return self.driver

    async def close(self) -> None:
        if self.driver is not None:
            driver, self.driver = self.driver, None
            await driver.close()
