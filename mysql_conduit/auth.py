from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from hashlib import sha1
from importlib.util import find_spec
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Type

from mysql_conduit import utils
from mysql_conduit.config import ConnectionSettings
from mysql_conduit.errors import (
    ConfigurationError,
    ErrorCode,
    ProtocolViolation,
    SecurityError,
)
from mysql_conduit.packets import (
    AUTH_MORE_DATA,
    AUTH_SWITCH_REQUEST,
    ERR,
    OK,
    parse_auth_switch_request,
    parse_error,
)
from mysql_conduit.security import (
    CredentialUse,
    GssapiSecurityProvider,
    SecurityProvider,
    SecurityStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class AuthSession:
    plugin_name: str
    # Opaque data from the server, e.g. the scramble nonce
    auth_data: bytes = b""
    continue_processing: bool = False
    credentials: Any = None
    context: Any = None


class AuthPlugin:
    """
    Base class for client side authentication plugins.

    `more_data` is called with None to produce the first payload, then with each
    blob the server sends in an AuthMoreData packet. Returning None means the
    plugin has nothing left to send. Returning bytes, even empty ones, means
    "send this and wait for the server".

    Args:
        settings: connection settings holding the credentials
        auth_data: plugin data from the server greeting or auth switch request
        secure: whether the transport is already encrypted
    """

    name = ""
    requires_secure_transport = False

    def __init__(
        self,
        settings: ConnectionSettings,
        auth_data: bytes = b"",
        secure: bool = False,
    ):
        self.settings = settings
        self.secure = secure
        self.session = AuthSession(plugin_name=self.name, auth_data=auth_data)

    @property
    def username(self) -> str:
        return self.settings.user

    def check_constraints(self) -> None:
        if self.requires_secure_transport and not self.secure:
            raise ConfigurationError(
                f"Authentication plugin '{self.name}' requires a secure connection"
            )

    def more_data(self, data: Optional[bytes]) -> Optional[bytes]:
        raise NotImplementedError()

    def close(self) -> None:
        """Release anything held by the plugin. Safe to call more than once."""


class NativePasswordAuthPlugin(AuthPlugin):
    """
    Standard plugin that hashes the password with the nonce sent by the server.
    """

    name = "mysql_native_password"

    def more_data(self, data: Optional[bytes]) -> Optional[bytes]:
        if data is not None:
            return None
        nonce = self.session.auth_data.rstrip(b"\x00")[:20]
        return self.scramble(self.settings.password, nonce)

    @staticmethod
    def scramble(password: str, nonce: bytes) -> bytes:
        # SHA1(password) XOR SHA1(nonce <concat> SHA1(SHA1(password)))
        if not password:
            return b""
        sha1_password = sha1(password.encode("utf-8")).digest()
        sha1_sha1_with_nonce = sha1(nonce + sha1(sha1_password).digest()).digest()
        return utils.xor(sha1_password, sha1_sha1_with_nonce)


class ClearPasswordAuthPlugin(AuthPlugin):
    """
    Sends the password as is, followed by a null byte.

    Only allowed over an encrypted transport.
    """

    name = "mysql_clear_password"
    requires_secure_transport = True

    def more_data(self, data: Optional[bytes]) -> Optional[bytes]:
        if data is not None:
            return None
        return self.settings.password.encode("utf-8") + b"\x00"


class Sha256PasswordAuthPlugin(ClearPasswordAuthPlugin):
    """
    sha256_password over TLS, where the server accepts the cleartext password.
    """

    name = "sha256_password"


_RECOGNIZED_STATUSES = frozenset(SecurityStatus)


class WindowsAuthPlugin(AuthPlugin):
    """
    Integrated authentication through a native security provider (SSPI/GSSAPI style).

    Each server blob is fed to the provider to produce the next token until the
    provider says the context is complete. Credential and context handles are
    released as soon as the exchange ends, and on every error.

    Args:
        provider: security provider to use, defaults to the GSSAPI adapter
    """

    name = "authentication_windows_client"
    package = "Negotiate"
    fallback_user = "auth_windows"

    def __init__(
        self,
        settings: ConnectionSettings,
        auth_data: bytes = b"",
        secure: bool = False,
        provider: Optional[SecurityProvider] = None,
    ):
        super().__init__(settings, auth_data, secure)
        self.provider = provider

    @property
    def username(self) -> str:
        return self.settings.user or self.fallback_user

    def check_constraints(self) -> None:
        super().check_constraints()
        if self.provider is None:
            if find_spec("gssapi") is None:
                raise ConfigurationError(
                    f"Authentication plugin '{self.name}' requires the gssapi package",
                    ErrorCode.AUTH_PLUGIN_CANNOT_LOAD,
                )
            self.provider = GssapiSecurityProvider()

    def more_data(self, data: Optional[bytes]) -> Optional[bytes]:
        try:
            if data is None:
                self._acquire_credentials()

            token = None
            if self.session.continue_processing:
                token = self._initialize_context(data)

            if not self.session.continue_processing or not token:
                self.close()
                return None
            return token
        except Exception:
            self.close()
            raise

    def close(self) -> None:
        session = self.session
        try:
            if session.credentials is not None:
                self._provider.release_credentials(session.credentials)
        finally:
            session.credentials = None
            try:
                if session.context is not None:
                    self._provider.release_context(session.context)
            finally:
                session.context = None

    @property
    def _provider(self) -> SecurityProvider:
        if self.provider is None:
            self.check_constraints()
        assert self.provider is not None
        return self.provider

    def _target_name(self) -> Optional[str]:
        name = self.session.auth_data.split(b"\x00", 1)[0]
        return name.decode("utf-8", errors="replace") or None

    def _acquire_credentials(self) -> None:
        self.session.credentials = self._provider.acquire_credentials(
            None, self.package, CredentialUse.OUTBOUND
        )
        self.session.continue_processing = True

    def _initialize_context(self, data: Optional[bytes]) -> Optional[bytes]:
        session = self.session
        result = self._provider.initialize_context(
            session.credentials, session.context, self._target_name(), data
        )
        session.context = result.context

        if result.status not in _RECOGNIZED_STATUSES:
            raise SecurityError(result.status)

        token = result.token
        if result.status in (
            SecurityStatus.COMPLETE_NEEDED,
            SecurityStatus.COMPLETE_AND_CONTINUE,
        ):
            token = self._provider.complete_token(session.context, token)

        session.continue_processing = result.status not in (
            SecurityStatus.OK,
            SecurityStatus.COMPLETE_NEEDED,
        )
        return token


PLUGINS: Dict[str, Type[AuthPlugin]] = {
    plugin.name: plugin
    for plugin in (
        NativePasswordAuthPlugin,
        ClearPasswordAuthPlugin,
        Sha256PasswordAuthPlugin,
        WindowsAuthPlugin,
    )
}


def get_plugin(
    name: str,
    settings: ConnectionSettings,
    auth_data: bytes = b"",
    secure: bool = False,
) -> AuthPlugin:
    plugin = PLUGINS.get(name)
    if plugin is None:
        raise ConfigurationError(
            f"Authentication plugin '{name}' is not supported",
            ErrorCode.AUTH_PLUGIN_CANNOT_LOAD,
        )
    return plugin(settings, auth_data, secure)


class AuthState(Enum):
    START = auto()
    AWAITING_SERVER_DATA = auto()
    CONTINUE = auto()
    DONE = auto()
    FAILED = auto()


class Channel(Protocol):
    async def read(self) -> bytes: ...

    async def write(self, data: bytes, drain: bool = True) -> None: ...


Responder = Callable[[bytes], Awaitable[None]]


class Authenticator:
    """
    Drives one authentication exchange with the server.

    Args:
        plugin: the plugin to start with. The server may switch to another one.
    """

    def __init__(self, plugin: AuthPlugin):
        self.plugin = plugin
        self.state = AuthState.START

    async def authenticate(
        self, channel: Channel, respond: Optional[Responder] = None
    ) -> None:
        """
        Run the exchange until the server accepts or rejects us.

        Args:
            channel: packet stream to the server
            respond: wraps the first payload into the handshake response. Without
                it, the first payload is written as is, and a plugin with nothing
                to send finishes immediately.
        """
        try:
            self.plugin.check_constraints()
            data = self.plugin.more_data(None)
            if respond is not None:
                await respond(data or b"")
            elif data is None:
                self.state = AuthState.DONE
                return
            else:
                await channel.write(data)
            await self._wait_for_server(channel)
        except Exception:
            self.state = AuthState.FAILED
            raise
        finally:
            self.plugin.close()

    async def _wait_for_server(self, channel: Channel) -> None:
        while True:
            self.state = AuthState.AWAITING_SERVER_DATA
            packet = await channel.read()
            if not packet:
                raise ProtocolViolation("Empty packet during authentication")

            status = packet[0]
            if status == OK:
                self.state = AuthState.DONE
                return
            if status == ERR:
                raise parse_error(packet)

            self.state = AuthState.CONTINUE
            if status == AUTH_MORE_DATA:
                data = self.plugin.more_data(packet[1:])
                if data is not None:
                    await channel.write(data)
            elif status == AUTH_SWITCH_REQUEST:
                self._switch(packet)
                data = self.plugin.more_data(None)
                await channel.write(data or b"")
            else:
                raise ProtocolViolation(
                    f"Unexpected packet 0x{status:x} during authentication"
                )

    def _switch(self, packet: bytes) -> None:
        request = parse_auth_switch_request(packet)
        logger.debug(
            "Switching authentication plugin from %s to %s",
            self.plugin.name,
            request.plugin_name,
        )
        previous = self.plugin
        self.plugin = get_plugin(
            request.plugin_name,
            previous.settings,
            request.plugin_data,
            previous.secure,
        )
        previous.close()
        self.plugin.check_constraints()
