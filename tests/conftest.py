from __future__ import annotations
import asyncio
import socket
from typing import AsyncGenerator, Dict, List, Optional, Sequence, Set

import pytest
import pytest_asyncio
from mysql_mimic import MysqlServer
from mysql_mimic.auth import (
    AuthPlugin,
    IdentityProvider,
    NativePasswordAuthPlugin,
    User,
)

from mysql_conduit.config import ConnectionSettings
from mysql_conduit.errors import ConnectionFailure
from mysql_conduit.replication import ReplicationManager

PASSWORD = "secret"


class MockIdentityProvider(IdentityProvider):
    def __init__(self, auth_plugins: List[AuthPlugin], users: Dict[str, User]):
        self.auth_plugins = auth_plugins
        self.users = users

    def get_plugins(self) -> Sequence[AuthPlugin]:
        return self.auth_plugins

    async def get_user(self, username: str) -> Optional[User]:
        return self.users.get(username)


class FakeConnection:
    """Stands in for `Connection` in router tests"""

    def __init__(self, settings: ConnectionSettings):
        self.settings = settings
        self.closed = False

    @property
    def is_open(self) -> bool:
        return not self.closed

    async def close(self) -> None:
        self.closed = True


class FakeConnector:
    """
    Opens `FakeConnection`s, failing for servers listed in `down` or `errors`.

    Servers are identified by the `server` option of their connection string.
    """

    def __init__(self) -> None:
        self.down: Set[str] = set()
        self.errors: Dict[str, Exception] = {}
        self.calls: List[str] = []

    async def __call__(self, settings: ConnectionSettings) -> FakeConnection:
        self.calls.append(settings.server)
        if settings.server in self.errors:
            raise self.errors[settings.server]
        if settings.server in self.down:
            raise ConnectionFailure(f"Unable to connect to {settings.server}")
        return FakeConnection(settings)


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest_asyncio.fixture
async def manager(connector: FakeConnector) -> AsyncGenerator[ReplicationManager, None]:
    mgr = ReplicationManager(connector)  # type: ignore[arg-type]
    try:
        yield mgr
    finally:
        await mgr.close()


@pytest.fixture
def users() -> Dict[str, User]:
    return {
        "levon_helm": User(
            name="levon_helm",
            auth_string=NativePasswordAuthPlugin.create_auth_string(PASSWORD),
            auth_plugin=NativePasswordAuthPlugin.name,
        ),
        "rick_danko": User(
            name="rick_danko",
            auth_plugin=NativePasswordAuthPlugin.name,
        ),
    }


@pytest.fixture
def identity_provider(users: Dict[str, User]) -> MockIdentityProvider:
    return MockIdentityProvider([NativePasswordAuthPlugin()], users)


@pytest_asyncio.fixture
async def server(
    identity_provider: MockIdentityProvider,
) -> AsyncGenerator[MysqlServer, None]:
    srv = MysqlServer(identity_provider=identity_provider)
    await srv.start_server(host="127.0.0.1", port=0)
    asyncio.create_task(srv.serve_forever())
    try:
        yield srv
    finally:
        srv.close()
        await srv.wait_closed()


@pytest.fixture
def port(server: MysqlServer) -> int:
    return server.sockets()[0].getsockname()[1]


@pytest.fixture
def dead_port() -> int:
    """A local port nothing listens on"""
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def connection_string(
    port: int, user: str = "levon_helm", password: str = PASSWORD, **options: str
) -> str:
    parts = ["server=127.0.0.1", f"port={port}", f"user={user}", f"password={password}"]
    parts.extend(f"{k}={v}" for k, v in options.items())
    return ";".join(parts)
