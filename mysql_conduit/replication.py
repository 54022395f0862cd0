from __future__ import annotations

import abc
import asyncio
import logging
import re
from contextlib import suppress
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Type,
    Union,
)

from mysql_conduit.config import (
    ConnectionSettings,
    GroupConfig,
    load_replication_config,
)
from mysql_conduit.connection import Connection, Connector
from mysql_conduit.errors import (
    ConfigurationError,
    ConnectionFailure,
    GroupNotFound,
    NoAvailableServer,
)

if TYPE_CHECKING:
    from mysql_conduit.connection import Session

logger = logging.getLogger(__name__)


@dataclass
class ReplicationServer:
    name: str
    is_master: bool
    connection_string: str
    is_available: bool = True

    @property
    def settings(self) -> ConnectionSettings:
        return ConnectionSettings.parse(self.connection_string)


class FailoverProbe:
    """
    Background task that retries a failed server until it accepts a connection.

    The first attempt runs immediately, then every `interval` seconds. A
    successful attempt marks the server available and ends the task.

    Args:
        server: the failed server
        interval: seconds between attempts
        connector: opens the trial connection
    """

    def __init__(
        self, server: ReplicationServer, interval: float, connector: Connector
    ):
        self.server = server
        self.interval = interval
        self.connector = connector
        self.busy = False
        self.task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()

    def start(self) -> None:
        if not self.running:
            self.task = asyncio.create_task(self._run())

    def cancel(self) -> None:
        if self.running:
            assert self.task is not None
            self.task.cancel()

    async def wait(self) -> None:
        if self.task is not None:
            with suppress(asyncio.CancelledError):
                await self.task

    async def attempt(self) -> bool:
        """Try to connect once. Returns False if another attempt is in flight."""
        if self.busy:
            return False
        self.busy = True
        try:
            connection = await self.connector(self.server.settings)
        except Exception:  # pylint: disable=broad-except
            logger.warning(
                "Connection attempt to failed server %s failed", self.server.name
            )
            return False
        finally:
            self.busy = False

        try:
            await connection.close()
        except Exception:  # pylint: disable=broad-except
            logger.debug(
                "Error closing trial connection to %s", self.server.name, exc_info=True
            )

        self.server.is_available = True
        logger.info("Server %s is available again", self.server.name)
        return True

    async def _run(self) -> None:
        while not await self.attempt():
            await asyncio.sleep(self.interval)


class ServerGroup(abc.ABC):
    """
    A named set of servers sharing a selection policy.

    Subclasses implement `get_server` to pick the next server.

    Args:
        name: group name
        retry_interval: seconds between failover probe attempts
        connector: opens connections for failover probes
    """

    def __init__(
        self,
        name: str,
        retry_interval: float = 60,
        connector: Optional[Connector] = None,
    ):
        self.name = name
        self.retry_interval = retry_interval
        self.connector = connector or Connection.open
        self.servers: List[ReplicationServer] = []
        self.lock = asyncio.Lock()
        self.probes: Dict[str, FailoverProbe] = {}

    def add_server(
        self, name: str, is_master: bool, connection_string: str
    ) -> ReplicationServer:
        server = ReplicationServer(name, is_master, connection_string)
        self.servers.append(server)
        return server

    def find_server(self, name: str) -> Optional[ReplicationServer]:
        return next((s for s in self.servers if s.name.lower() == name.lower()), None)

    def remove_server(self, name: str) -> None:
        server = self.find_server(name)
        if server is None:
            raise ConfigurationError(
                f"Replication server '{name}' not found in group '{self.name}'"
            )
        probe = self.probes.pop(server.name, None)
        if probe:
            probe.cancel()
        self.servers.remove(server)

    @abc.abstractmethod
    def get_server(self, want_master: bool) -> Optional[ReplicationServer]:
        """Pick the next server. Returns None if no server qualifies."""

    def select_server(
        self, want_master: bool, settings: ConnectionSettings
    ) -> Optional[ReplicationServer]:
        """Pick a server for a session. Override to use the session's settings."""
        return self.get_server(want_master)

    def handle_failover(self, server: ReplicationServer) -> FailoverProbe:
        probe = self.probes.get(server.name)
        if probe is None or not probe.running:
            probe = FailoverProbe(server, self.retry_interval, self.connector)
            self.probes[server.name] = probe
            probe.start()
        return probe

    async def close(self) -> None:
        probes = list(self.probes.values())
        self.probes.clear()
        for probe in probes:
            probe.cancel()
        for probe in probes:
            await probe.wait()


class RoundRobinServerGroup(ServerGroup):
    """Cycles through the servers, skipping unavailable ones."""

    def __init__(
        self,
        name: str,
        retry_interval: float = 60,
        connector: Optional[Connector] = None,
    ):
        super().__init__(name, retry_interval, connector)
        self.cursor = -1

    def get_server(self, want_master: bool) -> Optional[ReplicationServer]:
        for _ in range(len(self.servers)):
            self.cursor = (self.cursor + 1) % len(self.servers)
            server = self.servers[self.cursor]
            if not server.is_available:
                continue
            if want_master and not server.is_master:
                continue
            return server
        return None


def _policy_key(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", name.lower())


POLICIES: Dict[str, Type[ServerGroup]] = {
    _policy_key("round_robin"): RoundRobinServerGroup,
}
DEFAULT_POLICY = "round_robin"


def register_policy(name: str, group_class: Type[ServerGroup]) -> None:
    POLICIES[_policy_key(name)] = group_class


class ReplicationManager:
    """
    Registry of replication groups.

    Group names are case insensitive.

    Args:
        connector: opens connections, defaults to `Connection.open`
    """

    def __init__(self, connector: Optional[Connector] = None):
        self.connector = connector or Connection.open
        self.groups: Dict[str, ServerGroup] = {}

    @classmethod
    def from_config(
        cls,
        config: Union[Mapping[str, Any], Sequence[GroupConfig]],
        connector: Optional[Connector] = None,
    ) -> ReplicationManager:
        if isinstance(config, Mapping):
            config = load_replication_config(config)
        manager = cls(connector)
        for group_config in config:
            group = manager.add_group(
                group_config.name, group_config.retry_time, group_config.policy
            )
            for server in group_config.servers:
                group.add_server(
                    server.name, server.is_master, server.connection_string
                )
        return manager

    def add_group(
        self, name: str, retry_interval: float = 60, policy: Optional[str] = None
    ) -> ServerGroup:
        group_class = POLICIES.get(_policy_key(policy or DEFAULT_POLICY))
        if group_class is None:
            raise ConfigurationError(f"Unknown replication policy: {policy}")
        if name.lower() in self.groups:
            raise ConfigurationError(f"Replication group '{name}' already exists")
        group = group_class(name, retry_interval, self.connector)
        self.groups[name.lower()] = group
        return group

    def get_group(self, name: str) -> ServerGroup:
        group = self.groups.get(name.lower())
        if group is None:
            raise GroupNotFound(name)
        return group

    async def remove_group(self, name: str) -> None:
        group = self.get_group(name)
        del self.groups[name.lower()]
        await group.close()

    def is_replication_group(self, name: str) -> bool:
        return name.lower() in self.groups

    def get_server(
        self, group_name: str, want_master: bool
    ) -> Optional[ReplicationServer]:
        return self.get_group(group_name).get_server(want_master)

    async def assign_connection(
        self, group_name: str, want_master: bool, session: Session
    ) -> None:
        """
        Bind `session` to a connection to a server of the group.

        A server that can't be reached is marked unavailable, gets a failover
        probe, and the next server is tried. Each server is tried at most once
        per call. Errors other than connection failures are raised as is.
        """
        group = self.groups.get(group_name.lower())
        if group is None:
            return

        async with group.lock:
            for _ in range(max(len(group.servers), 1)):
                if self.groups.get(group_name.lower()) is not group:
                    return

                server = group.select_server(want_master, session.settings)
                if server is None:
                    raise NoAvailableServer(group.name)

                settings = server.settings
                driver = session.driver
                if driver is not None:
                    if driver.is_open and driver.settings == settings:
                        return
                    session.driver = None
                    await driver.close()

                try:
                    session.driver = await self.connector(settings)
                    return
                except ConnectionFailure as e:
                    server.is_available = False
                    logger.error(
                        "Server %s in group %s failed: %s", server.name, group.name, e
                    )
                    group.handle_failover(server)

            raise NoAvailableServer(group.name)

    async def close(self) -> None:
        """Stop all failover probes"""
        for group in self.groups.values():
            await group.close()
