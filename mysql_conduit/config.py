from __future__ import annotations

import re
import dataclasses
from dataclasses import dataclass, field, fields
from enum import IntEnum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from mysql_conduit.charset import CharacterSet
from mysql_conduit.errors import ConfigurationError


class SslMode(IntEnum):
    NONE = 0
    PREFERRED = 1
    REQUIRED = 2
    VERIFY_CA = 3
    VERIFY_FULL = 4

    @classmethod
    def parse(cls, value: Any) -> SslMode:
        if isinstance(value, SslMode):
            return value
        name = re.sub(r"[\s_-]", "", str(value)).upper()
        for mode in cls:
            if mode.name.replace("_", "") == name:
                return mode
        # Common misspelling accepted by other connectors
        if name == "PREFERED":
            return cls.PREFERRED
        raise ConfigurationError(f"Invalid SSL mode: {value}")


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    s = str(value).strip().lower()
    if s in ("true", "yes", "1", "sspi"):
        return True
    if s in ("false", "no", "0"):
        return False
    raise ConfigurationError(f"Invalid boolean value: {value}")


OptionType = Callable[[Any], Any]
OptionSchema = Tuple[OptionType, Any, Tuple[str, ...]]

OPTIONS: Dict[str, OptionSchema] = {
    # name: (type, default, aliases)
    "server": (
        str,
        "localhost",
        ("host", "data source", "datasource", "address", "addr", "network address"),
    ),
    "port": (int, 3306, ()),
    "user": (str, "", ("user id", "userid", "uid", "username", "user name")),
    "password": (str, "", ("pwd",)),
    "database": (str, "", ("initial catalog",)),
    "ssl_mode": (SslMode.parse, SslMode.NONE, ()),
    "ssl_ca": (str, None, ("certificate file",)),
    "connect_timeout": (float, 15, ("connection timeout",)),
    "integrated_security": (to_bool, False, ()),
    "character_set": (str, "utf8mb4", ("charset",)),
}


def _normalize(key: str) -> str:
    return re.sub(r"\s+", " ", key.strip().lower())


def _build_aliases() -> Dict[str, str]:
    aliases = {}
    for name, (_, _, names) in OPTIONS.items():
        for alias in (name, *names):
            aliases[alias] = name
            aliases[alias.replace("_", " ")] = name
            aliases[alias.replace("_", "").replace(" ", "")] = name
    return aliases


ALIASES = _build_aliases()


@dataclass(frozen=True)
class ConnectionSettings:
    """
    Settings for a single server connection, usually parsed from a
    `key=value;key=value` connection string.
    """

    server: str = "localhost"
    port: int = 3306
    user: str = ""
    password: str = ""
    database: str = ""
    ssl_mode: SslMode = SslMode.NONE
    ssl_ca: Optional[str] = None
    connect_timeout: float = 15
    integrated_security: bool = False
    character_set: str = "utf8mb4"

    @classmethod
    def parse(cls, connection_string: str) -> ConnectionSettings:
        values = {}
        for part in connection_string.split(";"):
            if not part.strip():
                continue
            key, sep, value = part.partition("=")
            if not sep:
                raise ConfigurationError(f"Invalid connection string option: {part}")
            values[key] = value.strip()
        return cls.from_mapping(values)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> ConnectionSettings:
        kwargs = {}
        for key, value in mapping.items():
            name = ALIASES.get(_normalize(key))
            if name is None:
                raise ConfigurationError(f"Option not supported: {key}")
            type_, _, _ = OPTIONS[name]
            try:
                kwargs[name] = type_(value)
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {name}: {value}") from e
        return cls(**kwargs)

    @property
    def charset(self) -> CharacterSet:
        try:
            return CharacterSet.from_name(self.character_set)
        except KeyError as e:
            raise ConfigurationError(
                f"Unknown character set: {self.character_set}"
            ) from e

    def replace(self, **changes: Any) -> ConnectionSettings:
        return dataclasses.replace(self, **changes)

    def __str__(self) -> str:
        parts = []
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None or value == f.default:
                continue
            if isinstance(value, SslMode):
                value = value.name
            parts.append(f"{f.name}={value}")
        return ";".join(parts)


@dataclass
class ServerConfig:
    name: str
    connection_string: str
    is_master: bool = False


@dataclass
class GroupConfig:
    name: str
    servers: List[ServerConfig] = field(default_factory=list)
    policy: Optional[str] = None
    retry_time: float = 60


def _require(mapping: Mapping[str, Any], key: str, where: str) -> Any:
    if key not in mapping:
        raise ConfigurationError(f"Missing '{key}' in {where}")
    return mapping[key]


def load_replication_config(mapping: Mapping[str, Any]) -> List[GroupConfig]:
    """
    Load replication groups from a mapping, e.g. parsed JSON:

        {
            "groups": [
                {
                    "name": "cluster",
                    "policy": "round_robin",
                    "retry_time": 60,
                    "servers": [
                        {"name": "a", "is_master": true, "connection_string": "server=a"},
                        {"name": "b", "connection_string": "server=b"}
                    ]
                }
            ]
        }
    """
    groups = []
    for group in mapping.get("groups", []):
        name = _require(group, "name", "replication group")
        servers = [
            ServerConfig(
                name=_require(server, "name", f"replication group '{name}'"),
                connection_string=_require(
                    server, "connection_string", f"replication server in '{name}'"
                ),
                is_master=to_bool(server.get("is_master", False)),
            )
            for server in group.get("servers", [])
        ]
        try:
            retry_time = float(group.get("retry_time", 60))
        except ValueError as e:
            raise ConfigurationError(f"Invalid retry_time for group '{name}'") from e
        groups.append(
            GroupConfig(
                name=name,
                servers=servers,
                policy=group.get("policy"),
                retry_time=retry_time,
            )
        )
    return groups
