"""Client side implementation of the mysql wire protocol"""

from mysql_conduit.auth import (
    AuthPlugin,
    Authenticator,
    ClearPasswordAuthPlugin,
    NativePasswordAuthPlugin,
    Sha256PasswordAuthPlugin,
    WindowsAuthPlugin,
)
from mysql_conduit.codecs import Codec
from mysql_conduit.config import ConnectionSettings, SslMode
from mysql_conduit.connection import Connection, Session
from mysql_conduit.geometry import Geometry
from mysql_conduit.packet import Packet
from mysql_conduit.registry import get_codec
from mysql_conduit.replication import ReplicationManager, ServerGroup
from mysql_conduit.security import SecurityProvider, SecurityStatus
from mysql_conduit.types import WireType
from mysql_conduit.values import DatabaseValue
