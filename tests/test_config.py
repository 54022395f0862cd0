import pytest

from mysql_conduit.charset import CharacterSet
from mysql_conduit.config import (
    ConnectionSettings,
    SslMode,
    load_replication_config,
    to_bool,
)
from mysql_conduit.errors import ConfigurationError


def test_defaults() -> None:
    settings = ConnectionSettings.parse("")
    assert settings.server == "localhost"
    assert settings.port == 3306
    assert settings.ssl_mode == SslMode.NONE
    assert settings.connect_timeout == 15
    assert settings.charset == CharacterSet.utf8mb4


def test_parse() -> None:
    settings = ConnectionSettings.parse(
        "Data Source=db1; Port=3307;User ID=levon_helm;pwd=a=b;"
        "Initial Catalog=music;SslMode=Required;Integrated Security=SSPI;"
        "charset=latin1"
    )
    assert settings.server == "db1"
    assert settings.port == 3307
    assert settings.user == "levon_helm"
    assert settings.password == "a=b"
    assert settings.database == "music"
    assert settings.ssl_mode == SslMode.REQUIRED
    assert settings.integrated_security
    assert settings.charset == CharacterSet.latin1


@pytest.mark.parametrize(
    "value, expected",
    [
        ("none", SslMode.NONE),
        ("Prefered", SslMode.PREFERRED),
        ("verify_ca", SslMode.VERIFY_CA),
        ("VerifyFull", SslMode.VERIFY_FULL),
    ],
)
def test_ssl_mode(value: str, expected: SslMode) -> None:
    assert SslMode.parse(value) == expected


@pytest.mark.parametrize(
    "conn_str",
    [
        "server=db1;bogus=1",
        "server",
        "port=abc",
        "sslmode=sometimes",
        "integrated security=maybe",
    ],
)
def test_invalid(conn_str: str) -> None:
    with pytest.raises(ConfigurationError):
        ConnectionSettings.parse(conn_str)


def test_unknown_charset() -> None:
    with pytest.raises(ConfigurationError):
        _ = ConnectionSettings(character_set="klingon").charset


def test_to_bool() -> None:
    assert to_bool("Yes")
    assert not to_bool("false")
    assert to_bool(True)


def test_str() -> None:
    settings = ConnectionSettings(server="db1", port=3307, ssl_mode=SslMode.REQUIRED)
    assert str(settings) == "server=db1;port=3307;ssl_mode=REQUIRED"
    assert ConnectionSettings.parse(str(settings)) == settings
    assert settings.replace(port=3308).port == 3308
    assert settings.port == 3307


def test_load_replication_config() -> None:
    groups = load_replication_config(
        {
            "groups": [
                {
                    "name": "cluster",
                    "policy": "round_robin",
                    "servers": [
                        {"name": "a", "is_master": "true", "connection_string": "s=a"},
                        {"name": "b", "connection_string": "s=b"},
                    ],
                }
            ]
        }
    )
    assert len(groups) == 1
    group = groups[0]
    assert group.name == "cluster"
    assert group.policy == "round_robin"
    assert group.retry_time == 60
    assert [(s.name, s.is_master) for s in group.servers] == [
        ("a", True),
        ("b", False),
    ]


def test_load_replication_config_invalid() -> None:
    with pytest.raises(ConfigurationError):
        load_replication_config({"groups": [{"servers": []}]})
    with pytest.raises(ConfigurationError):
        load_replication_config({"groups": [{"name": "g", "servers": [{"name": "a"}]}]})
    with pytest.raises(ConfigurationError):
        load_replication_config({"groups": [{"name": "g", "retry_time": "soon"}]})
