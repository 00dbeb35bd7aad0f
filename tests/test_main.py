import pytest

from main import load_static_pool
from serverloader.balancer import ServerSource
from serverloader.errors import IntegrityError, ParseError


def test_static_pool_from_config_servers():
    pool = load_static_pool([{"server": "127.0.0.1", "server_port": 8388}])
    assert [s.ident for s in pool.servers_from(ServerSource.CONFIG_FILE)] == ["127.0.0.1:8388"]


def test_static_pool_without_servers_is_empty():
    assert len(load_static_pool(None)) == 0


def test_static_pool_rejects_bad_entries():
    with pytest.raises(ParseError):
        load_static_pool([{"remarks": "no address"}])
    with pytest.raises(IntegrityError):
        load_static_pool([{"server": "127.0.0.1", "server_port": 0}])
