import pytest

from serverloader.config import Config

YAML = """
online_config:
  url: https://example.com/a.json
  update_interval: 600
servers:
  - server: 127.0.0.1
    server_port: 8388
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(YAML)
    return path


def test_reads_yaml_sections(config_file):
    config = Config(str(config_file))

    assert config.config_url == "https://example.com/a.json"
    assert config.get("online_config", "update_interval") == 600
    assert config.servers[0]["server_port"] == 8388
    assert config.get("online_config", "missing", default="x") == "x"


def test_env_overrides_are_typed(config_file, monkeypatch):
    monkeypatch.setenv("SERVERLOADER_CONFIG_URL", "https://example.com/b.json")
    monkeypatch.setenv("SERVERLOADER_TIMEOUT", "12.5")
    monkeypatch.setenv("LOG_JSON", "false")

    config = Config(str(config_file))

    assert config.config_url == "https://example.com/b.json"
    assert config.online_config["timeout"] == 12.5
    assert config.logging["json"] is False


def test_config_path_from_environment(config_file, monkeypatch):
    monkeypatch.setenv("SERVERLOADER_CONFIG", str(config_file))
    assert Config().config_url == "https://example.com/a.json"


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        Config(str(tmp_path / "nope.yaml"))


def test_invalid_yaml(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("online_config: [unclosed")
    with pytest.raises(ValueError):
        Config(str(path))


def test_empty_servers_key_means_no_servers(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("servers:\n")
    assert Config(str(path)).servers == []
