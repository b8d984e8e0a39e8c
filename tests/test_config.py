import argparse

import pytest

from grpccli.config import Settings, load_config
from grpccli.errors import ConfigError
from grpccli.state import UNSET


CONFIG_YAML = """
proto:
  files: [api.proto]
  paths: [./protos, ./vendor]
default:
  package: demo
  service: Greeter
server:
  host: grpc.internal
  port: 8443
  tls: true
  servername: api.example.com
  timeout_seconds: 2.5
"""


def test_missing_default_file(tmp_path, monkeypatch):

    monkeypatch.chdir(tmp_path)
    assert load_config() == {}


def test_missing_explicit_file(tmp_path):

    with pytest.raises(ConfigError):
        load_config(tmp_path / "nope.yaml")


def test_load_config(tmp_path):

    path = tmp_path / "grpccli.yaml"
    path.write_text(CONFIG_YAML)

    cfg = Settings(load_config(path), environ={})

    assert cfg.proto_files == ["api.proto"]
    assert cfg.proto_paths == ["./protos", "./vendor"]
    assert cfg.package == "demo"
    assert cfg.service == "Greeter"
    assert cfg.method == UNSET
    assert cfg.address == "grpc.internal:8443"
    assert cfg.tls is True
    assert cfg.server_name == "api.example.com"
    assert cfg.timeout_seconds == 2.5


def test_default_config_file_in_cwd(tmp_path, monkeypatch):

    (tmp_path / "grpccli.yaml").write_text(CONFIG_YAML)
    monkeypatch.chdir(tmp_path)

    assert load_config()["default"]["package"] == "demo"


@pytest.mark.parametrize(
    "text",
    [
        "server:\n  tls: maybe\n",
        "proto:\n  files: api.proto\n",
        "unknown: 1\n",
        "server:\n  timeout_seconds: 0\n",
    ],
)
def test_invalid_config(tmp_path, text):

    path = tmp_path / "grpccli.yaml"
    path.write_text(text)

    with pytest.raises(ConfigError):
        load_config(path)


def test_unparsable_yaml(tmp_path):

    path = tmp_path / "grpccli.yaml"
    path.write_text("server: [unclosed\n")

    with pytest.raises(ConfigError):
        load_config(path)


def test_defaults():

    cfg = Settings({}, environ={})

    assert cfg.package == UNSET
    assert cfg.service == UNSET
    assert cfg.address == "localhost:50051"
    assert cfg.tls is False
    assert cfg.timeout_seconds is None


def test_environment_overrides_file():

    cfg = Settings(
        {"server": {"host": "from-file", "port": "1"}},
        environ={"GRPCCLI_HOST": "from-env", "GRPCCLI_TLS": "true"},
    )

    assert cfg.host == "from-env"
    assert cfg.port == "1"
    assert cfg.tls is True


def test_apply_args():

    args = argparse.Namespace(
        file=["a.proto,b.proto", "c.proto"],
        path=["./protos"],
        package="demo",
        service=None,
        host=None,
        port="9000",
        tls=None,
        desc="pkg",
        json=None,
    )
    cfg = Settings({"default": {"service": "Greeter"}}, environ={}).apply_args(args)

    assert cfg.proto_files == ["a.proto", "b.proto", "c.proto"]
    assert cfg.proto_paths == ["./protos"]
    assert cfg.package == "demo"
    assert cfg.service == "Greeter"
    assert cfg.address == "localhost:9000"
    assert cfg.tls is False
    assert cfg.describe == "pkg"
    assert cfg.body == ""


def test_address_without_port():

    cfg = Settings({"server": {"host": "unix:///tmp/grpc.sock", "port": ""}}, environ={})
    assert cfg.address == "unix:///tmp/grpc.sock"
