import io

import pytest
from rich.console import Console

from grpccli import main as cli


@pytest.fixture
def out(monkeypatch, tmp_path):
    # No grpccli.yaml is picked up from the working directory.
    monkeypatch.chdir(tmp_path)
    for var in ("GRPCCLI_HOST", "GRPCCLI_PORT", "GRPCCLI_TLS"):
        monkeypatch.delenv(var, raising=False)
    console = Console(file=io.StringIO(), width=200, color_system=None)
    monkeypatch.setattr(cli, "console", console)
    return console.file


def _proto_args(proto_dir):
    return ["--file", "demo.proto,billing.proto", "--path", str(proto_dir)]


def test_build_parser():

    args = cli.build_parser().parse_args(["--file", "a.proto", "--file", "b.proto", "--tls", "--timeout", "1.5"])

    assert args.file == ["a.proto", "b.proto"]
    assert args.tls is True
    assert args.timeout == 1.5
    assert args.host is None


def test_describe_packages(proto_dir, out):

    cli.main(_proto_args(proto_dir) + ["--desc", "pkg"])

    text = out.getvalue()
    assert "Packages" in text
    assert "acme.billing" in text
    assert "demo" in text


def test_describe_services(proto_dir, out):

    cli.main(_proto_args(proto_dir) + ["--desc", "svc", "--package", "demo"])

    text = out.getvalue()
    assert "Greeter" in text
    assert "Farewell" in text
    assert "Invoices" not in text


def test_describe_rpc(proto_dir, out):

    cli.main(
        _proto_args(proto_dir)
        + ["--desc", "rpc", "--package", "demo", "--service", "Greeter", "--method", "StreamHellos"]
    )

    text = out.getvalue()
    assert "demo.Greeter.StreamHellos" in text
    assert "demo.HelloRequest" in text
    assert "demo.HelloRequest.Inner" in text
    assert "google.protobuf.Timestamp" in text
    assert "repeated" in text


def test_describe_unknown_package_exits(proto_dir, out):

    with pytest.raises(SystemExit) as excinfo:
        cli.main(_proto_args(proto_dir) + ["--desc", "svc", "--package", "nosuch"])

    assert excinfo.value.code == 1
    assert 'unknown package name "nosuch"' in out.getvalue()


def test_missing_proto_file_exits(tmp_path, out):

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--file", "missing.proto", "--path", str(tmp_path), "--desc", "pkg"])

    assert excinfo.value.code == 1
    assert "ERROR:" in out.getvalue()


def test_one_shot_call(proto_dir, greeter_address, out):

    host, port = greeter_address.rsplit(":", 1)
    cli.main(
        _proto_args(proto_dir)
        + [
            "--host", host,
            "--port", port,
            "--package", "demo",
            "--service", "Greeter",
            "--method", "SayHello",
            "--json", '{"name": "Bob"}',
            "--timeout", "5",
        ]
    )

    assert '"message": "Hello, Bob!"' in out.getvalue()


def test_one_shot_call_server_error(proto_dir, greeter_address, out):

    host, port = greeter_address.rsplit(":", 1)
    with pytest.raises(SystemExit):
        cli.main(
            _proto_args(proto_dir)
            + [
                "--host", host,
                "--port", port,
                "--package", "demo",
                "--service", "Greeter",
                "--method", "SayGoodbye",
                "--json", '{"name": "Bob"}',
            ]
        )

    assert "NOT_FOUND: nobody called Bob" in out.getvalue()


def test_describe_services_without_package(proto_dir, out):

    with pytest.raises(SystemExit) as excinfo:
        cli.main(_proto_args(proto_dir) + ["--desc", "svc"])

    assert excinfo.value.code == 1
    assert "package is an empty string" in out.getvalue()
    assert "nil" not in out.getvalue()


def test_one_shot_call_without_service(proto_dir, out):

    with pytest.raises(SystemExit) as excinfo:
        cli.main(_proto_args(proto_dir) + ["--package", "demo", "--method", "SayHello", "--json", "{}"])

    assert excinfo.value.code == 1
    assert "service is an empty string" in out.getvalue()
