"""
grpccli/main.py
Entry point for the interactive gRPC client.

Usage:
    grpccli --file api.proto --path ./protos
    grpccli --file api.proto --package demo --service Greeter
    grpccli --file api.proto --desc pkg
    grpccli --file api.proto --package demo --service Greeter --method SayHello --json '{"name": "Ann"}'
"""

from __future__ import annotations

import argparse
import sys

from rich.console import Console
from rich.markup import escape
from rich.rule import Rule

from grpccli import certs
from grpccli.config import Settings, load_config
from grpccli.errors import GrpcCliError
from grpccli.executor import invoke
from grpccli.parsers import proto_parser
from grpccli.report import json_report
from grpccli.report.describe_report import DESCRIBE_MODES, describe
from grpccli.repl import Session, run_session
from grpccli.spec import Spec
from grpccli.state import is_unset, or_empty

console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="grpccli",
        description="Interactive gRPC client driven by .proto files",
    )
    parser.add_argument("--config", default=None, help="Path to grpccli.yaml (default: ./grpccli.yaml)")
    parser.add_argument("--desc", choices=DESCRIBE_MODES, default=None, help="describe only")
    parser.add_argument("--json", default=None, help="json body for a one-shot call of --method")

    parser.add_argument("--path", action="append", default=None, help="proto import path (repeatable)")
    parser.add_argument("--file", action="append", default=None, help="proto file (repeatable)")
    parser.add_argument("--package", default=None, help="default package")
    parser.add_argument("--service", default=None, help="default service")
    parser.add_argument("--method", default=None, help="default method")

    parser.add_argument("--host", default=None, help="gRPC server host")
    parser.add_argument("--port", default=None, help="gRPC server port")
    parser.add_argument("--tls", action="store_true", default=None, help="use a secure TLS connection")
    parser.add_argument("--cacert", default=None, help="the CA certificate file for verifying the server")
    parser.add_argument(
        "--cert", default=None,
        help="the certificate file for mutual TLS auth. it must be provided with --certkey.",
    )
    parser.add_argument(
        "--certkey", default=None,
        help="the private key file for mutual TLS auth. it must be provided with --cert.",
    )
    parser.add_argument(
        "--servername", default=None,
        help="override the server name used to verify the hostname (ignored if --tls is disabled)",
    )
    parser.add_argument("--timeout", type=float, default=None, help="per-call deadline in seconds")
    return parser


def load_spec(cfg: Settings) -> Spec:
    parsed = proto_parser.parse(cfg.proto_files, cfg.proto_paths)
    return Spec.build(parsed.descriptor_set, parsed.files)


def call_once(spec: Spec, cfg: Settings) -> None:
    """Non-interactive call of cfg.method with cfg.body."""
    rpc = spec.rpc(or_empty(cfg.package), or_empty(cfg.service), or_empty(cfg.method))
    request = rpc.request_type.new().decode_from(cfg.body)
    credentials = certs.build(cfg.tls, cfg.ca_cert, cfg.cert, cfg.cert_key, cfg.server_name)
    response = invoke(cfg.address, credentials, rpc, {}, request, timeout=cfg.timeout_seconds)
    console.print_json(json_report.build(response))


def run(cfg: Settings) -> None:
    spec = load_spec(cfg)

    if cfg.describe:
        describe(spec, cfg, console)
        return

    if cfg.body and not is_unset(cfg.method):
        call_once(spec, cfg)
        return

    console.print(Rule(f"[bold]grpccli | {cfg.address}[/bold]"))
    run_session(Session(spec, cfg, out=console))


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    try:
        cfg = Settings(load_config(args.config)).apply_args(args)
        run(cfg)
    except GrpcCliError as exc:
        console.print(f"[bold red]ERROR:[/bold red] {escape(str(exc))}")
        sys.exit(1)


if __name__ == "__main__":
    main()
