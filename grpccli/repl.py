"""
grpccli/repl.py
Interactive session: a line-oriented command loop over the loaded protos.

    info                          show address and headers
    package [name]                show / select the current package
    service [name]                show / select the current service
    set host|port <value>         change the server address
    set header <name> <value...>  add or replace a call header
    call <method> <json body...>  invoke a method of the current service
    help                          list commands
    exit | quit                   leave

Context (package, service, headers, address) lives in a SessionContext that
only this loop mutates.  Every call opens its own connection.
"""
from __future__ import annotations

from pathlib import Path
from typing import Callable

from rich.console import Console
from rich.table import Table
from rich.text import Text

from grpccli import certs
from grpccli.config import Settings
from grpccli.dynamic import DynamicMessage
from grpccli.errors import GrpcCliError
from grpccli.executor import invoke
from grpccli.report import json_report
from grpccli.spec import Spec
from grpccli.state import UNSET, SessionContext, is_unset, or_empty

try:
    import readline
except ImportError:  # pragma: no cover - platform dependent
    readline = None  # type: ignore

console = Console()

HISTORY_FILE = Path.home() / ".grpccli_history"

COMMANDS = ("call", "exit", "help", "info", "package", "quit", "service", "set")
SET_PROPERTIES = ("header", "host", "port")

_HELP = (
    ("info", "show server address and headers"),
    ("package [name]", "show or select the current package"),
    ("service [name]", "show or select the current service"),
    ("set host <value>", "change the server host"),
    ("set port <value>", "change the server port"),
    ("set header <name> <value...>", "add or replace a header sent with every call"),
    ("call <method> <json body...>", "call a method of the current service"),
    ("exit", "leave the session"),
)

Invoker = Callable[..., DynamicMessage]


# ═══════════════════════════════════════════════════════════════
# COMPLETION
# ═══════════════════════════════════════════════════════════════

class Completer:
    """readline completer fed from the index and the session context."""

    def __init__(self) -> None:
        self.children: dict[str, list[str]] = {}

    def update(self, spec: Spec, ctx: SessionContext) -> None:
        packages = spec.package_names()
        services: list[str] = []
        methods: list[str] = []
        pkgs = [ctx["package"]] if ctx["package"] in spec.packages else packages
        for pkg in pkgs:
            if not pkg:
                continue
            for svc in spec.service_names(pkg):
                services.append(svc)
                if not is_unset(ctx["service"]) and svc != ctx["service"]:
                    continue
                methods.extend(rpc.name for rpc in spec.rpcs(pkg, svc))

        self.children = {
            "package": packages,
            "service": sorted(set(services)),
            "call": sorted(set(methods)),
            "set": list(SET_PROPERTIES),
        }

    def candidates(self, buffer: str, text: str) -> list[str]:
        tokens = buffer.split()
        if buffer.endswith(" ") or not tokens:
            tokens.append("")
        if len(tokens) == 1:
            base: list[str] = list(COMMANDS)
        elif len(tokens) == 2:
            base = self.children.get(tokens[0], [])
        else:
            base = []
        return sorted(c for c in base if c.startswith(text))

    def complete(self, text: str, state: int) -> str | None:
        buffer = readline.get_line_buffer()[: readline.get_endidx()] if readline else text
        matches = self.candidates(buffer, text)
        if state < len(matches):
            return matches[state]
        return None


# ═══════════════════════════════════════════════════════════════
# SESSION
# ═══════════════════════════════════════════════════════════════

class Session:
    """Command dispatcher over a SessionContext."""

    def __init__(
        self,
        spec: Spec,
        cfg: Settings,
        out: Console | None = None,
        invoker: Invoker = invoke,
    ) -> None:
        self.spec = spec
        self.cfg = cfg
        self.out = out or console
        self.invoker = invoker
        self.ctx: SessionContext = {
            "package": cfg.package or UNSET,
            "service": cfg.service or UNSET,
            "headers": {},
            "host": cfg.host,
            "port": cfg.port,
        }
        self.completer = Completer()
        self.completer.update(spec, self.ctx)

    # ── Public API ────────────────────────────────────────────────────────────

    @property
    def address(self) -> str:
        if self.ctx["port"]:
            return f"{self.ctx['host']}:{self.ctx['port']}"
        return self.ctx["host"]

    @property
    def prompt(self) -> str:
        pkg, svc = self.ctx["package"], self.ctx["service"]
        if is_unset(pkg):
            return "[green]>[/green] "
        if is_unset(svc):
            return f"[blue]{pkg}[/blue] [green]>[/green] "
        return f"[blue]{pkg}.{svc}[/blue] [green]>[/green] "

    def process(self, line: str) -> bool:
        """Run one command line.  Returns False when the session should end."""
        tokens = line.split()
        if not tokens:
            return True
        cmd, args = tokens[0], tokens[1:]
        handlers = {
            "info": self.show_info,
            "package": self.get_or_set_package,
            "service": self.get_or_set_service,
            "set": self.set_server_props,
            "call": self.call,
            "help": self.show_help,
        }
        if cmd in {"exit", "quit"}:
            return False
        handler = handlers.get(cmd)
        if handler is None:
            return True
        try:
            handler(args)
        except GrpcCliError as exc:
            self.error(str(exc))
        return True

    # ── Commands ──────────────────────────────────────────────────────────────

    def show_info(self, args: list[str] | None = None) -> None:
        self.info(f"Host: {self.ctx['host']}\nPort: {self.ctx['port']}\nHeaders: {self.ctx['headers']}")

    def show_help(self, args: list[str] | None = None) -> None:
        table = Table(show_header=False, border_style="dim")
        table.add_column("", style="bold")
        table.add_column("")
        for usage, summary in _HELP:
            table.add_row(usage, summary)
        self.out.print(table)

    def set_server_props(self, args: list[str]) -> None:
        if len(args) < 2:
            self.error("usage: set host|port <value> | set header <name> <value...>")
            return
        prop = args[0]
        if prop in {"host", "port"}:
            if len(args) != 2:
                self.error(f"usage: set {prop} <value>")
                return
            self.ctx[prop] = args[1]
        elif prop == "header":
            if len(args) < 3:
                self.error("usage: set header <name> <value...>")
                return
            self.ctx["headers"][args[1]] = " ".join(args[2:])
        else:
            self.error(f'unknown property "{prop}"')
            return
        self.show_info()

    def get_or_set_package(self, args: list[str]) -> None:
        if not args:
            self.info(self.ctx["package"])
            return
        name = args[0]
        if name not in self.spec.package_names():
            self.error(f'unknown package name "{name}"')
            return
        self.ctx["package"] = name
        self.completer.update(self.spec, self.ctx)
        self.info(name)

    def get_or_set_service(self, args: list[str]) -> None:
        if not args:
            self.info(self.ctx["service"])
            return
        name = args[0]
        if name not in self.spec.service_names(self._current("package")):
            self.error(f'unknown service name "{name}"')
            return
        self.ctx["service"] = name
        self.completer.update(self.spec, self.ctx)
        self.info(name)

    def call(self, args: list[str]) -> None:
        if len(args) < 2:
            self.error("usage: call <method> <json body...>")
            return
        try:
            rpc = self.spec.rpc(self._current("package"), self._current("service"), args[0])
        except GrpcCliError as exc:
            self.error(f"failed to get RPC: {exc}")
            return

        request = rpc.request_type.new().decode_from(" ".join(args[1:]))
        self.print_json(request)

        credentials = certs.build(
            self.cfg.tls,
            self.cfg.ca_cert,
            self.cfg.cert,
            self.cfg.cert_key,
            self.cfg.server_name,
        )
        try:
            response = self.invoker(
                self.address,
                credentials,
                rpc,
                dict(self.ctx["headers"]),
                request,
                timeout=self.cfg.timeout_seconds,
            )
        except GrpcCliError as exc:
            self.error(f"failed to request RPC service: {exc}")
            return
        self.print_json(response)

    # ── Output ────────────────────────────────────────────────────────────────

    def info(self, message: str) -> None:
        self.out.print(Text(message, style="green"))

    def error(self, message: str) -> None:
        self.out.print(Text(message, style="red"))

    def print_json(self, payload: DynamicMessage | dict) -> None:
        self.out.print_json(json_report.build(payload))

    # ── Internal ──────────────────────────────────────────────────────────────

    def _current(self, key: str) -> str:
        value = self.ctx[key]  # type: ignore[literal-required]
        return or_empty(value)


# ═══════════════════════════════════════════════════════════════
# MAIN REPL
# ═══════════════════════════════════════════════════════════════

def _init_readline(completer: Completer) -> None:
    if readline is None:
        return
    readline.set_completer(completer.complete)
    readline.set_completer_delims(" \t\n")
    readline.parse_and_bind("tab: complete")
    try:
        if HISTORY_FILE.exists():
            readline.read_history_file(str(HISTORY_FILE))
    except OSError:
        pass


def _save_history() -> None:
    if readline is None:
        return
    try:
        readline.write_history_file(str(HISTORY_FILE))
    except OSError:
        pass


def _interrupted_on_empty_line() -> bool:
    if readline is None:
        return True
    return not readline.get_line_buffer().strip()


def run_session(session: Session) -> None:
    """Read commands until EOF, exit, or ^C on an empty line."""
    _init_readline(session.completer)
    session.out.print("[dim]Type help for a list of commands, exit to quit.[/dim]")
    try:
        while True:
            try:
                line = session.out.input(session.prompt)
            except EOFError:
                session.out.print("[dim]exit[/dim]")
                break
            except KeyboardInterrupt:
                if _interrupted_on_empty_line():
                    session.out.print("[dim]^C[/dim]")
                    break
                continue
            if not session.process(line.strip()):
                break
    finally:
        _save_history()
