"""
grpccli/config.py – loads grpccli.yaml, environment variables and CLI flags.

Precedence, lowest first: built-in defaults, the YAML file, GRPCCLI_*
environment variables (a .env file is honoured), command-line flags.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from dotenv import load_dotenv

from grpccli.errors import ConfigError
from grpccli.state import UNSET

load_dotenv()

DEFAULT_CONFIG_FILE = "grpccli.yaml"

_STR_LIST = {"type": "array", "items": {"type": "string"}}

CONFIG_SCHEMA: dict = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "proto": {
            "type": "object",
            "additionalProperties": False,
            "properties": {"files": _STR_LIST, "paths": _STR_LIST},
        },
        "default": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "package": {"type": "string"},
                "service": {"type": "string"},
                "method": {"type": "string"},
            },
        },
        "server": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "host": {"type": "string"},
                "port": {"type": ["string", "integer"]},
                "tls": {"type": "boolean"},
                "cacert": {"type": "string"},
                "cert": {"type": "string"},
                "certkey": {"type": "string"},
                "servername": {"type": "string"},
                "timeout_seconds": {"type": "number", "exclusiveMinimum": 0},
            },
        },
    },
}

# env var → (section, key)
_ENV_VARS = {
    "GRPCCLI_HOST": ("server", "host"),
    "GRPCCLI_PORT": ("server", "port"),
    "GRPCCLI_TLS": ("server", "tls"),
    "GRPCCLI_CACERT": ("server", "cacert"),
    "GRPCCLI_CERT": ("server", "cert"),
    "GRPCCLI_CERTKEY": ("server", "certkey"),
    "GRPCCLI_SERVERNAME": ("server", "servername"),
}


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def load_config(path: str | Path | None = None) -> dict:
    """Load and validate the YAML config.

    A missing default file yields an empty config; a missing explicit file is
    an error.
    """
    p = Path(path) if path else Path.cwd() / DEFAULT_CONFIG_FILE
    if not p.exists():
        if path:
            raise ConfigError(f"config file {p} does not exist")
        return {}
    try:
        with open(p) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"failed to parse {p}: {exc}") from exc

    try:
        jsonschema.validate(data, CONFIG_SCHEMA)
    except jsonschema.ValidationError as exc:
        where = "/".join(str(x) for x in exc.absolute_path) or "<root>"
        raise ConfigError(f"invalid config {p} at {where}: {exc.message}") from exc
    return data


class Settings:
    """Central settings object populated from config + env vars + flags."""

    def __init__(self, config: dict | None = None, environ: dict[str, str] | None = None):
        config = dict(config or {})
        environ = os.environ if environ is None else environ

        for var, (section, key) in _ENV_VARS.items():
            if environ.get(var):
                config.setdefault(section, {})
                config[section] = {**config[section], key: environ[var]}

        proto_cfg = config.get("proto", {})
        default_cfg = config.get("default", {})
        server_cfg = config.get("server", {})

        # Protos
        self.proto_files: list[str] = list(proto_cfg.get("files", []))
        self.proto_paths: list[str] = list(proto_cfg.get("paths", []))

        # Addressing defaults
        self.package: str = default_cfg.get("package", UNSET)
        self.service: str = default_cfg.get("service", UNSET)
        self.method: str = default_cfg.get("method", UNSET)

        # Server
        self.host: str = str(server_cfg.get("host", "localhost"))
        self.port: str = str(server_cfg.get("port", "50051"))
        self.tls: bool = _as_bool(server_cfg.get("tls", False))
        self.ca_cert: str = server_cfg.get("cacert", "")
        self.cert: str = server_cfg.get("cert", "")
        self.cert_key: str = server_cfg.get("certkey", "")
        self.server_name: str = server_cfg.get("servername", "")
        self.timeout_seconds: float | None = server_cfg.get("timeout_seconds")

        # One-shot modes
        self.describe: str = ""
        self.body: str = ""

    @property
    def address(self) -> str:
        if self.port:
            return f"{self.host}:{self.port}"
        return self.host

    def apply_args(self, args: Any) -> "Settings":
        """Override settings with the non-None attributes of parsed CLI args."""
        mapping = {
            "file": "proto_files",
            "path": "proto_paths",
            "package": "package",
            "service": "service",
            "method": "method",
            "host": "host",
            "port": "port",
            "tls": "tls",
            "cacert": "ca_cert",
            "cert": "cert",
            "certkey": "cert_key",
            "servername": "server_name",
            "timeout": "timeout_seconds",
            "desc": "describe",
            "json": "body",
        }
        for arg_name, attr in mapping.items():
            value = getattr(args, arg_name, None)
            if value is None:
                continue
            if isinstance(value, list):
                value = [item for chunk in value for item in chunk.split(",") if item]
            setattr(self, attr, value)
        return self
