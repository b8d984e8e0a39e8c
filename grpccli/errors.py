"""
grpccli/errors.py
Exception hierarchy.  Everything raised on purpose by grpccli derives from
GrpcCliError so the session loop can report it and keep going.
"""

from __future__ import annotations


class GrpcCliError(Exception):
    """Base class for all grpccli errors."""


class ConfigError(GrpcCliError):
    """The YAML config or command-line flags are invalid."""


# ── Parsing / index build ─────────────────────────────────────────────────────


class ProtoParseError(GrpcCliError):
    """protoc rejected the input files."""


class ParseAggregationError(GrpcCliError):
    """The descriptor graph is empty or a method type cannot be located."""


# ── Schema lookups ────────────────────────────────────────────────────────────


class SpecError(GrpcCliError, LookupError):
    """A package/service/method/message lookup failed."""

    message = "spec lookup failed"

    def __init__(self, name: str | None = None):
        self.name = name
        text = self.message if name is None else f'{self.message} "{name}"'
        super().__init__(text)


class PackageEmpty(SpecError):
    message = "package is an empty string"

    def __init__(self) -> None:
        super().__init__(None)


class PackageUnknown(SpecError):
    message = "unknown package name"


class ServiceEmpty(SpecError):
    message = "service is an empty string"

    def __init__(self) -> None:
        super().__init__(None)


class ServiceUnknown(SpecError):
    message = "unknown service name"


class RPCUnknown(SpecError):
    message = "unknown RPC name"


class MessageUnknown(SpecError):
    message = "unknown message type"


# ── Payloads ──────────────────────────────────────────────────────────────────


class TypeConstructionError(GrpcCliError):
    """No message class could be built from a descriptor."""


class PayloadDecodeError(GrpcCliError, ValueError):
    """A request body does not match the message schema."""


# ── Method names ──────────────────────────────────────────────────────────────


class MethodNameError(GrpcCliError, ValueError):
    """A method name cannot be turned into a wire path."""


class InvalidFullyQualifiedName(MethodNameError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f'invalid fully qualified RPC name "{name}"')


# ── Credentials ───────────────────────────────────────────────────────────────


class CertLoadError(GrpcCliError):
    """Certificate material could not be loaded."""


class CertPoolAppendError(CertLoadError):
    """The CA bundle holds no usable certificate."""


class KeyPairLoadError(CertLoadError):
    """The client certificate / key pair could not be loaded."""


class ServerNameOverrideError(CertLoadError):
    """The server name override cannot be applied."""


# ── Network ───────────────────────────────────────────────────────────────────


class DialError(GrpcCliError):
    """The connection was not ready before the dial timeout."""


class UnsupportedRPCError(GrpcCliError):
    """Only unary RPCs can be invoked."""


class TransportError(GrpcCliError):
    """The server (or the channel) answered with a non-OK status."""

    def __init__(self, code, details: str):
        self.code = code
        self.details = details
        name = getattr(code, "name", str(code))
        super().__init__(f"{name}: {details}")
