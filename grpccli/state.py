"""
grpccli/state.py – data shapes shared by the index, the executor and the session.
"""

from __future__ import annotations

from dataclasses import dataclass

from google.protobuf.descriptor import Descriptor
from typing_extensions import TypedDict

from grpccli.dynamic import DynamicMessage, new_instance


# ── Individual data shapes ────────────────────────────────────────────────────


@dataclass(frozen=True)
class TypeRef:
    """A request or response message type of one RPC."""

    name: str                  # e.g. "HelloRequest"
    fully_qualified_name: str  # e.g. "demo.HelloRequest"
    descriptor: Descriptor

    def new(self) -> DynamicMessage:
        """Return a fresh payload; every call yields an unshared instance."""
        return new_instance(self.descriptor)


@dataclass(frozen=True)
class RPC:
    """Public, immutable view of one method."""

    name: str                  # e.g. "SayHello"
    fully_qualified_name: str  # e.g. "demo.Greeter.SayHello"
    request_type: TypeRef
    response_type: TypeRef
    is_server_streaming: bool = False
    is_client_streaming: bool = False

    @property
    def streaming(self) -> bool:
        return self.is_server_streaming or self.is_client_streaming


# ── Session state ─────────────────────────────────────────────────────────────


UNSET = "nil"


class SessionContext(TypedDict):
    """Mutable addressing context owned by the interactive session."""

    package: str               # UNSET until a package is selected
    service: str               # UNSET until a service is selected
    headers: dict[str, str]    # header name → value, last write wins
    host: str
    port: str


def is_unset(value: str | None) -> bool:
    return not value or value == UNSET


def or_empty(value: str | None) -> str:
    """The value to hand to the index: "" when unset."""
    return "" if is_unset(value) else value  # type: ignore[return-value]
