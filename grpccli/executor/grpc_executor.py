"""
grpccli/executor/grpc_executor.py
Performs one unary gRPC call for a resolved RPC.

Fully dynamic: the wire path comes from the RPC's fully-qualified name and
the request/response codecs come from its descriptors.  A fresh channel is
opened for every call and closed afterwards.
"""

from __future__ import annotations

import time

import grpc

from grpccli.certs import ChannelCredentials
from grpccli.dynamic import DynamicMessage
from grpccli.errors import (
    DialError,
    InvalidFullyQualifiedName,
    TransportError,
    UnsupportedRPCError,
)
from grpccli.state import RPC

DIAL_TIMEOUT = 10.0  # seconds
POLL_INTERVAL = 0.25  # seconds between backoff checks while dialing

_RPC_NAME_DELIMITER = "."


# ── Method names ──────────────────────────────────────────────────────────────


def to_wire_method(name: str) -> str:
    """'a.b.Svc.Method' → '/a.b.Svc/Method'."""
    parts = name.split(_RPC_NAME_DELIMITER)
    if len(parts) < 3 or not all(parts):
        raise InvalidFullyQualifiedName(name)
    return f"/{_RPC_NAME_DELIMITER.join(parts[:-1])}/{parts[-1]}"


def from_wire_method(path: str) -> tuple[str, str, str]:
    """'/a.b.Svc/Method' → ('a.b', 'Svc', 'Method')."""
    service, sep, method = path.lstrip("/").partition("/")
    package, _, svc_name = service.rpartition(_RPC_NAME_DELIMITER)
    if not sep or not method or "/" in method or not package or not svc_name:
        raise InvalidFullyQualifiedName(path)
    return package, svc_name, method


# ── Connection ────────────────────────────────────────────────────────────────


class Connection:
    """A channel to one address, tracking its connectivity state."""

    def __init__(self, address: str, credentials: ChannelCredentials | None = None):
        self.address = address
        self.credentials = credentials or ChannelCredentials()
        self.state: grpc.ChannelConnectivity | None = None
        self.channel = self._dial()

    def _dial(self) -> grpc.Channel:
        # A private subchannel pool, so a redial does not inherit the backoff
        # of a subchannel shared with the previous channel.
        options = [*self.credentials.options, ("grpc.use_local_subchannel_pool", 1)]
        if self.credentials.secure:
            channel = grpc.secure_channel(self.address, self.credentials.credentials, options=options)
        else:
            channel = grpc.insecure_channel(self.address, options=options)
        channel.subscribe(self._on_state, try_to_connect=True)
        return channel

    def _on_state(self, state: grpc.ChannelConnectivity) -> None:
        self.state = state

    def wait_ready(self, timeout: float = DIAL_TIMEOUT) -> None:
        """Block until the channel is READY.

        While waiting, a channel found in TRANSIENT_FAILURE has its backoff
        reset, so a server that comes up mid-wait is picked up at the next
        poll instead of after the reconnect delay.
        """
        deadline = time.monotonic() + timeout
        while True:
            ready = grpc.channel_ready_future(self.channel)
            try:
                ready.result(timeout=max(0.0, min(POLL_INTERVAL, deadline - time.monotonic())))
                return
            except grpc.FutureTimeoutError:
                ready.cancel()
            if time.monotonic() >= deadline:
                raise DialError(
                    f"failed to dial to gRPC server {self.address}: not ready after {timeout}s"
                )
            self.reset_backoff()

    def reset_backoff(self) -> bool:
        """Redial if the channel sits in TRANSIENT_FAILURE.

        grpcio has no ResetConnectBackoff; a new channel starts without any
        reconnect delay, so it stands in for one.
        """
        if self.state is not grpc.ChannelConnectivity.TRANSIENT_FAILURE:
            return False
        self.close()
        self.state = None
        self.channel = self._dial()
        return True

    def close(self) -> None:
        self.channel.unsubscribe(self._on_state)
        self.channel.close()

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


# ── Invocation ────────────────────────────────────────────────────────────────


def invoke(
    address: str,
    credentials: ChannelCredentials | None,
    rpc: RPC,
    headers: dict[str, str] | None,
    request: DynamicMessage,
    timeout: float | None = None,
    dial_timeout: float = DIAL_TIMEOUT,
) -> DynamicMessage:
    """Call *rpc* on *address* and return the decoded response."""
    if rpc.streaming:
        raise UnsupportedRPCError(
            f"{rpc.fully_qualified_name} is a streaming RPC; only unary calls are supported"
        )
    method = to_wire_method(rpc.fully_qualified_name)

    # gRPC metadata keys must be lower case.
    metadata = [(name.lower(), value) for name, value in (headers or {}).items()]

    with Connection(address, credentials) as conn:
        conn.wait_ready(dial_timeout)
        call = conn.channel.unary_unary(
            method,
            request_serializer=DynamicMessage.serialize,
            response_deserializer=DynamicMessage.deserializer(rpc.response_type.descriptor),
        )
        try:
            return call(request, metadata=metadata or None, timeout=timeout)
        except grpc.RpcError as exc:
            raise TransportError(exc.code(), exc.details()) from exc
