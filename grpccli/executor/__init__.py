"""
grpccli/executor/__init__.py
Transport layer: wire-path resolution and unary invocation.
"""

from __future__ import annotations

from grpccli.executor.grpc_executor import (
    DIAL_TIMEOUT,
    Connection,
    from_wire_method,
    invoke,
    to_wire_method,
)

__all__ = ["DIAL_TIMEOUT", "Connection", "from_wire_method", "invoke", "to_wire_method"]
