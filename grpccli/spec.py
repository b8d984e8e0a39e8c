"""
grpccli/spec.py
In-memory index over the descriptor graph produced by the proto parser.

The index is built once at startup and answers the lookups the session needs:
which packages exist, which services a package declares, which methods a
service exposes.  Lookups always validate the package before the service and
the service before the method so the caller gets the most specific error.
"""

from __future__ import annotations

from typing import Iterable, Iterator

from google.protobuf import descriptor_pb2, descriptor_pool
from google.protobuf.descriptor import Descriptor, MethodDescriptor, ServiceDescriptor

from grpccli.errors import (
    MessageUnknown,
    PackageEmpty,
    PackageUnknown,
    ParseAggregationError,
    RPCUnknown,
    ServiceEmpty,
    ServiceUnknown,
)
from grpccli.state import RPC, TypeRef


def _walk_messages(prefix: str, protos: Iterable[descriptor_pb2.DescriptorProto]) -> Iterator[str]:
    """Yield fully-qualified names of messages and their nested types."""
    for proto in protos:
        fqn = f"{prefix}.{proto.name}" if prefix else proto.name
        yield fqn
        yield from _walk_messages(fqn, proto.nested_type)


class Spec:
    """Queryable view of packages → services → methods → message types."""

    def __init__(
        self,
        pool: descriptor_pool.DescriptorPool,
        packages: set[str],
        services_by_package: dict[str, list[ServiceDescriptor]],
        methods_by_service: dict[str, list[MethodDescriptor]],
        messages: dict[str, Descriptor],
    ):
        self.pool = pool
        self.packages = packages
        # key: package name, val: service descriptors declared in the package
        self.services_by_package = services_by_package
        # key: fully qualified service name, val: its method descriptors
        self.methods_by_service = methods_by_service
        # key: fully qualified message name, val: the message descriptor
        self.messages = messages

    # ── Construction ──────────────────────────────────────────────────────────

    @classmethod
    def build(
        cls,
        descriptor_set: descriptor_pb2.FileDescriptorSet,
        files: list[str] | None = None,
    ) -> "Spec":
        """Index *descriptor_set*.

        Every file is added to a private pool so imported types resolve, but
        only the files named in *files* (all of them when None) contribute
        packages and services.
        """
        if not descriptor_set.file:
            raise ParseAggregationError("proto: descriptor set is empty")

        pool = descriptor_pool.DescriptorPool()
        for fd_proto in descriptor_set.file:
            try:
                pool.Add(fd_proto)
            except (TypeError, KeyError, ValueError) as exc:
                raise ParseAggregationError(
                    f"proto: failed to load {fd_proto.name} into the descriptor pool: {exc}"
                ) from exc

        wanted = set(files) if files is not None else None
        packages: set[str] = set()
        services_by_package: dict[str, list[ServiceDescriptor]] = {}
        methods_by_service: dict[str, list[MethodDescriptor]] = {}
        messages: dict[str, Descriptor] = {}

        for fd_proto in descriptor_set.file:
            try:
                for fqn in _walk_messages(fd_proto.package, fd_proto.message_type):
                    messages[fqn] = pool.FindMessageTypeByName(fqn)

                if wanted is not None and fd_proto.name not in wanted:
                    continue

                pkg = fd_proto.package
                packages.add(pkg)
                services = services_by_package.setdefault(pkg, [])
                for svc_proto in fd_proto.service:
                    fqsn = f"{pkg}.{svc_proto.name}" if pkg else svc_proto.name
                    svc = pool.FindServiceByName(fqsn)
                    services.append(svc)
                    for method in svc.methods:
                        if method.input_type is None or method.output_type is None:
                            raise ParseAggregationError(
                                f"proto: cannot locate the types of {method.full_name}"
                            )
                    methods_by_service.setdefault(svc.full_name, []).extend(svc.methods)
            except KeyError as exc:
                raise ParseAggregationError(
                    f"proto: failed to index {fd_proto.name}: {exc}"
                ) from exc

        if not packages:
            raise ParseAggregationError(f"proto: none of {sorted(wanted or [])} was parsed")

        return cls(pool, packages, services_by_package, methods_by_service, messages)

    # ── Queries ───────────────────────────────────────────────────────────────

    def package_names(self) -> list[str]:
        return sorted(self.packages)

    def service_names(self, package: str) -> list[str]:
        if package == "":
            raise PackageEmpty()
        descs = self.services_by_package.get(package)
        if descs is None:
            raise PackageUnknown(package)
        return [d.name for d in descs]

    def _methods(self, package: str, service: str) -> list[MethodDescriptor]:
        # Check whether package is a valid package or not.
        self.service_names(package)

        if service == "":
            raise ServiceEmpty()

        descs = self.methods_by_service.get(f"{package}.{service}")
        if descs is None:
            raise ServiceUnknown(service)
        return descs

    def rpcs(self, package: str, service: str) -> list[RPC]:
        return [_to_rpc(d) for d in self._methods(package, service)]

    def rpc(self, package: str, service: str, name: str) -> RPC:
        for d in self._methods(package, service):
            if d.name == name:
                return _to_rpc(d)
        raise RPCUnknown(name)

    def message(self, fully_qualified_name: str) -> Descriptor:
        desc = self.messages.get(fully_qualified_name.lstrip("."))
        if desc is None:
            raise MessageUnknown(fully_qualified_name)
        return desc


def _type_ref(desc: Descriptor) -> TypeRef:
    return TypeRef(name=desc.name, fully_qualified_name=desc.full_name, descriptor=desc)


def _to_rpc(d: MethodDescriptor) -> RPC:
    return RPC(
        name=d.name,
        fully_qualified_name=d.full_name,
        request_type=_type_ref(d.input_type),
        response_type=_type_ref(d.output_type),
        is_server_streaming=bool(d.server_streaming),
        is_client_streaming=bool(d.client_streaming),
    )
