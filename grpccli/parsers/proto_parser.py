"""
grpccli/parsers/proto_parser.py
Compiles .proto files into a FileDescriptorSet with the protoc bundled in
grpcio-tools.  Imports are resolved against the given import paths plus the
well-known types shipped with grpc_tools, and are included in the set so every
message type referenced by a method can be found.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

import grpc_tools
from google.protobuf import descriptor_pb2
from grpc_tools import protoc

from grpccli.errors import ProtoParseError

_WELL_KNOWN_PROTOS = os.path.join(os.path.dirname(grpc_tools.__file__), "_proto")


@dataclass
class ParsedProtos:
    """Output of one protoc run."""

    descriptor_set: descriptor_pb2.FileDescriptorSet
    # Names (as protoc reports them) of the files that were asked for,
    # as opposed to the ones pulled in through imports.
    files: list[str] = field(default_factory=list)


def _include_paths(files: list[str], import_paths: list[str]) -> list[str]:
    if import_paths:
        return list(import_paths)
    # No explicit paths: every file is resolved next to itself.
    paths: list[str] = []
    for f in files:
        parent = os.path.dirname(f) or "."
        if parent not in paths:
            paths.append(parent)
    return paths


def _virtual_name(file: str, include_paths: Iterable[str]) -> str:
    """Name protoc gives *file*: its path relative to the first matching -I."""
    p = Path(file)
    if p.exists():
        resolved = p.resolve()
        for inc in include_paths:
            try:
                return resolved.relative_to(Path(inc).resolve()).as_posix()
            except ValueError:
                continue
    return p.as_posix()


def parse(files: list[str], import_paths: list[str] | None = None) -> ParsedProtos:
    """Run protoc over *files* and return the resulting descriptor set."""
    if not files:
        raise ProtoParseError("proto: no proto files given")

    include_paths = _include_paths(files, list(import_paths or []))

    with tempfile.TemporaryDirectory() as td:
        out_file = os.path.join(td, "descriptors.pb")
        args = ["protoc"]
        args += [f"-I{p}" for p in include_paths]
        args.append(f"-I{_WELL_KNOWN_PROTOS}")
        args += [f"--descriptor_set_out={out_file}", "--include_imports"]
        args += list(files)

        code = protoc.main(args)
        if code != 0:
            raise ProtoParseError(
                f"proto: failed to parse proto files {files} (protoc exit code {code})"
            )
        with open(out_file, "rb") as f:
            data = f.read()

    fds = descriptor_pb2.FileDescriptorSet()
    fds.ParseFromString(data)
    return ParsedProtos(
        descriptor_set=fds,
        files=[_virtual_name(f, include_paths) for f in files],
    )
