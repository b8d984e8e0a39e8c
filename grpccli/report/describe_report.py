"""
grpccli/report/describe_report.py
One-shot, non-interactive listing of the index contents (--desc).

    pkg  – every package
    svc  – services of the configured package
    rpc  – the configured method with its request/response fields
"""

from __future__ import annotations

from google.protobuf import descriptor_pb2
from google.protobuf.descriptor import Descriptor, FieldDescriptor
from rich.console import Console
from rich.table import Table

from grpccli.config import Settings
from grpccli.errors import ConfigError, MessageUnknown
from grpccli.spec import Spec
from grpccli.state import RPC, or_empty

DESCRIBE_MODES = ("pkg", "svc", "rpc")

_LABELS = {
    descriptor_pb2.FieldDescriptorProto.LABEL_REPEATED: "repeated",
    descriptor_pb2.FieldDescriptorProto.LABEL_REQUIRED: "required",
}
_TYPE_NAMES = {
    number: name[len("TYPE_"):].lower()
    for name, number in descriptor_pb2.FieldDescriptorProto.Type.items()
}


def _label(field: FieldDescriptor) -> str:
    # Newer protobuf releases drop FieldDescriptor.label for is_repeated/is_required.
    repeated = getattr(field, "is_repeated", None)
    if repeated is None:
        return _LABELS.get(field.label, "")
    if repeated:
        return "repeated"
    if getattr(field, "is_required", False):
        return "required"
    return ""


def _type_name(field: FieldDescriptor) -> str:
    if field.message_type is not None:
        return field.message_type.full_name
    if field.enum_type is not None:
        return field.enum_type.full_name
    return _TYPE_NAMES.get(field.type, str(field.type))


def message_table(desc: Descriptor) -> Table:
    table = Table(title=desc.full_name, border_style="blue")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Field", style="bold")
    table.add_column("Type")
    table.add_column("Label", style="dim")
    for field in desc.fields:
        table.add_row(str(field.number), field.name, _type_name(field), _label(field))
    return table


def rpc_table(rpc: RPC) -> Table:
    table = Table(title=rpc.fully_qualified_name, show_header=False, border_style="green")
    table.add_column("", style="bold")
    table.add_column("")
    table.add_row("Name", rpc.name)
    table.add_row("Request", rpc.request_type.fully_qualified_name)
    table.add_row("Response", rpc.response_type.fully_qualified_name)
    table.add_row("Client streaming", str(rpc.is_client_streaming))
    table.add_row("Server streaming", str(rpc.is_server_streaming))
    return table


def _names_table(title: str, names: list[str]) -> Table:
    table = Table(title=title, border_style="cyan")
    table.add_column("Name", style="bold")
    for name in names:
        table.add_row(name)
    return table


def describe(spec: Spec, cfg: Settings, console: Console) -> None:
    """Print the part of the index selected by cfg.describe.

    Lookup errors propagate; the caller treats them as fatal.
    """
    mode = cfg.describe
    if mode == "pkg":
        console.print(_names_table("Packages", spec.package_names()))
    elif mode == "svc":
        console.print(_names_table(f"Services in {cfg.package}", spec.service_names(or_empty(cfg.package))))
    elif mode == "rpc":
        rpc = spec.rpc(or_empty(cfg.package), or_empty(cfg.service), or_empty(cfg.method))
        console.print(rpc_table(rpc))
        for ref in (rpc.request_type, rpc.response_type):
            try:
                desc = spec.message(ref.fully_qualified_name)
            except MessageUnknown:
                desc = ref.descriptor
            console.print(message_table(desc))
    else:
        raise ConfigError(f'unknown describe mode "{mode}", expected one of {", ".join(DESCRIBE_MODES)}')
