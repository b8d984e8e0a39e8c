"""
grpccli/dynamic.py
Schema-driven payloads.

A DynamicMessage wraps a protobuf message whose class is built at runtime
from a Descriptor (message_factory.GetMessageClass), so any message declared
in the loaded .proto files can be filled from JSON, put on the wire and read
back without generated *_pb2 modules.
"""

from __future__ import annotations

from typing import Any, Callable

from google.protobuf import json_format, message_factory
from google.protobuf.descriptor import Descriptor
from google.protobuf.message import DecodeError, Message

from grpccli.errors import PayloadDecodeError, TypeConstructionError


class DynamicMessage:
    """A message value bound to its descriptor."""

    __slots__ = ("descriptor", "message")

    def __init__(self, descriptor: Descriptor, message: Message):
        self.descriptor = descriptor
        self.message = message

    def __repr__(self) -> str:
        return f"DynamicMessage({self.descriptor.full_name}, {self.to_dict()!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DynamicMessage):
            return NotImplemented
        return self.descriptor.full_name == other.descriptor.full_name and self.message == other.message

    # ── JSON ──────────────────────────────────────────────────────────────────

    def decode_from(self, text: str) -> "DynamicMessage":
        """Replace the contents with the JSON document in *text*."""
        self.message.Clear()
        try:
            json_format.Parse(text, self.message)
        except json_format.ParseError as exc:
            raise PayloadDecodeError(
                f'failed to unmarshal data "{text}" to {self.descriptor.full_name}: {exc}'
            ) from exc
        return self

    def encode_to(self, indent: int | None = 2) -> str:
        return json_format.MessageToJson(
            self.message, indent=indent, preserving_proto_field_name=True
        )

    def to_dict(self) -> dict[str, Any]:
        return json_format.MessageToDict(self.message, preserving_proto_field_name=True)

    # ── Wire ──────────────────────────────────────────────────────────────────

    def serialize(self) -> bytes:
        return self.message.SerializeToString()

    def parse(self, data: bytes) -> "DynamicMessage":
        self.message.Clear()
        try:
            self.message.ParseFromString(data)
        except DecodeError as exc:
            raise PayloadDecodeError(
                f"failed to decode {self.descriptor.full_name} from wire bytes: {exc}"
            ) from exc
        return self

    @staticmethod
    def deserializer(descriptor: Descriptor) -> Callable[[bytes], "DynamicMessage"]:
        """Response deserializer for a channel: bytes → fresh DynamicMessage."""

        def _deserialize(data: bytes) -> DynamicMessage:
            return new_instance(descriptor).parse(data)

        return _deserialize


def new_instance(descriptor: Descriptor) -> DynamicMessage:
    """Build a fresh, empty payload for *descriptor*."""
    try:
        message_cls = message_factory.GetMessageClass(descriptor)
    except (TypeError, KeyError, AttributeError) as exc:
        raise TypeConstructionError(
            f"failed to build a message class for {getattr(descriptor, 'full_name', descriptor)}: {exc}"
        ) from exc
    return DynamicMessage(descriptor, message_cls())
