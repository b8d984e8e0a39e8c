import json

import pytest

from grpccli.dynamic import DynamicMessage, new_instance
from grpccli.errors import PayloadDecodeError


@pytest.fixture
def request_type(spec):
    return spec.rpc("demo", "Greeter", "SayHello").request_type


def test_new_instance_is_empty(request_type):

    payload = new_instance(request_type.descriptor)
    assert isinstance(payload, DynamicMessage)
    assert payload.descriptor.full_name == "demo.HelloRequest"
    assert payload.to_dict() == {}


def test_decode_then_encode(request_type):

    text = '{"name": "Ann", "times": 3, "tags": ["a", "b"], "inner": {"flag": true}}'
    payload = request_type.new().decode_from(text)

    assert payload.message.name == "Ann"
    assert payload.message.times == 3
    assert list(payload.message.tags) == ["a", "b"]
    assert payload.message.inner.flag is True

    assert json.loads(payload.encode_to()) == json.loads(text)


def test_decode_replaces_previous_contents(request_type):

    payload = request_type.new().decode_from('{"name": "Ann", "times": 2}')
    payload.decode_from('{"name": "Bob"}')

    assert payload.to_dict() == {"name": "Bob"}


@pytest.mark.parametrize(
    "text",
    [
        '{"name": ',
        '{"nosuchfield": 1}',
        '{"times": "many"}',
        "not json at all",
    ],
)
def test_decode_errors(request_type, text):

    with pytest.raises(PayloadDecodeError):
        request_type.new().decode_from(text)


def test_wire_bytes(request_type):

    payload = request_type.new().decode_from('{"name": "Ann", "times": 7}')
    data = payload.serialize()

    copy = request_type.new().parse(data)
    assert copy == payload
    assert copy is not payload

    deserialize = DynamicMessage.deserializer(request_type.descriptor)
    assert deserialize(data) == payload
    assert deserialize(data) is not deserialize(data)


def test_parse_garbage(request_type):

    with pytest.raises(PayloadDecodeError):
        request_type.new().parse(b"\xff\xff\xff")


def test_well_known_types(spec):

    reply = spec.rpc("demo", "Greeter", "SayHello").response_type.new()
    reply.decode_from('{"message": "hi", "at": "2024-01-02T03:04:05Z", "headers": {"k": "v"}}')

    assert reply.message.at.seconds == 1704164645
    assert reply.to_dict()["headers"] == {"k": "v"}
    assert reply.to_dict()["at"] == "2024-01-02T03:04:05Z"
