"""Shared fixtures: sample protos, the index built from them, a live server."""

from concurrent import futures

import grpc
import pytest

from grpccli.dynamic import DynamicMessage
from grpccli.parsers import proto_parser
from grpccli.spec import Spec


DEMO_PROTO = """
syntax = "proto3";

package demo;

import "google/protobuf/timestamp.proto";

service Greeter {
  rpc SayHello (HelloRequest) returns (HelloReply);
  rpc SayGoodbye (HelloRequest) returns (HelloReply);
  rpc StreamHellos (HelloRequest) returns (stream HelloReply);
}

service Farewell {
  rpc Bye (HelloRequest) returns (HelloReply);
}

message HelloRequest {
  message Inner {
    bool flag = 1;
  }
  string name = 1;
  int32 times = 2;
  repeated string tags = 3;
  Inner inner = 4;
}

message HelloReply {
  string message = 1;
  google.protobuf.Timestamp at = 2;
  map<string, string> headers = 3;
}
"""

BILLING_PROTO = """
syntax = "proto3";

package acme.billing;

service Invoices {
  rpc Get (GetInvoiceRequest) returns (Invoice);
}

message GetInvoiceRequest {
  string id = 1;
}

message Invoice {
  string id = 1;
  double amount = 2;
}
"""


@pytest.fixture(scope="session")
def proto_dir(tmp_path_factory):
    directory = tmp_path_factory.mktemp("protos")
    (directory / "demo.proto").write_text(DEMO_PROTO)
    (directory / "billing.proto").write_text(BILLING_PROTO)
    return directory


@pytest.fixture(scope="session")
def proto_files(proto_dir):
    return [str(proto_dir / "demo.proto"), str(proto_dir / "billing.proto")]


@pytest.fixture(scope="session")
def parsed(proto_dir, proto_files):
    return proto_parser.parse(proto_files, [str(proto_dir)])


@pytest.fixture(scope="session")
def spec(parsed):
    return Spec.build(parsed.descriptor_set, parsed.files)


@pytest.fixture(scope="session")
def greeter_handler(spec):
    """Generic handler answering demo.Greeter from the dynamic descriptors."""

    say_hello = spec.rpc("demo", "Greeter", "SayHello")

    _deserialize = DynamicMessage.deserializer(say_hello.request_type.descriptor)

    def hello(request, context):
        metadata = dict(context.invocation_metadata())
        reply = say_hello.response_type.new()
        reply.message.message = f"Hello, {request.message.name}!"
        for key in ("x-trace", "authorization"):
            if key in metadata:
                reply.message.headers[key] = metadata[key]
        return reply

    def goodbye(request, context):
        context.abort(grpc.StatusCode.NOT_FOUND, f"nobody called {request.message.name}")

    return grpc.method_handlers_generic_handler(
        "demo.Greeter",
        {
            "SayHello": grpc.unary_unary_rpc_method_handler(
                hello,
                request_deserializer=_deserialize,
                response_serializer=DynamicMessage.serialize,
            ),
            "SayGoodbye": grpc.unary_unary_rpc_method_handler(
                goodbye,
                request_deserializer=_deserialize,
                response_serializer=DynamicMessage.serialize,
            ),
        },
    )


def _serve(handler, address):
    server = grpc.server(futures.ThreadPoolExecutor(max_workers=2))
    server.add_generic_rpc_handlers((handler,))
    port = server.add_insecure_port(address)
    server.start()
    return server, port


@pytest.fixture(scope="session")
def greeter_address(greeter_handler):
    """A real grpc server answering demo.Greeter."""

    server, port = _serve(greeter_handler, "127.0.0.1:0")

    yield f"127.0.0.1:{port}"

    server.stop(None)


@pytest.fixture
def start_greeter(greeter_handler):
    """Starts a greeter server on a given address; stopped at teardown."""

    servers = []

    def _start(address):
        server, _ = _serve(greeter_handler, address)
        servers.append(server)

    yield _start

    for server in servers:
        server.stop(None)
