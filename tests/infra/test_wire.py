"""S3StorageClient against a local HTTP server, checking what goes on the wire."""

from __future__ import annotations

import base64
import hashlib
import hmac
import os
import threading
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
import requests

from bucketkit.infra.storage.client import (
    Auth,
    DeleteRequest,
    GetRequest,
    HTTPStatusError,
    ListRequest,
    ObjectRef,
    PutObjectRequest,
    PutRequest,
)
from bucketkit.infra.storage.s3_client import S3StorageClient

LISTING_XML = b"""<ListBucketResult xmlns="http://s3.amazonaws.com/doc/2006-03-01/">
  <Name>b</Name>
  <IsTruncated>false</IsTruncated>
  <Contents><Key>a.txt</Key><Size>5</Size></Contents>
</ListBucketResult>"""


@dataclass
class ReceivedRequest:
    method: str
    target: str
    headers: dict[str, str]
    body: bytes

    @property
    def path(self) -> str:
        return self.target.split("?", 1)[0]

    @property
    def query(self) -> str:
        return self.target.split("?", 1)[1] if "?" in self.target else ""


@dataclass
class Reply:
    status: int = 200
    body: bytes = b""


class RecordingHandler(BaseHTTPRequestHandler):
    """Records every request on the server and answers with its next reply."""

    protocol_version = "HTTP/1.1"

    def _handle(self):
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length) if length else b""
        self.server.received.append(
            ReceivedRequest(
                method=self.command,
                target=self.path,
                headers=dict(self.headers.items()),
                body=body,
            )
        )
        reply = self.server.replies.pop(0) if self.server.replies else Reply()
        self.close_connection = True
        self.send_response(reply.status)
        self.send_header("Content-Length", str(len(reply.body)))
        self.send_header("Connection", "close")
        self.end_headers()
        if reply.body:
            self.wfile.write(reply.body)

    do_GET = _handle
    do_PUT = _handle
    do_DELETE = _handle

    def log_message(self, format, *args):
        pass


@dataclass
class LocalServer:
    server: ThreadingHTTPServer

    @property
    def endpoint(self) -> str:
        host, port = self.server.server_address[:2]
        return f"http://{host}:{port}"

    def reply(self, status: int = 200, body: bytes = b"") -> None:
        self.server.replies.append(Reply(status, body))

    @property
    def last(self) -> ReceivedRequest:
        return self.server.received[-1]


@pytest.fixture
def server():
    httpd = ThreadingHTTPServer(("127.0.0.1", 0), RecordingHandler)
    httpd.daemon_threads = True
    httpd.received = []
    httpd.replies = []
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    try:
        yield LocalServer(server=httpd)
    finally:
        httpd.shutdown()
        httpd.server_close()
        thread.join(5)


@pytest.fixture
def wire_client(server):
    session = requests.Session()
    session.trust_env = False
    client = S3StorageClient(
        auth=Auth(access_key="AKID", secret_key="secret"),
        endpoint=server.endpoint,
        session=session,
    )
    with client:
        yield client


def _assert_signed(received: ReceivedRequest) -> None:
    canonical = "\n".join(
        [
            received.method,
            "",
            received.headers.get("Content-Type", ""),
            received.headers["Date"],
            received.path,
        ]
    )
    digest = hmac.new(b"secret", canonical.encode("utf-8"), hashlib.sha1).digest()
    expected = "AWS AKID:" + base64.b64encode(digest).decode("ascii")
    assert received.headers["Authorization"] == expected


class _PipeReaderFactory:
    """Reader factory over an OS pipe, a stream with no size or position."""

    def __init__(self, data: bytes):
        self.data = data

    def create_reader(self):
        read_fd, write_fd = os.pipe()
        os.write(write_fd, self.data)
        os.close(write_fd)
        return os.fdopen(read_fd, "rb", buffering=0)

    def length(self) -> int:
        return len(self.data)


class TestWireList:
    def test_list_sends_query_and_signs_bucket_path(self, server, wire_client):
        server.reply(body=LISTING_XML)

        result = wire_client.list_objects(
            ListRequest(bucket="b", max_keys=5, prefix="logs/")
        )

        assert result.keys == ["a.txt"]
        received = server.last
        assert received.method == "GET"
        assert received.path == "/b/"
        assert received.query == "max-keys=5&prefix=logs%2F"
        _assert_signed(received)


class TestWireGet:
    def test_get_object(self, server, wire_client):
        server.reply(body=b"hello")

        data = wire_client.get_object(GetRequest(object=ObjectRef("b", "a.txt")))

        assert data == b"hello"
        assert server.last.path == "/b/a.txt"
        _assert_signed(server.last)

    def test_open_object_streams_body(self, server, wire_client):
        server.reply(body=b"streamed body")

        body = wire_client.open_object(GetRequest(object=ObjectRef("b", "a.txt")))
        try:
            assert body.read() == b"streamed body"
        finally:
            body.close()

    def test_key_with_space_is_sent_as_percent_20(self, server, wire_client):
        wire_client.get_object(GetRequest(object=ObjectRef("b", "my key.txt")))

        assert server.last.path == "/b/my%20key.txt"
        _assert_signed(server.last)

    def test_dot_segments_reach_server_as_signed(self, server, wire_client):
        wire_client.get_object(GetRequest(object=ObjectRef("b", "a/../c")))

        assert server.last.path == "/b/a/%2E%2E/c"
        _assert_signed(server.last)


class TestWireDelete:
    def test_delete_204_is_success(self, server, wire_client):
        server.reply(status=204)

        wire_client.delete_object(DeleteRequest(object=ObjectRef("b", "a.txt")))

        assert server.last.method == "DELETE"
        assert server.last.path == "/b/a.txt"
        _assert_signed(server.last)

    def test_delete_404_is_failure(self, server, wire_client):
        server.reply(status=404)

        with pytest.raises(HTTPStatusError) as exc_info:
            wire_client.delete_object(DeleteRequest(object=ObjectRef("b", "gone")))

        assert exc_info.value.status_code == 404


class TestWirePut:
    def test_put_object(self, server, wire_client):
        wire_client.put_object(
            PutObjectRequest(
                object=ObjectRef("b", "notes.txt"),
                data=b"hello world",
                content_type="text/plain",
            )
        )

        received = server.last
        assert received.method == "PUT"
        assert received.headers["Content-Type"] == "text/plain"
        assert received.headers["Content-Length"] == "11"
        assert received.body == b"hello world"
        _assert_signed(received)

    def test_put_from_pipe_uses_declared_length(self, server, wire_client):
        wire_client.put(
            PutRequest(
                object=ObjectRef("b", "pipe.bin"),
                reader_factory=_PipeReaderFactory(b"hello"),
            )
        )

        received = server.last
        assert received.headers["Content-Length"] == "5"
        assert "Transfer-Encoding" not in received.headers
        assert received.body == b"hello"
        _assert_signed(received)

    def test_put_empty_stream(self, server, wire_client):
        wire_client.put(
            PutRequest(
                object=ObjectRef("b", "empty"),
                reader_factory=_PipeReaderFactory(b""),
                content_type="application/octet-stream",
            )
        )

        received = server.last
        assert received.headers["Content-Length"] == "0"
        assert "Transfer-Encoding" not in received.headers
        assert received.body == b""
        _assert_signed(received)
