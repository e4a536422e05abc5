# SPDX-FileCopyrightText: Copyright (c) 2026, Cowherd Developers (See LICENSE for list)
# SPDX-License-Identifier: BSD 3-Clause License
import collections
import contextlib
import io
import math
import os

import anyio
import httpcore
import httpx
import pytest
import wsproto
from rich.console import Console
from wsproto.events import BytesMessage, CloseConnection, Ping, TextMessage
from wsproto.utilities import generate_accept_token

from cowherd._exceptions import ConnectionClosedError
from cowherd._models import ConnectionTarget
from cowherd._websocket import WebSocket

ENDPOINT = "https://rancher.example.com/v1"
EXEC_URL = "ws://rancher.example.com/v1/exec/"


class MemoryNetworkStream:
    """One end of an in-memory connection with httpcore's network stream interface."""

    def __init__(self, incoming, outgoing):
        self._incoming = incoming
        self._outgoing = outgoing
        self._buffer = b""
        self.closed = False
        self.write_error = None
        self.writes = 0

    async def read(self, max_bytes, timeout=None):
        if not self._buffer:
            try:
                self._buffer = await self._incoming.receive()
            except (anyio.EndOfStream, anyio.ClosedResourceError):
                return b""
        data, self._buffer = self._buffer[:max_bytes], self._buffer[max_bytes:]
        return data

    async def write(self, buffer, timeout=None):
        self.writes += 1
        if self.write_error is not None:
            raise self.write_error
        if self.closed:
            raise httpcore.WriteError("Stream is closed")
        try:
            await self._outgoing.send(bytes(buffer))
        except (anyio.BrokenResourceError, anyio.ClosedResourceError) as e:
            raise httpcore.WriteError(str(e)) from e

    async def aclose(self):
        self.closed = True
        await self._outgoing.aclose()


def memory_stream_pair():
    """Return the client and server ends of an in-memory connection."""
    to_server, from_client = anyio.create_memory_object_stream(math.inf)
    to_client, from_server = anyio.create_memory_object_stream(math.inf)
    return (
        MemoryNetworkStream(from_server, to_server),
        MemoryNetworkStream(from_client, to_client),
    )


class WebSocketPeer:
    """The server side of a websocket, driven by the test."""

    def __init__(self, stream):
        self.stream = stream
        self.connection = wsproto.Connection(wsproto.ConnectionType.SERVER)
        self._events = collections.deque()

    async def send(self, event):
        await self.stream.write(self.connection.send(event))

    async def send_bytes(self, data):
        await self.send(BytesMessage(data=data))

    async def send_text(self, data):
        await self.send(TextMessage(data=data))

    async def ping(self, payload=b"are you there"):
        await self.send(Ping(payload=payload))

    async def close(self, code=1000, reason=None):
        await self.send(CloseConnection(code=code, reason=reason))

    async def next_event(self):
        with anyio.fail_after(5):
            while not self._events:
                data = await self.stream.read(65536)
                self.connection.receive_data(data or None)
                self._events.extend(self.connection.events())
        return self._events.popleft()

    async def next_message(self):
        while True:
            event = await self.next_event()
            if isinstance(event, (BytesMessage, TextMessage)):
                return event


class ManagementAPIStub:
    """Serves the container list, exec and websocket upgrade endpoints."""

    def __init__(self, containers=(), exec_response=None):
        self.containers = list(containers)
        self.exec_response = exec_response or {"url": EXEC_URL, "token": "t0k3n"}
        self.exec_status = 200
        self.upgrade_status = 101
        self.requests = []
        self.peer = None

    def handler(self, request):
        self.requests.append(request)
        if request.headers.get("upgrade", "").lower() == "websocket":
            return self._upgrade(request)
        if request.method == "GET" and request.url.path.endswith("/containers/"):
            return httpx.Response(200, json={"data": self.containers})
        if request.method == "POST" and request.url.params.get("action") == "execute":
            return httpx.Response(self.exec_status, json=self.exec_response)
        return httpx.Response(404, json={"message": "Not found"})

    def _upgrade(self, request):
        if self.upgrade_status != 101:
            return httpx.Response(self.upgrade_status, text="Forbidden")
        client_stream, server_stream = memory_stream_pair()
        self.peer = WebSocketPeer(server_stream)
        key = request.headers["sec-websocket-key"].encode()
        return httpx.Response(
            101,
            headers={
                "Upgrade": "websocket",
                "Connection": "Upgrade",
                "Sec-WebSocket-Accept": generate_accept_token(key).decode(),
            },
            extensions={"network_stream": client_stream},
        )

    @property
    def transport(self):
        return httpx.MockTransport(self.handler)


class FakeWebSocket:
    """Stands in for a connected WebSocket in bridge tests."""

    def __init__(self):
        self.sent = []
        self.close_code = None
        self._send, self._receive = anyio.create_memory_object_stream(math.inf)

    def feed(self, frame):
        self._send.send_nowait(frame)

    def close_remote(self, code=1000):
        self.close_code = code
        self._send.send_nowait(ConnectionClosedError(code))

    async def send_bytes(self, data):
        if self.close_code is not None:
            raise ConnectionClosedError(self.close_code)
        self.sent.append(data)

    async def receive_bytes(self):
        item = await self._receive.receive()
        if isinstance(item, BaseException):
            raise item
        return item


class FakeTerminal:
    def __init__(self):
        self.entered = 0
        self.restored = 0

    @property
    def is_raw(self):
        return self.entered > self.restored

    def __enter__(self):
        self.entered += 1
        return self

    def __exit__(self, *args):
        self.restored += 1


class Pipe:
    def __init__(self):
        self.reader, self.writer = os.pipe()
        self._open = {self.reader, self.writer}

    def write(self, data):
        os.write(self.writer, data)

    def close_writer(self):
        self._close(self.writer)

    def read_available(self):
        os.set_blocking(self.reader, False)
        chunks = []
        with contextlib.suppress(BlockingIOError):
            while chunk := os.read(self.reader, 65536):
                chunks.append(chunk)
        return b"".join(chunks)

    def _close(self, fd):
        if fd in self._open:
            self._open.remove(fd)
            os.close(fd)

    def close(self):
        for fd in (self.writer, self.reader):
            self._close(fd)


@pytest.fixture
def target():
    return ConnectionTarget(endpoint=ENDPOINT + "/", user="access-key", password="secret-key")


@pytest.fixture
def web_1():
    return {
        "id": "1c1",
        "name": "web-1",
        "accountId": "1a1",
        "primaryIpAddress": "10.0.0.5",
        "state": "running",
        "kind": "container",
    }


@pytest.fixture
def web_2():
    return {
        "id": "1c2",
        "name": "web-2",
        "accountId": "1a1",
        "state": "running",
        "kind": "container",
        "data": {
            "fields": {"primaryIpAddress": "10.0.0.6", "dockerHostIp": "172.16.0.2"}
        },
    }


@pytest.fixture
def api_stub():
    return ManagementAPIStub()


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=200, highlight=False)


@pytest.fixture
def stream_pair():
    return memory_stream_pair()


@pytest.fixture
def websocket_pair(stream_pair):
    client, server = stream_pair
    return WebSocket(client), WebSocketPeer(server)


@pytest.fixture
def stdin_pipe():
    pipe = Pipe()
    yield pipe
    pipe.close()


@pytest.fixture
def stdout_pipe():
    pipe = Pipe()
    yield pipe
    pipe.close()
