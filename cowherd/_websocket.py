# SPDX-FileCopyrightText: Copyright (c) 2026, Cowherd Developers (See LICENSE for list)
# SPDX-License-Identifier: BSD 3-Clause License
"""A minimal client websocket over an upgraded httpx connection.

Frames are encoded and decoded with wsproto. All writes (data frames, pings,
pongs and close frames) share one lock so the keepalive loop, the ping
responder and the terminal bridge never interleave partial frames on the wire.
"""
from __future__ import annotations

import base64
import collections
import contextlib
import logging
import os
import sys
from typing import AsyncGenerator, Generator

import anyio
import httpcore
import httpx
import wsproto
from wsproto.connection import ConnectionState
from wsproto.events import (
    BytesMessage,
    CloseConnection,
    Event,
    Message,
    Ping,
    Pong,
    TextMessage,
)
from wsproto.utilities import LocalProtocolError, generate_accept_token

from ._constants import (
    ABNORMAL_CLOSURE,
    KEEPALIVE_INTERVAL,
    NORMAL_CLOSURE,
    PING_PAYLOAD,
    PING_TIMEOUT,
)
from ._exceptions import ConnectionClosedError, DialError
from ._types import NetworkStream

if sys.version_info < (3, 11):
    from exceptiongroup import BaseExceptionGroup

logger = logging.getLogger(__name__)

READ_SIZE = 65536


class WebSocket:
    """A client websocket connection.

    Args:
        ``network_stream``: The raw stream of an HTTP connection that has already
        been upgraded to the websocket protocol.

        ``ping_interval`` (float): Seconds between keepalive pings.

        ``ping_timeout`` (float): Deadline in seconds for writing a ping or pong.
    """

    def __init__(
        self,
        network_stream: NetworkStream,
        ping_interval: float = KEEPALIVE_INTERVAL,
        ping_timeout: float = PING_TIMEOUT,
    ) -> None:
        self._connection = wsproto.Connection(wsproto.ConnectionType.CLIENT)
        self._network_stream = network_stream
        self._events: collections.deque[Event] = collections.deque()
        self._write_lock = anyio.Lock()
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self.close_code: int | None = None
        self.close_reason: str | None = None

    @property
    def closed(self) -> bool:
        return self._connection.state is not ConnectionState.OPEN

    async def _write(self, event: Event, timeout: float | None = None) -> None:
        # The deadline covers waiting behind a stalled data frame as well
        try:
            with anyio.fail_after(timeout):
                await self._write_lock.acquire()
        except TimeoutError:
            raise httpcore.WriteTimeout(
                "Timed out waiting for a pending write to finish"
            ) from None
        try:
            data = self._connection.send(event)
            await self._network_stream.write(data, timeout=timeout)
        finally:
            self._write_lock.release()

    async def send_bytes(self, data: bytes) -> None:
        """Send a binary message."""
        if self.closed:
            raise ConnectionClosedError(
                self.close_code or ABNORMAL_CLOSURE, self.close_reason
            )
        await self._write(BytesMessage(data=data))

    async def send_text(self, data: str) -> None:
        """Send a text message."""
        if self.closed:
            raise ConnectionClosedError(
                self.close_code or ABNORMAL_CLOSURE, self.close_reason
            )
        await self._write(TextMessage(data=data))

    async def ping(self, payload: bytes = PING_PAYLOAD) -> None:
        """Send a ping control frame, giving up after ``ping_timeout`` seconds."""
        await self._write(Ping(payload=payload), timeout=self.ping_timeout)

    async def _pong(self, ping: Ping) -> None:
        try:
            await self._write(ping.response(), timeout=self.ping_timeout)
        except LocalProtocolError:
            # We already started closing the connection
            logger.debug("Dropping pong, connection is closing")
        except httpcore.TimeoutException:
            logger.debug("Timed out sending pong")

    async def keepalive(self) -> None:
        """Ping the server every ``ping_interval`` seconds until cancelled.

        Failures are logged and otherwise ignored. A dead connection is noticed
        by whoever is reading from it.
        """
        while True:
            await anyio.sleep(self.ping_interval)
            if self.closed:
                return
            try:
                await self.ping()
            except Exception as e:
                logger.warning("Error sending keepalive ping to server socket: %s", e)

    async def _next_event(self) -> Event:
        while not self._events:
            data = await self._network_stream.read(max_bytes=READ_SIZE)
            # An empty read means the peer went away, wsproto turns None into a 1006 close
            self._connection.receive_data(data or None)
            self._events.extend(self._connection.events())
        return self._events.popleft()

    async def receive_bytes(self) -> bytes:
        """Receive the next complete message as bytes.

        Text messages are returned UTF-8 encoded. Pings are answered while waiting.

        Raises:
            ConnectionClosedError: If the connection is or becomes closed.
        """
        if self._connection.state is ConnectionState.CLOSED:
            raise ConnectionClosedError(
                self.close_code or ABNORMAL_CLOSURE, self.close_reason
            )
        fragments: list[bytes] = []
        while True:
            event = await self._next_event()
            if isinstance(event, Ping):
                await self._pong(event)
            elif isinstance(event, Pong):
                continue
            elif isinstance(event, CloseConnection):
                await self._handle_close(event)
            elif isinstance(event, Message):
                data = event.data
                if isinstance(event, TextMessage):
                    data = data.encode()
                fragments.append(data)
                if event.message_finished:
                    return b"".join(fragments)

    async def _handle_close(self, event: CloseConnection) -> None:
        self.close_code = event.code
        self.close_reason = event.reason or None
        if self._connection.state is ConnectionState.REMOTE_CLOSING:
            with contextlib.suppress(
                LocalProtocolError, httpcore.NetworkError, httpcore.TimeoutException
            ):
                await self._write(event.response(), timeout=self.ping_timeout)
        raise ConnectionClosedError(event.code, self.close_reason)

    async def close(self, code: int = NORMAL_CLOSURE, reason: str | None = None) -> None:
        """Send a close frame if the connection is still open and release the stream."""
        if self._connection.state is ConnectionState.OPEN:
            with contextlib.suppress(
                LocalProtocolError, httpcore.NetworkError, httpcore.TimeoutException
            ):
                await self._write(
                    CloseConnection(code=code, reason=reason), timeout=self.ping_timeout
                )
        await self._network_stream.aclose()


def _http_url(url: str) -> httpx.URL:
    """Websocket URLs are dialled as HTTP upgrades."""
    parsed = httpx.URL(url)
    if parsed.scheme == "ws":
        return parsed.copy_with(scheme="http")
    if parsed.scheme == "wss":
        return parsed.copy_with(scheme="https")
    return parsed


@contextlib.contextmanager
def _unwrap_task_group_error() -> Generator[None, None, None]:
    """Re-raise the exception of a task group that only ever holds one."""
    try:
        yield
    except BaseExceptionGroup as eg:
        if len(eg.exceptions) == 1:
            raise eg.exceptions[0]
        raise


@contextlib.asynccontextmanager
async def connect_websocket(
    client: httpx.AsyncClient,
    url: str,
    origin: str | None = None,
    keepalive: bool = True,
    **kwargs,
) -> AsyncGenerator[WebSocket]:
    """Open a websocket and keep it alive for the duration of the context.

    Args:
        client: The httpx client used for the upgrade request
        url: The ``ws://``, ``wss://``, ``http://`` or ``https://`` URL to dial
        origin: Value for the ``Origin`` header
        keepalive: Whether to run :meth:`WebSocket.keepalive` in the background
        **kwargs: Passed on to :class:`WebSocket`

    Raises:
        DialError: If the handshake fails
    """
    key = base64.b64encode(os.urandom(16))
    headers = {
        "Connection": "Upgrade",
        "Upgrade": "websocket",
        "Sec-WebSocket-Key": key.decode(),
        "Sec-WebSocket-Version": "13",
    }
    if origin:
        headers["Origin"] = origin
    async with contextlib.AsyncExitStack() as stack:
        try:
            response = await stack.enter_async_context(
                client.stream("GET", _http_url(url), headers=headers)
            )
        except httpx.HTTPError as e:
            raise DialError(str(e)) from e
        if response.status_code != 101:
            raise DialError(
                f"Unexpected status code {response.status_code} from "
                f"{response.url.copy_remove_param('token')}"
            )
        accept = response.headers.get("Sec-WebSocket-Accept", "")
        if accept.encode() != generate_accept_token(key):
            raise DialError("Invalid Sec-WebSocket-Accept header in handshake")

        ws = WebSocket(response.extensions["network_stream"], **kwargs)

        async def close() -> None:
            with anyio.CancelScope(shield=True):
                await ws.close()

        stack.push_async_callback(close)
        logger.debug("Websocket connected to %s", response.url.copy_remove_param("token"))
        with _unwrap_task_group_error():
            async with anyio.create_task_group() as tg:
                if keepalive:
                    tg.start_soon(ws.keepalive)
                try:
                    yield ws
                finally:
                    tg.cancel_scope.cancel()
