# SPDX-FileCopyrightText: Copyright (c) 2026, Cowherd Developers (See LICENSE for list)
# SPDX-License-Identifier: BSD 3-Clause License
from __future__ import annotations

import base64
import binascii
import enum
import logging
import os
import sys
from typing import TYPE_CHECKING, Optional, Protocol

import anyio
from anyio.streams.memory import MemoryObjectSendStream

from ._constants import NORMAL_CLOSURE
from ._exceptions import ConnectionClosedError, StreamError
from ._terminal import RawTerminal

if TYPE_CHECKING:
    from ._websocket import WebSocket

logger = logging.getLogger(__name__)

# The stream loops report at most one outcome, None meaning a clean end
Outcome = Optional[BaseException]


class Terminal(Protocol):
    def __enter__(self) -> object: ...

    def __exit__(self, *args) -> None: ...


class BridgeState(enum.Enum):
    IDLE = "idle"
    RAW_MODE = "raw-mode"
    STREAMING = "streaming"
    RESTORING = "restoring"
    DONE = "done"


class Bridge:
    """Proxy a local terminal to a remote exec session over a websocket.

    Every byte read from ``stdin`` is sent as its own frame, base64 encoded, and
    every frame received is base64 decoded and written to ``stdout``.

    Args:
        ``websocket``: A connected exec session.

        ``stdin`` (int): File descriptor to read keystrokes from. Defaults to stdin.

        ``stdout`` (int): File descriptor to write remote output to. Defaults to stdout.

        ``terminal``: Context manager that switches the local terminal into raw
        mode and back. Defaults to a :class:`RawTerminal` on ``stdin``.

    Example:
        >>> async with api.open_websocket(descriptor) as ws:
        ...     await Bridge(ws).run()
    """

    def __init__(
        self,
        websocket: WebSocket,
        stdin: int | None = None,
        stdout: int | None = None,
        terminal: Terminal | None = None,
    ) -> None:
        self.websocket = websocket
        self.stdin = sys.stdin.fileno() if stdin is None else stdin
        self.stdout = sys.stdout.fileno() if stdout is None else stdout
        self.terminal = RawTerminal(self.stdin) if terminal is None else terminal
        self.state = BridgeState.IDLE

    async def run(self) -> None:
        """Stream until either side finishes, then restore the terminal.

        Raises:
            TerminalModeError: If raw mode cannot be enabled.
            StreamError: If the session ended with anything but a normal closure.
        """
        if self.state is not BridgeState.IDLE:
            raise RuntimeError("A bridge can only be run once")
        outcome: Outcome = None
        with self.terminal:
            self.state = BridgeState.RAW_MODE
            try:
                outcome = await self._stream()
            finally:
                self.state = BridgeState.RESTORING
        self.state = BridgeState.DONE
        if outcome is not None:
            raise StreamError(str(outcome) or type(outcome).__name__) from outcome
        logger.debug("Terminal session ended cleanly")

    async def _stream(self) -> Outcome:
        # One slot, first writer wins. The loser's outcome is dropped.
        send, receive = anyio.create_memory_object_stream[Outcome](1)
        with send, receive:
            async with anyio.create_task_group() as tg:
                tg.start_soon(self._outbound, send)
                tg.start_soon(self._inbound, send)
                self.state = BridgeState.STREAMING
                outcome = await receive.receive()
                tg.cancel_scope.cancel()
        return outcome

    @staticmethod
    def _complete(done: MemoryObjectSendStream[Outcome], outcome: Outcome) -> None:
        try:
            done.send_nowait(outcome)
        except (anyio.WouldBlock, anyio.ClosedResourceError, anyio.BrokenResourceError):
            logger.debug("Session already finished, dropping %r", outcome)

    async def _outbound(self, done: MemoryObjectSendStream[Outcome]) -> None:
        """Copy local input to the websocket a byte at a time."""
        while True:
            try:
                await anyio.wait_readable(self.stdin)
                key = os.read(self.stdin, 1)
            except OSError as e:
                self._complete(done, e)
                return
            if not key:
                logger.debug("Local input closed")
                self._complete(done, None)
                return
            try:
                await self.websocket.send_bytes(base64.b64encode(key))
            except ConnectionClosedError as e:
                self._complete(done, None if e.code == NORMAL_CLOSURE else e)
                return
            except Exception as e:
                self._complete(done, e)
                return

    async def _inbound(self, done: MemoryObjectSendStream[Outcome]) -> None:
        """Copy websocket frames to local output."""
        while True:
            try:
                frame = await self.websocket.receive_bytes()
            except ConnectionClosedError as e:
                self._complete(done, None if e.code == NORMAL_CLOSURE else e)
                return
            except Exception as e:
                self._complete(done, e)
                return
            try:
                data = base64.b64decode(frame, validate=True)
            except binascii.Error as e:
                self._complete(done, e)
                return
            try:
                self._write(data)
            except OSError as e:
                self._complete(done, e)
                return

    def _write(self, data: bytes) -> None:
        view = memoryview(data)
        while view:
            written = os.write(self.stdout, view)
            view = view[written:]
