# SPDX-FileCopyrightText: Copyright (c) 2026, Cowherd Developers (See LICENSE for list)
# SPDX-License-Identifier: BSD 3-Clause License
from __future__ import annotations

import contextlib
import logging
from typing import AsyncGenerator, Callable, TextIO

import httpx
from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt

from ._api import Api
from ._exceptions import (
    APITimeoutError,
    InvalidSelectionError,
    NotFoundError,
    ServerError,
    SessionNegotiationError,
)
from ._models import ContainerMatch, ExecSessionDescriptor
from ._terminal import shell_command, terminal_size
from ._websocket import WebSocket

logger = logging.getLogger(__name__)

# Anything that can go wrong between sending a request and decoding its reply.
# Decode failures from json and pydantic are ValueErrors.
API_ERRORS = (ServerError, APITimeoutError, httpx.HTTPError, ValueError)


def to_name_like(pattern: str) -> str:
    """Translate shell style ``*`` wildcards to the API's ``%`` wildcards."""
    return pattern.replace("*", "%")


class Resolver:
    """Turn a container name pattern into a live exec session websocket.

    Args:
        api: The management API client
        console: Where status lines and the candidate list are printed
        stdin: Where the operator's choice is read from, defaults to the console input
        size: Callable returning the local ``(columns, rows)`` for the remote pty
    """

    def __init__(
        self,
        api: Api,
        console: Console | None = None,
        stdin: TextIO | None = None,
        size: Callable[[], tuple[int, int]] = terminal_size,
    ) -> None:
        self.api = api
        self.console = console or Console(highlight=False)
        self._stdin = stdin
        self._size = size

    async def find_container(self, pattern: str) -> ContainerMatch:
        """Find the one running container matching ``pattern``.

        When several containers match, the operator is asked to pick one.

        Raises:
            NotFoundError: If no running container matches.
            InvalidSelectionError: If the operator picks an index outside the list.
            ServerError: If the API cannot be queried.
        """
        try:
            matches = await self.api.list_containers(to_name_like(pattern))
        except (httpx.HTTPError, ValueError) as e:
            raise ServerError(f"Failure communicating with the API: {e}") from e
        logger.debug("%d containers match %s", len(matches), pattern)
        if not matches:
            raise NotFoundError(
                f"Container {pattern} not found, not running, "
                "or you don't have access permissions."
            )
        if len(matches) == 1:
            return matches[0]
        return self.select(matches)

    def select(self, matches: list[ContainerMatch]) -> ContainerMatch:
        """Ask the operator to pick one of several matches by its 1-based index."""
        self.console.print("We found more than one container:")
        for i, container in enumerate(matches, start=1):
            self.console.print(f"\\[{i}] {escape(container.describe())}")
        self.console.print("-" * 44)
        answer = Prompt.ask(
            "Which one do you want to use?", console=self.console, stream=self._stdin
        )
        try:
            choice = int(answer.strip())
        except ValueError:
            raise InvalidSelectionError(f"{answer!r} is not a number") from None
        if not 1 <= choice <= len(matches):
            raise InvalidSelectionError(
                f"Selection {choice} is out of range, pick 1 to {len(matches)}"
            )
        return matches[choice - 1]

    async def request_exec_session(
        self, container: ContainerMatch
    ) -> ExecSessionDescriptor:
        """Ask the API for a shell exec session in ``container``.

        The remote pty gets the local terminal size as it is right now.

        Raises:
            SessionNegotiationError: On any transport, status or decode error.
        """
        columns, rows = self._size()
        logger.debug(
            "Requesting exec session in %s sized %dx%d", container.id, columns, rows
        )
        try:
            return await self.api.execute(container.id, shell_command(columns, rows))
        except API_ERRORS as e:
            raise SessionNegotiationError(f"Failed to get access token: {e}") from e

    @contextlib.asynccontextmanager
    async def connect(self, pattern: str) -> AsyncGenerator[WebSocket]:
        """Find a container, open a shell in it and yield the websocket.

        Example:
            >>> async with Resolver(api).connect("web-*") as ws:
            ...     await Bridge(ws).run()
        """
        self.console.print(f"Searching for container {escape(pattern)}")
        container = await self.find_container(pattern)
        self.console.print(f"Target Container: {escape(container.describe())}")
        self.console.print("Getting access token")
        descriptor = await self.request_exec_session(container)
        self.console.print(f"Opening shell in container {escape(container.name)} ...")
        async with self.api.open_websocket(descriptor) as ws:
            yield ws
