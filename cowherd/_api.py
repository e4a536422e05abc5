# SPDX-FileCopyrightText: Copyright (c) 2026, Cowherd Developers (See LICENSE for list)
# SPDX-License-Identifier: BSD 3-Clause License
from __future__ import annotations

import contextlib
import json
import logging
from typing import AsyncGenerator

import httpx

from ._exceptions import APITimeoutError, ServerError
from ._models import ConnectionTarget, ContainerMatch, ExecSessionDescriptor
from ._websocket import WebSocket, connect_websocket

logger = logging.getLogger(__name__)


class Api:
    """A client for the container management API.

    Args:
        target: Endpoint and credentials of the management API
        timeout: Timeout passed to httpx for every request
        transport: An httpx transport to use instead of the default one

    Example:
        >>> async with Api(target) as api:
        ...     containers = await api.list_containers("web-%")
    """

    def __init__(
        self,
        target: ConnectionTarget,
        timeout: httpx.Timeout | float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.target = target
        self._timeout = timeout
        self._transport = transport
        self._session: httpx.AsyncClient | None = None

    async def __aenter__(self) -> Api:
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    @property
    def endpoint(self) -> str:
        return self.target.endpoint

    async def _create_session(self) -> None:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self._session:
            with contextlib.suppress(RuntimeError):
                await self._session.aclose()
            self._session = None
        self._session = httpx.AsyncClient(
            base_url=self.endpoint,
            auth=self.target.credentials,
            headers=headers,
            timeout=self._timeout,
            transport=self._transport,
            follow_redirects=True,
        )

    async def close(self) -> None:
        if self._session:
            await self._session.aclose()
            self._session = None

    @contextlib.asynccontextmanager
    async def call_api(
        self,
        method: str = "GET",
        url: str = "",
        raise_for_status: bool = True,
        **kwargs,
    ) -> AsyncGenerator[httpx.Response]:
        """Make a management API request."""
        if not self._session or self._session.is_closed:
            await self._create_session()
        assert self._session
        try:
            response = await self._session.request(method, url, **kwargs)
            if raise_for_status:
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            if 400 <= e.response.status_code < 500:
                try:
                    error = e.response.json()
                    error_message = error["message"]
                except (json.JSONDecodeError, KeyError, TypeError):
                    error = e.response.text
                    error_message = str(e)
                raise ServerError(error_message, status=error, response=e.response) from e
            raise ServerError(
                str(e), status=str(e.response.status_code), response=e.response
            ) from e
        except httpx.TimeoutException as e:
            raise APITimeoutError(
                "Timeout while waiting for the management API"
            ) from e
        yield response

    async def list_containers(self, name_like: str) -> list[ContainerMatch]:
        """List running containers whose name matches an API ``name_like`` pattern.

        Args:
            name_like: Name pattern using ``%`` as the wildcard.

        Returns:
            The matching containers in the order the API returned them.
        """
        params = {"name_like": name_like, "state": "running", "kind": "container"}
        async with self.call_api("GET", "/containers/", params=params) as response:
            body = response.json()
        if not isinstance(body, dict) or not isinstance(body.get("data"), list):
            raise ValueError("Container list response has no data array")
        return [ContainerMatch.model_validate(item) for item in body["data"]]

    async def execute(
        self, container_id: str, command: list[str], tty: bool = True
    ) -> ExecSessionDescriptor:
        """Ask the API for an exec session running ``command`` in a container."""
        payload = {
            "attachStdin": True,
            "attachStdout": True,
            "command": command,
            "tty": tty,
        }
        async with self.call_api(
            "POST",
            f"/containers/{container_id}/",
            params={"action": "execute"},
            content=json.dumps(payload),
        ) as response:
            return ExecSessionDescriptor.model_validate(response.json())

    @contextlib.asynccontextmanager
    async def open_websocket(
        self, descriptor: ExecSessionDescriptor, **kwargs
    ) -> AsyncGenerator[WebSocket]:
        """Dial an exec session websocket.

        The ``Origin`` header is set to the management endpoint, which the server
        checks before accepting the upgrade.
        """
        if not self._session or self._session.is_closed:
            await self._create_session()
        assert self._session
        async with connect_websocket(
            self._session, descriptor.consume(), origin=self.endpoint, **kwargs
        ) as ws:
            yield ws
