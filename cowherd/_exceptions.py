# SPDX-FileCopyrightText: Copyright (c) 2026, Cowherd Developers (See LICENSE for list)
# SPDX-License-Identifier: BSD 3-Clause License

from typing import Optional

import httpx


class CowherdError(Exception):
    """Base class for all errors raised by cowherd."""


class ConfigError(CowherdError):
    """A configuration file could not be read or decoded."""


class ConfigMissingError(ConfigError):
    """Required configuration values are missing.

    Attributes:
        missing: The names of the missing keys
    """

    def __init__(self, message: str, missing: Optional[list] = None) -> None:
        self.missing = missing or []
        super().__init__(message)


class NotFoundError(CowherdError):
    """No running container matches the requested name."""


class InvalidSelectionError(CowherdError):
    """The operator picked a candidate that is not in the list."""


class ServerError(CowherdError):
    """Error from the management API.

    Attributes:
        status: The decoded error body, or the status code for server errors
        response: The httpx response object
    """

    def __init__(
        self,
        message: str,
        status: Optional[object] = None,
        response: Optional[httpx.Response] = None,
    ) -> None:
        self.status = status
        self.response = response
        super().__init__(message)


class APITimeoutError(CowherdError):
    """A timeout has occurred while waiting for a response from the management API."""


class SessionNegotiationError(CowherdError):
    """The management API did not hand out a usable exec session."""


class DialError(CowherdError):
    """The websocket handshake with the exec endpoint failed."""


class ConnectionClosedError(CowherdError):
    """The websocket connection has been closed.

    Attributes:
        code: The websocket close code
        reason: The close reason sent by the peer, if any
    """

    def __init__(self, code: int, reason: Optional[str] = None) -> None:
        self.code = code
        self.reason = reason
        message = f"Websocket closed with code {code}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class TerminalModeError(CowherdError):
    """The local terminal could not be switched to raw mode."""


class StreamError(CowherdError):
    """The terminal session ended with an error."""
