# SPDX-FileCopyrightText: Copyright (c) 2026, Cowherd Developers (See LICENSE for list)
# SPDX-License-Identifier: BSD 3-Clause License
"""
This module contains `cowherd`, a tool for opening an interactive shell in a running container
through the websocket exec endpoint of a container management API.

The building blocks are usable on their own:

>>> import cowherd
>>> target = await cowherd.load_config("production")
>>> async with cowherd.Api(target) as api:
...     async with cowherd.Resolver(api).connect("web-*") as ws:
...         await cowherd.Bridge(ws).run()
"""
import logging
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _version

from ._api import Api
from ._bridge import Bridge, BridgeState
from ._config import load_config
from ._exceptions import (
    APITimeoutError,
    ConfigError,
    ConfigMissingError,
    ConnectionClosedError,
    CowherdError,
    DialError,
    InvalidSelectionError,
    NotFoundError,
    ServerError,
    SessionNegotiationError,
    StreamError,
    TerminalModeError,
)
from ._models import ConnectionTarget, ContainerMatch, ExecSessionDescriptor
from ._resolver import Resolver
from ._terminal import RawTerminal
from ._websocket import WebSocket, connect_websocket

try:
    __version__ = _version("cowherd")
except PackageNotFoundError:
    __version__ = "0.0.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "__version__",
    "load_config",
    "connect_websocket",
    "Api",
    "Bridge",
    "BridgeState",
    "ConnectionTarget",
    "ContainerMatch",
    "ExecSessionDescriptor",
    "RawTerminal",
    "Resolver",
    "WebSocket",
    "APITimeoutError",
    "ConfigError",
    "ConfigMissingError",
    "ConnectionClosedError",
    "CowherdError",
    "DialError",
    "InvalidSelectionError",
    "NotFoundError",
    "ServerError",
    "SessionNegotiationError",
    "StreamError",
    "TerminalModeError",
]
