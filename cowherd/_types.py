# SPDX-FileCopyrightText: Copyright (c) 2026, Cowherd Developers (See LICENSE for list)
# SPDX-License-Identifier: BSD 3-Clause License
from os import PathLike
from typing import Protocol, Union

PathType = Union[str, "PathLike[str]"]


class NetworkStream(Protocol):
    """The byte stream left behind by an HTTP/1.1 upgrade.

    This is the ``network_stream`` response extension exposed by httpcore.
    """

    async def read(self, max_bytes: int, timeout: Union[float, None] = None) -> bytes: ...

    async def write(self, buffer: bytes, timeout: Union[float, None] = None) -> None: ...

    async def aclose(self) -> None: ...
