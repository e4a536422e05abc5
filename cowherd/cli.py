# SPDX-FileCopyrightText: Copyright (c) 2026, Cowherd Developers (See LICENSE for list)
# SPDX-License-Identifier: BSD 3-Clause License
import asyncio
import logging
from contextlib import suppress
from functools import wraps
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from . import __version__
from ._api import Api
from ._bridge import Bridge
from ._config import load_config
from ._exceptions import ConfigMissingError, CowherdError
from ._resolver import Resolver

console = Console(highlight=False, soft_wrap=True)
err_console = Console(stderr=True, highlight=False, soft_wrap=True)

EPILOG = """\
Examples:

\b
    cowherd production my-server-1
    cowherd production "my-server*"     (same as) cowherd production my-server%
    cowherd production %proxy%
    cowherd production "projectA-app-*" (same as) cowherd production projectA-app-%

Configuration is read from <env>.json, <env>.yml or <env>.yaml in ./, ~/,
~/.cowherd/ and /etc/cowherd/, first match wins. Each file holds endpoint
(e.g. https://rancher.server/v1 or https://rancher.server/v1/projects/xxxx),
user (the API access key) and password (the API secret key).
COWHERD_ENDPOINT, COWHERD_USER and COWHERD_PASSWORD override the file.
"""


def _typer_async(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        # KeyboardInterrupt is left to click, which reports it and exits 1
        with suppress(asyncio.CancelledError):
            return asyncio.run(f(*args, **kwargs))

    return wrapper


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"cowherd {__version__}")
        raise typer.Exit()


async def shell(
    env: str = typer.Argument(..., help="Environment, the name of the config file"),
    pattern: str = typer.Argument(
        ..., help="Container name, * and % match any characters"
    ),
    verbose: bool = typer.Option(
        False, "-v", "--verbose", help="Log debug output to stderr"
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit",
    ),
):
    """Open an interactive shell in a running container."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
        )
    try:
        target = await load_config(env)
        async with Api(target) as api:
            resolver = Resolver(api, console=console)
            async with resolver.connect(pattern) as ws:
                await Bridge(ws).run()
    except ConfigMissingError as e:
        err_console.print(f"[red]error:[/red] {escape(str(e))}")
        err_console.print("Run cowherd --help for configuration details.")
        raise typer.Exit(code=1)
    except CowherdError as e:
        err_console.print(f"[red]error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1)
    console.print("Good bye.")


app = typer.Typer(add_completion=False, rich_markup_mode=None)
app.command(epilog=EPILOG)(_typer_async(shell))


def go():
    app()


if __name__ == "__main__":
    go()
