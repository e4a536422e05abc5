# SPDX-FileCopyrightText: Copyright (c) 2026, Cowherd Developers (See LICENSE for list)
# SPDX-License-Identifier: BSD 3-Clause License
from __future__ import annotations

import json
import logging
import os
from typing import Mapping, Sequence

import anyio
import yaml

from ._exceptions import ConfigError, ConfigMissingError
from ._models import ConnectionTarget
from ._types import PathType

logger = logging.getLogger(__name__)

CONFIG_KEYS = ("endpoint", "user", "password")
CONFIG_EXTENSIONS = (".json", ".yml", ".yaml")
ENV_PREFIX = "COWHERD_"


def default_search_paths() -> list[str]:
    """Directories searched for ``<env>.json`` / ``<env>.yml``, in priority order."""
    return [
        ".",
        os.path.expanduser("~"),
        os.path.expanduser("~/.cowherd"),
        "/etc/cowherd",
    ]


async def find_config(
    env: str, search_paths: Sequence[PathType] | None = None
) -> anyio.Path | None:
    """Return the first config file for ``env`` on the search path."""
    if search_paths is None:
        search_paths = default_search_paths()
    for directory in search_paths:
        for extension in CONFIG_EXTENSIONS:
            path = anyio.Path(directory) / f"{env}{extension}"
            if await path.is_file():
                return path
    return None


async def read_config_file(path: PathType) -> dict:
    """Decode a JSON or YAML config file into a dictionary."""
    path = anyio.Path(path)
    try:
        text = await path.read_text()
    except OSError as e:
        raise ConfigError(f"Unable to read config file {path}: {e}") from e
    try:
        if path.suffix == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Unable to parse config file {path}: {e}") from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


async def load_config(
    env: str,
    search_paths: Sequence[PathType] | None = None,
    environ: Mapping[str, str] | None = None,
) -> ConnectionTarget:
    """Build the connection target for an environment.

    Values are read from the first ``<env>.json``, ``<env>.yml`` or ``<env>.yaml``
    found on the search path and then overridden by ``COWHERD_ENDPOINT``,
    ``COWHERD_USER`` and ``COWHERD_PASSWORD`` from the environment.

    Args:
        env: Name of the environment, which is also the config file name
        search_paths: Directories to search, defaults to :func:`default_search_paths`
        environ: Environment variables, defaults to ``os.environ``

    Returns:
        The connection target

    Raises:
        ConfigError: If the config file cannot be decoded
        ConfigMissingError: If any of endpoint, user or password is missing
    """
    if environ is None:
        environ = os.environ
    values: dict = {}
    path = await find_config(env, search_paths)
    if path is not None:
        logger.debug("Using config file %s", path)
        values.update(await read_config_file(path))
    else:
        logger.debug("No config file found for environment %s", env)
    for key in CONFIG_KEYS:
        override = environ.get(f"{ENV_PREFIX}{key.upper()}")
        if override:
            values[key] = override

    missing = [key for key in CONFIG_KEYS if not values.get(key)]
    if missing:
        raise ConfigMissingError(
            f"Missing configuration for environment {env}: {', '.join(missing)}",
            missing=missing,
        )
    try:
        return ConnectionTarget(**{key: str(values[key]) for key in CONFIG_KEYS})
    except ValueError as e:
        raise ConfigError(f"Invalid configuration for environment {env}: {e}") from e
