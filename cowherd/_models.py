# SPDX-FileCopyrightText: Copyright (c) 2026, Cowherd Developers (See LICENSE for list)
# SPDX-License-Identifier: BSD 3-Clause License
"""Typed records for the values cowherd exchanges with the management API."""
from __future__ import annotations

from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator, model_validator


class ConnectionTarget(BaseModel):
    """Where the management API lives and how to authenticate against it."""

    model_config = ConfigDict(frozen=True)

    endpoint: str = Field(min_length=1)
    user: str = Field(min_length=1)
    password: str = Field(min_length=1, repr=False)

    @field_validator("endpoint")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        if value.endswith("/"):
            return value[:-1]
        return value

    @property
    def credentials(self) -> tuple[str, str]:
        return self.user, self.password


class ContainerMatch(BaseModel):
    """One running container returned by a name search."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    account_id: str = Field(alias="accountId")
    primary_ip_address: str = Field(alias="primaryIpAddress")
    docker_host_ip: Optional[str] = Field(default=None, alias="dockerHostIp")

    @model_validator(mode="before")
    @classmethod
    def _lift_data_fields(cls, value: Any) -> Any:
        # Some API versions only report addresses under data.fields
        if isinstance(value, dict) and isinstance(value.get("data"), dict):
            fields = value["data"].get("fields")
            if isinstance(fields, dict):
                value = dict(value)
                for key in ("primaryIpAddress", "dockerHostIp"):
                    if key in fields:
                        value[key] = fields[key]
        return value

    def describe(self) -> str:
        text = (
            f"{self.name}, Container ID {self.id} in project {self.account_id}, "
            f"IP Address {self.primary_ip_address}"
        )
        if self.docker_host_ip:
            text += f" on Host {self.docker_host_ip}"
        return text


class ExecSessionDescriptor(BaseModel):
    """A one-time websocket endpoint for an exec session.

    The descriptor can be dialled exactly once, see :meth:`consume`.
    """

    url: str
    token: str

    _consumed: bool = PrivateAttr(default=False)

    @property
    def dial_url(self) -> str:
        return str(httpx.URL(self.url).copy_merge_params({"token": self.token}))

    @property
    def consumed(self) -> bool:
        return self._consumed

    def consume(self) -> str:
        """Mark the descriptor as used and return the URL to dial."""
        if self._consumed:
            raise RuntimeError("Exec session has already been used")
        self._consumed = True
        return self.dial_url
