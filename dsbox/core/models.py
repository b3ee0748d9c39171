"""Pydantic models for user-supplied launch options."""

from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

_ENV_KEY = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class PortMapping(BaseModel):
    """A ``hostPort:containerPort`` publication, optionally bound to one IP."""

    host_port: int = Field(..., ge=1, le=65535)
    container_port: int = Field(..., ge=1, le=65535)
    host_ip: Optional[str] = None

    @classmethod
    def parse(cls, value: str) -> "PortMapping":
        """Parse ``H:C`` or ``IP:H:C``."""
        parts = value.strip().rsplit(":", 2)
        if len(parts) == 2:
            host_ip, (host, container) = None, parts
        elif len(parts) == 3:
            host_ip, host, container = parts
        else:
            raise ValueError(f"Expected HOST:CONTAINER, got {value!r}")
        try:
            return cls(
                host_port=int(host),
                container_port=int(container),
                host_ip=host_ip or None,
            )
        except (TypeError, ValidationError) as exc:
            raise ValueError(f"Invalid port mapping {value!r}: {exc}") from exc

    def to_publish_arg(self) -> str:
        if self.host_ip:
            return f"{self.host_ip}:{self.host_port}:{self.container_port}"
        return f"{self.host_port}:{self.container_port}"


class EnvAssignment(BaseModel):
    key: str
    value: str = ""

    @field_validator("key")
    @classmethod
    def _check_key(cls, key: str) -> str:
        if not _ENV_KEY.match(key):
            raise ValueError(f"Invalid environment variable name {key!r}")
        return key

    @classmethod
    def parse(cls, value: str) -> "EnvAssignment":
        """Parse ``KEY=VALUE``; the value may itself contain ``=``."""
        key, sep, val = value.partition("=")
        if not sep:
            raise ValueError(f"Expected KEY=VALUE, got {value!r}")
        try:
            return cls(key=key, value=val)
        except ValidationError as exc:
            raise ValueError(str(exc)) from exc


__all__ = ["EnvAssignment", "PortMapping"]
