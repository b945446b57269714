from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, Field

SERVICE_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.:\-]{0,127}$")


def validate_service_name(name: str) -> None:
    if not SERVICE_NAME_RE.match(name):
        raise ValueError(
            "Invalid service name. Use letters/numbers and _.:- starting with a letter or digit (max 128 chars)."
        )


class InstanceModel(BaseModel):
    healthy: bool = True
    enabled: bool = True
    ip: str | None = None
    port: int | None = Field(None, ge=1, le=65535)


class SetInstancesRequest(BaseModel):
    instances: list[InstanceModel] = Field(default_factory=list, description="Full replacement instance list")


class PublishConfigRequest(BaseModel):
    tools: list[dict[str, Any]] = Field(default_factory=list, description="Tool definitions, each with at least a name")
    raw: str | None = Field(None, description="Publish this text verbatim instead of {'tools': [...]}")
