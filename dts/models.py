from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import MalformedConfig


class ToolDefinition(BaseModel):
    """One tool published by a service.

    Only `name` is interpreted here; every other field (description,
    input schema, endpoint details...) is kept as-is for the sink.
    """

    model_config = ConfigDict(extra="allow")

    name: str = Field(..., min_length=1, description="Tool name, unique within its service")
    service_name: str | None = Field(None, description="Owning service, stamped during reconciliation")


class ToolsDocument(BaseModel):
    model_config = ConfigDict(extra="allow")

    tools: list[ToolDefinition] = Field(default_factory=list)

    @field_validator("tools", mode="before")
    @classmethod
    def _null_tools_is_empty(cls, v):
        return [] if v is None else v


@dataclass(frozen=True)
class Instance:
    healthy: bool = True
    enabled: bool = True
    ip: str | None = None
    port: int | None = None


def has_healthy_enabled_instance(instances: Iterable[Instance]) -> bool:
    return any(i.healthy and i.enabled for i in instances)


def parse_tools_document(raw: str) -> list[ToolDefinition]:
    """Parse a tool-configuration document into an ordered tool list.

    Expected JSON: {"tools": [{"name": "...", ...}, ...]}.
    Raises MalformedConfig when the text is not JSON or has the wrong shape.
    """
    try:
        doc = ToolsDocument.model_validate_json(raw)
    except ValidationError as e:
        raise MalformedConfig(f"invalid tools document: {e.error_count()} error(s): {e.errors()[0]['msg']}") from e
    return list(doc.tools)


def tools_config_key(service: str, suffix: str) -> str:
    return f"{service}{suffix}"


def service_from_config_key(key: str | None, suffix: str) -> str | None:
    """Map `orders-mcp-tools.json` back to `orders`; None for other keys."""
    if not key or not key.endswith(suffix):
        return None
    service = key[: len(key) - len(suffix)]
    return service or None

