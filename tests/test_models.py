import pytest

from dts.errors import MalformedConfig
from dts.models import (
    Instance,
    has_healthy_enabled_instance,
    parse_tools_document,
    service_from_config_key,
    tools_config_key,
)


def test_parse_keeps_order_and_opaque_fields():
    raw = '{"tools": [{"name": "find", "inputSchema": {"type": "object"}}, {"name": "browse"}]}'
    tools = parse_tools_document(raw)
    assert [t.name for t in tools] == ["find", "browse"]
    assert tools[0].model_dump()["inputSchema"] == {"type": "object"}
    assert tools[0].service_name is None


def test_parse_document_without_tools_is_empty():
    assert parse_tools_document("{}") == []
    assert parse_tools_document('{"tools": null}') == []
    assert parse_tools_document('{"tools": []}') == []


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[]",
        '{"tools": {"name": "find"}}',
        '{"tools": [{"description": "no name"}]}',
        '{"tools": [{"name": ""}]}',
    ],
)
def test_parse_rejects_malformed_documents(raw):
    with pytest.raises(MalformedConfig):
        parse_tools_document(raw)


@pytest.mark.parametrize(
    "key,expected",
    [
        ("orders-mcp-tools.json", "orders"),
        ("my-search-svc-mcp-tools.json", "my-search-svc"),
        ("orders", None),
        ("orders.json", None),
        ("-mcp-tools.json", None),
        (None, None),
    ],
)
def test_service_from_config_key(key, expected):
    assert service_from_config_key(key, "-mcp-tools.json") == expected


def test_tools_config_key():
    assert tools_config_key("orders", "-mcp-tools.json") == "orders-mcp-tools.json"


def test_has_healthy_enabled_instance():
    assert not has_healthy_enabled_instance([])
    assert not has_healthy_enabled_instance([Instance(healthy=False), Instance(enabled=False)])
    assert has_healthy_enabled_instance([Instance(healthy=False), Instance()])
