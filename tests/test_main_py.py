import pytest
from fastapi.testclient import TestClient

from conftest import StaticVersion
from main import create_app


@pytest.fixture
def client():
    app = create_app(version_source=StaticVersion("2.4.0"), autostart=False)
    with TestClient(app) as c:
        yield c


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"


def test_publish_sweep_and_push_flow(client):
    r = client.put("/services/search/instances", json={"instances": [{"healthy": True, "enabled": True}]})
    assert r.status_code == 200
    r = client.put("/configs/search", json={"tools": [{"name": "find", "description": "Search"}]})
    assert r.status_code == 200

    r = client.post("/sweep")
    assert r.status_code == 200
    assert r.json()["services"] == ["search"]

    tools = client.get("/tools").json()
    assert [t["name"] for t in tools] == ["find"]
    assert tools[0]["service_name"] == "search"
    assert tools[0]["description"] == "Search"

    # Subscribed now: the next change is applied by push, no sweep needed.
    r = client.put("/configs/search", json={"tools": []})
    assert r.json()["tools"] == []
    assert client.get("/tools").json() == []

    events = client.get("/events", params={"service": "search"}).json()
    assert any(e["message"] == "Removed tool" and e["tool_name"] == "find" for e in events)


def test_status_reports_cache(client):
    client.put("/services/orders/instances", json={"instances": [{}]})
    client.put("/configs/orders", json={"tools": [{"name": "place"}]})
    client.post("/sweep")

    body = client.get("/status").json()
    assert body["version"] == "2.4.0"
    assert body["gated"] is False
    assert body["services"] == {"orders": ["place"]}
    assert body["subscribed"] == ["orders"]


def test_raw_malformed_config_keeps_tools(client):
    client.put("/services/orders/instances", json={"instances": [{}]})
    client.put("/configs/orders", json={"tools": [{"name": "place"}]})
    client.post("/sweep")

    client.put("/configs/orders", json={"raw": "{not json"})

    assert [t["name"] for t in client.get("/tools").json()] == ["place"]


def test_deregister_and_unknown(client):
    assert client.delete("/services/nope").status_code == 404
    assert client.delete("/configs/nope").status_code == 404

    client.put("/services/orders/instances", json={"instances": [{}]})
    assert client.delete("/services/orders").status_code == 200


def test_invalid_service_name(client):
    r = client.put("/configs/bad name", json={"tools": []})
    assert r.status_code == 400


def test_gated_app_reports_gate():
    app = create_app(version_source=StaticVersion("3.0.0"), autostart=False)
    with TestClient(app) as c:
        c.put("/services/orders/instances", json={"instances": [{}]})
        c.put("/configs/orders", json={"tools": [{"name": "place"}]})
        assert c.post("/sweep").json()["gated"] is True
        assert c.get("/status").json()["gated"] is True
        assert c.get("/tools").json() == []
