import json

import cli


class _Resp:
    def __init__(self, payload, ok=True):
        self._payload = payload
        self.ok = ok

    def json(self):
        return self._payload


def test_publish_tool_names(monkeypatch, capsys):
    sent = {}

    def fake_put(url, json=None, timeout=None):
        sent["url"] = url
        sent["json"] = json
        return _Resp({"service": "orders", "tools": ["cancel", "place"]})

    monkeypatch.setattr(cli.requests, "put", fake_put)

    rc = cli.main(["--api", "http://dts:9000/", "publish", "--service", "orders", "--tool", "place", "--tool", "cancel"])

    assert rc == 0
    assert sent["url"] == "http://dts:9000/configs/orders"
    assert sent["json"] == {"tools": [{"name": "place"}, {"name": "cancel"}]}
    assert json.loads(capsys.readouterr().out)["tools"] == ["cancel", "place"]


def test_publish_from_file(monkeypatch, tmp_path):
    doc = tmp_path / "orders-mcp-tools.json"
    doc.write_text(json.dumps({"tools": [{"name": "place", "description": "Place an order"}]}), encoding="utf-8")
    sent = {}

    def fake_put(url, json=None, timeout=None):
        sent["json"] = json
        return _Resp({}, ok=False)

    monkeypatch.setattr(cli.requests, "put", fake_put)

    assert cli.main(["publish", "--service", "orders", "--file", str(doc)]) == 1
    assert sent["json"]["tools"][0]["description"] == "Place an order"


def test_instances_builds_mixed_list(monkeypatch):
    sent = {}

    def fake_put(url, json=None, timeout=None):
        sent["json"] = json
        return _Resp({"service": "orders", "instances": 3})

    monkeypatch.setattr(cli.requests, "put", fake_put)

    cli.main(["instances", "--service", "orders", "--healthy", "1", "--unhealthy", "1", "--disabled", "1"])

    assert sent["json"]["instances"] == [
        {"healthy": True, "enabled": True},
        {"healthy": False, "enabled": True},
        {"healthy": True, "enabled": False},
    ]


def test_events_passes_filters(monkeypatch):
    seen = {}

    def fake_get(url, params=None, timeout=None):
        seen["url"] = url
        seen["params"] = params
        return _Resp([])

    monkeypatch.setattr(cli.requests, "get", fake_get)

    assert cli.main(["events", "--limit", "5", "--service", "orders"]) == 0
    assert seen["url"] == "http://localhost:8000/events"
    assert seen["params"] == {"limit": 5, "service": "orders"}
