from __future__ import annotations

import argparse
import json
import sys

import requests


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _load_tools(path: str) -> list[dict]:
    with open(path, encoding="utf-8") as fh:
        doc = json.load(fh)
    return doc.get("tools", []) if isinstance(doc, dict) else doc


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Dynamic Tool Sync CLI")
    p.add_argument("--api", default="http://localhost:8000", help="API base URL")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("status", help="Show backend version, gate and cached tools")
    sub.add_parser("tools", help="List tools currently registered in the sink")
    sub.add_parser("sweep", help="Run one full sweep now")

    s_ev = sub.add_parser("events", help="Show events")
    s_ev.add_argument("--limit", type=int, default=20)
    s_ev.add_argument("--service")

    s_inst = sub.add_parser("instances", help="Replace a service's instance list")
    s_inst.add_argument("--service", required=True)
    s_inst.add_argument("--healthy", type=int, default=1, help="Number of healthy+enabled instances")
    s_inst.add_argument("--unhealthy", type=int, default=0)
    s_inst.add_argument("--disabled", type=int, default=0)

    s_pub = sub.add_parser("publish", help="Publish a service's tool document")
    s_pub.add_argument("--service", required=True)
    src = s_pub.add_mutually_exclusive_group(required=True)
    src.add_argument("--file", help="JSON file: {\"tools\": [...]} or a bare list")
    src.add_argument("--tool", action="append", help="Tool name (repeatable)")

    s_unpub = sub.add_parser("unpublish", help="Delete a service's tool document")
    s_unpub.add_argument("--service", required=True)

    args = p.parse_args(argv)

    base = args.api.rstrip("/")

    if args.cmd == "status":
        _print(requests.get(f"{base}/status", timeout=10).json())
        return 0

    if args.cmd == "tools":
        _print(requests.get(f"{base}/tools", timeout=10).json())
        return 0

    if args.cmd == "events":
        params = {"limit": args.limit}
        if args.service:
            params["service"] = args.service
        _print(requests.get(f"{base}/events", params=params, timeout=10).json())
        return 0

    if args.cmd == "sweep":
        r = requests.post(f"{base}/sweep", timeout=60)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "instances":
        instances = (
            [{"healthy": True, "enabled": True}] * args.healthy
            + [{"healthy": False, "enabled": True}] * args.unhealthy
            + [{"healthy": True, "enabled": False}] * args.disabled
        )
        r = requests.put(f"{base}/services/{args.service}/instances", json={"instances": instances}, timeout=30)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "publish":
        tools = _load_tools(args.file) if args.file else [{"name": n} for n in args.tool]
        r = requests.put(f"{base}/configs/{args.service}", json={"tools": tools}, timeout=30)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "unpublish":
        r = requests.delete(f"{base}/configs/{args.service}", timeout=30)
        _print(r.json())
        return 0 if r.ok else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
