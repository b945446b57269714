from __future__ import annotations

import json
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import FastAPI, HTTPException

from dts import db
from dts.api_models import PublishConfigRequest, SetInstancesRequest, validate_service_name
from dts.backends import VersionSource
from dts.memory import InMemoryConfigStore, InMemoryDirectory, InMemoryToolSink
from dts.models import Instance, tools_config_key
from dts.settings import settings
from dts.version import HttpVersionSource
from dts.watcher import ToolsWatcher


def create_app(
    directory: InMemoryDirectory | None = None,
    config_store: InMemoryConfigStore | None = None,
    sink: InMemoryToolSink | None = None,
    version_source: VersionSource | None = None,
    autostart: bool | None = None,
) -> FastAPI:
    """Demo process: the watcher runs over in-memory backends that the API mutates."""
    directory = directory or InMemoryDirectory()
    config_store = config_store or InMemoryConfigStore()
    sink = sink or InMemoryToolSink()
    version_source = version_source or HttpVersionSource()
    autostart = settings.autostart_watcher if autostart is None else autostart

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db.init_db()
        app.state.watcher = ToolsWatcher(directory, config_store, sink, version_source, autostart=autostart)
        try:
            yield
        finally:
            app.state.watcher.stop()

    app = FastAPI(title="Dynamic Tool Sync", lifespan=lifespan)

    def _watcher() -> ToolsWatcher:
        return app.state.watcher

    def _checked(name: str) -> str:
        try:
            validate_service_name(name)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return name

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "healthy"}

    @app.get("/status")
    def status() -> dict:
        return _watcher().status()

    @app.get("/tools")
    def list_tools() -> list[dict]:
        return [t.model_dump() for t in sink.list()]

    @app.get("/events")
    def events(limit: int = 50, service: str | None = None) -> list[dict]:
        return db.latest_events(limit=max(1, min(limit, 1000)), service_name=service)

    @app.put("/services/{name}/instances")
    def set_instances(name: str, req: SetInstancesRequest) -> dict:
        _checked(name)
        directory.set_instances(name, [Instance(**i.model_dump()) for i in req.instances])
        return {"service": name, "instances": len(req.instances), "tools": sorted(_watcher().cache.get(name))}

    @app.delete("/services/{name}")
    def deregister(name: str) -> dict:
        _checked(name)
        if not directory.deregister_service(name):
            raise HTTPException(status_code=404, detail=f"Unknown service '{name}'.")
        return {"service": name, "deregistered": True}

    @app.put("/configs/{name}")
    def publish(name: str, req: PublishConfigRequest) -> dict:
        _checked(name)
        content = req.raw if req.raw is not None else json.dumps({"tools": req.tools})
        config_store.publish_config(tools_config_key(name, settings.tools_suffix), content)
        return {"service": name, "tools": sorted(_watcher().cache.get(name))}

    @app.delete("/configs/{name}")
    def unpublish(name: str) -> dict:
        _checked(name)
        if not config_store.delete_config(tools_config_key(name, settings.tools_suffix)):
            raise HTTPException(status_code=404, detail=f"No tool config for '{name}'.")
        return {"service": name, "tools": sorted(_watcher().cache.get(name))}

    @app.post("/sweep")
    def sweep() -> dict:
        return asdict(_watcher().sweep())

    return app


app = create_app()
