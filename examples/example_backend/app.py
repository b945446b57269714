from __future__ import annotations

import os

from fastapi import FastAPI


VERSION = os.getenv("VERSION", "2.4.3")

app = FastAPI(title=f"Example Backend {VERSION}")


@app.get("/nacos/v1/console/server/state")
def server_state() -> dict[str, str]:
    # Point DTS_SERVER_ADDR here; VERSION >= 3.0.0 closes the gate.
    return {"version": VERSION, "standalone_mode": "standalone"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "healthy"}
