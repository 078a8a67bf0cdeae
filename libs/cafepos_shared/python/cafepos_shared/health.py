from __future__ import annotations

import os
from collections.abc import Callable

from fastapi import FastAPI


def add_standard_health(app: FastAPI, env_key: str = "ENV", check: Callable[[], bool] | None = None):
    """Expose GET /health; `check` probes the backing store and flips status to "degraded"."""

    @app.get("/health")
    def _health():
        ok = True
        if check is not None:
            ok = bool(check())
        return {
            "status": "ok" if ok else "degraded",
            "env": os.getenv(env_key, "dev"),
            "service": app.title,
            "version": getattr(app, "version", None),
        }
