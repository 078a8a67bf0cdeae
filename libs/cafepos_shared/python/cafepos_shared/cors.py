from __future__ import annotations

import logging
from typing import List

from fastapi.middleware.cors import CORSMiddleware

log = logging.getLogger("cafepos.cors")

# The desktop shell loads its views from disk, which browsers report as the
# literal origin "null"; the dev server for the views runs on localhost.
DESKTOP_ORIGINS = ["null", "http://localhost:5173", "http://127.0.0.1:5173"]


def resolve_origins(allowed: str | None) -> List[str]:
    """Parse a comma separated ALLOWED_ORIGINS value; empty falls back to the desktop shell."""
    origins = [o.strip() for o in (allowed or "").split(",") if o.strip()]
    if not origins:
        return list(DESKTOP_ORIGINS)
    if "*" in origins:
        return ["*"]
    return origins


def configure_cors(app, allowed: str | None) -> List[str]:
    origins = resolve_origins(allowed)
    # Wildcard origins must not be combined with credentialed requests.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    log.info("cors origins: %s", ",".join(origins))
    return origins
