import os
import sys

import pytest
from fastapi.testclient import TestClient

# Make the repo and the shared lib importable without an install, like the services do.
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if BASE_DIR not in sys.path:
    sys.path.append(BASE_DIR)
LIB_PY_DIR = os.path.join(BASE_DIR, "libs", "cafepos_shared", "python")
if os.path.isdir(LIB_PY_DIR) and LIB_PY_DIR not in sys.path:
    sys.path.append(LIB_PY_DIR)

os.environ.setdefault("ENV", "test")
os.environ.setdefault("POS_DB_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("POS_PRINT_DRIVER", "null")

from apps.pos.app.context import PosConfig, PosContext  # noqa: E402
from apps.pos.app.db import init_schema  # noqa: E402
from apps.pos.app.printing import NullPrintSink  # noqa: E402

MEMORY_URL = "sqlite+pysqlite:///:memory:"


@pytest.fixture()
def printer() -> NullPrintSink:
    return NullPrintSink()


@pytest.fixture()
def pos_ctx(printer):
    """
    Isolated context for domain tests: a fresh in-memory database and a
    printer that only records documents.
    """
    ctx = PosContext.build(PosConfig(db_url=MEMORY_URL, print_driver="null"), printer=printer)
    init_schema(ctx.engine)
    yield ctx
    ctx.engine.dispose()


@pytest.fixture()
def app(printer):
    from apps.pos.app.main import create_app

    return create_app(PosConfig(db_url=MEMORY_URL, print_driver="null", default_pin="1234"), printer=printer)


@pytest.fixture()
def client(app):
    """
    TestClient with startup/shutdown hooks run, so the schema exists and the
    event bus is bound to the server loop.
    """
    with TestClient(app) as c:
        yield c
