from __future__ import annotations

import asyncio
import logging
import os
from datetime import date
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from cafepos_shared import RequestIDMiddleware, add_standard_health, configure_cors, get_request_id, setup_json_logging

from . import catalog, orders
from .context import PosConfig, PosContext, get_ctx
from .db import init_schema, ping
from .errors import PosError
from .events import parse_topics
from .printing import PrintSink
from .schemas import (
    NameIn,
    NamedOut,
    OrderCreate,
    PaymentIn,
    PinIn,
    ProductIn,
    ProductOut,
    SettingsIn,
    SettingsOut,
    UserOut,
)

log = logging.getLogger("cafepos.api")

router = APIRouter()


def _is_prod_env() -> bool:
    env = (os.getenv("ENV") or "dev").strip().lower()
    return env in ("prod", "production", "staging")


async def _pos_error_handler(request: Request, exc: PosError):
    detail = exc.message
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        if _is_prod_env():
            detail = "internal error"
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "detail": detail, "request_id": get_request_id()},
    )


async def _unhandled_exception_handler(request: Request, exc: Exception):
    rid = get_request_id()
    log.exception("unhandled exception", extra={"request_id": rid})
    detail = "internal error" if _is_prod_env() else str(exc)
    return JSONResponse(status_code=500, content={"success": False, "detail": detail, "request_id": rid})


# --- Login ---
@router.post("/auth/pin", response_model=Optional[UserOut])
def check_login_pin(req: PinIn, ctx: PosContext = Depends(get_ctx)):
    return catalog.check_login_pin(ctx, req.pin)


# --- Menu / products ---
@router.get("/menu", response_model=List[ProductOut])
def fetch_menu(ctx: PosContext = Depends(get_ctx)):
    return catalog.list_menu(ctx)


@router.get("/menu/currency")
def menu_currency(ctx: PosContext = Depends(get_ctx)):
    return {"currency_symbol": catalog.get_currency_symbol(ctx)}


@router.get("/products", response_model=List[ProductOut])
def list_products(ctx: PosContext = Depends(get_ctx)):
    return catalog.list_products(ctx)


@router.post("/products", response_model=ProductOut)
def add_product(req: ProductIn, ctx: PosContext = Depends(get_ctx)):
    return catalog.add_product(ctx, req)


@router.put("/products/{product_id}", response_model=ProductOut)
def update_product(product_id: int, req: ProductIn, ctx: PosContext = Depends(get_ctx)):
    return catalog.update_product(ctx, product_id, req)


@router.delete("/products/{product_id}")
def delete_product(product_id: int, ctx: PosContext = Depends(get_ctx)):
    return {"success": catalog.delete_product(ctx, product_id)}


# --- Categories ---
@router.get("/categories", response_model=List[NamedOut])
def list_categories(ctx: PosContext = Depends(get_ctx)):
    return catalog.list_categories(ctx)


@router.post("/categories", response_model=NamedOut)
def add_category(req: NameIn, ctx: PosContext = Depends(get_ctx)):
    return catalog.add_category(ctx, req.name)


@router.put("/categories/{category_id}", response_model=NamedOut)
def update_category(category_id: int, req: NameIn, ctx: PosContext = Depends(get_ctx)):
    return catalog.update_category(ctx, category_id, req.name)


@router.delete("/categories/{category_id}")
def delete_category(category_id: int, ctx: PosContext = Depends(get_ctx)):
    return {"success": catalog.delete_category(ctx, category_id)}


# --- Tables ---
@router.get("/tables", response_model=List[NamedOut])
def list_tables(ctx: PosContext = Depends(get_ctx)):
    return catalog.list_tables(ctx)


@router.post("/tables", response_model=NamedOut)
def add_table(req: NameIn, ctx: PosContext = Depends(get_ctx)):
    return catalog.add_table(ctx, req.name)


@router.put("/tables/{table_id}", response_model=NamedOut)
def update_table(table_id: int, req: NameIn, ctx: PosContext = Depends(get_ctx)):
    return catalog.update_table(ctx, table_id, req.name)


@router.delete("/tables/{table_id}")
def delete_table(table_id: int, ctx: PosContext = Depends(get_ctx)):
    return {"success": catalog.delete_table(ctx, table_id)}


# --- Settings ---
@router.get("/settings", response_model=SettingsOut)
def get_settings(ctx: PosContext = Depends(get_ctx)):
    return catalog.get_settings(ctx)


@router.put("/settings", response_model=SettingsOut)
def update_settings(req: SettingsIn, ctx: PosContext = Depends(get_ctx)):
    return catalog.update_settings(ctx, req)


@router.post("/admin/clear-database")
def clear_database(ctx: PosContext = Depends(get_ctx)):
    removed = catalog.clear_database(ctx)
    return {"success": True, "removed_orders": removed}


# --- Orders ---
@router.get("/orders/ongoing")
def fetch_ongoing_orders(ctx: PosContext = Depends(get_ctx)):
    return orders.list_ongoing_orders(ctx)


@router.get("/orders/past")
def fetch_past_orders(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    ctx: PosContext = Depends(get_ctx),
):
    return orders.list_past_orders(ctx, date_from, date_to)


@router.post("/orders")
def send_order_to_kitchen(req: OrderCreate, ctx: PosContext = Depends(get_ctx)):
    return orders.create_order(ctx, req)


@router.post("/orders/{order_id}/pay")
def confirm_order_payment(order_id: int, req: PaymentIn, ctx: PosContext = Depends(get_ctx)):
    return orders.confirm_payment(ctx, order_id, req)


@router.delete("/orders/{order_id}")
def remove_order(order_id: int, ctx: PosContext = Depends(get_ctx)):
    return {"success": orders.remove_order(ctx, order_id)}


# --- Reports ---
@router.get("/reports/{kind}")
def fetch_report(
    kind: str,
    start_date: date,
    end_date: date,
    aggregate: bool = False,
    ctx: PosContext = Depends(get_ctx),
) -> Any:
    data = orders.fetch_report(ctx, kind, start_date, end_date)
    out: dict = {"success": True, "data": data}
    if aggregate:
        out["summary"] = orders.report_summary(ctx, kind, data)
    return out


async def pos_ws(ws: WebSocket):
    ctx: PosContext = ws.app.state.pos
    topics = parse_topics(ws.query_params.get("topics"))
    await ws.accept()
    ctx.events.attach(ws, topics)
    try:
        await ws.send_json({"type": "hello", "topics": sorted(topics) if topics is not None else "*"})
        while True:
            await ws.receive_text()  # no-op, keep alive
    except WebSocketDisconnect:
        pass
    finally:
        ctx.events.detach(ws)


def create_app(config: Optional[PosConfig] = None, printer: Optional[PrintSink] = None) -> FastAPI:
    config = config or PosConfig.from_env()
    ctx = PosContext.build(config, printer=printer)

    app = FastAPI(title="Cafe POS API", version="0.1.0")
    app.state.pos = ctx
    setup_json_logging()
    app.add_middleware(RequestIDMiddleware)
    configure_cors(app, config.allowed_origins)
    add_standard_health(app, check=lambda: ping(ctx.engine))
    app.add_exception_handler(PosError, _pos_error_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)

    def on_startup():
        init_schema(ctx.engine, default_pin=config.default_pin)
        ctx.events.bind_loop(asyncio.get_running_loop())
        log.info("pos backend ready", extra={"db": ctx.engine.url.render_as_string(hide_password=True)})

    def on_shutdown():
        ctx.events.bind_loop(None)
        ctx.engine.dispose()

    app.router.on_startup.append(on_startup)
    app.router.on_shutdown.append(on_shutdown)
    app.include_router(router)
    app.add_api_websocket_route("/pos/ws", pos_ws)
    return app


app = create_app()
