"""
Order lifecycle: send to kitchen, confirm payment, list, remove, report.

An order is created `pending` and becomes `paid` exactly once. The move is
made by a single conditional UPDATE (the pay guard), which is what keeps two
tills from settling the same order twice. Printing happens after the
database has spoken and can only ever change the print status message.
"""
from __future__ import annotations

import json
import logging
from collections import OrderedDict
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Mapping, Optional, Union

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from . import catalog, events
from .context import PosContext
from .db import session_scope
from .errors import ConflictError, NotFoundError, RenderError, ValidationError
from .models import Desk, OrderStatus, Product, Sale
from .receipts import KITCHEN, SHOP, ReceiptOrder, render_receipt, to_number
from .schemas import OrderCreate, PaymentIn, SettingsOut

log = logging.getLogger("cafepos.orders")

REPORT_KINDS = ("sales", "items", "categories", "tables")

DateLike = Union[date, str, None]


def _now() -> datetime:
    # stored to the second, in local time, like the till clock
    return datetime.now().replace(microsecond=0)


def decode_items(raw: Any, order_id: Any = None) -> List[Dict[str, Any]]:
    """Parse the stored line items; an unreadable value yields an empty list."""
    if isinstance(raw, list):
        return raw
    if not raw:
        return []
    try:
        items = json.loads(raw)
    except (TypeError, ValueError) as e:
        log.error("order %s: line items are not valid JSON: %s", order_id, e)
        return []
    if not isinstance(items, list):
        log.error("order %s: line items are not a list", order_id)
        return []
    return items


def _as_date(value: DateLike, label: str) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as e:
        raise ValidationError(f"{label} must be a YYYY-MM-DD date") from e


def _print(ctx: PosContext, kind: str, order: ReceiptOrder, settings: SettingsOut, destination: Optional[str]) -> str:
    """Render and print one document; the outcome is only ever a message."""
    try:
        document = render_receipt(kind, order, settings.model_dump(), settings.currency_symbol)
    except RenderError as e:
        log.error("order %s: %s", order.order_id, e.message)
        return f"Failed: {e.message}"
    outcome = ctx.printer.send(destination, document)
    log.info("order %s: %s print %s", order.order_id, kind, outcome.status)
    return outcome.message


# --- create ---
def create_order(ctx: PosContext, req: OrderCreate) -> Dict[str, Any]:
    if not req.desk_id:
        raise ValidationError("Cannot place order: Please select a table.")
    if not req.products:
        raise ValidationError("Cannot place order: no items.")
    if any(li.qty <= 0 for li in req.products):
        raise ValidationError("Cannot place order: quantities must be positive.")
    items = [{"name": li.name, "price": li.price, "qty": li.qty} for li in req.products]
    settings = catalog.get_settings(ctx)

    with session_scope(ctx.engine, "send order to kitchen") as s:
        desk = s.get(Desk, req.desk_id)
        if desk is None:
            raise ValidationError(f"Cannot place order: table {req.desk_id} does not exist.")
        table_name = desk.name
        sale = Sale(
            products=json.dumps(items),
            price=req.price,
            desk_id=req.desk_id,
            active=OrderStatus.PENDING.value,
            notes=(req.notes or "").strip() or None,
            timestamp=_now(),
        )
        s.add(sale); s.commit()
        order_id = sale.id
    log.info("order %s created for table %s", order_id, table_name)

    ticket = ReceiptOrder(order_id=order_id, table_name=table_name, items=items, notes=req.notes or "")
    kitchen_status = _print(ctx, KITCHEN, ticket, settings, settings.kitchen_printer)

    ctx.events.publish(events.ORDERS_UPDATED)
    return {
        "success": True,
        "message": "Order sent to kitchen.",
        "order_id": order_id,
        "print_status": {"kitchen": kitchen_status},
    }


# --- pay ---
def pay_guard(s: Session, order_id: int, req: PaymentIn, paid_at: datetime) -> bool:
    """
    Move one pending order to paid in a single conditional UPDATE.

    Returns False when no pending order with that id exists, which covers
    both a wrong id and a second till that lost the race.
    """
    target = OrderStatus.PENDING.transition_to(OrderStatus.PAID)
    res = s.execute(
        update(Sale)
        .where(Sale.id == order_id, Sale.active == OrderStatus.PENDING.value)
        .values(
            active=target.value,
            payment_mode=req.payment_mode,
            price=req.amount_paid,
            amount_paid=req.amount_paid,
            change_amount=req.change_amount,
            timestamp=paid_at,
        )
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


def confirm_payment(ctx: PosContext, order_id: int, req: PaymentIn) -> Dict[str, Any]:
    settings = catalog.get_settings(ctx)
    paid_at = _now()

    with session_scope(ctx.engine, "confirm payment") as s:
        row = s.execute(
            select(Sale.desk_id, Sale.products, Sale.notes, Desk.name)
            .outerjoin(Desk, Sale.desk_id == Desk.id)
            .where(Sale.id == order_id)
        ).first()
        if not pay_guard(s, order_id, req, paid_at):
            s.rollback()
            raise ConflictError("Order not found or was already paid.")
        s.commit()
    # row is present: the guard matched it
    desk_id, raw_items, notes, desk_name = row  # type: ignore[misc]
    log.info("order %s paid by %s", order_id, req.payment_mode)

    receipt = ReceiptOrder(
        order_id=order_id,
        table_name=desk_name or f"Desk ID {desk_id or 'Unknown'}",
        items=decode_items(raw_items, order_id),
        notes=notes or "",
        payment_method=req.payment_mode,
        amount_paid=req.amount_paid,
        change=req.change_amount,
        printed_at=paid_at,
    )
    shop_status = _print(ctx, SHOP, receipt, settings, settings.shop_printer)

    ctx.events.publish(events.ORDERS_UPDATED)
    return {
        "success": True,
        "message": "Payment confirmed and order marked as paid.",
        "print_status": {"shop": shop_status},
    }


# --- read ---
def list_ongoing_orders(ctx: PosContext) -> List[Dict[str, Any]]:
    with session_scope(ctx.engine, "fetch ongoing orders") as s:
        rows = s.execute(
            select(Sale.id, Sale.desk_id, Sale.price, Sale.products, Sale.notes, Desk.name, Sale.timestamp, Sale.active)
            .outerjoin(Desk, Sale.desk_id == Desk.id)
            .where(Sale.active == OrderStatus.PENDING.value)
            .order_by(Sale.timestamp.asc(), Sale.id.asc())
        ).all()
    return [
        {
            "id": r.id,
            "desk_id": r.desk_id,
            "price": to_number(r.price),
            "products": decode_items(r.products, r.id),
            "notes": r.notes,
            "table_name": r.name,
            "timestamp": r.timestamp,
            "active": r.active,
        }
        for r in rows
    ]


def list_past_orders(ctx: PosContext, date_from: DateLike = None, date_to: DateLike = None) -> List[Dict[str, Any]]:
    start = _as_date(date_from, "date_from")
    end = _as_date(date_to, "date_to")
    stmt = (
        select(Sale.id, Sale.price, Sale.products, Sale.desk_id, Sale.payment_mode, Sale.timestamp, Desk.name)
        .outerjoin(Desk, Sale.desk_id == Desk.id)
        .where(Sale.active == OrderStatus.PAID.value)
    )
    if start:
        stmt = stmt.where(Sale.timestamp >= datetime.combine(start, time(0, 0, 0)))
    if end:
        stmt = stmt.where(Sale.timestamp <= datetime.combine(end, time(23, 59, 59)))
    stmt = stmt.order_by(Sale.timestamp.desc(), Sale.id.desc())

    with session_scope(ctx.engine, "fetch past orders") as s:
        rows = s.execute(stmt).all()
    return [
        {
            "id": r.id,
            "price": to_number(r.price),
            "products": decode_items(r.products, r.id),
            "desk_id": r.desk_id,
            "desk_name": r.name or f"Table ID {r.desk_id}",
            "payment_mode": r.payment_mode,
            "paid_at": r.timestamp,
        }
        for r in rows
    ]


def remove_order(ctx: PosContext, order_id: int) -> bool:
    with session_scope(ctx.engine, "remove order") as s:
        res = s.execute(delete(Sale).where(Sale.id == order_id))
        s.commit()
        if res.rowcount == 0:
            raise NotFoundError("Order not found or already deleted.")
    log.info("order %s removed", order_id)
    ctx.events.publish(events.ORDERS_UPDATED)
    return True


# --- reports ---
def fetch_report(ctx: PosContext, kind: str, start_date: DateLike, end_date: DateLike) -> List[Dict[str, Any]]:
    """
    Raw rows for one report kind. The end date is a calendar day: it is moved
    one day forward and used as an exclusive bound so the whole day counts.
    """
    if kind not in REPORT_KINDS:
        raise ValidationError("Invalid report type.")
    start = _as_date(start_date, "start_date")
    end = _as_date(end_date, "end_date")
    if start is None or end is None:
        raise ValidationError("start_date and end_date are required")
    lower = datetime.combine(start, time(0, 0, 0))
    upper = datetime.combine(end + timedelta(days=1), time(0, 0, 0))
    in_range = (Sale.timestamp >= lower, Sale.timestamp < upper)
    paid = Sale.active == OrderStatus.PAID.value

    with session_scope(ctx.engine, f"fetch {kind} report") as s:
        if kind == "sales":
            rows = s.execute(
                select(Sale.id, Sale.desk_id, Sale.payment_mode, Sale.price, Sale.timestamp, Sale.active)
                .where(*in_range, paid)
                .order_by(Sale.timestamp.desc())
            ).all()
            return [
                {
                    "id": r.id,
                    "desk_id": r.desk_id,
                    "payment_mode": r.payment_mode,
                    "total_price": to_number(r.price),
                    "timestamp": r.timestamp,
                    "active": r.active,
                }
                for r in rows
            ]
        if kind == "items":
            rows = s.execute(
                select(Sale.id, Sale.products, Sale.timestamp).where(*in_range, paid).order_by(Sale.timestamp.desc())
            ).all()
            return [{"id": r.id, "products": decode_items(r.products, r.id), "timestamp": r.timestamp} for r in rows]
        if kind == "tables":
            rows = s.execute(
                select(Sale.id, Desk.name, Sale.price, Sale.timestamp)
                .join(Desk, Sale.desk_id == Desk.id)
                .where(*in_range, paid)
                .order_by(Sale.timestamp.desc())
            ).all()
            return [
                {"id": r.id, "table_name": r.name, "total_price": to_number(r.price), "timestamp": r.timestamp}
                for r in rows
            ]
        rows = s.execute(select(Sale.id, Sale.products).where(*in_range, paid)).all()
        return [{"products": decode_items(r.products, r.id)} for r in rows]


def _bump(groups: "OrderedDict[str, Dict[str, Any]]", key: str, **amounts: float) -> None:
    g = groups.setdefault(key, {"name": key, **{k: 0 for k in amounts}})
    for k, v in amounts.items():
        g[k] += v


def summarize_report(
    kind: str, rows: List[Mapping[str, Any]], category_of: Optional[Mapping[str, str]] = None
) -> Dict[str, Any]:
    """Aggregate raw report rows the way the reports screen shows them."""
    if kind == "sales":
        return {
            "orders": len(rows),
            "revenue": round(sum(to_number(r.get("total_price")) for r in rows), 2),
        }
    if kind == "tables":
        groups: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        for r in rows:
            _bump(groups, str(r.get("table_name") or "Unknown"), orders=1, revenue=to_number(r.get("total_price")))
        return {"groups": _rounded(groups)}
    if kind in ("items", "categories"):
        category_of = category_of or {}
        groups = OrderedDict()
        for r in rows:
            for item in r.get("products") or []:
                if not isinstance(item, Mapping):
                    continue
                name = str(item.get("name") or "")
                qty = to_number(item.get("qty"))
                key = name if kind == "items" else (category_of.get(name) or "Uncategorized")
                _bump(groups, key, qty=qty, revenue=to_number(item.get("price")) * qty)
        return {"groups": _rounded(groups)}
    raise ValidationError("Invalid report type.")


def _rounded(groups: "OrderedDict[str, Dict[str, Any]]") -> List[Dict[str, Any]]:
    out = []
    for g in sorted(groups.values(), key=lambda g: -g["revenue"]):
        out.append({k: (round(v, 2) if isinstance(v, float) else v) for k, v in g.items()})
    return out


def product_categories(ctx: PosContext) -> Dict[str, str]:
    """Map product name to its category label, first product wins on duplicate names."""
    category_of: Dict[str, str] = {}
    with session_scope(ctx.engine, "resolve product categories") as s:
        for name, category in s.execute(select(Product.name, Product.category)).all():
            if category:
                category_of.setdefault(name, category)
    return category_of


def report_summary(ctx: PosContext, kind: str, rows: List[Mapping[str, Any]]) -> Dict[str, Any]:
    """Summarize rows already returned by fetch_report; only categories need the catalog."""
    category_of = product_categories(ctx) if kind == "categories" else None
    return summarize_report(kind, rows, category_of)
