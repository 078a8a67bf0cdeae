"""
Kitchen tickets and customer receipts.

Rendering is a pure function of the order snapshot and the settings
snapshot: totals and money formatting happen here, markup lives in the
Jinja2 templates next to this module.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from .errors import RenderError

KITCHEN = "kitchen"
SHOP = "shop"

DEFAULT_SHOP_NAME = "WILD CAFE POS"

_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
_TEMPLATES = {KITCHEN: "kitchen_ticket.html", SHOP: "shop_receipt.html"}

_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)


def to_number(value: Any) -> float:
    """Coerce anything to a finite float; garbage becomes 0."""
    if isinstance(value, bool):
        return float(value)
    try:
        num = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(num) or math.isinf(num):
        return 0.0
    return num


def format_money(value: Any) -> str:
    return f"{to_number(value):.2f}"


def _enabled(flag: Any) -> bool:
    if isinstance(flag, str):
        return flag.strip().lower() in ("1", "true", "yes", "on")
    return bool(flag)


@dataclass(frozen=True)
class ReceiptTotals:
    subtotal: float
    discount_rate: float
    discount_amount: float
    taxable_base: float
    tax_rate: float
    tax_amount: float
    total: float


def compute_totals(items: Sequence[Mapping[str, Any]], settings: Mapping[str, Any]) -> ReceiptTotals:
    subtotal = sum(to_number(i.get("price")) * to_number(i.get("qty")) for i in items)
    discount_rate = to_number(settings.get("discount_rate")) if _enabled(settings.get("discount_enabled")) else 0.0
    discount_amount = subtotal * (discount_rate / 100)
    taxable_base = subtotal - discount_amount
    tax_rate = to_number(settings.get("tax_rate")) if _enabled(settings.get("tax_enabled")) else 0.0
    tax_amount = taxable_base * (tax_rate / 100)
    return ReceiptTotals(
        subtotal=subtotal,
        discount_rate=discount_rate,
        discount_amount=discount_amount,
        taxable_base=taxable_base,
        tax_rate=tax_rate,
        tax_amount=tax_amount,
        total=taxable_base + tax_amount,
    )


@dataclass(frozen=True)
class ReceiptOrder:
    """Snapshot of an order as it should appear on paper."""

    order_id: Any
    table_name: str
    items: List[Mapping[str, Any]] = field(default_factory=list)
    notes: str = ""
    payment_method: Optional[str] = None
    amount_paid: Any = None
    change: Any = None
    printed_at: Optional[datetime] = None


@dataclass(frozen=True)
class ReceiptLine:
    qty: str
    name: str
    line_total: str


def _qty_label(value: Any) -> str:
    num = to_number(value)
    return str(int(num)) if num.is_integer() else f"{num:g}"


def _pct_label(value: float) -> str:
    return f"{value:g}"


def _items(order: ReceiptOrder) -> List[Mapping[str, Any]]:
    if not isinstance(order.items, (list, tuple)):
        return []
    return [i for i in order.items if isinstance(i, Mapping)]


def _kitchen_view(order: ReceiptOrder) -> dict:
    lines = [
        ReceiptLine(qty=_qty_label(i.get("qty") or 1), name=str(i.get("name") or ""), line_total="")
        for i in _items(order)
    ]
    return {
        "table_name": order.table_name or "N/A",
        "order_id": order.order_id if order.order_id is not None else "N/A",
        "lines": lines,
        "notes": (order.notes or "").strip(),
    }


def _shop_view(order: ReceiptOrder, settings: Mapping[str, Any], currency: str) -> dict:
    items = _items(order)
    totals = compute_totals(items, settings)
    lines = [
        ReceiptLine(
            qty=_qty_label(i.get("qty")),
            name=str(i.get("name") or ""),
            line_total=format_money(to_number(i.get("price")) * to_number(i.get("qty"))),
        )
        for i in items
    ]
    printed_at = order.printed_at.strftime("%Y-%m-%d %H:%M:%S") if order.printed_at else ""
    return {
        "shop_name": settings.get("name") or DEFAULT_SHOP_NAME,
        "address": settings.get("address") or "Address not set",
        "phone": settings.get("phone_number") or "N/A",
        "email": settings.get("email") or "N/A",
        "currency": currency,
        "table_name": order.table_name or "N/A",
        "order_id": order.order_id if order.order_id is not None else "N/A",
        "printed_at": printed_at,
        "lines": lines,
        "subtotal": format_money(totals.subtotal),
        "show_discount": totals.discount_rate > 0,
        "discount_rate": _pct_label(totals.discount_rate),
        "discount_amount": format_money(totals.discount_amount),
        "show_tax": _enabled(settings.get("tax_enabled")),
        "tax_rate": _pct_label(totals.tax_rate),
        "tax_amount": format_money(totals.tax_amount),
        "total": format_money(totals.total),
        "payment_method": order.payment_method or "N/A",
        "amount_paid": format_money(order.amount_paid),
        "change": format_money(order.change),
    }


def render_receipt(kind: str, order: ReceiptOrder, settings: Mapping[str, Any], currency_symbol: str) -> str:
    if kind == KITCHEN:
        view = _kitchen_view(order)
    elif kind == SHOP:
        view = _shop_view(order, settings or {}, currency_symbol or "")
    else:
        raise RenderError(f"unknown receipt kind: {kind}")
    try:
        return _env.get_template(_TEMPLATES[kind]).render(**view)
    except TemplateError as e:
        raise RenderError(f"{kind} receipt could not be rendered: {e}") from e
