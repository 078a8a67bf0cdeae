"""
Catalog and configuration: users, products, categories, tables, settings.

Every mutation publishes the matching topic so open screens refresh.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import events
from .context import PosContext
from .db import session_scope
from .errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from .models import DEFAULT_CURRENCY, DEFAULT_ICON, SETTINGS_ID, Category, Desk, Product, Sale, Settings, User
from .schemas import NamedOut, ProductIn, ProductOut, SettingsIn, SettingsOut, UserOut

log = logging.getLogger("cafepos.catalog")


def _clean_name(name: str) -> str:
    clean = (name or "").strip()
    if not clean:
        raise ValidationError("Name cannot be blank.")
    return clean


def _commit_unique(s: Session, conflict_message: str) -> None:
    try:
        s.commit()
    except IntegrityError as e:
        s.rollback()
        raise ConflictError(conflict_message) from e


# --- Users ---
def check_login_pin(ctx: PosContext, pin: str) -> Optional[UserOut]:
    if not pin:
        return None
    try:
        with session_scope(ctx.engine, "login") as s:
            user = s.execute(select(User).where(User.password == pin).limit(1)).scalar_one_or_none()
            return UserOut.model_validate(user) if user else None
    except PersistenceError:
        # the login screen only distinguishes "known PIN" from everything else
        return None


# --- Products ---
def list_menu(ctx: PosContext) -> List[ProductOut]:
    with session_scope(ctx.engine, "fetch menu") as s:
        rows = s.execute(select(Product).order_by(Product.category, Product.name)).scalars().all()
        return [ProductOut.model_validate(p) for p in rows]


def list_products(ctx: PosContext) -> List[ProductOut]:
    with session_scope(ctx.engine, "list products") as s:
        rows = s.execute(select(Product).order_by(Product.id)).scalars().all()
        return [ProductOut.model_validate(p) for p in rows]


def add_product(ctx: PosContext, req: ProductIn) -> ProductOut:
    with session_scope(ctx.engine, "add product") as s:
        p = Product(
            name=_clean_name(req.name),
            code=req.code,
            category=req.category,
            price=req.price,
            image=req.icon_class or DEFAULT_ICON,
        )
        s.add(p); s.commit(); s.refresh(p)
        out = ProductOut.model_validate(p)
    ctx.events.publish(events.MENU_UPDATED)
    return out


def update_product(ctx: PosContext, product_id: int, req: ProductIn) -> ProductOut:
    with session_scope(ctx.engine, "update product") as s:
        p = s.get(Product, product_id)
        if not p:
            raise NotFoundError("Product not found.")
        p.name = _clean_name(req.name)
        p.code = req.code
        p.category = req.category
        p.price = req.price
        p.image = req.icon_class or DEFAULT_ICON
        s.commit(); s.refresh(p)
        out = ProductOut.model_validate(p)
    ctx.events.publish(events.MENU_UPDATED)
    return out


def delete_product(ctx: PosContext, product_id: int) -> bool:
    with session_scope(ctx.engine, "delete product") as s:
        res = s.execute(delete(Product).where(Product.id == product_id))
        s.commit()
        if res.rowcount == 0:
            raise NotFoundError("Product not found.")
    ctx.events.publish(events.MENU_UPDATED)
    return True


# --- Categories ---
def list_categories(ctx: PosContext) -> List[NamedOut]:
    with session_scope(ctx.engine, "list categories") as s:
        rows = s.execute(select(Category).order_by(Category.name)).scalars().all()
        return [NamedOut.model_validate(c) for c in rows]


def add_category(ctx: PosContext, name: str) -> NamedOut:
    clean = _clean_name(name)
    with session_scope(ctx.engine, "add category") as s:
        c = Category(name=clean)
        s.add(c)
        _commit_unique(s, "Category already exists")
        s.refresh(c)
        out = NamedOut.model_validate(c)
    ctx.events.publish(events.CATEGORIES_UPDATED)
    return out


def update_category(ctx: PosContext, category_id: int, name: str) -> NamedOut:
    clean = _clean_name(name)
    with session_scope(ctx.engine, "update category") as s:
        c = s.get(Category, category_id)
        if not c:
            raise NotFoundError("Category not found.")
        c.name = clean
        _commit_unique(s, "Name already taken")
        out = NamedOut(id=category_id, name=clean)
    ctx.events.publish(events.CATEGORIES_UPDATED)
    return out


def delete_category(ctx: PosContext, category_id: int) -> bool:
    with session_scope(ctx.engine, "delete category") as s:
        res = s.execute(delete(Category).where(Category.id == category_id))
        s.commit()
        if res.rowcount == 0:
            raise NotFoundError("Category not found.")
    ctx.events.publish(events.CATEGORIES_UPDATED)
    return True


# --- Tables (desks) ---
def list_tables(ctx: PosContext) -> List[NamedOut]:
    with session_scope(ctx.engine, "list tables") as s:
        rows = s.execute(select(Desk).order_by(Desk.name)).scalars().all()
        return [NamedOut.model_validate(d) for d in rows]


def add_table(ctx: PosContext, name: str) -> NamedOut:
    clean = _clean_name(name)
    with session_scope(ctx.engine, "add table") as s:
        d = Desk(name=clean)
        s.add(d)
        _commit_unique(s, "Table name already exists")
        s.refresh(d)
        out = NamedOut.model_validate(d)
    ctx.events.publish(events.TABLES_ADDED)
    return out


def update_table(ctx: PosContext, table_id: int, name: str) -> NamedOut:
    clean = _clean_name(name)
    with session_scope(ctx.engine, "update table") as s:
        d = s.get(Desk, table_id)
        if not d:
            raise NotFoundError("Table not found.")
        d.name = clean
        _commit_unique(s, "Name already taken")
        out = NamedOut(id=table_id, name=clean)
    ctx.events.publish(events.TABLES_UPDATED)
    return out


def delete_table(ctx: PosContext, table_id: int) -> bool:
    # orders pointing at this table are left as they are
    with session_scope(ctx.engine, "delete table") as s:
        res = s.execute(delete(Desk).where(Desk.id == table_id))
        s.commit()
        if res.rowcount == 0:
            raise NotFoundError("Table not found.")
    ctx.events.publish(events.TABLES_UPDATED)
    return True


# --- Settings ---
def _settings_row(s: Session) -> Settings:
    row = s.get(Settings, SETTINGS_ID)
    if row is None:
        row = Settings(id=SETTINGS_ID)
        s.add(row); s.flush()
    return row


def _settings_out(row: Settings) -> SettingsOut:
    return SettingsOut(
        name=row.name,
        address=row.address,
        phone_number=row.phone_number,
        email=row.email,
        tax_enabled=1 if row.tax_enabled else 0,
        tax_rate=row.tax_rate or 0.0,
        discount_enabled=1 if row.discount_enabled else 0,
        discount_rate=row.discount_rate or 0.0,
        currency_symbol=(row.currency_symbol or "").strip() or DEFAULT_CURRENCY,
        shop_printer=row.shop_printer,
        kitchen_printer=row.kitchen_printer,
    )


def get_settings(ctx: PosContext) -> SettingsOut:
    with session_scope(ctx.engine, "fetch settings") as s:
        out = _settings_out(_settings_row(s))
        s.commit()
        return out


def update_settings(ctx: PosContext, req: SettingsIn) -> SettingsOut:
    with session_scope(ctx.engine, "update settings") as s:
        row = _settings_row(s)
        row.name = req.name
        row.address = req.address
        row.phone_number = req.phone_number
        row.email = req.email
        row.tax_enabled = 1 if req.tax_enabled else 0
        row.tax_rate = req.tax_rate
        row.discount_enabled = 1 if req.discount_enabled else 0
        row.discount_rate = req.discount_rate
        row.currency_symbol = (req.currency_symbol or "").strip() or DEFAULT_CURRENCY
        row.shop_printer = req.shop_printer
        row.kitchen_printer = req.kitchen_printer
        s.commit(); s.refresh(row)
        out = _settings_out(row)
    ctx.events.publish(events.SETTINGS_UPDATED)
    return out


def get_currency_symbol(ctx: PosContext) -> str:
    try:
        return get_settings(ctx).currency_symbol
    except PersistenceError:
        return DEFAULT_CURRENCY


def clear_database(ctx: PosContext) -> int:
    """Drop every order; catalog, tables, users and settings stay."""
    with session_scope(ctx.engine, "clear database") as s:
        res = s.execute(delete(Sale))
        s.commit()
        removed = res.rowcount or 0
    log.warning("cleared %d orders", removed)
    ctx.events.publish(events.DATABASE_CLEARED)
    return removed
