from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .errors import ConflictError

SETTINGS_ID = 1
DEFAULT_ICON = "fas fa-utensils"
DEFAULT_CURRENCY = "Rs"

Money = Numeric(10, 2, asdecimal=False)


class Base(DeclarativeBase):
    pass


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"

    def transition_to(self, target: "OrderStatus") -> "OrderStatus":
        """Return `target` if moving there from this status is legal."""
        if (self, target) not in _LEGAL_TRANSITIONS:
            raise ConflictError(f"order cannot move from {self.value} to {target.value}")
        return target


_LEGAL_TRANSITIONS = {(OrderStatus.PENDING, OrderStatus.PAID)}


class Product(Base):
    __tablename__ = "products"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200))
    category: Mapped[Optional[str]] = mapped_column(String(120), default=None)
    price: Mapped[float] = mapped_column(Money, default=0)
    image: Mapped[str] = mapped_column(String(120), default=DEFAULT_ICON)
    code: Mapped[Optional[str]] = mapped_column(String(64), default=None)


class Category(Base):
    __tablename__ = "category"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), unique=True)


class Desk(Base):
    __tablename__ = "desk"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), unique=True)


class Sale(Base):
    __tablename__ = "sales"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    products: Mapped[str] = mapped_column(Text, default="[]")  # JSON list of {name, price, qty}
    price: Mapped[float] = mapped_column(Money, default=0)
    # no FK: desks can be deleted while orders still point at them
    desk_id: Mapped[Optional[int]] = mapped_column(Integer, default=None)
    active: Mapped[str] = mapped_column(String(16), default=OrderStatus.PENDING.value)
    payment_mode: Mapped[Optional[str]] = mapped_column(String(32), default=None)
    amount_paid: Mapped[Optional[float]] = mapped_column(Money, default=None)
    change_amount: Mapped[Optional[float]] = mapped_column(Money, default=None)
    notes: Mapped[Optional[str]] = mapped_column(String(400), default=None)
    timestamp: Mapped[datetime] = mapped_column(DateTime, index=True)


class Settings(Base):
    __tablename__ = "settings"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=SETTINGS_ID)
    name: Mapped[Optional[str]] = mapped_column(String(200), default=None)
    address: Mapped[Optional[str]] = mapped_column(String(400), default=None)
    phone_number: Mapped[Optional[str]] = mapped_column(String(64), default=None)
    email: Mapped[Optional[str]] = mapped_column(String(200), default=None)
    currency_symbol: Mapped[str] = mapped_column(String(8), default=DEFAULT_CURRENCY)
    tax_enabled: Mapped[int] = mapped_column(Integer, default=0)
    tax_rate: Mapped[float] = mapped_column(Money, default=0)
    discount_enabled: Mapped[int] = mapped_column(Integer, default=0)
    discount_rate: Mapped[float] = mapped_column(Money, default=0)
    shop_printer: Mapped[Optional[str]] = mapped_column(String(200), default="none")
    kitchen_printer: Mapped[Optional[str]] = mapped_column(String(200), default="none")


class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120))
    # plaintext PIN, compared as-is at login
    password: Mapped[str] = mapped_column(String(64), index=True)
