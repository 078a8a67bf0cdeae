from __future__ import annotations

from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from .models import DEFAULT_ICON

# surrounding whitespace is dropped before the length check, so "   " is rejected
Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=120)]


class LineItem(BaseModel):
    name: str
    price: float = Field(ge=0)
    qty: int = Field(gt=0)


class OrderCreate(BaseModel):
    products: List[LineItem] = Field(min_length=1)
    price: float = Field(ge=0)
    desk_id: Optional[int] = None
    notes: Optional[str] = None


class PaymentIn(BaseModel):
    payment_mode: str = Field(min_length=1, max_length=32)
    amount_paid: float = Field(ge=0)
    change_amount: float = 0.0


class PinIn(BaseModel):
    pin: str


class UserOut(BaseModel):
    id: int
    name: str
    model_config = ConfigDict(from_attributes=True)


class ProductIn(BaseModel):
    name: Name
    code: Optional[str] = None
    category: Optional[str] = None
    price: float = Field(ge=0)
    icon_class: Optional[str] = None


class ProductOut(BaseModel):
    id: int
    name: str
    category: Optional[str]
    price: float
    image: Optional[str] = DEFAULT_ICON
    code: Optional[str]
    model_config = ConfigDict(from_attributes=True)


class NameIn(BaseModel):
    name: Name


class NamedOut(BaseModel):
    id: int
    name: str
    model_config = ConfigDict(from_attributes=True)


class SettingsIn(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    tax_enabled: bool = False
    tax_rate: float = Field(default=0.0, ge=0)
    discount_enabled: bool = False
    discount_rate: float = Field(default=0.0, ge=0, le=100)
    currency_symbol: Optional[str] = None
    shop_printer: Optional[str] = None
    kitchen_printer: Optional[str] = None


class SettingsOut(BaseModel):
    name: Optional[str]
    address: Optional[str]
    phone_number: Optional[str]
    email: Optional[str]
    tax_enabled: int
    tax_rate: float
    discount_enabled: int
    discount_rate: float
    currency_symbol: str
    shop_printer: Optional[str]
    kitchen_printer: Optional[str]
