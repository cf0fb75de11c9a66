from decimal import Decimal

from pydantic import Field

from stockledger.app.db.models.core_types import LocationKind
from stockledger.app.schemas.common import CamelModel


class LocationCreate(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    kind: LocationKind


class LocationRead(CamelModel):
    id: int
    name: str
    kind: LocationKind
    active: bool


class ProductCreate(CamelModel):
    sku: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=255)
    unit_cost: Decimal = Field(default=Decimal("0"), ge=0)
    unit_price: Decimal = Field(default=Decimal("0"), ge=0)
    min_stock_level: int = Field(default=0, ge=0)
    reorder_point: int = Field(default=0, ge=0)


class ProductRead(CamelModel):
    id: int
    sku: str
    name: str
    unit_cost: Decimal
    unit_price: Decimal
    min_stock_level: int
    reorder_point: int
    active: bool


class SupplierCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    contact_email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=64)


class SupplierRead(CamelModel):
    id: int
    name: str
    contact_email: str | None
    phone: str | None
    active: bool
