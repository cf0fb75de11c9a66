from datetime import datetime
from decimal import Decimal

from pydantic import Field, model_validator

from stockledger.app.db.models.core_types import LocationKind
from stockledger.app.schemas.common import CamelModel


class ItemRead(CamelModel):
    id: int
    sku: str
    name: str
    location_id: int
    location_kind: LocationKind

    quantity: int  # READ ONLY — muté uniquement par le ledger

    unit_cost: Decimal
    unit_price: Decimal
    min_stock_level: int
    reorder_point: int
    updated_at: datetime
    updated_by: str | None


class ItemCreate(CamelModel):
    sku: str = Field(min_length=1, max_length=64)
    location_id: int
    name: str | None = Field(default=None, max_length=255)
    unit_cost: Decimal | None = Field(default=None, ge=0)
    unit_price: Decimal | None = Field(default=None, ge=0)
    min_stock_level: int | None = Field(default=None, ge=0)
    reorder_point: int | None = Field(default=None, ge=0)


class ItemUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    unit_cost: Decimal | None = Field(default=None, ge=0)
    unit_price: Decimal | None = Field(default=None, ge=0)
    min_stock_level: int | None = Field(default=None, ge=0)
    reorder_point: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _no_explicit_null(self):
        # absent = inchangé ; null ne vide jamais une colonne NOT NULL
        nulls = sorted(f for f in self.model_fields_set if getattr(self, f) is None)
        if nulls:
            raise ValueError(f"Fields may not be null: {', '.join(nulls)}")
        return self


class LedgerDrift(CamelModel):
    item_id: int
    sku: str
    location_id: int
    quantity: int
    ledger_balance: int
