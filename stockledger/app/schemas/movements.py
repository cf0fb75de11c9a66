from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import Field

from stockledger.app.db.models.core_types import MovementKind, MovementStatus
from stockledger.app.schemas.common import CamelModel


# ---------- Commands ----------
class InwardLine(CamelModel):
    product_id: int
    quantity: int = Field(gt=0)
    unit_price: Decimal | None = Field(default=None, ge=0)


class InwardCommand(CamelModel):
    location_id: int
    supplier_id: int
    received_date: date
    items: list[InwardLine] = Field(min_length=1)
    received_by_id: str | None = None
    notes: str | None = None


class OutwardLine(CamelModel):
    item_id: int
    quantity: int = Field(gt=0)


class OutwardCommand(CamelModel):
    location_id: int
    destination: str = Field(min_length=1, max_length=255)
    transfer_date: date
    items: list[OutwardLine] = Field(min_length=1)
    transferred_by_id: str | None = None
    notes: str | None = None


class TransferLine(CamelModel):
    # id de l'item source (warehouse), nommé productId côté client
    product_id: int
    quantity: int = Field(gt=0)
    new_price: Decimal | None = Field(default=None, ge=0)


class TransferCommand(CamelModel):
    source_location_id: int
    destination_location_id: int
    transfer_date: date
    items: list[TransferLine] = Field(min_length=1)
    reference_number: str | None = Field(default=None, max_length=64)
    notes: str | None = None
    created_by: str | None = None


class DamageCommand(CamelModel):
    item_id: int
    quantity: int = Field(gt=0)
    reason: str = Field(min_length=1, max_length=255)
    reported_date: date
    reported_by_id: str | None = None
    notes: str | None = None


class DamageReview(CamelModel):
    approved_by_id: str | None = None
    notes: str | None = None


# ---------- Read models ----------
class MovementRead(CamelModel):
    id: int
    kind: MovementKind
    status: MovementStatus
    item_id: int
    quantity: int
    delta: int
    counterparty_id: str | None
    supplier_id: int | None
    destination: str | None
    counterparty_item_id: int | None
    transfer_id: int | None
    audit_id: int | None
    unit_price: Decimal | None
    reason: str | None
    notes: str | None
    happened_at: datetime
    actor_id: str
    reviewed_by: str | None
    reviewed_at: datetime | None
    created_at: datetime


class MovementBatchRead(CamelModel):
    entries: list[MovementRead]


class TransferHeaderRead(CamelModel):
    id: int
    source_location_id: int
    destination_location_id: int
    transfer_date: date
    reference_number: str | None
    notes: str | None
    actor_id: str
    created_at: datetime


class TransferRead(CamelModel):
    transfer: TransferHeaderRead
    transfer_items: list[MovementRead]
