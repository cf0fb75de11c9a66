from __future__ import annotations

from datetime import date, datetime

from pydantic import Field

from stockledger.app.schemas.common import CamelModel


class AuditCandidate(CamelModel):
    item_id: int
    sku: str
    name: str
    expected_quantity: int
    actual_quantity: int


class AuditLineCommand(CamelModel):
    inventory_item_id: int
    actual_quantity: int = Field(ge=0)
    # Ignorée : la quantité attendue est relue côté serveur au commit
    expected_quantity: int | None = None
    notes: str | None = None
    update_inventory: bool = False


class AuditCommand(CamelModel):
    location_id: int
    audit_date: date = Field(default_factory=date.today)
    items: list[AuditLineCommand] = Field(min_length=1)
    conducted_by_id: str | None = None
    notes: str | None = None


class AuditLineRead(CamelModel):
    id: int
    audit_id: int
    item_id: int
    expected_quantity: int
    actual_quantity: int
    discrepancy: int
    notes: str | None
    applied: bool


class AuditRecordRead(CamelModel):
    id: int
    location_id: int
    audit_date: date
    conducted_by: str
    items_audited: int
    discrepancies_found: int
    notes: str | None
    created_at: datetime


class AuditRead(CamelModel):
    audit: AuditRecordRead
    audit_items: list[AuditLineRead]
