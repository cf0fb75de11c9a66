from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import Field

from stockledger.app.schemas.common import CamelModel


class ClosingStockCommand(CamelModel):
    location_id: int
    # n'importe quel jour du mois à clôturer
    period: date = Field(default_factory=date.today)


class ClosingStockRead(CamelModel):
    id: int
    item_id: int
    location_id: int
    period_start: date
    period_end: date
    opening_quantity: int
    inward_quantity: int
    outward_quantity: int
    damage_quantity: int
    transfer_in_quantity: int
    transfer_out_quantity: int
    adjustment_quantity: int
    closing_quantity: int
    unit_cost: Decimal
    total_value: Decimal
    generated_by: str
    generated_at: datetime
