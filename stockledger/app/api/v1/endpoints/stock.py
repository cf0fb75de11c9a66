from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockledger.app.api.deps import get_db
from stockledger.app.schemas.items import LedgerDrift
from stockledger.services import inventory

router = APIRouter(prefix="/stock")


@router.get("/drift", response_model=list[LedgerDrift])
def get_ledger_drift(
    location_id: int | None = Query(default=None, alias="locationId"),
    db: Session = Depends(get_db),
):
    """
    Contrôle de cohérence (READ ONLY)
    - liste les items dont quantity != somme des deltas du ledger
    - liste vide = compteurs et ledger réconciliés
    """
    return inventory.find_ledger_drift(db, location_id=location_id)


@router.get("/{item_id}/ledger", response_model=LedgerDrift)
def get_ledger_balance(item_id: int, db: Session = Depends(get_db)):
    item = inventory.get_item(db, item_id)
    return {
        "item_id": item.id,
        "sku": item.sku,
        "location_id": item.location_id,
        "quantity": item.quantity,
        "ledger_balance": inventory.ledger_balance(db, item.id),
    }
