from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockledger.app.api.deps import get_db
from stockledger.app.db.models.core_types import MovementKind, MovementStatus
from stockledger.app.schemas.movements import MovementRead
from stockledger.services import ledger

router = APIRouter(prefix="/stock-movements")


@router.get("", response_model=list[MovementRead])
def list_movements(
    kind: MovementKind | None = None,
    status: MovementStatus | None = None,
    item_id: int | None = Query(default=None, alias="itemId"),
    limit: int = Query(default=200, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    """Ledger (append-only), plus récentes d'abord."""
    return ledger.list_movements(db, kind=kind, status=status, item_id=item_id, limit=limit)


@router.get("/{entry_id}", response_model=MovementRead)
def get_movement(entry_id: int, db: Session = Depends(get_db)):
    return ledger.get_movement(db, entry_id)
