from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockledger.app.api.deps import get_actor, get_db, get_uow
from stockledger.app.schemas.actor import Actor
from stockledger.app.schemas.closing_stock import ClosingStockCommand, ClosingStockRead
from stockledger.services import closing_stock
from stockledger.services.unit_of_work import UnitOfWork

router = APIRouter(prefix="/closing-stock")


@router.post("/generate", response_model=list[ClosingStockRead], status_code=201)
def generate_closing_stock(
    payload: ClosingStockCommand,
    uow: UnitOfWork = Depends(get_uow),
    actor: Actor = Depends(get_actor),
):
    """Clôture du mois de `period` pour tous les items de la location (régénérable)."""
    return uow.run(
        lambda db: closing_stock.generate_closing_stock(db, payload.location_id, payload.period, actor)
    )


@router.get("", response_model=list[ClosingStockRead])
def list_closing_stocks(
    location_id: int | None = Query(default=None, alias="locationId"),
    item_id: int | None = Query(default=None, alias="itemId"),
    period_end: date | None = Query(default=None, alias="periodEnd"),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return closing_stock.list_closing_stocks(
        db, location_id=location_id, item_id=item_id, period_end=period_end, limit=limit
    )


@router.get("/{closing_stock_id}", response_model=ClosingStockRead)
def get_closing_stock(closing_stock_id: int, db: Session = Depends(get_db)):
    return closing_stock.get_closing_stock(db, closing_stock_id)
