from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.orm import Session

from stockledger.app.api.deps import get_actor, get_db, get_uow
from stockledger.app.db.models.models_v1 import StockTransfer
from stockledger.app.schemas.actor import Actor
from stockledger.app.schemas.movements import (
    MovementRead,
    TransferCommand,
    TransferHeaderRead,
    TransferRead,
)
from stockledger.services import transfers
from stockledger.services.unit_of_work import UnitOfWork

router = APIRouter(prefix="/transfers")


def _to_read(header: StockTransfer, entries) -> TransferRead:
    return TransferRead(
        transfer=TransferHeaderRead.model_validate(header),
        transfer_items=[MovementRead.model_validate(e) for e in entries],
    )


@router.post("", response_model=TransferRead, status_code=201)
def post_transfer(
    payload: TransferCommand,
    uow: UnitOfWork = Depends(get_uow),
    actor: Actor = Depends(get_actor),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
):
    """
    Transfert warehouse -> inventory
    - débit source + crédit destination + une entrée par ligne, tout-ou-rien
    - newPrice re-price l'item destination
    """
    header, entries = uow.run(
        lambda db: transfers.transfer_stock(db, payload, actor, idempotency_key=idempotency_key)
    )
    return _to_read(header, entries)


@router.get("", response_model=list[TransferRead])
def list_transfers(
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return [_to_read(h, h.entries) for h in transfers.list_transfers(db, limit=limit)]


@router.get("/{transfer_id}", response_model=TransferRead)
def get_transfer(transfer_id: int, db: Session = Depends(get_db)):
    header = transfers.get_transfer(db, transfer_id)
    return _to_read(header, header.entries)
