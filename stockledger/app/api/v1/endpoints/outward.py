from __future__ import annotations

from fastapi import APIRouter, Depends, Header

from stockledger.app.api.deps import get_actor, get_uow
from stockledger.app.schemas.actor import Actor
from stockledger.app.schemas.movements import MovementBatchRead, MovementRead, OutwardCommand
from stockledger.services.ledger import dispatch_stock
from stockledger.services.unit_of_work import UnitOfWork

router = APIRouter(prefix="/outward")


@router.post("", response_model=MovementBatchRead, status_code=201)
def post_outward(
    payload: OutwardCommand,
    uow: UnitOfWork = Depends(get_uow),
    actor: Actor = Depends(get_actor),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
):
    entries = uow.run(lambda db: dispatch_stock(db, payload, actor, idempotency_key=idempotency_key))
    return MovementBatchRead(entries=[MovementRead.model_validate(e) for e in entries])
