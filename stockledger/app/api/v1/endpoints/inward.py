from __future__ import annotations

from fastapi import APIRouter, Depends, Header

from stockledger.app.api.deps import get_actor, get_uow
from stockledger.app.schemas.actor import Actor
from stockledger.app.schemas.movements import InwardCommand, MovementBatchRead, MovementRead
from stockledger.services.procurement import receive_stock
from stockledger.services.unit_of_work import UnitOfWork

router = APIRouter(prefix="/inward")


@router.post("", response_model=MovementBatchRead, status_code=201)
def post_inward(
    payload: InwardCommand,
    uow: UnitOfWork = Depends(get_uow),
    actor: Actor = Depends(get_actor),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
):
    """
    Réception fournisseur
    - crée l'item (sku, location) à 0 s'il n'existe pas
    - rejoue les entrées existantes si Idempotency-Key déjà vue
    """
    entries = uow.run(lambda db: receive_stock(db, payload, actor, idempotency_key=idempotency_key))
    return MovementBatchRead(entries=[MovementRead.model_validate(e) for e in entries])
