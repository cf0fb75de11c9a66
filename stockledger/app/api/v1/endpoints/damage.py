from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from stockledger.app.api.deps import get_actor, get_db, get_uow
from stockledger.app.db.models.core_types import MovementKind, MovementStatus
from stockledger.app.schemas.actor import Actor
from stockledger.app.schemas.movements import DamageCommand, DamageReview, MovementRead
from stockledger.services import ledger
from stockledger.services.unit_of_work import UnitOfWork

router = APIRouter(prefix="/damage")


@router.post("", response_model=MovementRead, status_code=201)
def report_damage(
    payload: DamageCommand,
    uow: UnitOfWork = Depends(get_uow),
    actor: Actor = Depends(get_actor),
):
    return uow.run(lambda db: ledger.report_damage(db, payload, actor))


@router.get("", response_model=list[MovementRead])
def list_damage(
    status: MovementStatus | None = None,
    item_id: int | None = Query(default=None, alias="itemId"),
    limit: int = Query(default=200, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    return ledger.list_movements(db, kind=MovementKind.damage, status=status, item_id=item_id, limit=limit)


@router.put("/{entry_id}/approve", response_model=MovementRead)
def approve_damage(
    entry_id: int,
    payload: DamageReview | None = Body(default=None),
    uow: UnitOfWork = Depends(get_uow),
    actor: Actor = Depends(get_actor),
):
    """pending -> approved : la quantité est décrémentée ici, une seule fois."""
    claimed = payload.approved_by_id if payload else None
    return uow.run(lambda db: ledger.approve_damage(db, entry_id, actor, claimed_id=claimed))


@router.put("/{entry_id}/reject", response_model=MovementRead)
def reject_damage(
    entry_id: int,
    payload: DamageReview | None = Body(default=None),
    uow: UnitOfWork = Depends(get_uow),
    actor: Actor = Depends(get_actor),
):
    claimed = payload.approved_by_id if payload else None
    return uow.run(lambda db: ledger.reject_damage(db, entry_id, actor, claimed_id=claimed))
