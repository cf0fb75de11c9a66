from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stockledger.app.api.deps import get_actor, get_db, get_uow
from stockledger.app.db.models.core_types import LocationKind
from stockledger.app.schemas.actor import Actor
from stockledger.app.schemas.catalog import LocationCreate, LocationRead
from stockledger.services import catalog
from stockledger.services.unit_of_work import UnitOfWork

router = APIRouter(prefix="/locations")


@router.get("", response_model=list[LocationRead])
def list_locations(
    kind: LocationKind | None = None,
    db: Session = Depends(get_db),
):
    return catalog.list_locations(db, kind=kind)


@router.post("", response_model=LocationRead, status_code=201)
def create_location(
    payload: LocationCreate,
    uow: UnitOfWork = Depends(get_uow),
    actor: Actor = Depends(get_actor),
):
    return uow.run(lambda db: catalog.create_location(db, name=payload.name, kind=payload.kind, actor=actor))
