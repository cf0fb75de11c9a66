from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stockledger.app.api.deps import get_actor, get_db, get_uow
from stockledger.app.schemas.actor import Actor
from stockledger.app.schemas.catalog import SupplierCreate, SupplierRead
from stockledger.services import catalog
from stockledger.services.unit_of_work import UnitOfWork

router = APIRouter(prefix="/suppliers")


@router.get("", response_model=list[SupplierRead])
def list_suppliers(db: Session = Depends(get_db)):
    return catalog.list_suppliers(db)


@router.post("", response_model=SupplierRead, status_code=201)
def create_supplier(
    payload: SupplierCreate,
    uow: UnitOfWork = Depends(get_uow),
    actor: Actor = Depends(get_actor),
):
    return uow.run(
        lambda db: catalog.create_supplier(
            db,
            name=payload.name,
            contact_email=payload.contact_email,
            phone=payload.phone,
            actor=actor,
        )
    )
