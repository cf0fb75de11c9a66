from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stockledger.app.api.deps import get_actor, get_db, get_uow
from stockledger.app.schemas.actor import Actor
from stockledger.app.schemas.catalog import ProductCreate, ProductRead
from stockledger.services import catalog
from stockledger.services.unit_of_work import UnitOfWork

router = APIRouter(prefix="/products")


@router.get("", response_model=list[ProductRead])
def list_products(db: Session = Depends(get_db)):
    return catalog.list_products(db)


@router.get("/{product_id}", response_model=ProductRead)
def get_product(product_id: int, db: Session = Depends(get_db)):
    return catalog.get_product(db, product_id)


@router.post("", response_model=ProductRead, status_code=201)
def create_product(
    payload: ProductCreate,
    uow: UnitOfWork = Depends(get_uow),
    actor: Actor = Depends(get_actor),
):
    return uow.run(
        lambda db: catalog.create_product(
            db,
            sku=payload.sku,
            name=payload.name,
            unit_cost=payload.unit_cost,
            unit_price=payload.unit_price,
            min_stock_level=payload.min_stock_level,
            reorder_point=payload.reorder_point,
            actor=actor,
        )
    )
