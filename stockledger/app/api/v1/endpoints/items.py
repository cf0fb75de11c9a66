from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from stockledger.app.api.deps import get_actor, get_db, get_uow
from stockledger.app.schemas.actor import Actor
from stockledger.app.schemas.items import ItemCreate, ItemRead, ItemUpdate
from stockledger.services import inventory
from stockledger.services.catalog import get_product_by_sku
from stockledger.services.unit_of_work import UnitOfWork

router = APIRouter(prefix="/items")


@router.get("", response_model=list[ItemRead])
def list_items(
    location_id: int | None = Query(default=None, alias="locationId"),
    sku: str | None = None,
    below_reorder: bool = Query(default=False, alias="belowReorder"),
    db: Session = Depends(get_db),
):
    """
    Items (READ ONLY côté quantité)
    - quantity n'est modifiable que par les mouvements du ledger
    """
    return inventory.list_items(db, location_id=location_id, sku=sku, below_reorder=below_reorder)


@router.get("/{item_id}", response_model=ItemRead)
def get_item(item_id: int, db: Session = Depends(get_db)):
    return inventory.get_item(db, item_id)


@router.post("", response_model=ItemRead, status_code=201)
def create_item(
    payload: ItemCreate,
    uow: UnitOfWork = Depends(get_uow),
    actor: Actor = Depends(get_actor),
):
    def _create(db: Session):
        # valeurs par défaut reprises du produit
        product = get_product_by_sku(db, payload.sku)
        defaults = inventory.ItemDefaults(
            name=payload.name or product.name,
            unit_cost=payload.unit_cost if payload.unit_cost is not None else product.unit_cost,
            unit_price=payload.unit_price if payload.unit_price is not None else product.unit_price,
            min_stock_level=(
                payload.min_stock_level if payload.min_stock_level is not None else product.min_stock_level
            ),
            reorder_point=payload.reorder_point if payload.reorder_point is not None else product.reorder_point,
        )
        return inventory.create_item(
            db, sku=payload.sku, location_id=payload.location_id, defaults=defaults, actor=actor
        )

    return uow.run(_create)


@router.patch("/{item_id}", response_model=ItemRead)
def update_item(
    item_id: int,
    payload: ItemUpdate,
    uow: UnitOfWork = Depends(get_uow),
    actor: Actor = Depends(get_actor),
):
    changes = payload.model_dump(exclude_unset=True)
    return uow.run(lambda db: inventory.update_item_metadata(db, item_id, changes, actor))


@router.delete("/{item_id}", status_code=204)
def delete_item(
    item_id: int,
    uow: UnitOfWork = Depends(get_uow),
    actor: Actor = Depends(get_actor),
):
    uow.run(lambda db: inventory.delete_item(db, item_id, actor))
    return Response(status_code=204)
