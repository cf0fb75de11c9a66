"""
Item Store.

Toute mutation de Item.quantity passe par `adjust_quantity` : une seule
instruction UPDATE conditionnelle, jamais de read-modify-write côté Python.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import exists, func, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from stockledger.app.db.base import utcnow
from stockledger.app.db.models.models_v1 import (
    AuditLineItem,
    ClosingStock,
    Item,
    Location,
    MovementEntry,
)
from stockledger.app.db.models.core_types import (
    ActionKind,
    EntityType,
    MovementKind,
    MovementStatus,
)
from stockledger.app.schemas.actor import Actor
from stockledger.services.catalog import get_location, get_product_by_sku
from stockledger.services.activity import activity_logger, describe
from stockledger.services.errors import (
    AlreadyExists,
    DeleteBlocked,
    InvalidQuantity,
    NotFound,
    StaleQuantity,
    StockError,
    WouldGoNegative,
)

logger = logging.getLogger(__name__)

# Statuts dont le delta est effectivement appliqué à Item.quantity
APPLIED_STATUSES = (MovementStatus.completed, MovementStatus.approved)

METADATA_FIELDS = ("name", "unit_cost", "unit_price", "min_stock_level", "reorder_point")


@dataclass(frozen=True)
class ItemDefaults:
    name: str
    unit_cost: Decimal = Decimal("0")
    unit_price: Decimal = Decimal("0")
    min_stock_level: int = 0
    reorder_point: int = 0


# ---------- Lecture ----------
def get_item(db: Session, item_id: int) -> Item:
    item = db.get(Item, item_id)
    if not item:
        raise NotFound("Item", item_id)
    return item


def lock_item(db: Session, item_id: int) -> Item:
    """Charge l'item avec SELECT ... FOR UPDATE (no-op sur SQLite)."""
    item = (
        db.execute(
            select(Item)
            .where(Item.id == item_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalars()
        .one_or_none()
    )
    if not item:
        raise NotFound("Item", item_id)
    return item


def list_items(
    db: Session,
    *,
    location_id: int | None = None,
    sku: str | None = None,
    below_reorder: bool = False,
) -> list[Item]:
    stmt = select(Item).order_by(Item.location_id, Item.sku)
    if location_id is not None:
        stmt = stmt.where(Item.location_id == location_id)
    if sku is not None:
        stmt = stmt.where(Item.sku == sku)
    if below_reorder:
        stmt = stmt.where(Item.quantity <= Item.reorder_point)
    return list(db.execute(stmt).scalars().all())


# ---------- Mutation de quantité ----------
def adjust_quantity(
    db: Session,
    item_id: int,
    delta: int,
    actor_id: str,
    *,
    expected_quantity: int | None = None,
) -> Item:
    """
    Applique `delta` à Item.quantity.

    UPDATE items SET quantity = quantity + :delta
    WHERE id = :id AND quantity + :delta >= 0 [AND quantity = :expected]

    0 ligne touchée :
        - item absent              -> NotFound
        - quantité != expected     -> StaleQuantity (retryable)
        - quantité + delta < 0     -> WouldGoNegative
    """
    if not isinstance(delta, int) or delta == 0:
        raise InvalidQuantity(delta)

    stmt = (
        update(Item)
        .where(Item.id == item_id)
        .where(Item.quantity + delta >= 0)
        .values(quantity=Item.quantity + delta, updated_at=utcnow(), updated_by=actor_id)
        .execution_options(synchronize_session=False)
    )
    if expected_quantity is not None:
        stmt = stmt.where(Item.quantity == expected_quantity)

    result = db.execute(stmt)
    item = db.get(Item, item_id, populate_existing=True)

    if result.rowcount == 1:
        return item

    if item is None:
        raise NotFound("Item", item_id)
    if expected_quantity is not None and item.quantity != expected_quantity:
        raise StaleQuantity(item_id, expected_quantity)
    logger.info("Rejected adjustment of item %s by %d (on hand %d)", item_id, delta, item.quantity)
    raise WouldGoNegative(item.name, item.quantity, -delta, item_id=item.id)


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    return None


def find_or_create_item(
    db: Session,
    *,
    sku: str,
    location: Location,
    defaults: ItemDefaults,
    actor_id: str,
) -> tuple[Item, bool]:
    """
    Item (sku, location) existant ou créé à quantité 0.

    INSERT ... ON CONFLICT (sku, location_id) DO NOTHING : deux premiers
    transferts concurrents vers une location ne créent jamais deux lignes.
    """
    now = utcnow()
    values = dict(
        sku=sku,
        name=defaults.name,
        location_id=location.id,
        location_kind=location.kind,
        quantity=0,
        unit_cost=defaults.unit_cost,
        unit_price=defaults.unit_price,
        min_stock_level=defaults.min_stock_level,
        reorder_point=defaults.reorder_point,
        updated_at=now,
        updated_by=actor_id,
        created_at=now,
    )

    insert = _insert_for(db)
    if insert is not None:
        new_id = db.execute(
            insert(Item)
            .values(**values)
            .on_conflict_do_nothing(index_elements=["sku", "location_id"])
            .returning(Item.id)
        ).scalar_one_or_none()
        created = new_id is not None
    else:
        # Autres dialectes : la contrainte unique + retry de l'unité de travail
        existing = db.execute(
            select(Item.id).where(Item.sku == sku, Item.location_id == location.id)
        ).scalar_one_or_none()
        created = existing is None
        if created:
            db.add(Item(**values))
            db.flush()

    item = (
        db.execute(
            select(Item)
            .where(Item.sku == sku, Item.location_id == location.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalars()
        .one()
    )
    if created:
        logger.info("Created item %s for sku %s at location %s", item.id, sku, location.id)
    return item, created


# ---------- CRUD administrateur ----------
def _check_levels(min_stock_level: int, reorder_point: int) -> None:
    if min_stock_level < 0 or reorder_point < 0:
        raise StockError("Stock levels must be non-negative")
    if reorder_point > min_stock_level:
        raise StockError(
            "reorder_point must not exceed min_stock_level",
            reorder_point=reorder_point,
            min_stock_level=min_stock_level,
        )


def create_item(
    db: Session,
    *,
    sku: str,
    location_id: int,
    defaults: ItemDefaults,
    actor: Actor,
) -> Item:
    get_product_by_sku(db, sku)
    location = get_location(db, location_id)
    _check_levels(defaults.min_stock_level, defaults.reorder_point)

    item, created = find_or_create_item(db, sku=sku, location=location, defaults=defaults, actor_id=actor.id)
    if not created:
        raise AlreadyExists(
            f"Item already exists for {sku} at location {location_id}",
            item_id=item.id,
        )

    activity_logger.log_action(
        db,
        actor.id,
        ActionKind.create,
        EntityType.item,
        item.id,
        describe(ActionKind.create, EntityType.item, item.name, extra=f"at {location.name}"),
    )
    return item


def update_item_metadata(db: Session, item_id: int, changes: dict, actor: Actor) -> Item:
    """Métadonnées uniquement : la quantité n'est jamais modifiable ici."""
    item = lock_item(db, item_id)
    unknown = set(changes) - set(METADATA_FIELDS)
    if unknown:
        raise StockError(f"Fields not editable: {', '.join(sorted(unknown))}")
    nulls = sorted(f for f, v in changes.items() if v is None)
    if nulls:
        raise StockError(f"Fields may not be null: {', '.join(nulls)}")

    min_level = changes.get("min_stock_level", item.min_stock_level)
    reorder = changes.get("reorder_point", item.reorder_point)
    _check_levels(min_level, reorder)
    for price_field in ("unit_cost", "unit_price"):
        if price_field in changes and changes[price_field] < 0:
            raise StockError(f"{price_field} must be non-negative")

    for field, value in changes.items():
        setattr(item, field, value)
    item.updated_at = utcnow()
    item.updated_by = actor.id
    db.flush()

    activity_logger.log_action(
        db,
        actor.id,
        ActionKind.update,
        EntityType.item,
        item.id,
        describe(ActionKind.update, EntityType.item, item.name, extra=", ".join(sorted(changes))),
    )
    return item


def delete_item(db: Session, item_id: int, actor: Actor) -> None:
    item = lock_item(db, item_id)

    referenced = db.execute(
        select(
            exists().where(
                or_(MovementEntry.item_id == item_id, MovementEntry.counterparty_item_id == item_id)
            )
        )
    ).scalar()
    audited = db.execute(select(exists().where(AuditLineItem.item_id == item_id))).scalar()
    closed = db.execute(select(exists().where(ClosingStock.item_id == item_id))).scalar()
    if referenced or audited or closed:
        raise DeleteBlocked(
            f"Cannot delete item {item.name}: it is referenced by ledger history",
            item_id=item_id,
        )

    name = item.name
    db.delete(item)
    db.flush()
    activity_logger.log_action(
        db,
        actor.id,
        ActionKind.delete,
        EntityType.item,
        item_id,
        describe(ActionKind.delete, EntityType.item, name),
    )


# ---------- Réconciliation compteur / ledger ----------
def ledger_balance(db: Session, item_id: int) -> int:
    """Somme des deltas signés appliqués à l'item (sorties de transfer incluses)."""
    own = db.execute(
        select(func.coalesce(func.sum(MovementEntry.delta), 0))
        .where(MovementEntry.item_id == item_id)
        .where(MovementEntry.status.in_(APPLIED_STATUSES))
    ).scalar_one()
    incoming = db.execute(
        select(func.coalesce(func.sum(MovementEntry.quantity), 0))
        .where(MovementEntry.counterparty_item_id == item_id)
        .where(MovementEntry.kind == MovementKind.transfer)
        .where(MovementEntry.status.in_(APPLIED_STATUSES))
    ).scalar_one()
    return int(own) + int(incoming)


def find_ledger_drift(db: Session, *, location_id: int | None = None) -> list[dict]:
    """
    Items dont Item.quantity != somme des deltas du ledger.

    Propriétés :
    - lecture seule
    - une requête groupée par sens, pas de boucle N+1
    """
    own_rows = db.execute(
        select(MovementEntry.item_id, func.sum(MovementEntry.delta))
        .where(MovementEntry.status.in_(APPLIED_STATUSES))
        .group_by(MovementEntry.item_id)
    ).all()
    incoming_rows = db.execute(
        select(MovementEntry.counterparty_item_id, func.sum(MovementEntry.quantity))
        .where(MovementEntry.kind == MovementKind.transfer)
        .where(MovementEntry.counterparty_item_id.is_not(None))
        .where(MovementEntry.status.in_(APPLIED_STATUSES))
        .group_by(MovementEntry.counterparty_item_id)
    ).all()

    own = {int(item_id): int(total) for item_id, total in own_rows}
    incoming = {int(item_id): int(total) for item_id, total in incoming_rows}

    drift = []
    for item in list_items(db, location_id=location_id):
        balance = own.get(item.id, 0) + incoming.get(item.id, 0)
        if balance != item.quantity:
            drift.append(
                {
                    "item_id": item.id,
                    "sku": item.sku,
                    "location_id": item.location_id,
                    "quantity": item.quantity,
                    "ledger_balance": balance,
                }
            )
    if drift:
        logger.warning("Ledger drift detected on %d item(s)", len(drift))
    return drift
