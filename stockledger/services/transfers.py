"""
Transfer orchestrator : warehouse -> inventory.

Un transfert = débit de l'item source + crédit (ou création) de l'item
destination + une entrée 'transfer' par ligne, dans la même unité de travail.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import NamedTuple

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from stockledger.app.db.models.models_v1 import Item, Location, MovementEntry, StockTransfer
from stockledger.app.db.models.core_types import (
    ActionKind,
    EntityType,
    LocationKind,
    MovementKind,
    MovementStatus,
)
from stockledger.app.schemas.actor import Actor
from stockledger.app.schemas.movements import TransferCommand
from stockledger.services.activity import activity_logger, describe
from stockledger.services.catalog import get_location
from stockledger.services.errors import (
    InsufficientStock,
    InvalidTransferRoute,
    LocationMismatch,
    NotFound,
    PartialBatchFailure,
    StockError,
)
from stockledger.services.inventory import ItemDefaults, adjust_quantity, find_or_create_item, lock_item
from stockledger.services.ledger import (
    append_entry,
    as_timestamp,
    batch_keys,
    find_replay,
    lock_batch_items,
    require_positive,
    resolve_actor,
)

logger = logging.getLogger(__name__)


class TransferResult(NamedTuple):
    source_item: Item
    destination_item: Item
    entry: MovementEntry


def check_route(source: Location, destination: Location) -> None:
    if source.id == destination.id:
        raise InvalidTransferRoute("Source and destination locations must differ")
    if source.kind != LocationKind.warehouse:
        raise InvalidTransferRoute(f"Source location {source.name} is not a warehouse", location_id=source.id)
    if destination.kind != LocationKind.inventory:
        raise InvalidTransferRoute(
            f"Destination location {destination.name} is not an inventory location",
            location_id=destination.id,
        )


def move_item(
    db: Session,
    *,
    source_item_id: int,
    destination: Location,
    quantity: int,
    actor_id: str,
    happened_at: datetime,
    new_price: Decimal | None = None,
    transfer_id: int | None = None,
    notes: str | None = None,
    idempotency_key: str | None = None,
) -> TransferResult:
    """
    Déplace `quantity` unités d'un item source vers (sku, destination).

    1. source verrouillée, quantity <= source.quantity sinon InsufficientStock
    2. destination trouvée ou créée (quantity 0, prix = new_price ?? prix source)
    3. débit source, 4. crédit destination (+ re-pricing), 5. entrée ledger, 6. activity
    """
    require_positive(quantity)
    source = lock_item(db, source_item_id)
    if quantity > source.quantity:
        raise InsufficientStock(source.name, source.quantity, quantity, item_id=source.id)

    dest, created = find_or_create_item(
        db,
        sku=source.sku,
        location=destination,
        defaults=ItemDefaults(
            name=source.name,
            unit_cost=source.unit_cost,
            unit_price=new_price if new_price is not None else source.unit_price,
            min_stock_level=source.min_stock_level,
            reorder_point=source.reorder_point,
        ),
        actor_id=actor_id,
    )

    source = adjust_quantity(db, source.id, -quantity, actor_id)
    dest = adjust_quantity(db, dest.id, quantity, actor_id)
    if new_price is not None:
        dest.unit_price = new_price

    entry = append_entry(
        db,
        kind=MovementKind.transfer,
        status=MovementStatus.completed,
        item_id=source.id,
        counterparty_item_id=dest.id,
        quantity=quantity,
        delta=-quantity,
        transfer_id=transfer_id,
        unit_price=dest.unit_price,
        notes=notes,
        happened_at=happened_at,
        actor_id=actor_id,
        idempotency_key=idempotency_key,
    )
    activity_logger.log_action(
        db,
        actor_id,
        ActionKind.transfer,
        EntityType.transfer,
        entry.id,
        describe(
            ActionKind.transfer,
            EntityType.transfer,
            source.name,
            quantity,
            f"item {source.id} -> item {dest.id}" + (" (new)" if created else ""),
        ),
        quantity=quantity,
    )
    return TransferResult(source, dest, entry)


def transfer_stock(
    db: Session,
    cmd: TransferCommand,
    actor: Actor,
    *,
    idempotency_key: str | None = None,
) -> tuple[StockTransfer, list[MovementEntry]]:
    """Transfert multi-lignes : toutes les lignes réussissent, ou aucune."""
    actor_id = resolve_actor(actor, cmd.created_by)
    keys = batch_keys(idempotency_key, MovementKind.transfer, len(cmd.items))
    replay = find_replay(db, idempotency_key, MovementKind.transfer, [ln.quantity for ln in cmd.items])
    if replay:
        return replay[0].transfer, replay

    source_loc = get_location(db, cmd.source_location_id)
    dest_loc = get_location(db, cmd.destination_location_id)
    check_route(source_loc, dest_loc)

    # validation complète avant toute mutation
    sources = lock_batch_items(db, [ln.product_id for ln in cmd.items])
    requested: dict[int, int] = {}
    for index, line in enumerate(cmd.items):
        try:
            require_positive(line.quantity)
            src = sources[line.product_id]
            if src.location_id != source_loc.id:
                raise LocationMismatch(src.id, source_loc.id)
            requested[src.id] = requested.get(src.id, 0) + line.quantity
            if src.quantity < requested[src.id]:
                raise InsufficientStock(src.name, src.quantity, requested[src.id], item_id=src.id)
        except StockError as exc:
            logger.info("Transfer rejected on line %d: %s", index, exc.message)
            raise PartialBatchFailure(index, exc) from exc

    header = StockTransfer(
        source_location_id=source_loc.id,
        destination_location_id=dest_loc.id,
        transfer_date=cmd.transfer_date,
        reference_number=cmd.reference_number,
        notes=cmd.notes,
        actor_id=actor_id,
    )
    db.add(header)
    db.flush()

    happened_at = as_timestamp(cmd.transfer_date)
    entries = []
    for index, line in enumerate(cmd.items):
        try:
            result = move_item(
                db,
                source_item_id=line.product_id,
                destination=dest_loc,
                quantity=line.quantity,
                actor_id=actor_id,
                happened_at=happened_at,
                new_price=line.new_price,
                transfer_id=header.id,
                notes=cmd.notes,
                idempotency_key=keys[index],
            )
        except StockError as exc:
            raise PartialBatchFailure(index, exc) from exc
        entries.append(result.entry)

    return header, entries


# ---------- Lecture ----------
def get_transfer(db: Session, transfer_id: int) -> StockTransfer:
    header = db.execute(
        select(StockTransfer)
        .where(StockTransfer.id == transfer_id)
        .options(selectinload(StockTransfer.entries))
    ).scalar_one_or_none()
    if not header:
        raise NotFound("Transfer", transfer_id)
    return header


def list_transfers(db: Session, *, limit: int = 100) -> list[StockTransfer]:
    stmt = (
        select(StockTransfer)
        .options(selectinload(StockTransfer.entries))
        .order_by(StockTransfer.id.desc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())
