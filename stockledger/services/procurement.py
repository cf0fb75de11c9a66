"""
Procurement service : réceptions fournisseur (inward).

Ce module orchestre la réception mais ne contient AUCUNE logique de calcul
de stock. Toute la logique stock est centralisée dans :
    stockledger.services.inventory
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from stockledger.app.db.models.models_v1 import MovementEntry
from stockledger.app.db.models.core_types import (
    ActionKind,
    EntityType,
    MovementKind,
    MovementStatus,
)
from stockledger.app.schemas.actor import Actor
from stockledger.app.schemas.movements import InwardCommand
from stockledger.services.activity import activity_logger, describe
from stockledger.services.catalog import get_location, get_product, get_supplier
from stockledger.services.errors import PartialBatchFailure, StockError
from stockledger.services.inventory import ItemDefaults, adjust_quantity, find_or_create_item
from stockledger.services.ledger import (
    append_entry,
    as_timestamp,
    batch_keys,
    find_replay,
    require_positive,
    resolve_actor,
)

logger = logging.getLogger(__name__)


def receive_stock(
    db: Session,
    cmd: InwardCommand,
    actor: Actor,
    *,
    idempotency_key: str | None = None,
) -> list[MovementEntry]:
    """
    Réception multi-lignes, tout-ou-rien.

    Règle métier :
        - produit, fournisseur et location doivent exister (NotFound)
        - l'item (sku, location) est créé à 0 s'il n'existe pas encore
        - quantity += reçu, une entrée inward 'completed' par ligne
    """
    actor_id = resolve_actor(actor, cmd.received_by_id)
    keys = batch_keys(idempotency_key, MovementKind.inward, len(cmd.items))
    replay = find_replay(db, idempotency_key, MovementKind.inward, [ln.quantity for ln in cmd.items])
    if replay:
        return replay

    location = get_location(db, cmd.location_id)
    supplier = get_supplier(db, cmd.supplier_id)
    happened_at = as_timestamp(cmd.received_date)

    entries = []
    for index, line in enumerate(cmd.items):
        try:
            require_positive(line.quantity)
            product = get_product(db, line.product_id)

            item, created = find_or_create_item(
                db,
                sku=product.sku,
                location=location,
                defaults=ItemDefaults(
                    name=product.name,
                    unit_cost=line.unit_price if line.unit_price is not None else product.unit_cost,
                    unit_price=product.unit_price,
                    min_stock_level=product.min_stock_level,
                    reorder_point=product.reorder_point,
                ),
                actor_id=actor_id,
            )
            item = adjust_quantity(db, item.id, line.quantity, actor_id)
        except StockError as exc:
            logger.info("Inward rejected on line %d: %s", index, exc.message)
            raise PartialBatchFailure(index, exc) from exc

        # dernier coût d'achat connu
        if line.unit_price is not None:
            item.unit_cost = line.unit_price

        entry = append_entry(
            db,
            kind=MovementKind.inward,
            status=MovementStatus.completed,
            item_id=item.id,
            quantity=line.quantity,
            delta=line.quantity,
            supplier_id=supplier.id,
            unit_price=line.unit_price,
            notes=cmd.notes,
            happened_at=happened_at,
            actor_id=actor_id,
            idempotency_key=keys[index],
        )
        activity_logger.log_action(
            db,
            actor_id,
            ActionKind.receive,
            EntityType.inward_entry,
            entry.id,
            describe(
                ActionKind.receive,
                EntityType.inward_entry,
                item.name,
                line.quantity,
                f"from {supplier.name} into {location.name}",
            ),
            quantity=line.quantity,
        )
        entries.append(entry)
    return entries
