"""
Audit / réconciliation : comptage physique vs quantité système.

Règle métier :
    discrepancy = actual - expected
    expected est TOUJOURS relu côté serveur au commit (jamais la valeur client)

Propriétés :
- tout-ou-rien : un item manquant annule l'audit entier
- discrepancies_found reflète exactement les lignes enregistrées
- un ajustement appliqué = une entrée 'adjustment' portant l'id de l'audit
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from stockledger.app.db.models.models_v1 import AuditLineItem, AuditRecord
from stockledger.app.db.models.core_types import (
    ActionKind,
    EntityType,
    MovementKind,
    MovementStatus,
)
from stockledger.app.schemas.actor import Actor
from stockledger.app.schemas.audits import AuditCandidate, AuditCommand
from stockledger.services.activity import activity_logger, describe
from stockledger.services.catalog import get_location
from stockledger.services.errors import (
    InvalidAuditLine,
    LocationMismatch,
    NotFound,
    PartialBatchFailure,
    StockError,
)
from stockledger.services.inventory import adjust_quantity, list_items, lock_item
from stockledger.services.ledger import append_entry, as_timestamp, resolve_actor

logger = logging.getLogger(__name__)


def start_audit(db: Session, location_id: int) -> list[AuditCandidate]:
    """Une ligne candidate par item de la location, actual pré-rempli = expected."""
    location = get_location(db, location_id)
    return [
        AuditCandidate(
            item_id=item.id,
            sku=item.sku,
            name=item.name,
            expected_quantity=item.quantity,
            actual_quantity=item.quantity,
        )
        for item in list_items(db, location_id=location.id)
    ]


def commit_audit(db: Session, cmd: AuditCommand, actor: Actor) -> tuple[AuditRecord, list[AuditLineItem]]:
    actor_id = resolve_actor(actor, cmd.conducted_by_id)
    location = get_location(db, cmd.location_id)

    seen: set[int] = set()
    for index, line in enumerate(cmd.items):
        if line.inventory_item_id in seen:
            raise PartialBatchFailure(
                index,
                InvalidAuditLine(f"Item {line.inventory_item_id} appears twice in the audit", item_id=line.inventory_item_id),
            )
        if line.actual_quantity < 0:
            raise PartialBatchFailure(
                index,
                InvalidAuditLine("actualQuantity must be non-negative", item_id=line.inventory_item_id),
            )
        seen.add(line.inventory_item_id)

    record = AuditRecord(
        location_id=location.id,
        audit_date=cmd.audit_date,
        conducted_by=actor_id,
        notes=cmd.notes,
        items_audited=0,
        discrepancies_found=0,
    )
    db.add(record)
    db.flush()

    happened_at = as_timestamp(cmd.audit_date)
    discrepancies = 0

    # ordre des ids pour les verrous, ordre client pour la réponse
    ordered = sorted(enumerate(cmd.items), key=lambda pair: pair[1].inventory_item_id)
    by_index: dict[int, AuditLineItem] = {}
    for index, line in ordered:
        try:
            item = lock_item(db, line.inventory_item_id)
            if item.location_id != location.id:
                raise LocationMismatch(item.id, location.id)

            expected = item.quantity
            discrepancy = line.actual_quantity - expected
            if line.expected_quantity is not None and line.expected_quantity != expected:
                logger.info(
                    "Audit %s: client expected %d for item %s, store has %d",
                    record.id, line.expected_quantity, item.id, expected,
                )

            audit_line = AuditLineItem(
                audit_id=record.id,
                item_id=item.id,
                expected_quantity=expected,
                actual_quantity=line.actual_quantity,
                discrepancy=discrepancy,
                notes=line.notes,
                applied=False,
            )
            db.add(audit_line)

            if discrepancy != 0:
                discrepancies += 1
                if line.update_inventory:
                    adjust_quantity(db, item.id, discrepancy, actor_id, expected_quantity=expected)
                    audit_line.applied = True
                    entry = append_entry(
                        db,
                        kind=MovementKind.adjustment,
                        status=MovementStatus.completed,
                        item_id=item.id,
                        quantity=abs(discrepancy),
                        delta=discrepancy,
                        audit_id=record.id,
                        reason="Audit adjustment",
                        notes=f"Adjustment from audit {record.id}",
                        happened_at=happened_at,
                        actor_id=actor_id,
                    )
                    activity_logger.log_action(
                        db,
                        actor_id,
                        ActionKind.adjust,
                        EntityType.adjustment,
                        entry.id,
                        describe(
                            ActionKind.adjust,
                            EntityType.adjustment,
                            item.name,
                            discrepancy,
                            f"audit {record.id}: expected {expected}, counted {line.actual_quantity}",
                        ),
                        quantity=discrepancy,
                    )
        except StockError as exc:
            logger.info("Audit rejected on line %d: %s", index, exc.message)
            raise PartialBatchFailure(index, exc) from exc
        by_index[index] = audit_line

    lines = [by_index[i] for i in range(len(cmd.items))]
    record.items_audited = len(lines)
    record.discrepancies_found = discrepancies
    db.flush()

    activity_logger.log_action(
        db,
        actor_id,
        ActionKind.create,
        EntityType.audit,
        record.id,
        describe(
            ActionKind.create,
            EntityType.audit,
            f"for {location.name}",
            record.items_audited,
            f"Found {record.discrepancies_found} discrepancies",
        ),
        quantity=record.items_audited,
    )
    return record, lines


# ---------- Lecture ----------
def get_audit(db: Session, audit_id: int) -> AuditRecord:
    record = db.execute(
        select(AuditRecord)
        .where(AuditRecord.id == audit_id)
        .options(selectinload(AuditRecord.lines))
    ).scalar_one_or_none()
    if not record:
        raise NotFound("Audit", audit_id)
    return record


def list_audits(db: Session, *, location_id: int | None = None, limit: int = 100) -> list[AuditRecord]:
    stmt = select(AuditRecord).order_by(AuditRecord.audit_date.desc(), AuditRecord.id.desc()).limit(limit)
    if location_id is not None:
        stmt = stmt.where(AuditRecord.location_id == location_id)
    return list(db.execute(stmt).scalars().all())
