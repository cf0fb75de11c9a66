"""
Movement ledger : sorties (outward) et casse (damage).

Les entrées du ledger sont append-only. Seule une entrée damage change
de statut, une seule fois : pending -> approved | rejected.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import date, datetime, time, timezone

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from stockledger.app.core.config import settings
from stockledger.app.db.base import utcnow
from stockledger.app.db.models.models_v1 import Item, MovementEntry
from stockledger.app.db.models.core_types import (
    ActionKind,
    EntityType,
    MovementKind,
    MovementStatus,
)
from stockledger.app.schemas.actor import Actor
from stockledger.app.schemas.movements import DamageCommand, OutwardCommand
from stockledger.services.activity import activity_logger, describe
from stockledger.services.catalog import get_location
from stockledger.services.errors import (
    ActorMismatch,
    ApprovalNotPermitted,
    InsufficientStock,
    InvalidQuantity,
    IdempotencyKeyReused,
    InvalidStateTransition,
    LocationMismatch,
    NotFound,
    PartialBatchFailure,
    StockError,
)
from stockledger.services.inventory import adjust_quantity, get_item, lock_item

logger = logging.getLogger(__name__)


# ---------- Helpers partagés (inward / outward / transfer / audit) ----------
def as_timestamp(d: date) -> datetime:
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def require_positive(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantity(quantity)
    return quantity


def resolve_actor(actor: Actor, claimed_id: str | None) -> str:
    """L'acteur enregistré est toujours l'acteur authentifié ; un id divergent dans le body est refusé."""
    if claimed_id is not None and str(claimed_id) != actor.id:
        raise ActorMismatch(
            "Body actor does not match the authenticated actor",
            claimed=str(claimed_id),
            actor_id=actor.id,
        )
    return actor.id


def batch_keys(idempotency_key: str | None, kind: MovementKind, count: int) -> list[str | None]:
    """Une clé par ligne, dérivée de la clé de la requête (Idempotency-Key)."""
    if not idempotency_key or not idempotency_key.strip():
        return [None] * count
    base = idempotency_key.strip()
    return [
        hashlib.sha256(f"{kind.value}:{base}:{index}".encode("utf-8")).hexdigest()
        for index in range(count)
    ]


def find_replay(
    db: Session,
    idempotency_key: str | None,
    kind: MovementKind,
    quantities: list[int],
) -> list[MovementEntry] | None:
    """
    Entrées déjà écrites sous cette Idempotency-Key, dans l'ordre des lignes.

    Le rejeu doit décrire le même batch (même nombre de lignes, mêmes
    quantités) ; sinon IdempotencyKeyReused, rien n'est rejoué ni appliqué.
    """
    # une clé de plus que de lignes : détecte un batch enregistré plus long
    keys = batch_keys(idempotency_key, kind, len(quantities) + 1)
    if not any(keys):
        return None
    rows = db.execute(select(MovementEntry).where(MovementEntry.idempotency_key.in_(keys))).scalars().all()
    if not rows:
        return None
    by_key = {row.idempotency_key: row for row in rows}
    replayed = [by_key.get(k) for k in keys[:-1]]
    if (
        keys[-1] in by_key
        or any(row is None for row in replayed)
        or [row.quantity for row in replayed] != list(quantities)
    ):
        raise IdempotencyKeyReused(
            "Idempotency-Key was already used for a different request",
            recorded_lines=len(by_key),
            requested_lines=len(quantities),
        )
    logger.info("Idempotent replay of %d movement entries", len(replayed))
    return replayed


def append_entry(db: Session, **fields) -> MovementEntry:
    entry = MovementEntry(**fields)
    db.add(entry)
    db.flush()
    return entry


def lock_batch_items(db: Session, line_item_ids: list[int]) -> dict[int, Item]:
    """
    Verrouille les items d'un batch dans l'ordre des ids (ordre stable -> pas de deadlock).
    Un item absent est rapporté sur la première ligne qui le référence.
    """
    items: dict[int, Item] = {}
    for item_id in sorted(set(line_item_ids)):
        try:
            items[item_id] = lock_item(db, item_id)
        except NotFound as exc:
            raise PartialBatchFailure(line_item_ids.index(item_id), exc) from exc
    return items


# ---------- OUTWARD ----------
def dispatch_stock(
    db: Session,
    cmd: OutwardCommand,
    actor: Actor,
    *,
    idempotency_key: str | None = None,
) -> list[MovementEntry]:
    """
    Sortie de stock multi-lignes, tout-ou-rien.

    1) toutes les lignes sont validées (quantités cumulées par item) AVANT toute mutation
    2) chaque débit passe par adjust_quantity (garde quantity >= 0 en SQL)
    """
    actor_id = resolve_actor(actor, cmd.transferred_by_id)
    keys = batch_keys(idempotency_key, MovementKind.outward, len(cmd.items))
    replay = find_replay(db, idempotency_key, MovementKind.outward, [ln.quantity for ln in cmd.items])
    if replay:
        return replay

    location = get_location(db, cmd.location_id)
    happened_at = as_timestamp(cmd.transfer_date)

    items = lock_batch_items(db, [ln.item_id for ln in cmd.items])
    requested: dict[int, int] = {}
    for index, line in enumerate(cmd.items):
        try:
            require_positive(line.quantity)
            item = items[line.item_id]
            if item.location_id != location.id:
                raise LocationMismatch(item.id, location.id)
            requested[item.id] = requested.get(item.id, 0) + line.quantity
            if item.quantity < requested[item.id]:
                raise InsufficientStock(item.name, item.quantity, requested[item.id], item_id=item.id)
        except StockError as exc:
            logger.info("Outward rejected on line %d: %s", index, exc.message)
            raise PartialBatchFailure(index, exc) from exc

    entries = []
    for index, line in enumerate(cmd.items):
        try:
            item = adjust_quantity(db, line.item_id, -line.quantity, actor_id)
        except StockError as exc:
            raise PartialBatchFailure(index, exc) from exc

        entry = append_entry(
            db,
            kind=MovementKind.outward,
            status=MovementStatus.completed,
            item_id=item.id,
            quantity=line.quantity,
            delta=-line.quantity,
            destination=cmd.destination,
            notes=cmd.notes,
            happened_at=happened_at,
            actor_id=actor_id,
            idempotency_key=keys[index],
        )
        activity_logger.log_action(
            db,
            actor_id,
            ActionKind.dispatch,
            EntityType.outward_entry,
            entry.id,
            describe(ActionKind.dispatch, EntityType.outward_entry, item.name, line.quantity, f"to {cmd.destination}"),
            quantity=line.quantity,
        )
        entries.append(entry)
    return entries


# ---------- DAMAGE ----------
def report_damage(db: Session, cmd: DamageCommand, actor: Actor) -> MovementEntry:
    """Déclaration de casse : entrée pending, la quantité n'est PAS touchée."""
    actor_id = resolve_actor(actor, cmd.reported_by_id)
    require_positive(cmd.quantity)
    item = get_item(db, cmd.item_id)

    entry = append_entry(
        db,
        kind=MovementKind.damage,
        status=MovementStatus.pending,
        item_id=item.id,
        quantity=cmd.quantity,
        delta=-cmd.quantity,
        reason=cmd.reason,
        notes=cmd.notes,
        happened_at=as_timestamp(cmd.reported_date),
        actor_id=actor_id,
    )
    activity_logger.log_action(
        db,
        actor_id,
        ActionKind.damage,
        EntityType.damage_entry,
        entry.id,
        describe(ActionKind.damage, EntityType.damage_entry, item.name, cmd.quantity, f"Reason: {cmd.reason}"),
        quantity=cmd.quantity,
    )
    return entry


def _check_approver(actor: Actor, approver_roles: frozenset[str] | None) -> None:
    roles = settings.damage_approver_roles if approver_roles is None else approver_roles
    role = actor.role
    if role is None or role.lower() not in roles:
        raise ApprovalNotPermitted(role)


def _flip_damage_status(db: Session, entry_id: int, target: MovementStatus, actor_id: str) -> MovementEntry:
    """pending -> target, en compare-and-set : une seule revue gagne."""
    entry = db.get(MovementEntry, entry_id, populate_existing=True)
    if entry is None or entry.kind != MovementKind.damage:
        raise NotFound("DamageEntry", entry_id)

    result = db.execute(
        update(MovementEntry)
        .where(MovementEntry.id == entry_id)
        .where(MovementEntry.status == MovementStatus.pending)
        .values(status=target, reviewed_by=actor_id, reviewed_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    entry = db.get(MovementEntry, entry_id, populate_existing=True)
    if result.rowcount != 1:
        raise InvalidStateTransition(entry_id, entry.status.value, target.value)
    return entry


def approve_damage(
    db: Session,
    entry_id: int,
    actor: Actor,
    *,
    claimed_id: str | None = None,
    approver_roles: frozenset[str] | None = None,
) -> MovementEntry:
    actor_id = resolve_actor(actor, claimed_id)
    _check_approver(actor, approver_roles)

    entry = _flip_damage_status(db, entry_id, MovementStatus.approved, actor_id)
    item = adjust_quantity(db, entry.item_id, -entry.quantity, actor_id)

    activity_logger.log_action(
        db,
        actor_id,
        ActionKind.approve,
        EntityType.damage_entry,
        entry.id,
        describe(
            ActionKind.approve,
            EntityType.damage_entry,
            item.name,
            extra=f"Approved damage report for {entry.quantity} items",
        ),
        quantity=entry.quantity,
    )
    return entry


def reject_damage(
    db: Session,
    entry_id: int,
    actor: Actor,
    *,
    claimed_id: str | None = None,
    approver_roles: frozenset[str] | None = None,
) -> MovementEntry:
    actor_id = resolve_actor(actor, claimed_id)
    _check_approver(actor, approver_roles)

    entry = _flip_damage_status(db, entry_id, MovementStatus.rejected, actor_id)
    item = get_item(db, entry.item_id)

    activity_logger.log_action(
        db,
        actor_id,
        ActionKind.reject,
        EntityType.damage_entry,
        entry.id,
        describe(ActionKind.reject, EntityType.damage_entry, item.name, extra=f"{entry.quantity} items"),
        quantity=entry.quantity,
    )
    return entry


# ---------- Lecture ----------
def get_movement(db: Session, entry_id: int) -> MovementEntry:
    entry = db.get(MovementEntry, entry_id)
    if not entry:
        raise NotFound("MovementEntry", entry_id)
    return entry


def list_movements(
    db: Session,
    *,
    kind: MovementKind | None = None,
    status: MovementStatus | None = None,
    item_id: int | None = None,
    limit: int = 200,
) -> list[MovementEntry]:
    stmt = select(MovementEntry).order_by(MovementEntry.id.desc()).limit(limit)
    if kind is not None:
        stmt = stmt.where(MovementEntry.kind == kind)
    if status is not None:
        stmt = stmt.where(MovementEntry.status == status)
    if item_id is not None:
        stmt = stmt.where(
            (MovementEntry.item_id == item_id) | (MovementEntry.counterparty_item_id == item_id)
        )
    return list(db.execute(stmt).scalars().all())
