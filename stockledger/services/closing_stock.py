"""
Clôture mensuelle (closing stock).

Pour chaque item d'une location, le mois est reconstruit depuis le ledger :
    opening   = effet cumulé des entrées appliquées avant le 1er du mois
    mouvements = inward, outward, damage (approuvées seulement), transfers
                 entrants / sortants, ajustements d'audit (signés)
    closing   = opening + mouvements

Les lignes sont persistées (une par item et fin de période) : régénérer
un mois met à jour les lignes existantes au lieu d'en créer de nouvelles.
"""

from __future__ import annotations

import calendar
import logging
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockledger.app.core.config import settings
from stockledger.app.db.base import utcnow
from stockledger.app.db.models.core_types import ActionKind, EntityType, MovementKind
from stockledger.app.db.models.models_v1 import ClosingStock, Item, MovementEntry
from stockledger.app.schemas.actor import Actor
from stockledger.services.activity import activity_logger, describe
from stockledger.services.catalog import get_location
from stockledger.services.errors import NotFound, OperationNotPermitted
from stockledger.services.inventory import APPLIED_STATUSES
from stockledger.services.ledger import as_timestamp

logger = logging.getLogger(__name__)


def month_bounds(period: date) -> tuple[date, date]:
    """Premier et dernier jour du mois contenant `period`."""
    last_day = calendar.monthrange(period.year, period.month)[1]
    return period.replace(day=1), period.replace(day=last_day)


def _check_role(actor: Actor, allowed_roles: frozenset[str] | None) -> None:
    roles = settings.closing_stock_roles if allowed_roles is None else allowed_roles
    if actor.role is None or actor.role.lower() not in roles:
        raise OperationNotPermitted(actor.role, "generate closing stock")


def _applied(stmt):
    return stmt.where(MovementEntry.status.in_(APPLIED_STATUSES))


def _opening_balances(db: Session, item_ids: list[int], before) -> dict[int, int]:
    """Solde ledger de chaque item juste avant `before` (mêmes règles que ledger_balance)."""
    own = db.execute(
        _applied(select(MovementEntry.item_id, func.sum(MovementEntry.delta)))
        .where(MovementEntry.item_id.in_(item_ids))
        .where(MovementEntry.happened_at < before)
        .group_by(MovementEntry.item_id)
    ).all()
    incoming = db.execute(
        _applied(select(MovementEntry.counterparty_item_id, func.sum(MovementEntry.quantity)))
        .where(MovementEntry.kind == MovementKind.transfer)
        .where(MovementEntry.counterparty_item_id.in_(item_ids))
        .where(MovementEntry.happened_at < before)
        .group_by(MovementEntry.counterparty_item_id)
    ).all()

    balances: dict[int, int] = defaultdict(int)
    for item_id, total in own:
        balances[int(item_id)] += int(total)
    for item_id, total in incoming:
        balances[int(item_id)] += int(total)
    return balances


def _period_movements(db: Session, item_ids: list[int], start, end) -> dict[int, dict[str, int]]:
    rows = db.execute(
        _applied(
            select(
                MovementEntry.item_id,
                MovementEntry.kind,
                func.sum(MovementEntry.quantity),
                func.sum(MovementEntry.delta),
            )
        )
        .where(MovementEntry.item_id.in_(item_ids))
        .where(MovementEntry.happened_at >= start, MovementEntry.happened_at < end)
        .group_by(MovementEntry.item_id, MovementEntry.kind)
    ).all()
    incoming = db.execute(
        _applied(select(MovementEntry.counterparty_item_id, func.sum(MovementEntry.quantity)))
        .where(MovementEntry.kind == MovementKind.transfer)
        .where(MovementEntry.counterparty_item_id.in_(item_ids))
        .where(MovementEntry.happened_at >= start, MovementEntry.happened_at < end)
        .group_by(MovementEntry.counterparty_item_id)
    ).all()

    movements: dict[int, dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for item_id, kind, quantity, delta in rows:
        kind = MovementKind(kind)
        bucket = movements[int(item_id)]
        if kind == MovementKind.inward:
            bucket["inward_quantity"] += int(quantity)
        elif kind == MovementKind.outward:
            bucket["outward_quantity"] += int(quantity)
        elif kind == MovementKind.damage:
            bucket["damage_quantity"] += int(quantity)
        elif kind == MovementKind.transfer:
            bucket["transfer_out_quantity"] += int(quantity)
        elif kind == MovementKind.adjustment:
            bucket["adjustment_quantity"] += int(delta)
    for item_id, quantity in incoming:
        movements[int(item_id)]["transfer_in_quantity"] += int(quantity)
    return movements


def generate_closing_stock(
    db: Session,
    location_id: int,
    period: date,
    actor: Actor,
    *,
    allowed_roles: frozenset[str] | None = None,
) -> list[ClosingStock]:
    """
    Calcule et persiste la clôture du mois de `period` pour tous les items de la location.

    À exécuter dans une UnitOfWork : un échec n'écrit aucune ligne.
    """
    _check_role(actor, allowed_roles)
    location = get_location(db, location_id)
    period_start, period_end = month_bounds(period)
    start_ts = as_timestamp(period_start)
    end_ts = as_timestamp(period_end + timedelta(days=1))

    items = list(
        db.execute(select(Item).where(Item.location_id == location.id).order_by(Item.id)).scalars().all()
    )
    item_ids = [item.id for item in items]
    if not item_ids:
        logger.info("No items at location %s, nothing to close for %s", location.id, period_start)
        return []

    opening = _opening_balances(db, item_ids, start_ts)
    movements = _period_movements(db, item_ids, start_ts, end_ts)
    existing = {
        row.item_id: row
        for row in db.execute(
            select(ClosingStock).where(ClosingStock.item_id.in_(item_ids), ClosingStock.period_end == period_end)
        ).scalars()
    }

    rows = []
    for item in items:
        moved = movements.get(item.id, {})
        values = {
            "opening_quantity": opening.get(item.id, 0),
            "inward_quantity": moved.get("inward_quantity", 0),
            "outward_quantity": moved.get("outward_quantity", 0),
            "damage_quantity": moved.get("damage_quantity", 0),
            "transfer_in_quantity": moved.get("transfer_in_quantity", 0),
            "transfer_out_quantity": moved.get("transfer_out_quantity", 0),
            "adjustment_quantity": moved.get("adjustment_quantity", 0),
        }
        closing = (
            values["opening_quantity"]
            + values["inward_quantity"]
            - values["outward_quantity"]
            - values["damage_quantity"]
            + values["transfer_in_quantity"]
            - values["transfer_out_quantity"]
            + values["adjustment_quantity"]
        )
        unit_cost = item.unit_cost or Decimal("0")
        values.update(
            closing_quantity=closing,
            unit_cost=unit_cost,
            total_value=unit_cost * closing,
            generated_by=actor.id,
            generated_at=utcnow(),
        )

        row = existing.get(item.id)
        if row is None:
            row = ClosingStock(
                item_id=item.id,
                location_id=location.id,
                period_start=period_start,
                period_end=period_end,
                **values,
            )
            db.add(row)
        else:
            for field, value in values.items():
                setattr(row, field, value)
        rows.append(row)
    db.flush()

    activity_logger.log_action(
        db,
        actor.id,
        ActionKind.generate,
        EntityType.closing_stock,
        location.id,
        describe(
            ActionKind.generate,
            EntityType.closing_stock,
            f"for {len(rows)} items",
            extra=f"{location.name} {period_start:%Y-%m}",
        ),
    )
    return rows


# ---------- Lecture ----------
def get_closing_stock(db: Session, closing_stock_id: int) -> ClosingStock:
    row = db.get(ClosingStock, closing_stock_id)
    if not row:
        raise NotFound("ClosingStock", closing_stock_id)
    return row


def list_closing_stocks(
    db: Session,
    *,
    location_id: int | None = None,
    item_id: int | None = None,
    period_end: date | None = None,
    limit: int = 100,
) -> list[ClosingStock]:
    stmt = select(ClosingStock).order_by(ClosingStock.period_end.desc(), ClosingStock.item_id).limit(limit)
    if location_id is not None:
        stmt = stmt.where(ClosingStock.location_id == location_id)
    if item_id is not None:
        stmt = stmt.where(ClosingStock.item_id == item_id)
    if period_end is not None:
        stmt = stmt.where(ClosingStock.period_end == period_end)
    return list(db.execute(stmt).scalars().all())
