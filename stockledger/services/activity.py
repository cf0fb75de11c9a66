"""
Activity trail (table audit_logs).

Le moteur de stock *consomme* ce logger : une entrée par entité mutée, écrite
dans la même transaction que la mutation. Si l'unité de travail est rollback,
l'entrée disparaît avec elle.
"""

from __future__ import annotations

import logging
import re

from sqlalchemy import select
from sqlalchemy.orm import Session

from stockledger.app.db.models.models_v1 import ActivityLog
from stockledger.app.db.models.core_types import ActionKind, EntityType

logger = logging.getLogger("stockledger.activity")

# "InwardEntry" -> "inward entry"
_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def describe(
    action: ActionKind,
    entity_type: EntityType,
    entity_name: str,
    quantity: int | None = None,
    extra: str | None = None,
) -> str:
    kind = _CAMEL_BOUNDARY.sub(" ", entity_type.value).lower()
    qty = f"{quantity} " if quantity else ""

    if action == ActionKind.receive:
        details = f"Received {qty}{entity_name}"
    elif action == ActionKind.dispatch:
        details = f"Dispatched {qty}{entity_name}"
    elif action == ActionKind.transfer:
        details = f"Transferred {qty}{entity_name} from warehouse to inventory"
    elif action == ActionKind.damage:
        details = f"Reported damage for {qty}{entity_name}"
    elif action == ActionKind.adjust:
        details = f"Adjusted {entity_name} by {quantity:+d}" if quantity is not None else f"Adjusted {entity_name}"
    elif action == ActionKind.create:
        details = f"Created {kind} {entity_name}"
    elif action == ActionKind.update:
        details = f"Updated {kind} {entity_name}"
    elif action == ActionKind.delete:
        details = f"Deleted {kind} {entity_name}"
    elif action == ActionKind.approve:
        details = f"Approved {kind} {entity_name}"
    elif action == ActionKind.reject:
        details = f"Rejected {kind} {entity_name}"
    elif action == ActionKind.generate:
        details = f"Generated {kind} {entity_name}"
    else:
        details = f"{action.value} {kind} {entity_name}"

    if extra:
        details += f" - {extra}"
    return details


class ActivityLogger:
    def log_action(
        self,
        db: Session,
        actor_id: str,
        action: ActionKind,
        entity_type: EntityType,
        entity_id,
        details: str,
        *,
        quantity: int | None = None,
    ) -> ActivityLog:
        entry = ActivityLog(
            actor_id=actor_id,
            action=action.value,
            entity_type=entity_type.value,
            entity_id=str(entity_id),
            quantity=quantity,
            details=details,
        )
        db.add(entry)
        logger.info("%s %s %s by %s: %s", action.value, entity_type.value, entity_id, actor_id, details)
        return entry


activity_logger = ActivityLogger()


def list_activity(
    db: Session,
    *,
    actor_id: str | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
    limit: int = 100,
) -> list[ActivityLog]:
    stmt = select(ActivityLog).order_by(ActivityLog.id.desc()).limit(limit)
    if actor_id is not None:
        stmt = stmt.where(ActivityLog.actor_id == actor_id)
    if entity_type is not None:
        stmt = stmt.where(ActivityLog.entity_type == entity_type)
    if entity_id is not None:
        stmt = stmt.where(ActivityLog.entity_id == entity_id)
    return list(db.execute(stmt).scalars().all())
