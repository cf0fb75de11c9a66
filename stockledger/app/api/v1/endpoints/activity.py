from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockledger.app.api.deps import get_db
from stockledger.app.schemas.activity import ActivityRead
from stockledger.services.activity import list_activity

router = APIRouter(prefix="/activity")


@router.get("", response_model=list[ActivityRead])
def get_activity(
    actor_id: str | None = Query(default=None, alias="actorId"),
    entity_type: str | None = Query(default=None, alias="entityType"),
    entity_id: str | None = Query(default=None, alias="entityId"),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    return list_activity(db, actor_id=actor_id, entity_type=entity_type, entity_id=entity_id, limit=limit)
