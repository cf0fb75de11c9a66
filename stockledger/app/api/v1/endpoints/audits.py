from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockledger.app.api.deps import get_actor, get_db, get_uow
from stockledger.app.db.models.models_v1 import AuditRecord
from stockledger.app.schemas.actor import Actor
from stockledger.app.schemas.audits import (
    AuditCandidate,
    AuditCommand,
    AuditLineRead,
    AuditRead,
    AuditRecordRead,
)
from stockledger.services import audits
from stockledger.services.unit_of_work import UnitOfWork

router = APIRouter(prefix="/inventory/audit")


def _to_read(record: AuditRecord, lines) -> AuditRead:
    return AuditRead(
        audit=AuditRecordRead.model_validate(record),
        audit_items=[AuditLineRead.model_validate(ln) for ln in lines],
    )


@router.get("/start", response_model=list[AuditCandidate])
def start_audit(
    location_id: int = Query(alias="locationId"),
    db: Session = Depends(get_db),
):
    """Lignes candidates : actualQuantity pré-rempli avec la quantité système."""
    return audits.start_audit(db, location_id)


@router.post("", response_model=AuditRead, status_code=201)
def commit_audit(
    payload: AuditCommand,
    uow: UnitOfWork = Depends(get_uow),
    actor: Actor = Depends(get_actor),
):
    """
    Commit d'audit
    - expected relu côté serveur (la valeur client est ignorée)
    - updateInventory=true applique l'écart via une entrée 'adjustment'
    """
    record, lines = uow.run(lambda db: audits.commit_audit(db, payload, actor))
    return _to_read(record, lines)


@router.get("", response_model=list[AuditRecordRead])
def list_audits(
    location_id: int | None = Query(default=None, alias="locationId"),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return audits.list_audits(db, location_id=location_id, limit=limit)


@router.get("/{audit_id}", response_model=AuditRead)
def get_audit(audit_id: int, db: Session = Depends(get_db)):
    record = audits.get_audit(db, audit_id)
    return _to_read(record, record.lines)
