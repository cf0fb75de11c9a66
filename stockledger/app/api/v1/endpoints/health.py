from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from stockledger.app.api.deps import get_db
from stockledger.services.errors import StoreUnavailable

router = APIRouter(prefix="/health")


@router.get("")
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except OperationalError as exc:
        raise StoreUnavailable() from exc
    return {"status": "ok"}
