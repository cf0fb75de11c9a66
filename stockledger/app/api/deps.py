from __future__ import annotations

from typing import Generator

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from stockledger.app.db.session import SessionLocal
from stockledger.app.schemas.actor import Actor
from stockledger.services.errors import ActorRequired
from stockledger.services.unit_of_work import UnitOfWork


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_uow(db: Session = Depends(get_db)) -> UnitOfWork:
    return UnitOfWork(db)


def get_actor(
    actor_id: str | None = Header(default=None, alias="X-Actor-Id"),
    actor_role: str | None = Header(default=None, alias="X-Actor-Role"),
) -> Actor:
    """Identité posée par la passerelle d'auth en amont ; obligatoire pour toute mutation."""
    if not actor_id or not actor_id.strip():
        raise ActorRequired("Missing X-Actor-Id header")

    role = actor_role.strip().lower() if actor_role and actor_role.strip() else None
    return Actor(id=actor_id.strip(), role=role)
