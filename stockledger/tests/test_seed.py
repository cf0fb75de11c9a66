from sqlalchemy import select

from stockledger.app.db import seed
from stockledger.app.db.models.core_types import LocationKind
from stockledger.app.db.models.models_v1 import Location, Supplier


def test_seed_is_idempotent(monkeypatch, session_factory, db_session):
    monkeypatch.setattr(seed, "SessionLocal", session_factory)

    seed.run_seed()
    seed.run_seed()

    locations = db_session.execute(select(Location).order_by(Location.id)).scalars().all()
    assert [(loc.name, loc.kind) for loc in locations] == [
        ("Main Warehouse", LocationKind.warehouse),
        ("Store Inventory", LocationKind.inventory),
    ]
    assert db_session.execute(select(Supplier.name)).scalars().all() == ["Default Supplier"]
