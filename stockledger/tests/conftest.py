from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from stockledger.app.api.deps import get_db
from stockledger.app.db.models.core_types import LocationKind, Role
from stockledger.app.db.models.models_v1 import Base, Item
from stockledger.app.main import app
from stockledger.app.schemas.actor import Actor
from stockledger.app.schemas.movements import InwardCommand, InwardLine
from stockledger.services import catalog, inventory
from stockledger.services.procurement import receive_stock
from stockledger.services.unit_of_work import UnitOfWork

ADMIN = Actor(id="u-admin", role=Role.admin.value)
MANAGER = Actor(id="u-manager", role=Role.manager.value)
FIELD = Actor(id="u-field", role=Role.field.value)


@pytest.fixture(scope="function")
def engine(tmp_path):
    """
    Base SQLite fichier, une par test.

    Un fichier (et non :memory:) pour que plusieurs sessions voient
    les mêmes données : c'est ce que les tests de concurrence exploitent.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'stockledger.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def uow(db_session) -> UnitOfWork:
    return UnitOfWork(db_session)


# ---------- acteurs ----------
@pytest.fixture
def admin() -> Actor:
    return ADMIN


@pytest.fixture
def manager() -> Actor:
    return MANAGER


@pytest.fixture
def field_user() -> Actor:
    return FIELD


# ---------- master data ----------
@pytest.fixture
def warehouse(uow):
    return uow.run(lambda db: catalog.create_location(db, name="Main Warehouse", kind=LocationKind.warehouse, actor=ADMIN))


@pytest.fixture
def store(uow):
    return uow.run(lambda db: catalog.create_location(db, name="Store Inventory", kind=LocationKind.inventory, actor=ADMIN))


@pytest.fixture
def supplier(uow):
    return uow.run(
        lambda db: catalog.create_supplier(db, name="ACME Supply", contact_email=None, phone=None, actor=ADMIN)
    )


@pytest.fixture
def product(uow):
    return uow.run(
        lambda db: catalog.create_product(
            db,
            sku="SKU-001",
            name="Widget",
            unit_cost=Decimal("2.50"),
            unit_price=Decimal("4.00"),
            min_stock_level=10,
            reorder_point=5,
            actor=ADMIN,
        )
    )


@pytest.fixture
def receive(uow, supplier):
    """Réception fournisseur -> item (sku, location) avec la quantité reçue."""

    def _receive(location, product, quantity: int, unit_price: Decimal | None = Decimal("2.50")) -> Item:
        cmd = InwardCommand(
            location_id=location.id,
            supplier_id=supplier.id,
            received_date=date(2026, 1, 5),
            items=[InwardLine(product_id=product.id, quantity=quantity, unit_price=unit_price)],
        )
        entries = uow.run(lambda db: receive_stock(db, cmd, ADMIN))
        return inventory.get_item(uow.db, entries[0].item_id)

    return _receive


@pytest.fixture
def stocked_item(warehouse, product, receive) -> Item:
    """Item warehouse avec 100 unités, toutes arrivées par le ledger."""
    return receive(warehouse, product, 100)


# ---------- API ----------
@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()
