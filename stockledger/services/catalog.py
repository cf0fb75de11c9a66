"""Données de référence : locations, produits, fournisseurs."""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from stockledger.app.db.models.models_v1 import Location, Product, Supplier
from stockledger.app.db.models.core_types import ActionKind, EntityType, LocationKind
from stockledger.app.schemas.actor import Actor
from stockledger.services.activity import activity_logger, describe
from stockledger.services.errors import AlreadyExists, NotFound, StockError


# ---------- Locations ----------
def get_location(db: Session, location_id: int) -> Location:
    loc = db.get(Location, location_id)
    if not loc:
        raise NotFound("Location", location_id)
    return loc


def list_locations(db: Session, *, kind: LocationKind | None = None) -> list[Location]:
    stmt = select(Location).order_by(Location.id)
    if kind is not None:
        stmt = stmt.where(Location.kind == kind)
    return list(db.execute(stmt).scalars().all())


def create_location(db: Session, *, name: str, kind: LocationKind, actor: Actor) -> Location:
    exists = db.execute(select(Location).where(Location.name == name)).scalar_one_or_none()
    if exists:
        raise AlreadyExists("Location already exists", location_id=exists.id)

    loc = Location(name=name, kind=kind, active=True)
    db.add(loc)
    db.flush()
    activity_logger.log_action(
        db, actor.id, ActionKind.create, EntityType.location, loc.id,
        describe(ActionKind.create, EntityType.location, name, extra=kind.value),
    )
    return loc


# ---------- Produits ----------
def get_product(db: Session, product_id: int) -> Product:
    p = db.get(Product, product_id)
    if not p:
        raise NotFound("Product", product_id)
    return p


def get_product_by_sku(db: Session, sku: str) -> Product:
    p = db.execute(select(Product).where(Product.sku == sku)).scalar_one_or_none()
    if not p:
        raise NotFound("Product", sku)
    return p


def list_products(db: Session) -> list[Product]:
    return list(db.execute(select(Product).order_by(Product.sku)).scalars().all())


def create_product(
    db: Session,
    *,
    sku: str,
    name: str,
    unit_cost: Decimal,
    unit_price: Decimal,
    min_stock_level: int,
    reorder_point: int,
    actor: Actor,
) -> Product:
    exists = db.execute(select(Product).where(Product.sku == sku)).scalar_one_or_none()
    if exists:
        raise AlreadyExists("SKU already exists", product_id=exists.id)
    if reorder_point > min_stock_level:
        raise StockError("reorder_point must not exceed min_stock_level")

    p = Product(
        sku=sku,
        name=name,
        unit_cost=unit_cost,
        unit_price=unit_price,
        min_stock_level=min_stock_level,
        reorder_point=reorder_point,
        active=True,
    )
    db.add(p)
    db.flush()
    activity_logger.log_action(
        db, actor.id, ActionKind.create, EntityType.product, p.id,
        describe(ActionKind.create, EntityType.product, f"{name} ({sku})"),
    )
    return p


# ---------- Fournisseurs ----------
def get_supplier(db: Session, supplier_id: int) -> Supplier:
    s = db.get(Supplier, supplier_id)
    if not s:
        raise NotFound("Supplier", supplier_id)
    return s


def list_suppliers(db: Session) -> list[Supplier]:
    return list(db.execute(select(Supplier).order_by(Supplier.name)).scalars().all())


def create_supplier(
    db: Session,
    *,
    name: str,
    contact_email: str | None,
    phone: str | None,
    actor: Actor,
) -> Supplier:
    exists = db.execute(select(Supplier).where(Supplier.name == name)).scalar_one_or_none()
    if exists:
        raise AlreadyExists("Supplier already exists", supplier_id=exists.id)

    s = Supplier(name=name, contact_email=contact_email, phone=phone, active=True)
    db.add(s)
    db.flush()
    activity_logger.log_action(
        db, actor.id, ActionKind.create, EntityType.supplier, s.id,
        describe(ActionKind.create, EntityType.supplier, name),
    )
    return s
