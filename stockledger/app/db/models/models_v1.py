from __future__ import annotations

from datetime import datetime, date
from decimal import Decimal

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Numeric,
    Text,
    Enum,
    UniqueConstraint,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockledger.app.db.base import Base, BigIntId, utcnow
from stockledger.app.db.models.core_types import (
    LocationKind,
    MovementKind,
    MovementStatus,
)

# ---------- MASTER DATA ----------
class Location(Base):
    __tablename__ = "locations"
    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    kind: Mapped[LocationKind] = mapped_column(Enum(LocationKind, name="location_kind"), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Product(Base):
    __tablename__ = "products"
    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    sku: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)
    min_stock_level: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reorder_point: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint("unit_cost >= 0", name="ck_product_unit_cost_nonneg"),
        CheckConstraint("unit_price >= 0", name="ck_product_unit_price_nonneg"),
        CheckConstraint("reorder_point >= 0 AND reorder_point <= min_stock_level", name="ck_product_reorder_le_min"),
    )


class Supplier(Base):
    __tablename__ = "suppliers"
    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    contact_email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(64))
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


# ---------- INVENTORY ----------
class Item(Base):
    """Quantité d'un SKU dans UNE location (warehouse ou inventory)."""

    __tablename__ = "items"
    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    sku: Mapped[str] = mapped_column(ForeignKey("products.sku", ondelete="RESTRICT"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location_id: Mapped[int] = mapped_column(ForeignKey("locations.id", ondelete="RESTRICT"), nullable=False, index=True)
    location_kind: Mapped[LocationKind] = mapped_column(Enum(LocationKind, name="location_kind"), nullable=False)

    # Seul champ muté par le ledger (via inventory.adjust_quantity)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    unit_cost: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)
    min_stock_level: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reorder_point: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_by: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    location: Mapped[Location] = relationship()

    __table_args__ = (
        UniqueConstraint("sku", "location_id", name="uq_item_sku_location"),
        CheckConstraint("quantity >= 0", name="ck_item_quantity_nonneg"),
        CheckConstraint("unit_cost >= 0", name="ck_item_unit_cost_nonneg"),
        CheckConstraint("unit_price >= 0", name="ck_item_unit_price_nonneg"),
        CheckConstraint("reorder_point >= 0 AND reorder_point <= min_stock_level", name="ck_item_reorder_le_min"),
    )


class StockTransfer(Base):
    __tablename__ = "stock_transfers"
    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    source_location_id: Mapped[int] = mapped_column(ForeignKey("locations.id", ondelete="RESTRICT"), nullable=False)
    destination_location_id: Mapped[int] = mapped_column(ForeignKey("locations.id", ondelete="RESTRICT"), nullable=False)
    transfer_date: Mapped[date] = mapped_column(Date, nullable=False)
    reference_number: Mapped[str | None] = mapped_column(String(64))
    notes: Mapped[str | None] = mapped_column(Text)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    entries: Mapped[list["MovementEntry"]] = relationship(back_populates="transfer", order_by="MovementEntry.id")

    __table_args__ = (
        CheckConstraint("source_location_id <> destination_location_id", name="ck_transfer_locations_differ"),
    )


class MovementEntry(Base):
    """
    Ligne append-only du ledger.

    quantity = magnitude (> 0), delta = effet signé sur item_id.
    Pour un transfer, l'item de destination (counterparty_item_id) reçoit +quantity.
    """

    __tablename__ = "movement_entries"
    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    kind: Mapped[MovementKind] = mapped_column(Enum(MovementKind, name="movement_kind"), nullable=False)
    status: Mapped[MovementStatus] = mapped_column(
        Enum(MovementStatus, name="movement_status"),
        default=MovementStatus.completed,
        nullable=False,
    )

    item_id: Mapped[int] = mapped_column(ForeignKey("items.id", ondelete="RESTRICT"), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    delta: Mapped[int] = mapped_column(Integer, nullable=False)

    supplier_id: Mapped[int | None] = mapped_column(ForeignKey("suppliers.id", ondelete="RESTRICT"))
    destination: Mapped[str | None] = mapped_column(String(255))
    counterparty_item_id: Mapped[int | None] = mapped_column(
        ForeignKey("items.id", ondelete="RESTRICT"),
        index=True,
    )
    transfer_id: Mapped[int | None] = mapped_column(ForeignKey("stock_transfers.id", ondelete="RESTRICT"), index=True)
    audit_id: Mapped[int | None] = mapped_column(ForeignKey("audit_records.id", ondelete="RESTRICT"), index=True)

    unit_price: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))
    reason: Mapped[str | None] = mapped_column(String(255))
    notes: Mapped[str | None] = mapped_column(Text)

    happened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    reviewed_by: Mapped[str | None] = mapped_column(String(64))
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    idempotency_key: Mapped[str | None] = mapped_column(String(64), unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    item: Mapped[Item] = relationship(foreign_keys=[item_id])
    counterparty_item: Mapped[Item | None] = relationship(foreign_keys=[counterparty_item_id])
    transfer: Mapped[StockTransfer | None] = relationship(back_populates="entries")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_movement_qty_pos"),
        CheckConstraint("delta = quantity OR delta = -quantity", name="ck_movement_delta_magnitude"),
        Index("ix_movement_entries_item_time", "item_id", "happened_at"),
    )

    @property
    def counterparty_id(self) -> str | None:
        if self.kind == MovementKind.inward and self.supplier_id is not None:
            return str(self.supplier_id)
        if self.kind == MovementKind.outward:
            return self.destination
        if self.kind == MovementKind.transfer and self.counterparty_item_id is not None:
            return str(self.counterparty_item_id)
        return None


# ---------- AUDIT (comptage physique) ----------
class AuditRecord(Base):
    __tablename__ = "audit_records"
    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    location_id: Mapped[int] = mapped_column(ForeignKey("locations.id", ondelete="RESTRICT"), nullable=False, index=True)
    audit_date: Mapped[date] = mapped_column(Date, nullable=False)
    conducted_by: Mapped[str] = mapped_column(String(64), nullable=False)
    items_audited: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    discrepancies_found: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    lines: Mapped[list["AuditLineItem"]] = relationship(
        back_populates="audit",
        cascade="all, delete-orphan",
        order_by="AuditLineItem.id",
    )

    __table_args__ = (
        CheckConstraint("discrepancies_found <= items_audited", name="ck_audit_discrepancies_le_items"),
    )


class AuditLineItem(Base):
    __tablename__ = "audit_line_items"
    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    audit_id: Mapped[int] = mapped_column(ForeignKey("audit_records.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("items.id", ondelete="RESTRICT"), nullable=False, index=True)
    expected_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    actual_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    discrepancy: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    applied: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    audit: Mapped[AuditRecord] = relationship(back_populates="lines")

    __table_args__ = (
        UniqueConstraint("audit_id", "item_id", name="uq_audit_line_item"),
        CheckConstraint("actual_quantity >= 0", name="ck_audit_line_actual_nonneg"),
        CheckConstraint("discrepancy = actual_quantity - expected_quantity", name="ck_audit_line_discrepancy"),
    )


# ---------- CLOSING STOCK (clôture mensuelle) ----------
class ClosingStock(Base):
    """
    Photo mensuelle d'un item, recalculée depuis le ledger.

    closing = opening + inward - outward - damage + transfer_in - transfer_out + adjustment
    Une ligne par (item, fin de période) : une régénération met la ligne à jour.
    """

    __tablename__ = "closing_stocks"
    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("items.id", ondelete="RESTRICT"), nullable=False, index=True)
    location_id: Mapped[int] = mapped_column(ForeignKey("locations.id", ondelete="RESTRICT"), nullable=False, index=True)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)

    opening_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    inward_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    outward_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    damage_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    transfer_in_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    transfer_out_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # signé : somme des deltas d'audit
    adjustment_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    closing_quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    unit_cost: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)
    total_value: Mapped[Decimal] = mapped_column(Numeric(16, 2), default=0, nullable=False)

    generated_by: Mapped[str] = mapped_column(String(64), nullable=False)
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    item: Mapped[Item] = relationship()

    __table_args__ = (
        UniqueConstraint("item_id", "period_end", name="uq_closing_stock_item_period"),
        CheckConstraint("period_start <= period_end", name="ck_closing_stock_period"),
        CheckConstraint(
            "closing_quantity = opening_quantity + inward_quantity - outward_quantity - damage_quantity"
            " + transfer_in_quantity - transfer_out_quantity + adjustment_quantity",
            name="ck_closing_stock_balance",
        ),
    )


# ---------- ACTIVITY TRAIL ----------
class ActivityLog(Base):
    __tablename__ = "audit_logs"
    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    quantity: Mapped[int | None] = mapped_column(Integer)
    details: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (Index("ix_audit_logs_entity", "entity_type", "entity_id"),)
