from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from stockledger.app.db.models.core_types import LocationKind, MovementKind
from stockledger.app.db.models.models_v1 import Item, MovementEntry, StockTransfer
from stockledger.app.schemas.movements import TransferCommand, TransferLine
from stockledger.services import catalog, inventory, transfers
from stockledger.services.errors import (
    InsufficientStock,
    InvalidTransferRoute,
    PartialBatchFailure,
)


def _transfer(source, destination, *lines: TransferLine, **extra) -> TransferCommand:
    return TransferCommand(
        source_location_id=source.id,
        destination_location_id=destination.id,
        transfer_date=date(2026, 1, 15),
        items=list(lines),
        **extra,
    )


def test_transfer_moves_quantity_and_creates_destination(uow, warehouse, store, stocked_item, admin):
    """
    GIVEN
    - warehouse : 100 unités, store : aucun item pour ce sku

    WHEN
    - transfert de 40

    THEN
    - source 60, destination créée à 40
    - une seule entrée transfer, rattachée à l'en-tête
    - les deux soldes ledger suivent les compteurs
    """
    cmd = _transfer(warehouse, store, TransferLine(product_id=stocked_item.id, quantity=40), reference_number="TR-1")

    header, entries = uow.run(lambda db: transfers.transfer_stock(db, cmd, admin))

    assert header.reference_number == "TR-1"
    assert len(entries) == 1
    entry = entries[0]
    assert entry.kind == MovementKind.transfer
    assert entry.transfer_id == header.id
    assert entry.item_id == stocked_item.id
    assert entry.delta == -40

    source = inventory.get_item(uow.db, stocked_item.id)
    dest = inventory.get_item(uow.db, entry.counterparty_item_id)
    assert source.quantity == 60
    assert dest.quantity == 40
    assert dest.location_id == store.id
    assert dest.location_kind == LocationKind.inventory
    assert dest.sku == source.sku
    assert dest.unit_price == source.unit_price

    assert inventory.ledger_balance(uow.db, source.id) == 60
    assert inventory.ledger_balance(uow.db, dest.id) == 40
    assert inventory.find_ledger_drift(uow.db) == []


def test_transfer_new_price_reprices_destination(uow, warehouse, store, stocked_item, admin):
    cmd = _transfer(
        warehouse,
        store,
        TransferLine(product_id=stocked_item.id, quantity=10, new_price=Decimal("7.25")),
    )

    _, entries = uow.run(lambda db: transfers.transfer_stock(db, cmd, admin))

    dest = inventory.get_item(uow.db, entries[0].counterparty_item_id)
    assert dest.unit_price == Decimal("7.25")
    assert entries[0].unit_price == Decimal("7.25")
    # le prix source n'est pas touché
    assert inventory.get_item(uow.db, stocked_item.id).unit_price == Decimal("4.00")


def test_second_transfer_credits_existing_destination(uow, warehouse, store, stocked_item, admin):
    cmd = _transfer(warehouse, store, TransferLine(product_id=stocked_item.id, quantity=10))

    _, first = uow.run(lambda db: transfers.transfer_stock(db, cmd, admin))
    _, second = uow.run(lambda db: transfers.transfer_stock(db, cmd, admin))

    assert first[0].counterparty_item_id == second[0].counterparty_item_id
    assert inventory.get_item(uow.db, first[0].counterparty_item_id).quantity == 20
    count = uow.db.execute(
        select(func.count()).select_from(Item).where(Item.location_id == store.id)
    ).scalar_one()
    assert count == 1


def test_transfer_over_source_quantity_changes_nothing(uow, warehouse, store, stocked_item, admin):
    """
    GIVEN
    - 100 en source, transfert demandé de 101

    THEN
    - InsufficientStock nommant le produit
    - aucun item destination, aucune entrée, aucun en-tête
    """
    cmd = _transfer(warehouse, store, TransferLine(product_id=stocked_item.id, quantity=101))

    with pytest.raises(PartialBatchFailure) as exc:
        uow.run(lambda db: transfers.transfer_stock(db, cmd, admin))

    assert isinstance(exc.value.cause, InsufficientStock)
    assert "Widget" in exc.value.message
    assert inventory.get_item(uow.db, stocked_item.id).quantity == 100
    assert inventory.list_items(uow.db, location_id=store.id) == []
    assert uow.db.execute(select(StockTransfer)).scalars().all() == []
    assert uow.db.execute(
        select(MovementEntry).where(MovementEntry.kind == MovementKind.transfer)
    ).scalars().all() == []


def test_multi_line_transfer_is_all_or_nothing(uow, warehouse, store, stocked_item, product, receive, admin):
    other_product = uow.run(
        lambda db: catalog.create_product(
            db,
            sku="SKU-002",
            name="Gadget",
            unit_cost=Decimal("1.00"),
            unit_price=Decimal("2.00"),
            min_stock_level=0,
            reorder_point=0,
            actor=admin,
        )
    )
    gadget = receive(warehouse, other_product, 3)

    cmd = _transfer(
        warehouse,
        store,
        TransferLine(product_id=stocked_item.id, quantity=10),
        TransferLine(product_id=gadget.id, quantity=5),
    )

    with pytest.raises(PartialBatchFailure) as exc:
        uow.run(lambda db: transfers.transfer_stock(db, cmd, admin))

    assert exc.value.line_index == 1
    assert inventory.get_item(uow.db, stocked_item.id).quantity == 100
    assert inventory.get_item(uow.db, gadget.id).quantity == 3
    assert inventory.list_items(uow.db, location_id=store.id) == []


@pytest.mark.parametrize("route", ["same", "reversed"])
def test_transfer_route_must_be_warehouse_to_inventory(uow, warehouse, store, stocked_item, admin, route):
    source, destination = (warehouse, warehouse) if route == "same" else (store, warehouse)
    cmd = _transfer(source, destination, TransferLine(product_id=stocked_item.id, quantity=1))

    with pytest.raises(InvalidTransferRoute):
        uow.run(lambda db: transfers.transfer_stock(db, cmd, admin))


def test_transfer_idempotency_key_replays_header(uow, warehouse, store, stocked_item, admin):
    cmd = _transfer(warehouse, store, TransferLine(product_id=stocked_item.id, quantity=5))

    header, entries = uow.run(lambda db: transfers.transfer_stock(db, cmd, admin, idempotency_key="tr-abc"))
    replay_header, replay_entries = uow.run(
        lambda db: transfers.transfer_stock(db, cmd, admin, idempotency_key="tr-abc")
    )

    assert replay_header.id == header.id
    assert [e.id for e in replay_entries] == [e.id for e in entries]
    assert inventory.get_item(uow.db, stocked_item.id).quantity == 95


def test_get_transfer_loads_entries(uow, warehouse, store, stocked_item, admin):
    cmd = _transfer(warehouse, store, TransferLine(product_id=stocked_item.id, quantity=5))
    header, _ = uow.run(lambda db: transfers.transfer_stock(db, cmd, admin))

    loaded = transfers.get_transfer(uow.db, header.id)
    assert [e.quantity for e in loaded.entries] == [5]
    assert [t.id for t in transfers.list_transfers(uow.db)] == [header.id]
