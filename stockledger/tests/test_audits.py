from datetime import date

import pytest
from sqlalchemy import select

from stockledger.app.db.models.core_types import MovementKind
from stockledger.app.db.models.models_v1 import AuditRecord, MovementEntry
from stockledger.app.schemas.audits import AuditCommand, AuditLineCommand
from stockledger.services import audits, inventory
from stockledger.services.errors import (
    InvalidAuditLine,
    LocationMismatch,
    NotFound,
    PartialBatchFailure,
)
from stockledger.services.unit_of_work import UnitOfWork


def _audit(location, *lines: AuditLineCommand) -> AuditCommand:
    return AuditCommand(location_id=location.id, audit_date=date(2026, 1, 31), items=list(lines))


def test_start_audit_prefills_current_quantity(uow, warehouse, stocked_item):
    candidates = audits.start_audit(uow.db, warehouse.id)

    assert len(candidates) == 1
    assert candidates[0].item_id == stocked_item.id
    assert candidates[0].expected_quantity == 100
    assert candidates[0].actual_quantity == 100


def test_start_audit_unknown_location(uow):
    with pytest.raises(NotFound):
        audits.start_audit(uow.db, 404)


def test_commit_audit_applies_discrepancy(uow, warehouse, stocked_item, admin):
    """
    GIVEN
    - item à 100, comptage physique 97, updateInventory=true

    THEN
    - ligne d'audit : expected 100, actual 97, discrepancy -3, appliquée
    - item à 97, une entrée 'adjustment' (-3) portant l'id de l'audit
    """
    cmd = _audit(
        warehouse,
        AuditLineCommand(inventory_item_id=stocked_item.id, actual_quantity=97, update_inventory=True),
    )

    record, lines = uow.run(lambda db: audits.commit_audit(db, cmd, admin))

    assert record.items_audited == 1
    assert record.discrepancies_found == 1
    assert record.conducted_by == admin.id
    assert lines[0].expected_quantity == 100
    assert lines[0].discrepancy == -3
    assert lines[0].applied is True

    assert inventory.get_item(uow.db, stocked_item.id).quantity == 97
    adjustments = uow.db.execute(
        select(MovementEntry).where(MovementEntry.kind == MovementKind.adjustment)
    ).scalars().all()
    assert len(adjustments) == 1
    assert adjustments[0].delta == -3
    assert adjustments[0].audit_id == record.id
    assert inventory.ledger_balance(uow.db, stocked_item.id) == 97


def test_commit_audit_without_update_records_only(uow, warehouse, stocked_item, admin):
    cmd = _audit(warehouse, AuditLineCommand(inventory_item_id=stocked_item.id, actual_quantity=104))

    record, lines = uow.run(lambda db: audits.commit_audit(db, cmd, admin))

    assert lines[0].discrepancy == 4
    assert lines[0].applied is False
    assert record.discrepancies_found == 1
    assert inventory.get_item(uow.db, stocked_item.id).quantity == 100


def test_commit_audit_recomputes_expected_from_current_quantity(
    uow, session_factory, warehouse, stocked_item, admin
):
    """
    GIVEN
    - start_audit a proposé expected=100
    - 10 unités sortent entre le start et le commit
    - le client renvoie expected=100 et actual=95

    THEN
    - expected est relu au commit : 90, discrepancy +5
    """
    candidates = audits.start_audit(uow.db, warehouse.id)
    assert candidates[0].expected_quantity == 100

    other = session_factory()
    try:
        UnitOfWork(other).run(lambda db: inventory.adjust_quantity(db, stocked_item.id, -10, "u-other"))
    finally:
        other.close()

    cmd = _audit(
        warehouse,
        AuditLineCommand(
            inventory_item_id=stocked_item.id,
            actual_quantity=95,
            expected_quantity=candidates[0].expected_quantity,
            update_inventory=True,
        ),
    )
    _, lines = uow.run(lambda db: audits.commit_audit(db, cmd, admin))

    assert lines[0].expected_quantity == 90
    assert lines[0].discrepancy == 5
    assert inventory.get_item(uow.db, stocked_item.id).quantity == 95


def test_commit_audit_counts_only_real_discrepancies(uow, warehouse, stocked_item, product, admin):
    cmd = _audit(warehouse, AuditLineCommand(inventory_item_id=stocked_item.id, actual_quantity=100))

    record, lines = uow.run(lambda db: audits.commit_audit(db, cmd, admin))

    assert record.items_audited == 1
    assert record.discrepancies_found == 0
    assert lines[0].discrepancy == 0
    assert uow.db.execute(
        select(MovementEntry).where(MovementEntry.kind == MovementKind.adjustment)
    ).scalars().all() == []


def test_commit_audit_unknown_item_aborts_whole_audit(uow, warehouse, stocked_item, admin):
    cmd = _audit(
        warehouse,
        AuditLineCommand(inventory_item_id=stocked_item.id, actual_quantity=90, update_inventory=True),
        AuditLineCommand(inventory_item_id=999_999, actual_quantity=1),
    )

    with pytest.raises(PartialBatchFailure) as exc:
        uow.run(lambda db: audits.commit_audit(db, cmd, admin))

    assert exc.value.line_index == 1
    assert isinstance(exc.value.cause, NotFound)
    assert inventory.get_item(uow.db, stocked_item.id).quantity == 100
    assert uow.db.execute(select(AuditRecord)).scalars().all() == []


def test_commit_audit_rejects_item_of_other_location(uow, store, stocked_item, admin):
    cmd = _audit(store, AuditLineCommand(inventory_item_id=stocked_item.id, actual_quantity=1))

    with pytest.raises(PartialBatchFailure) as exc:
        uow.run(lambda db: audits.commit_audit(db, cmd, admin))

    assert isinstance(exc.value.cause, LocationMismatch)


def test_commit_audit_rejects_duplicate_lines(uow, warehouse, stocked_item, admin):
    cmd = _audit(
        warehouse,
        AuditLineCommand(inventory_item_id=stocked_item.id, actual_quantity=1),
        AuditLineCommand(inventory_item_id=stocked_item.id, actual_quantity=2),
    )

    with pytest.raises(PartialBatchFailure) as exc:
        uow.run(lambda db: audits.commit_audit(db, cmd, admin))

    assert exc.value.line_index == 1
    assert isinstance(exc.value.cause, InvalidAuditLine)


def test_get_audit_returns_lines(uow, warehouse, stocked_item, admin):
    cmd = _audit(warehouse, AuditLineCommand(inventory_item_id=stocked_item.id, actual_quantity=99, notes="shelf B"))
    record, _ = uow.run(lambda db: audits.commit_audit(db, cmd, admin))

    loaded = audits.get_audit(uow.db, record.id)
    assert [(ln.item_id, ln.notes) for ln in loaded.lines] == [(stocked_item.id, "shelf B")]
    assert [a.id for a in audits.list_audits(uow.db, location_id=warehouse.id)] == [record.id]
