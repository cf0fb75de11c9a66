from __future__ import annotations

from sqlalchemy import select

from stockledger.app.db.session import SessionLocal
from stockledger.app.db.models.models_v1 import Location, Supplier
from stockledger.app.db.models.core_types import LocationKind


def run_seed():
    db = SessionLocal()
    try:
        # 1) Locations : un entrepôt + un point de vente
        for name, kind in (("Main Warehouse", LocationKind.warehouse), ("Store Inventory", LocationKind.inventory)):
            loc = db.scalar(select(Location).where(Location.name == name))
            if not loc:
                db.add(Location(name=name, kind=kind, active=True))
                db.commit()

        # 2) Fournisseur par défaut pour les réceptions de test
        supplier = db.scalar(select(Supplier).where(Supplier.name == "Default Supplier"))
        if not supplier:
            db.add(Supplier(name="Default Supplier", active=True))
            db.commit()

        print("SEED OK: locations=Main Warehouse/Store Inventory, supplier=Default Supplier")
    finally:
        db.close()


if __name__ == "__main__":
    run_seed()
