import pytest

ADMIN_HEADERS = {"X-Actor-Id": "u-admin", "X-Actor-Role": "admin"}
FIELD_HEADERS = {"X-Actor-Id": "u-field", "X-Actor-Role": "field"}


@pytest.fixture
def master_data(client):
    """Entrepôt, point de vente, fournisseur et produit créés via l'API."""
    warehouse = client.post("/v1/locations", json={"name": "Main Warehouse", "kind": "warehouse"}, headers=ADMIN_HEADERS)
    store = client.post("/v1/locations", json={"name": "Store Inventory", "kind": "inventory"}, headers=ADMIN_HEADERS)
    supplier = client.post("/v1/suppliers", json={"name": "ACME Supply"}, headers=ADMIN_HEADERS)
    product = client.post(
        "/v1/products",
        json={"sku": "SKU-001", "name": "Widget", "unitCost": "2.50", "unitPrice": "4.00", "minStockLevel": 10, "reorderPoint": 5},
        headers=ADMIN_HEADERS,
    )
    for r in (warehouse, store, supplier, product):
        assert r.status_code == 201, r.text

    return {
        "warehouse": warehouse.json()["id"],
        "store": store.json()["id"],
        "supplier": supplier.json()["id"],
        "product": product.json()["id"],
    }


def _inward(client, data, quantity=100, headers=ADMIN_HEADERS, **extra_headers):
    return client.post(
        "/v1/inward",
        json={
            "locationId": data["warehouse"],
            "supplierId": data["supplier"],
            "receivedDate": "2026-01-05",
            "items": [{"productId": data["product"], "quantity": quantity, "unitPrice": "2.50"}],
        },
        headers={**headers, **extra_headers},
    )


def _outward(client, data, item_id, quantity, headers=ADMIN_HEADERS, **body):
    payload = {
        "locationId": data["warehouse"],
        "destination": "Customer #42",
        "transferDate": "2026-01-10",
        "items": [{"itemId": item_id, "quantity": quantity}],
    }
    payload.update(body)
    return client.post("/v1/outward", json=payload, headers=headers)


def _quantity(client, item_id):
    r = client.get(f"/v1/items/{item_id}")
    assert r.status_code == 200, r.text
    return r.json()["quantity"]


def test_health(client):
    r = client.get("/v1/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_end_to_end_stock_lifecycle(client, master_data):
    """
    GIVEN
    - item warehouse à 100 (réception)

    WHEN / THEN
    - outward 30           -> 70, une entrée outward (-30)
    - transfer 40 -> store -> source 30, nouvel item store à 40
    - audit : actual 28    -> 28, discrepancy -2 appliquée
    - aucun écart compteur / ledger à la fin
    """
    r = _inward(client, master_data)
    assert r.status_code == 201, r.text
    item_id = r.json()["entries"][0]["itemId"]
    assert _quantity(client, item_id) == 100

    # ---------- OUTWARD ----------
    r = _outward(client, master_data, item_id, 30)
    assert r.status_code == 201, r.text
    assert _quantity(client, item_id) == 70

    r = client.get("/v1/stock-movements", params={"itemId": item_id, "kind": "outward"})
    assert r.status_code == 200
    outward = r.json()
    assert len(outward) == 1
    assert outward[0]["delta"] == -30
    assert outward[0]["counterpartyId"] == "Customer #42"

    # ---------- TRANSFER ----------
    r = client.post(
        "/v1/transfers",
        json={
            "sourceLocationId": master_data["warehouse"],
            "destinationLocationId": master_data["store"],
            "transferDate": "2026-01-15",
            "referenceNumber": "TR-0001",
            "items": [{"productId": item_id, "quantity": 40}],
        },
        headers=ADMIN_HEADERS,
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["transfer"]["referenceNumber"] == "TR-0001"
    assert len(body["transferItems"]) == 1
    store_item_id = body["transferItems"][0]["counterpartyItemId"]
    assert store_item_id != item_id
    assert _quantity(client, item_id) == 30
    assert _quantity(client, store_item_id) == 40

    r = client.get(f"/v1/transfers/{body['transfer']['id']}")
    assert r.status_code == 200
    assert r.json()["transferItems"][0]["quantity"] == 40

    # ---------- AUDIT ----------
    r = client.get("/v1/inventory/audit/start", params={"locationId": master_data["warehouse"]})
    assert r.status_code == 200
    candidates = r.json()
    assert candidates == [
        {"itemId": item_id, "sku": "SKU-001", "name": "Widget", "expectedQuantity": 30, "actualQuantity": 30}
    ]

    r = client.post(
        "/v1/inventory/audit",
        json={
            "locationId": master_data["warehouse"],
            "auditDate": "2026-01-31",
            "items": [{"inventoryItemId": item_id, "actualQuantity": 28, "updateInventory": True}],
        },
        headers=ADMIN_HEADERS,
    )
    assert r.status_code == 201, r.text
    audit = r.json()
    assert audit["audit"]["itemsAudited"] == 1
    assert audit["audit"]["discrepanciesFound"] == 1
    assert audit["auditItems"][0]["expectedQuantity"] == 30
    assert audit["auditItems"][0]["discrepancy"] == -2
    assert audit["auditItems"][0]["applied"] is True
    assert _quantity(client, item_id) == 28

    r = client.get(f"/v1/inventory/audit/{audit['audit']['id']}")
    assert r.status_code == 200
    assert r.json()["auditItems"][0]["actualQuantity"] == 28

    # ---------- RÉCONCILIATION ----------
    r = client.get("/v1/stock/drift")
    assert r.status_code == 200
    assert r.json() == []

    r = client.get(f"/v1/stock/{item_id}/ledger")
    assert r.json()["ledgerBalance"] == 28

    r = client.get("/v1/activity", params={"actorId": "u-admin", "entityType": "InventoryAudit"})
    assert r.status_code == 200
    assert r.json()[0]["details"] == "Created inventory audit for Main Warehouse - Found 1 discrepancies"


def test_outward_insufficient_stock_returns_400_with_context(client, master_data):
    item_id = _inward(client, master_data, quantity=10).json()["entries"][0]["itemId"]

    r = _outward(client, master_data, item_id, 15)

    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "Not enough quantity for Widget. Available: 10, Requested: 15"
    assert body["available"] == 10
    assert body["requested"] == 15
    assert body["line_index"] == 0
    assert _quantity(client, item_id) == 10


def test_mutation_requires_actor_header(client, master_data):
    r = client.post("/v1/locations", json={"name": "Back Room", "kind": "inventory"})
    assert r.status_code == 401
    assert r.json()["error"] == "Missing X-Actor-Id header"


def test_body_actor_must_match_header(client, master_data):
    item_id = _inward(client, master_data).json()["entries"][0]["itemId"]

    r = _outward(client, master_data, item_id, 1, transferredById="u-someone-else")

    assert r.status_code == 403
    assert _quantity(client, item_id) == 100


def test_validation_error_returns_400(client, master_data):
    r = _inward(client, master_data, quantity=0)

    assert r.status_code == 400
    assert r.json()["error"] == "Validation failed"
    assert r.json()["details"]


def test_unknown_supplier_returns_404(client, master_data):
    r = client.post(
        "/v1/inward",
        json={
            "locationId": master_data["warehouse"],
            "supplierId": 999,
            "receivedDate": "2026-01-05",
            "items": [{"productId": master_data["product"], "quantity": 1}],
        },
        headers=ADMIN_HEADERS,
    )
    assert r.status_code == 404


def test_inward_idempotency_key_header(client, master_data):
    first = _inward(client, master_data, quantity=10, **{"Idempotency-Key": "rcv-42"})
    replay = _inward(client, master_data, quantity=10, **{"Idempotency-Key": "rcv-42"})

    assert first.status_code == 201
    assert replay.status_code == 201
    assert replay.json()["entries"][0]["id"] == first.json()["entries"][0]["id"]
    assert _quantity(client, first.json()["entries"][0]["itemId"]) == 10


def test_damage_flow_over_http(client, master_data):
    item_id = _inward(client, master_data).json()["entries"][0]["itemId"]

    r = client.post(
        "/v1/damage",
        json={"itemId": item_id, "quantity": 4, "reason": "Water damage", "reportedDate": "2026-01-20"},
        headers=FIELD_HEADERS,
    )
    assert r.status_code == 201, r.text
    entry_id = r.json()["id"]
    assert r.json()["status"] == "pending"
    assert _quantity(client, item_id) == 100

    r = client.put(f"/v1/damage/{entry_id}/approve", headers=FIELD_HEADERS)
    assert r.status_code == 403

    r = client.put(f"/v1/damage/{entry_id}/approve", json={"notes": "ok"}, headers=ADMIN_HEADERS)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "approved"
    assert r.json()["reviewedBy"] == "u-admin"
    assert _quantity(client, item_id) == 96

    r = client.put(f"/v1/damage/{entry_id}/approve", headers=ADMIN_HEADERS)
    assert r.status_code == 409
    assert _quantity(client, item_id) == 96

    r = client.get("/v1/damage", params={"status": "approved"})
    assert [d["id"] for d in r.json()] == [entry_id]


def test_item_crud(client, master_data):
    r = client.post(
        "/v1/items",
        json={"sku": "SKU-001", "locationId": master_data["store"]},
        headers=ADMIN_HEADERS,
    )
    assert r.status_code == 201, r.text
    item = r.json()
    assert item["quantity"] == 0
    assert item["name"] == "Widget"
    assert item["reorderPoint"] == 5

    r = client.post("/v1/items", json={"sku": "SKU-001", "locationId": master_data["store"]}, headers=ADMIN_HEADERS)
    assert r.status_code == 409

    r = client.patch(f"/v1/items/{item['id']}", json={"unitPrice": "5.50"}, headers=ADMIN_HEADERS)
    assert r.status_code == 200
    assert r.json()["unitPrice"] == "5.50"

    r = client.get("/v1/items", params={"locationId": master_data["store"], "belowReorder": True})
    assert [i["id"] for i in r.json()] == [item["id"]]

    r = client.delete(f"/v1/items/{item['id']}", headers=ADMIN_HEADERS)
    assert r.status_code == 204
    assert client.get(f"/v1/items/{item['id']}").status_code == 404


def test_duplicate_product_returns_409(client, master_data):
    r = client.post("/v1/products", json={"sku": "SKU-001", "name": "Widget bis"}, headers=ADMIN_HEADERS)
    assert r.status_code == 409


@pytest.mark.parametrize("field", ["name", "unitCost", "minStockLevel"])
def test_patch_item_with_null_field_returns_400(client, master_data, field):
    item_id = _inward(client, master_data).json()["entries"][0]["itemId"]

    r = client.patch(f"/v1/items/{item_id}", json={field: None}, headers=ADMIN_HEADERS)

    assert r.status_code == 400
    assert r.json()["error"] == "Validation failed"
    after = client.get(f"/v1/items/{item_id}").json()
    assert after["name"] == "Widget"
    assert after["unitCost"] == "2.50"
    assert after["minStockLevel"] == 10


def test_custom_role_can_be_granted_damage_approval(client, master_data, monkeypatch):
    """
    GIVEN
    - un rôle hors des rôles connus ("Auditor")

    THEN
    - authentifié : la requête passe, l'approbation est refusée (403)
    - une fois ajouté à DAMAGE_APPROVER_ROLES : approbation acceptée
    """
    from stockledger.app.core.config import settings

    item_id = _inward(client, master_data).json()["entries"][0]["itemId"]
    auditor = {"X-Actor-Id": "u-auditor", "X-Actor-Role": "Auditor"}
    entry_id = client.post(
        "/v1/damage",
        json={"itemId": item_id, "quantity": 2, "reason": "Crushed", "reportedDate": "2026-01-20"},
        headers=auditor,
    ).json()["id"]

    r = client.put(f"/v1/damage/{entry_id}/approve", headers=auditor)
    assert r.status_code == 403
    assert r.json()["role"] == "auditor"

    monkeypatch.setattr(settings, "damage_approver_roles", frozenset({"auditor"}))
    r = client.put(f"/v1/damage/{entry_id}/approve", headers=auditor)
    assert r.status_code == 200, r.text
    assert _quantity(client, item_id) == 98


def test_closing_stock_endpoints(client, master_data):
    item_id = _inward(client, master_data).json()["entries"][0]["itemId"]
    assert _outward(client, master_data, item_id, 25).status_code == 201

    payload = {"locationId": master_data["warehouse"], "period": "2026-01-31"}
    r = client.post("/v1/closing-stock/generate", json=payload, headers=FIELD_HEADERS)
    assert r.status_code == 403

    r = client.post("/v1/closing-stock/generate", json=payload, headers=ADMIN_HEADERS)
    assert r.status_code == 201, r.text
    [row] = r.json()
    assert row["periodStart"] == "2026-01-01"
    assert row["periodEnd"] == "2026-01-31"
    assert (row["openingQuantity"], row["inwardQuantity"], row["outwardQuantity"]) == (0, 100, 25)
    assert row["closingQuantity"] == 75 == _quantity(client, item_id)

    r = client.get("/v1/closing-stock", params={"locationId": master_data["warehouse"], "periodEnd": "2026-01-31"})
    assert [c["id"] for c in r.json()] == [row["id"]]
    assert client.get(f"/v1/closing-stock/{row['id']}").json()["closingQuantity"] == 75
    assert client.get("/v1/closing-stock/999999").status_code == 404
