import enum

class Role(str, enum.Enum):
    admin = "admin"
    manager = "manager"
    field = "field"

class LocationKind(str, enum.Enum):
    warehouse = "warehouse"
    inventory = "inventory"

class MovementKind(str, enum.Enum):
    inward = "inward"
    outward = "outward"
    damage = "damage"
    transfer = "transfer"
    adjustment = "adjustment"

class MovementStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    completed = "completed"

class ActionKind(str, enum.Enum):
    create = "CREATE"
    update = "UPDATE"
    delete = "DELETE"
    approve = "APPROVE"
    reject = "REJECT"
    transfer = "TRANSFER"
    receive = "RECEIVE"
    dispatch = "DISPATCH"
    damage = "DAMAGE"
    adjust = "ADJUST"
    generate = "GENERATE"

class EntityType(str, enum.Enum):
    location = "Location"
    product = "Product"
    supplier = "Supplier"
    item = "Item"
    inward_entry = "InwardEntry"
    outward_entry = "OutwardEntry"
    damage_entry = "DamageEntry"
    transfer = "Transfer"
    adjustment = "Adjustment"
    audit = "InventoryAudit"
    closing_stock = "ClosingStock"
