"""
Erreurs métier du moteur de stock.

Chaque erreur porte son code HTTP et un payload `{"error": ..., ...contexte}`
que l'API renvoie tel quel. Les services lèvent, l'API traduit.
"""

from __future__ import annotations

from typing import Any


class StockError(Exception):
    status_code: int = 400
    retryable: bool = False

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message}
        payload.update(self.context)
        if self.retryable:
            payload["retryable"] = True
        return payload


class NotFound(StockError):
    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} not found: {entity_id}", entity=entity, entity_id=entity_id)


class InvalidQuantity(StockError):
    def __init__(self, quantity: Any):
        super().__init__(f"Quantity must be a positive integer (got {quantity})", quantity=quantity)


class InsufficientStock(StockError):
    def __init__(self, item_name: str, available: int, requested: int, *, item_id: int | None = None):
        super().__init__(
            f"Not enough quantity for {item_name}. Available: {available}, Requested: {requested}",
            item_id=item_id,
            item_name=item_name,
            available=available,
            requested=requested,
        )
        self.available = available
        self.requested = requested


class WouldGoNegative(InsufficientStock):
    """Garde de adjust_quantity : la mise à jour conditionnelle n'a touché aucune ligne."""


class InvalidStateTransition(StockError):
    status_code = 409

    def __init__(self, entry_id: int, current: str, target: str):
        super().__init__(
            f"Movement entry {entry_id} is {current}, cannot become {target}",
            entry_id=entry_id,
            current_status=current,
            target_status=target,
        )


class ApprovalNotPermitted(StockError):
    status_code = 403

    def __init__(self, role: str | None):
        super().__init__(f"Role {role!r} may not approve or reject damage entries", role=role)


class OperationNotPermitted(StockError):
    status_code = 403

    def __init__(self, role: str | None, operation: str):
        super().__init__(f"Role {role!r} may not {operation}", role=role, operation=operation)


class InvalidTransferRoute(StockError):
    pass


class LocationMismatch(StockError):
    def __init__(self, item_id: int, location_id: int):
        super().__init__(
            f"Item {item_id} is not stocked at location {location_id}",
            item_id=item_id,
            location_id=location_id,
        )


class InvalidAuditLine(StockError):
    pass


class DeleteBlocked(StockError):
    status_code = 409


class AlreadyExists(StockError):
    status_code = 409


class ActorRequired(StockError):
    status_code = 401


class ActorMismatch(StockError):
    status_code = 403


class PartialBatchFailure(StockError):
    """
    Ligne N d'un batch en échec.

    Les batchs sont tout-ou-rien : l'unité de travail est rollback, aucune ligne
    n'est appliquée. Le message et le code HTTP sont ceux de la cause.
    """

    def __init__(self, line_index: int, cause: StockError):
        super().__init__(cause.message, line_index=line_index, **cause.context)
        self.status_code = cause.status_code
        self.retryable = cause.retryable
        self.line_index = line_index
        self.cause = cause


# ---------- Conflits / disponibilité du store ----------
class IdempotencyKeyReused(StockError):
    """Même Idempotency-Key, requête différente : on ne rejoue pas un batch qui ne correspond pas."""

    status_code = 409


class StaleQuantity(StockError):
    """La quantité a changé entre la lecture et l'écriture (compare-and-set raté)."""

    status_code = 409
    retryable = True

    def __init__(self, item_id: int, expected: int):
        super().__init__(
            f"Quantity of item {item_id} changed since it was read (expected {expected})",
            item_id=item_id,
            expected=expected,
        )


class ConcurrencyConflict(StockError):
    status_code = 409
    retryable = True

    def __init__(self, attempts: int):
        super().__init__(f"Concurrent update conflict, gave up after {attempts} attempts", attempts=attempts)


class StoreUnavailable(StockError):
    status_code = 503
    retryable = True

    def __init__(self, detail: str = "Database unavailable"):
        super().__init__(detail)
