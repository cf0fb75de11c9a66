from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Actor:
    """
    Identité authentifiée fournie par le collaborateur d'auth (en amont).

    `role` reste une chaîne libre (minuscules) : les rôles connus sont dans
    core_types.Role, mais DAMAGE_APPROVER_ROLES peut en nommer d'autres.
    """

    id: str
    role: str | None = None
