from datetime import datetime

from stockledger.app.schemas.common import CamelModel


class ActivityRead(CamelModel):
    id: int
    actor_id: str
    action: str
    entity_type: str
    entity_id: str
    quantity: int | None
    details: str | None
    created_at: datetime
