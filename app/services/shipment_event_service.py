from __future__ import annotations

import logging
from typing import Any

from app.core.config import settings
from app.models.shipment import ShipmentEventType
from app.services.draft_store import SHIPMENT_EVENTS, DraftStore, DraftStoreError

logger = logging.getLogger(__name__)


class ShipmentEventService:
    """Booking timeline writer. Failures are logged, never raised."""

    def __init__(self, store: DraftStore):
        self.store = store

    def record(
        self,
        record_key: int,
        event_type: ShipmentEventType,
        title: str,
        description: str | None = None,
        *,
        source: str = "system",
        user_id: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> int | None:
        if not settings.SHIPMENT_EVENTS_ENABLED:
            return None
        try:
            return self.store.insert(
                SHIPMENT_EVENTS,
                {
                    "record_key": record_key,
                    "event_type": event_type.value,
                    "title": title,
                    "description": description,
                    "source": source,
                    "user_id": user_id,
                    "payload": payload or {},
                },
            )
        except (DraftStoreError, ValueError) as exc:
            logger.warning(
                "Shipment event %s for record_key=%s was not recorded; proceeding without blocking. error=%s",
                event_type.value,
                record_key,
                exc,
            )
            return None

    def list_for_record(self, record_key: int) -> list[dict[str, Any]]:
        return self.store.find_by_field(SHIPMENT_EVENTS, "record_key", record_key)
