"""
Post-booking document generation.

Runs only after the booking write has committed. Steps execute in order
(Bill of Lading, carrier confirmation, notifications); each step's outcome
is recorded independently and a failure never stops the next step or
touches the booking status.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable

from app.core.config import settings
from app.core.flow_logging import BOOKING, flow_info
from app.models.shipment import ShipmentEventType
from app.services import document_service_client
from app.services.shipment_event_service import ShipmentEventService

logger = logging.getLogger(__name__)

STEP_BOL = "bol"
STEP_CARRIER_CONFIRMATION = "carrier_confirmation"
STEP_NOTIFICATIONS = "notifications"

DOCUMENT_LABELS = {
    STEP_BOL: "Bill of Lading",
    STEP_CARRIER_CONFIRMATION: "Carrier Confirmation",
}


@dataclass
class DocumentStepResult:
    step: str
    success: bool
    skipped: bool = False
    error: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failed(cls, step: str, cause: str) -> "DocumentStepResult":
        return cls(step=step, success=False, error=cause)

    def as_payload(self) -> dict[str, Any]:
        payload = {"step": self.step, "success": self.success}
        if self.error:
            payload["error"] = self.error
        if self.data:
            payload["data"] = self.data
        return payload


@dataclass
class PipelineReport:
    shipment_id: str
    record_key: int
    steps: list[DocumentStepResult] = field(default_factory=list)

    def step(self, name: str) -> DocumentStepResult | None:
        return next((s for s in self.steps if s.step == name), None)

    @property
    def document_steps(self) -> list[DocumentStepResult]:
        return [s for s in self.steps if s.step in DOCUMENT_LABELS]

    @property
    def documents_generated(self) -> int:
        return sum(1 for s in self.document_steps if s.success)

    @property
    def all_succeeded(self) -> bool:
        return all(s.success for s in self.steps if not s.skipped)

    @property
    def status_message(self) -> str:
        failed = [DOCUMENT_LABELS[s.step] for s in self.document_steps if not s.success]
        if not failed:
            message = "All documents generated successfully."
        elif len(failed) == len(self.document_steps):
            message = f"Document generation failed ({', '.join(failed)}), but shipment is booked."
        else:
            message = f"Some documents failed to generate ({', '.join(failed)}), but shipment is booked."
        notifications = self.step(STEP_NOTIFICATIONS)
        if notifications is not None and not notifications.skipped and not notifications.success:
            message += " Notifications could not be sent."
        return message


@dataclass
class DocumentCallables:
    generate_bol: Callable[[str, int], dict[str, Any]] = document_service_client.generate_bol
    generate_carrier_confirmation: Callable[[str, int, dict[str, Any]], dict[str, Any]] = (
        document_service_client.generate_carrier_confirmation
    )
    send_notifications: Callable[[dict[str, Any], dict[str, Any], list[dict[str, Any]]], dict[str, Any]] = (
        document_service_client.send_booking_notifications
    )


class DocumentPipeline:
    def __init__(
        self,
        callables: DocumentCallables | None = None,
        events: ShipmentEventService | None = None,
    ):
        self.callables = callables or DocumentCallables()
        self.events = events

    @staticmethod
    def _json_safe(value: Any) -> Any:
        if isinstance(value, dict):
            return {str(k): DocumentPipeline._json_safe(v) for k, v in value.items()}
        if isinstance(value, (list, tuple, set)):
            return [DocumentPipeline._json_safe(v) for v in value]
        if isinstance(value, (date, datetime)):
            return value.isoformat()
        if isinstance(value, Decimal):
            return float(value)
        return value

    @staticmethod
    def _invoke(step: str, call: Callable[[], Any]) -> DocumentStepResult:
        try:
            result = call()
        except Exception as exc:
            logger.warning(
                "Document step %s raised; proceeding without blocking. error=%s",
                step,
                exc,
            )
            return DocumentStepResult.failed(step, str(exc) or exc.__class__.__name__)

        if not isinstance(result, dict):
            return DocumentStepResult.failed(step, "Unexpected response from document service.")
        if result.get("success"):
            data = result.get("data")
            return DocumentStepResult(
                step=step,
                success=True,
                data=data if isinstance(data, dict) else {},
            )
        error = result.get("error") or "Document service reported failure."
        logger.warning("Document step %s failed: %s", step, error)
        return DocumentStepResult.failed(step, str(error))

    def _record_generated(self, record_key: int, result: DocumentStepResult) -> None:
        if self.events is None or not result.success:
            return
        label = DOCUMENT_LABELS[result.step]
        file_name = result.data.get("fileName")
        self.events.record(
            record_key,
            ShipmentEventType.DOCUMENT_GENERATED,
            f"{label} Generated",
            f"{label} document generated: {file_name}" if file_name else f"{label} document generated",
            payload={"document_type": result.step, **result.data},
        )

    def _notifications_skipped(self, record: dict[str, Any] | None) -> bool:
        if not settings.NOTIFICATIONS_ENABLED:
            return True
        shipment_info = (record or {}).get("shipment_info") or {}
        return bool(shipment_info.get("skip_email_notifications"))

    def run(
        self,
        shipment_id: str,
        record_key: int,
        carrier_details: dict[str, Any] | None,
        *,
        record: dict[str, Any] | None = None,
    ) -> PipelineReport:
        carrier_details = carrier_details or {}
        report = PipelineReport(shipment_id=shipment_id, record_key=record_key)

        bol = self._invoke(
            STEP_BOL,
            lambda: self.callables.generate_bol(shipment_id, record_key),
        )
        report.steps.append(bol)
        self._record_generated(record_key, bol)

        confirmation = self._invoke(
            STEP_CARRIER_CONFIRMATION,
            lambda: self.callables.generate_carrier_confirmation(
                shipment_id, record_key, carrier_details
            ),
        )
        report.steps.append(confirmation)
        self._record_generated(record_key, confirmation)

        if self._notifications_skipped(record):
            report.steps.append(DocumentStepResult(step=STEP_NOTIFICATIONS, success=True, skipped=True))
        else:
            document_results = [s.as_payload() for s in report.document_steps]
            report.steps.append(
                self._invoke(
                    STEP_NOTIFICATIONS,
                    lambda: self.callables.send_notifications(
                        self._json_safe(record or {"shipment_id": shipment_id}),
                        carrier_details,
                        document_results,
                    ),
                )
            )

        flow_info(
            logger,
            "Document pipeline finished shipment_id=%s record_key=%s documents=%s/%s",
            shipment_id,
            record_key,
            report.documents_generated,
            len(report.document_steps),
            category=BOOKING,
        )
        return report
