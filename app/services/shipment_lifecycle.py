"""
Shipment lifecycle: draft saves and the draft -> booked transition.

States (carried on a `ShipmentSession`, never persisted as such):

    composing --save_draft--> draft_persisted --save_draft--> draft_persisted
    draft_persisted --book_shipment--> booking --> booked
                                               \\-> error --save/book--> ...

Booking runs strictly in sequence: validate, resolve or allocate the
shipment ID, write the record, then hand off to the document pipeline.
Nothing is written before validation and ID allocation succeed. Once the
booking write commits, document failures are reported but never undo it.
"""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.flow_logging import BOOKING, flow_info
from app.models.shipment import CreationMethod, ShipmentEventType, ShipmentStatus, UnitSystem
from app.schemas.shipment import Package, RateLine, ShipmentDraft, ShipmentTotals
from app.services.document_pipeline import DocumentPipeline, PipelineReport
from app.services.draft_store import SHIPMENTS, DraftStore, DraftStoreError
from app.services.shipment_errors import (
    DraftNotFound,
    EditorMismatch,
    PersistenceFailed,
    ValidationFailed,
)
from app.services.shipment_event_service import ShipmentEventService
from app.services.shipment_id_allocator import ShipmentIdAllocator, parse
from app.services.shipment_validation import ValidationResult, validate_for_booking
from app.services.unit_converter import convert_all_packages

logger = logging.getLogger(__name__)

_DRAFT_FIELDS = (
    "shipment_info",
    "ship_from",
    "ship_to",
    "packages",
    "manual_rates",
    "carrier",
    "carrier_details",
    "unit_system",
)


class LifecycleState(str, enum.Enum):
    COMPOSING = "composing"
    DRAFT_PERSISTED = "draft_persisted"
    BOOKING = "booking"
    BOOKED = "booked"
    ERROR = "error"


@dataclass
class ShipmentSession:
    """One editing session: the in-memory draft plus where it was persisted."""

    draft: ShipmentDraft = field(default_factory=ShipmentDraft)
    record_key: int | None = None
    draft_version: int = 0
    state: LifecycleState = LifecycleState.COMPOSING
    last_error: str | None = None

    @property
    def shipment_id(self) -> str | None:
        return self.draft.shipment_id

    def resting_state(self) -> LifecycleState:
        return LifecycleState.DRAFT_PERSISTED if self.record_key else LifecycleState.COMPOSING


@dataclass
class DraftSaveResult:
    record_key: int
    shipment_id: str | None
    draft_version: int
    state: LifecycleState
    status: ShipmentStatus
    totals: ShipmentTotals


@dataclass
class BookingOutcome:
    record_key: int
    shipment_id: str
    state: LifecycleState
    status: ShipmentStatus
    totals: ShipmentTotals
    already_booked: bool = False
    documents: PipelineReport | None = None

    @property
    def message(self) -> str:
        if self.already_booked:
            return f"Shipment {self.shipment_id} is already booked."
        if self.documents is None:
            return f"Shipment {self.shipment_id} booked."
        return f"Shipment {self.shipment_id} booked. {self.documents.status_message}"


def _number(value: Any) -> float:
    if isinstance(value, (int, float)) and math.isfinite(value):
        return float(value)
    return 0.0


def _round(value: float, places: str) -> float:
    return float(Decimal(str(value)).quantize(Decimal(places), rounding=ROUND_HALF_UP))


def compute_totals(
    packages: Iterable[Package],
    rates: Iterable[RateLine],
    currency: str | None = None,
) -> ShipmentTotals:
    packages = list(packages)
    total_weight = sum(_number(p.weight) * _number(p.packaging_quantity) for p in packages)
    total_pieces = sum(int(_number(p.packaging_quantity)) for p in packages)
    total_charges = sum(_number(r.charge) for r in rates)
    return ShipmentTotals(
        total_weight=_round(total_weight, "0.001"),
        total_pieces=total_pieces,
        total_package_count=len(packages),
        total_charges=_round(total_charges, "0.01"),
        currency=currency or settings.DEFAULT_CURRENCY,
    )


class ShipmentLifecycleService:
    def __init__(
        self,
        db: Session | None = None,
        *,
        store: DraftStore | None = None,
        allocator: ShipmentIdAllocator | None = None,
        pipeline: DocumentPipeline | None = None,
        events: ShipmentEventService | None = None,
        editor: CreationMethod = CreationMethod.QUICKSHIP,
    ):
        if store is None:
            if db is None:
                raise ValueError("Either db or store is required.")
            store = DraftStore(db)
        self.store = store
        self.allocator = allocator or ShipmentIdAllocator(store)
        self.events = events or ShipmentEventService(store)
        self.pipeline = pipeline or DocumentPipeline(events=self.events)
        self.editor = CreationMethod(editor)

    # -- guards -------------------------------------------------------------

    @staticmethod
    def _require_context(company_id: str | None, user_id: str | None, action: str) -> None:
        if not (company_id or "").strip() or not (user_id or "").strip():
            raise ValidationFailed(
                f"Missing required information to {action}: company and user are required."
            )

    def _check_editor(self, creation_method: str | CreationMethod | None) -> None:
        method = CreationMethod(creation_method or CreationMethod.QUICKSHIP)
        if method != self.editor:
            raise EditorMismatch(
                f"This shipment was created using the {method.value} form and cannot be "
                f"edited in {self.editor.value}."
            )

    def _owned_record(self, record_key: int, company_id: str) -> dict[str, Any]:
        try:
            record = self.store.get_by_key(SHIPMENTS, record_key)
        except DraftStoreError as exc:
            raise PersistenceFailed("Failed to load shipment. Please try again.", cause=exc) from exc
        if record is None or record.get("company_id") != company_id:
            raise DraftNotFound()
        return record

    # -- helpers ------------------------------------------------------------

    @staticmethod
    def _record_fields(draft: ShipmentDraft, totals: ShipmentTotals, user_id: str) -> dict[str, Any]:
        data = draft.model_dump(mode="json", include=set(_DRAFT_FIELDS))
        data["carrier_details"] = data.get("carrier_details") or {}
        data.update(totals.model_dump())
        data["last_changed_by"] = user_id
        return data

    @staticmethod
    def _draft_from_record(record: dict[str, Any]) -> ShipmentDraft:
        payload = {key: record.get(key) for key in _DRAFT_FIELDS}
        payload["shipment_id"] = record.get("shipment_id")
        payload["creation_method"] = record.get("creation_method")
        payload["shipment_info"] = payload["shipment_info"] or {}
        payload["packages"] = payload["packages"] or []
        payload["manual_rates"] = payload["manual_rates"] or []
        payload["carrier_details"] = payload["carrier_details"] or None
        payload["unit_system"] = payload["unit_system"] or UnitSystem.IMPERIAL.value
        return ShipmentDraft.model_validate(payload)

    def _find_by_shipment_id(self, shipment_id: str) -> dict[str, Any] | None:
        rows = self.store.find_by_field(SHIPMENTS, "shipment_id", shipment_id, 1)
        return rows[0] if rows else None

    def _resolve_shipment_id(self, existing: dict[str, Any] | None, draft_id: str | None, company_id: str) -> str:
        """
        Pick the shipment ID for a write: the matched row's ID, else the
        client's ID when it is a well-formed ID under this company's
        prefix, else a freshly allocated one.
        """
        if existing and existing.get("shipment_id"):
            return existing["shipment_id"]
        if not draft_id:
            return self.allocate_shipment_id(company_id)
        parsed = parse(draft_id)
        if parsed is None:
            raise ValidationFailed(f"Shipment ID {draft_id} is not a valid shipment ID.")
        if parsed.company_id != company_id:
            raise ValidationFailed("Shipment ID belongs to another company.")
        return draft_id

    # -- public operations --------------------------------------------------

    def allocate_shipment_id(self, company_id: str) -> str:
        try:
            return self.allocator.allocate(company_id)
        except DraftStoreError as exc:
            raise PersistenceFailed("Failed to allocate a shipment ID.", cause=exc) from exc

    @staticmethod
    def validate_for_booking(draft: ShipmentDraft | dict) -> ValidationResult:
        return validate_for_booking(draft)

    @staticmethod
    def convert_units(session: ShipmentSession, target: UnitSystem | str) -> ShipmentSession:
        """Switch every package (and the shipment default) to `target`, in memory."""
        session.draft = convert_all_packages(session.draft, target)
        return session

    def load_draft(self, record_key: int, company_id: str) -> ShipmentSession:
        record = self._owned_record(record_key, company_id)
        self._check_editor(record.get("creation_method"))
        if record.get("status") == ShipmentStatus.BOOKED.value:
            raise ValidationFailed(
                f"Shipment {record.get('shipment_id')} is already booked and cannot be edited as a draft."
            )
        errored = record.get("status") == ShipmentStatus.ERROR.value
        return ShipmentSession(
            draft=self._draft_from_record(record),
            record_key=record["id"],
            draft_version=record.get("draft_version") or 0,
            state=LifecycleState.ERROR if errored else LifecycleState.DRAFT_PERSISTED,
            last_error=record.get("last_error") if errored else None,
        )

    def save_draft(self, session: ShipmentSession, company_id: str, user_id: str) -> DraftSaveResult:
        """
        "Ship Later": persist the in-memory draft as-is.

        Drafts may be incomplete, so booking validation is deliberately not
        run here. The first save inserts the row; later saves update it and
        bump draft_version.
        """
        self._require_context(company_id, user_id, "save draft")
        self._check_editor(session.draft.creation_method)
        if session.state == LifecycleState.BOOKED:
            raise ValidationFailed("Shipment is already booked; it can no longer be saved as a draft.")

        existing = None
        if session.record_key:
            existing = self._owned_record(session.record_key, company_id)
            self._check_editor(existing.get("creation_method"))
            if existing.get("status") == ShipmentStatus.BOOKED.value:
                raise ValidationFailed(
                    f"Shipment {existing.get('shipment_id')} is already booked; it can no longer be saved as a draft."
                )

        shipment_id = self._resolve_shipment_id(existing, session.draft.shipment_id, company_id)
        if existing is None and shipment_id == session.draft.shipment_id:
            try:
                claimed = self._find_by_shipment_id(shipment_id)
            except DraftStoreError as exc:
                raise PersistenceFailed("Failed to save draft. Please try again.", cause=exc) from exc
            if claimed is not None:
                raise ValidationFailed(f"Shipment ID {shipment_id} is already in use.")

        draft = session.draft.model_copy(update={"shipment_id": shipment_id})
        totals = compute_totals(draft.packages, draft.manual_rates)
        values = self._record_fields(draft, totals, user_id)
        values.update(
            {
                "shipment_id": shipment_id,
                "status": ShipmentStatus.DRAFT.value,
                "is_draft": True,
                "last_error": None,
            }
        )

        try:
            if existing is not None:
                version = (existing.get("draft_version") or 0) + 1
                values["draft_version"] = version
                if not self.store.update(SHIPMENTS, existing["id"], values):
                    raise DraftNotFound()
                record_key = existing["id"]
            else:
                version = 1
                values.update(
                    {
                        "company_id": company_id,
                        "creation_method": draft.creation_method.value,
                        "created_by": user_id,
                        "draft_version": version,
                    }
                )
                record_key = self.store.insert(SHIPMENTS, values)
        except DraftStoreError as exc:
            logger.error(
                "Draft save failed company_id=%s shipment_id=%s: %s",
                company_id,
                shipment_id,
                exc,
            )
            raise PersistenceFailed("Failed to save draft. Please try again.", cause=exc) from exc

        if existing is None:
            self.events.record(
                record_key,
                ShipmentEventType.CREATED,
                "Draft Created",
                f"Draft shipment created with ID: {shipment_id}",
                source="user",
                user_id=user_id,
                payload={"creation_method": draft.creation_method.value},
            )
        else:
            self.events.record(
                record_key,
                ShipmentEventType.DRAFT_SAVED,
                "Draft Updated",
                f"Draft saved (version {version})",
                source="user",
                user_id=user_id,
            )

        session.draft = draft
        session.record_key = record_key
        session.draft_version = version
        session.state = LifecycleState.DRAFT_PERSISTED
        session.last_error = None
        flow_info(
            logger,
            "Draft saved record_key=%s shipment_id=%s version=%s",
            record_key,
            shipment_id,
            version,
            category=BOOKING,
        )
        return DraftSaveResult(
            record_key=record_key,
            shipment_id=shipment_id,
            draft_version=version,
            state=session.state,
            status=ShipmentStatus.DRAFT,
            totals=totals,
        )

    def _already_booked(self, session: ShipmentSession, record: dict[str, Any]) -> BookingOutcome:
        session.record_key = record["id"]
        session.draft = session.draft.model_copy(update={"shipment_id": record["shipment_id"]})
        session.state = LifecycleState.BOOKED
        session.last_error = None
        return BookingOutcome(
            record_key=record["id"],
            shipment_id=record["shipment_id"],
            state=LifecycleState.BOOKED,
            status=ShipmentStatus.BOOKED,
            totals=ShipmentTotals(
                total_weight=record.get("total_weight") or 0,
                total_pieces=record.get("total_pieces") or 0,
                total_package_count=record.get("total_package_count") or 0,
                total_charges=record.get("total_charges") or 0,
                currency=record.get("currency") or settings.DEFAULT_CURRENCY,
            ),
            already_booked=True,
        )

    def _mark_failed(self, record_key: int | None, user_id: str, reason: str) -> None:
        if not record_key:
            return
        try:
            self.store.update(
                SHIPMENTS,
                record_key,
                {"status": ShipmentStatus.ERROR.value, "last_error": reason, "last_changed_by": user_id},
            )
        except DraftStoreError as exc:
            logger.warning(
                "Could not flag record_key=%s as errored; in-memory draft kept for retry. error=%s",
                record_key,
                exc,
            )
        self.events.record(
            record_key,
            ShipmentEventType.BOOKING_FAILED,
            "Booking Failed",
            reason,
            user_id=user_id,
        )

    def book_shipment(
        self,
        session: ShipmentSession,
        company_id: str,
        user_id: str,
        *,
        run_documents: bool = True,
    ) -> BookingOutcome:
        self._require_context(company_id, user_id, "book shipment")
        self._check_editor(session.draft.creation_method)

        resting = session.resting_state() if session.state != LifecycleState.ERROR else LifecycleState.ERROR
        session.state = LifecycleState.BOOKING

        result = validate_for_booking(session.draft)
        if not result:
            session.state = resting
            raise ValidationFailed(result.reason)

        # Resolve the authoritative row: an existing record with this
        # shipment ID wins (double submit), then the session's own draft row.
        try:
            existing = None
            if session.draft.shipment_id:
                existing = self._find_by_shipment_id(session.draft.shipment_id)
            if existing is None and session.record_key:
                existing = self.store.get_by_key(SHIPMENTS, session.record_key)
                if existing is None:
                    session.state = resting
                    raise DraftNotFound()
        except DraftStoreError as exc:
            session.state = LifecycleState.ERROR
            session.last_error = f"Failed to book shipment: {exc}"
            raise PersistenceFailed(session.last_error, cause=exc) from exc

        if existing is not None:
            if existing.get("company_id") != company_id:
                session.state = resting
                raise ValidationFailed("Shipment ID belongs to another company.")
            try:
                self._check_editor(existing.get("creation_method"))
            except EditorMismatch:
                session.state = resting
                raise
            if existing.get("status") == ShipmentStatus.BOOKED.value:
                logger.info(
                    "Booking re-entry for shipment_id=%s; returning existing record_key=%s",
                    existing.get("shipment_id"),
                    existing["id"],
                )
                return self._already_booked(session, existing)

        try:
            shipment_id = self._resolve_shipment_id(existing, session.draft.shipment_id, company_id)
        except PersistenceFailed as exc:
            session.state = LifecycleState.ERROR
            session.last_error = exc.message
            raise
        except Exception:
            session.state = resting
            raise

        draft = session.draft.model_copy(update={"shipment_id": shipment_id})
        totals = compute_totals(draft.packages, draft.manual_rates)
        values = self._record_fields(draft, totals, user_id)
        values.update(
            {
                "shipment_id": shipment_id,
                "status": ShipmentStatus.BOOKED.value,
                "is_draft": False,
                "booked_at": datetime.utcnow(),
                "last_error": None,
            }
        )

        flow_info(
            logger,
            "Booking shipment_id=%s company_id=%s existing_record=%s",
            shipment_id,
            company_id,
            (existing or {}).get("id"),
            category=BOOKING,
        )
        try:
            if existing is not None:
                record_key = existing["id"]
                if not self.store.update(SHIPMENTS, record_key, values):
                    raise DraftStoreError(f"record {record_key} disappeared before booking")
            else:
                values.update(
                    {
                        "company_id": company_id,
                        "creation_method": draft.creation_method.value,
                        "created_by": user_id,
                        "draft_version": 0,
                    }
                )
                record_key = self.store.insert(SHIPMENTS, values)
        except DraftStoreError as exc:
            reason = f"Failed to book shipment: {exc}"
            logger.error("Booking write failed shipment_id=%s: %s", shipment_id, exc)
            session.state = LifecycleState.ERROR
            session.last_error = reason
            self._mark_failed((existing or {}).get("id"), user_id, reason)
            raise PersistenceFailed(reason, cause=exc) from exc

        # Committed. Everything below is best-effort.
        session.draft = draft
        session.record_key = record_key
        session.state = LifecycleState.BOOKED
        session.last_error = None

        if existing is None:
            self.events.record(
                record_key,
                ShipmentEventType.CREATED,
                "Shipment Created",
                f"Shipment created with ID: {shipment_id}",
                source="user",
                user_id=user_id,
                payload={"creation_method": draft.creation_method.value},
            )
        self.events.record(
            record_key,
            ShipmentEventType.BOOKING_CONFIRMED,
            "Booking Confirmed",
            f"Booking confirmed for carrier: {draft.carrier}",
            source="user",
            user_id=user_id,
            payload={
                "carrier": draft.carrier,
                "total_charges": totals.total_charges,
                "currency": totals.currency,
            },
        )

        report = None
        if run_documents:
            record = {**values, "company_id": company_id, "id": record_key}
            report = self.pipeline.run(
                shipment_id,
                record_key,
                values.get("carrier_details"),
                record=record,
            )
            try:
                self.store.update(SHIPMENTS, record_key, {"document_status": report.status_message[:255]})
            except DraftStoreError as exc:
                logger.warning(
                    "Document status for shipment_id=%s not stored; booking unaffected. error=%s",
                    shipment_id,
                    exc,
                )

        return BookingOutcome(
            record_key=record_key,
            shipment_id=shipment_id,
            state=LifecycleState.BOOKED,
            status=ShipmentStatus.BOOKED,
            totals=totals,
            documents=report,
        )

    def convert_draft(
        self,
        record_key: int,
        company_id: str,
        user_id: str,
        target_method: CreationMethod | str,
    ) -> DraftSaveResult:
        """Hand a draft over to the other editor (quickship <-> advanced)."""
        self._require_context(company_id, user_id, "convert draft")
        target = CreationMethod(target_method)
        record = self._owned_record(record_key, company_id)
        if record.get("status") == ShipmentStatus.BOOKED.value:
            raise ValidationFailed("Booked shipments cannot be converted.")

        current = CreationMethod(record.get("creation_method") or CreationMethod.QUICKSHIP)
        version = record.get("draft_version") or 0
        if current != target:
            version += 1
            try:
                self.store.update(
                    SHIPMENTS,
                    record_key,
                    {
                        "creation_method": target.value,
                        "last_converted_from": current.value,
                        "draft_version": version,
                        "last_changed_by": user_id,
                    },
                )
            except DraftStoreError as exc:
                raise PersistenceFailed("Failed to convert draft.", cause=exc) from exc
            logger.info(
                "Converted record_key=%s from %s to %s",
                record_key,
                current.value,
                target.value,
            )

        draft = self._draft_from_record(record)
        return DraftSaveResult(
            record_key=record_key,
            shipment_id=record.get("shipment_id"),
            draft_version=version,
            state=LifecycleState.DRAFT_PERSISTED,
            status=ShipmentStatus(record.get("status") or ShipmentStatus.DRAFT.value),
            totals=compute_totals(draft.packages, draft.manual_rates, record.get("currency")),
        )

    def list_events(self, record_key: int, company_id: str) -> list[dict[str, Any]]:
        self._owned_record(record_key, company_id)
        try:
            return self.events.list_for_record(record_key)
        except DraftStoreError as exc:
            raise PersistenceFailed("Failed to load shipment events.", cause=exc) from exc
