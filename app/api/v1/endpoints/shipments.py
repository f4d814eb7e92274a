from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.deps.request_context import get_request_context
from app.db.session import get_db
from app.models.shipment import CreationMethod
from app.schemas.request_context import RequestContext
from app.schemas.shipment import (
    BookingResponse,
    ConvertPackageRequest,
    ConvertUnitsRequest,
    DraftConvertRequest,
    DraftLoadResponse,
    DraftSaveResponse,
    Package,
    PipelineReportOut,
    ShipmentDraft,
    ShipmentDraftRequest,
    ShipmentEventOut,
    ShipmentIdResponse,
    ValidationResponse,
)
from app.services.document_pipeline import DocumentPipeline
from app.services.draft_store import DraftStore
from app.services.shipment_errors import ShipmentLifecycleFailure
from app.services.shipment_event_service import ShipmentEventService
from app.services.shipment_lifecycle import (
    ShipmentLifecycleService,
    ShipmentSession,
)
from app.services.shipment_validation import validate_for_booking
from app.services.unit_converter import convert_all_packages, convert_package

logger = logging.getLogger(__name__)

router = APIRouter()


def get_document_pipeline(db: Session = Depends(get_db)) -> DocumentPipeline:
    return DocumentPipeline(events=ShipmentEventService(DraftStore(db)))


def _raise_lifecycle_failure(exc: ShipmentLifecycleFailure) -> None:
    raise HTTPException(status_code=exc.status_code, detail=exc.to_detail())


def _service(
    db: Session,
    pipeline: DocumentPipeline,
    editor: CreationMethod = CreationMethod.QUICKSHIP,
) -> ShipmentLifecycleService:
    store = DraftStore(db)
    return ShipmentLifecycleService(
        store=store,
        pipeline=pipeline,
        events=ShipmentEventService(store),
        editor=editor,
    )


def _session_from_request(payload: ShipmentDraftRequest) -> ShipmentSession:
    draft = ShipmentDraft.model_validate(payload.model_dump(exclude={"record_key"}))
    session = ShipmentSession(draft=draft, record_key=payload.record_key)
    session.state = session.resting_state()
    return session


@router.post("/ids", response_model=ShipmentIdResponse)
def allocate_shipment_id(
    db: Session = Depends(get_db),
    pipeline: DocumentPipeline = Depends(get_document_pipeline),
    context: RequestContext = Depends(get_request_context),
):
    try:
        shipment_id = _service(db, pipeline).allocate_shipment_id(context.company_id or "")
    except ShipmentLifecycleFailure as exc:
        _raise_lifecycle_failure(exc)
    return ShipmentIdResponse(shipment_id=shipment_id)


@router.post("/validate", response_model=ValidationResponse)
def validate_shipment(payload: ShipmentDraft):
    result = validate_for_booking(payload)
    return ValidationResponse(valid=result.ok, reason=result.reason)


@router.post("/drafts", response_model=DraftSaveResponse)
def save_draft(
    payload: ShipmentDraftRequest,
    db: Session = Depends(get_db),
    pipeline: DocumentPipeline = Depends(get_document_pipeline),
    context: RequestContext = Depends(get_request_context),
):
    session = _session_from_request(payload)
    service = _service(db, pipeline, editor=payload.creation_method)
    try:
        result = service.save_draft(session, context.company_id, context.user_id)
    except ShipmentLifecycleFailure as exc:
        _raise_lifecycle_failure(exc)
    return DraftSaveResponse(
        record_key=result.record_key,
        shipment_id=result.shipment_id,
        status=result.status,
        state=result.state.value,
        draft_version=result.draft_version,
        totals=result.totals,
    )


@router.get("/drafts/{record_key}", response_model=DraftLoadResponse)
def load_draft(
    record_key: int,
    editor: CreationMethod = Query(CreationMethod.QUICKSHIP),
    db: Session = Depends(get_db),
    pipeline: DocumentPipeline = Depends(get_document_pipeline),
    context: RequestContext = Depends(get_request_context),
):
    if not context.company_id:
        raise HTTPException(status_code=400, detail="X-Company-ID header is required.")
    try:
        session = _service(db, pipeline, editor=editor).load_draft(record_key, context.company_id)
    except ShipmentLifecycleFailure as exc:
        _raise_lifecycle_failure(exc)
    return DraftLoadResponse(
        record_key=session.record_key,
        draft_version=session.draft_version,
        state=session.state.value,
        draft=session.draft,
    )


@router.post("/drafts/{record_key}/convert", response_model=DraftSaveResponse)
def convert_draft(
    record_key: int,
    payload: DraftConvertRequest,
    db: Session = Depends(get_db),
    pipeline: DocumentPipeline = Depends(get_document_pipeline),
    context: RequestContext = Depends(get_request_context),
):
    try:
        result = _service(db, pipeline).convert_draft(
            record_key,
            context.company_id,
            context.user_id,
            payload.target_method,
        )
    except ShipmentLifecycleFailure as exc:
        _raise_lifecycle_failure(exc)
    return DraftSaveResponse(
        record_key=result.record_key,
        shipment_id=result.shipment_id,
        status=result.status,
        state=result.state.value,
        draft_version=result.draft_version,
        totals=result.totals,
    )


@router.post("/book", response_model=BookingResponse)
def book_shipment(
    payload: ShipmentDraftRequest,
    db: Session = Depends(get_db),
    pipeline: DocumentPipeline = Depends(get_document_pipeline),
    context: RequestContext = Depends(get_request_context),
):
    session = _session_from_request(payload)
    service = _service(db, pipeline, editor=payload.creation_method)
    try:
        outcome = service.book_shipment(session, context.company_id, context.user_id)
    except ShipmentLifecycleFailure as exc:
        _raise_lifecycle_failure(exc)
    return BookingResponse(
        record_key=outcome.record_key,
        shipment_id=outcome.shipment_id,
        status=outcome.status,
        state=outcome.state.value,
        already_booked=outcome.already_booked,
        totals=outcome.totals,
        documents=(
            PipelineReportOut.model_validate(outcome.documents)
            if outcome.documents is not None
            else None
        ),
        message=outcome.message,
    )


@router.post("/packages/convert", response_model=Package)
def convert_single_package(payload: ConvertPackageRequest):
    return convert_package(payload.package, payload.target_unit)


@router.post("/convert-units", response_model=ShipmentDraft)
def convert_units(payload: ConvertUnitsRequest):
    return convert_all_packages(payload.draft, payload.target_unit)


@router.get("/{record_key}/events", response_model=List[ShipmentEventOut])
def list_shipment_events(
    record_key: int,
    db: Session = Depends(get_db),
    pipeline: DocumentPipeline = Depends(get_document_pipeline),
    context: RequestContext = Depends(get_request_context),
):
    if not context.company_id:
        raise HTTPException(status_code=400, detail="X-Company-ID header is required.")
    try:
        events = _service(db, pipeline).list_events(record_key, context.company_id)
    except ShipmentLifecycleFailure as exc:
        _raise_lifecycle_failure(exc)
    return [ShipmentEventOut.model_validate(event) for event in events]
