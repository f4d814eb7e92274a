from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.core.shipment_catalog import DEFAULT_PACKAGING_TYPE
from app.models.shipment import CreationMethod, ShipmentStatus, UnitSystem
from .base import BaseSchema, OpenSchema


class Address(OpenSchema):
    address_id: Optional[str] = None
    company_name: Optional[str] = None
    contact: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    street: Optional[str] = None
    street2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class Package(BaseSchema):
    item_description: Optional[str] = None
    packaging_type: Optional[int] = DEFAULT_PACKAGING_TYPE
    packaging_quantity: Optional[float] = 1
    weight: Optional[float] = None
    length: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    unit_system: UnitSystem = UnitSystem.IMPERIAL
    freight_class: Optional[str] = None
    declared_value: Optional[float] = None


class RateLine(BaseSchema):
    code: Optional[str] = None
    charge_name: Optional[str] = None
    cost: Optional[float] = None
    cost_currency: str = "CAD"
    charge: Optional[float] = None
    charge_currency: str = "CAD"


class ShipmentInfo(BaseSchema):
    shipment_type: str = "freight"
    shipment_date: Optional[date] = None
    shipper_reference_number: Optional[str] = None
    carrier_tracking_number: Optional[str] = None
    booking_reference_number: Optional[str] = None
    booking_reference_type: str = "PO"
    bill_type: str = "third_party"
    service_level: str = "any"
    dangerous_goods_type: str = "none"
    signature_service_type: str = "none"
    notes: Optional[str] = None
    skip_email_notifications: bool = False


class CarrierDetails(OpenSchema):
    name: Optional[str] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    email_contacts: List[dict] = Field(default_factory=list)


class ShipmentDraft(BaseSchema):
    """The editor's in-memory shipment; every field may be incomplete."""

    shipment_id: Optional[str] = None
    creation_method: CreationMethod = CreationMethod.QUICKSHIP
    shipment_info: ShipmentInfo = Field(default_factory=ShipmentInfo)
    ship_from: Optional[Address] = None
    ship_to: Optional[Address] = None
    packages: List[Package] = Field(default_factory=list)
    manual_rates: List[RateLine] = Field(default_factory=list)
    carrier: Optional[str] = None
    carrier_details: Optional[CarrierDetails] = None
    unit_system: UnitSystem = UnitSystem.IMPERIAL


class ShipmentDraftRequest(ShipmentDraft):
    # Key of the persisted draft row; absent on the first save.
    record_key: Optional[int] = None


class ShipmentTotals(BaseSchema):
    total_weight: float = 0
    total_pieces: int = 0
    total_package_count: int = 0
    total_charges: float = 0
    currency: str = "CAD"


class ShipmentIdResponse(BaseModel):
    shipment_id: str


class ValidationResponse(BaseModel):
    valid: bool
    reason: Optional[str] = None


class DraftSaveResponse(BaseModel):
    record_key: int
    shipment_id: Optional[str] = None
    status: ShipmentStatus
    state: str
    draft_version: int
    totals: ShipmentTotals


class DraftLoadResponse(BaseModel):
    record_key: int
    draft_version: int
    state: str
    draft: ShipmentDraft


class DraftConvertRequest(BaseModel):
    target_method: CreationMethod


class DocumentStepOut(BaseSchema):
    step: str
    success: bool
    skipped: bool = False
    error: Optional[str] = None


class PipelineReportOut(BaseSchema):
    shipment_id: str
    record_key: int
    steps: List[DocumentStepOut]
    all_succeeded: bool
    status_message: str


class BookingResponse(BaseModel):
    record_key: int
    shipment_id: str
    status: ShipmentStatus
    state: str
    already_booked: bool = False
    totals: ShipmentTotals
    documents: Optional[PipelineReportOut] = None
    message: str


class ConvertPackageRequest(BaseModel):
    package: Package
    target_unit: UnitSystem


class ConvertUnitsRequest(BaseModel):
    draft: ShipmentDraft
    target_unit: UnitSystem


class ShipmentEventOut(BaseSchema):
    id: int
    record_key: int
    event_type: str
    title: str
    description: Optional[str] = None
    source: str
    user_id: Optional[str] = None
    payload: dict = Field(default_factory=dict)
    created_at: datetime
