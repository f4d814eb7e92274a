"""
Booking validation for shipment drafts.

Everything here is synchronous and side-effect free so editors can re-run
it on every field change. The same `validate_for_booking` gate runs
server-side before a draft is turned into a booking.

Each check returns a `ValidationResult`; the first failing rule wins and its
reason is the single message surfaced to the user.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Iterable

from app.core.shipment_catalog import FREIGHT_CLASSES, PACKAGING_TYPES, RATE_CODES
from app.models.shipment import UnitSystem
from app.schemas.shipment import Address, Package, RateLine, ShipmentDraft

MIN_PACKAGES = 1
MAX_PACKAGES = 99
MIN_QUANTITY = 1
MAX_QUANTITY = 999

ADDRESS_REQUIRED_FIELDS = (
    ("company_name", "company name"),
    ("street", "street"),
    ("city", "city"),
    ("state", "state/province"),
    ("postal_code", "postal code"),
    ("country", "country"),
)

ADDRESS_ROLES = {"ship_from": "Ship from", "ship_to": "Ship to"}

# (min, max, unit) per unit system
WEIGHT_LIMITS = {
    UnitSystem.IMPERIAL: (0.1, 30000, "lbs"),
    UnitSystem.METRIC: (0.05, 13608, "kg"),
}
DIMENSION_LIMITS = {
    UnitSystem.IMPERIAL: (1, 999, "in"),
    UnitSystem.METRIC: (2.5, 2540, "cm"),
}

_CANADIAN_POSTAL = re.compile(r"^[A-Z]\d[A-Z] ?\d[A-Z]\d$")
_US_ZIP = re.compile(r"^\d{5}(-\d{4})?$")
_CANADA = {"CA", "CAN"}
_USA = {"US", "USA"}


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls) -> "ValidationResult":
        return cls(ok=True)

    @classmethod
    def fail(cls, reason: str) -> "ValidationResult":
        return cls(ok=False, reason=reason)


def _coerce(model: type, value: Any):
    if value is None or isinstance(value, model):
        return value
    return model.model_validate(value)


def _blank(value: Any) -> bool:
    return value is None or not str(value).strip()


def _finite(value: Any) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value)


def _fmt(value: float) -> str:
    return f"{value:g}"


def validate_address(address: Address | dict | None, role: str) -> ValidationResult:
    label = ADDRESS_ROLES.get(role)
    if label is None:
        raise ValueError(f"Unknown address role '{role}'.")
    address = _coerce(Address, address)
    if address is None:
        return ValidationResult.fail(f"{label} address is required.")

    for field, field_label in ADDRESS_REQUIRED_FIELDS:
        if _blank(getattr(address, field)):
            return ValidationResult.fail(f"{label} address: {field_label} is required.")

    country = address.country.strip().upper()
    postal_code = " ".join(address.postal_code.split()).upper()
    if country in _CANADA and not _CANADIAN_POSTAL.match(postal_code):
        return ValidationResult.fail(
            f"{label} address: Invalid Canadian postal code format (should be A1A 1A1)."
        )
    if country in _USA and not _US_ZIP.match(postal_code):
        return ValidationResult.fail(
            f"{label} address: Invalid US ZIP code format (should be 12345 or 12345-6789)."
        )
    return ValidationResult.success()


def _validate_package(pkg: Package, number: int) -> ValidationResult:
    prefix = f"Package {number}"
    if _blank(pkg.item_description):
        return ValidationResult.fail(f"{prefix}: item description is required.")

    if pkg.packaging_type is not None and pkg.packaging_type not in PACKAGING_TYPES:
        return ValidationResult.fail(f"{prefix}: unknown packaging type {pkg.packaging_type}.")

    w_min, w_max, w_unit = WEIGHT_LIMITS[pkg.unit_system]
    if not _finite(pkg.weight) or not (w_min <= pkg.weight <= w_max):
        return ValidationResult.fail(
            f"{prefix}: Weight must be between {_fmt(w_min)} and {_fmt(w_max)} {w_unit}."
        )

    d_min, d_max, d_unit = DIMENSION_LIMITS[pkg.unit_system]
    for dim in ("length", "width", "height"):
        value = getattr(pkg, dim)
        if not _finite(value) or not (d_min <= value <= d_max):
            return ValidationResult.fail(
                f"{prefix}: {dim} must be between {_fmt(d_min)} and {_fmt(d_max)} {d_unit}."
            )

    quantity = pkg.packaging_quantity
    if (
        not _finite(quantity)
        or not float(quantity).is_integer()
        or not (MIN_QUANTITY <= quantity <= MAX_QUANTITY)
    ):
        return ValidationResult.fail(
            f"{prefix}: Packaging quantity must be a whole number between "
            f"{MIN_QUANTITY} and {MAX_QUANTITY}."
        )

    if pkg.freight_class and pkg.freight_class not in FREIGHT_CLASSES:
        return ValidationResult.fail(f"{prefix}: unknown freight class {pkg.freight_class}.")

    if pkg.declared_value is not None and (
        not _finite(pkg.declared_value) or pkg.declared_value < 0
    ):
        return ValidationResult.fail(
            f"{prefix}: Declared value must be a valid non-negative number."
        )
    return ValidationResult.success()


def validate_packages(packages: Iterable[Package | dict] | None) -> ValidationResult:
    items = [_coerce(Package, pkg) for pkg in (packages or [])]
    if len(items) < MIN_PACKAGES:
        return ValidationResult.fail("At least one package is required.")
    if len(items) > MAX_PACKAGES:
        return ValidationResult.fail(f"Maximum {MAX_PACKAGES} packages allowed.")
    for number, pkg in enumerate(items, start=1):
        result = _validate_package(pkg, number)
        if not result:
            return result
    return ValidationResult.success()


def _validate_rate(rate: RateLine, number: int) -> ValidationResult:
    prefix = f"Rate {number}"
    # Code membership is checked before completeness.
    if not _blank(rate.code) and rate.code.strip() not in RATE_CODES:
        return ValidationResult.fail(f"{prefix}: invalid rate code '{rate.code.strip()}'.")
    if _blank(rate.code):
        return ValidationResult.fail(f"{prefix}: rate code is required.")
    if _blank(rate.charge_name):
        return ValidationResult.fail(f"{prefix}: charge name is required.")
    for field in ("cost", "charge"):
        value = getattr(rate, field)
        if value is None:
            return ValidationResult.fail(f"{prefix}: {field} is required.")
        if not _finite(value) or value < 0:
            return ValidationResult.fail(
                f"{prefix}: {field.capitalize()} must be a valid number (0 or greater)."
            )
    return ValidationResult.success()


def validate_rates(rates: Iterable[RateLine | dict] | None) -> ValidationResult:
    items = [_coerce(RateLine, rate) for rate in (rates or [])]
    if not items:
        return ValidationResult.fail("At least one rate line item is required.")
    for number, rate in enumerate(items, start=1):
        result = _validate_rate(rate, number)
        if not result:
            return result
    return ValidationResult.success()


def validate_for_booking(shipment: ShipmentDraft | dict) -> ValidationResult:
    shipment = _coerce(ShipmentDraft, shipment)
    if _blank(shipment.carrier):
        return ValidationResult.fail("Please select a carrier before booking.")

    checks = (
        lambda: validate_address(shipment.ship_from, "ship_from"),
        lambda: validate_address(shipment.ship_to, "ship_to"),
        lambda: validate_packages(shipment.packages),
        lambda: validate_rates(shipment.manual_rates),
    )
    for check in checks:
        result = check()
        if not result:
            return result
    return ValidationResult.success()
