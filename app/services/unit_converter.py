"""
Imperial/metric conversion for package measurements.

Every conversion is rounded half-up to a fixed precision (2 places for
weight, 1 for dimensions). Rounding is lossy: converting A -> B -> A does
not reproduce arbitrary decimals exactly, only to within the rounding step.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from app.models.shipment import UnitSystem
from app.schemas.shipment import Package, ShipmentDraft

LBS_TO_KG = Decimal("0.453592")
KG_TO_LBS = Decimal("2.20462")
IN_TO_CM = Decimal("2.54")

_WEIGHT_STEP = Decimal("0.01")
_DIMENSION_STEP = Decimal("0.1")

DIMENSIONS = ("length", "width", "height")


def _quantize(value: Decimal, step: Decimal) -> float:
    return float(value.quantize(step, rounding=ROUND_HALF_UP))


def _dec(value: float) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def lbs_to_kg(value: float) -> float:
    return _quantize(_dec(value) * LBS_TO_KG, _WEIGHT_STEP)


def kg_to_lbs(value: float) -> float:
    return _quantize(_dec(value) * KG_TO_LBS, _WEIGHT_STEP)


def in_to_cm(value: float) -> float:
    return _quantize(_dec(value) * IN_TO_CM, _DIMENSION_STEP)


def cm_to_in(value: float) -> float:
    return _quantize(_dec(value) / IN_TO_CM, _DIMENSION_STEP)


def convert_package(package: Package | dict, target: UnitSystem | str) -> Package:
    """Convert weight and all three dimensions together and stamp the unit tag."""
    pkg = package if isinstance(package, Package) else Package.model_validate(package)
    target = UnitSystem(target)
    if pkg.unit_system == target:
        return pkg.model_copy()

    to_metric = target == UnitSystem.METRIC
    weight_fn = lbs_to_kg if to_metric else kg_to_lbs
    dim_fn = in_to_cm if to_metric else cm_to_in

    # Blank values (incomplete drafts) stay blank.
    updates: dict = {"unit_system": target}
    if pkg.weight is not None:
        updates["weight"] = weight_fn(pkg.weight)
    for dim in DIMENSIONS:
        value = getattr(pkg, dim)
        if value is not None:
            updates[dim] = dim_fn(value)
    return pkg.model_copy(update=updates)


def convert_all_packages(shipment: ShipmentDraft | dict, target: UnitSystem | str) -> ShipmentDraft:
    draft = shipment if isinstance(shipment, ShipmentDraft) else ShipmentDraft.model_validate(shipment)
    target = UnitSystem(target)
    packages = [convert_package(pkg, target) for pkg in draft.packages]
    return draft.model_copy(update={"packages": packages, "unit_system": target})
