from __future__ import annotations

from app.models.shipment import UnitSystem
from app.schemas.shipment import Package, ShipmentDraft
from app.services.unit_converter import (
    cm_to_in,
    convert_all_packages,
    convert_package,
    in_to_cm,
    kg_to_lbs,
    lbs_to_kg,
)


def test_scalar_conversions_round_to_fixed_precision():
    assert lbs_to_kg(100) == 45.36
    assert kg_to_lbs(45.36) == 100.0
    assert in_to_cm(10) == 25.4
    assert cm_to_in(25.4) == 10.0


def test_rounding_is_half_up():
    # 0.127 cm is exactly 0.05 in; banker's rounding would give 0.0
    assert cm_to_in(0.127) == 0.1


def test_inch_round_trip_stays_within_a_tenth():
    lengths = [i / 100 for i in range(1, 100000, 7)]

    round_trips = {x: cm_to_in(in_to_cm(x)) for x in lengths}

    assert all(abs(back - x) <= 0.1 + 1e-9 for x, back in round_trips.items())
    inexact = [x for x, back in round_trips.items() if back != x]
    assert inexact
    assert round_trips[0.01] == 0.0


def test_package_converts_weight_and_dimensions_together():
    package = Package(weight=100, length=48, width=40, height=36, unit_system=UnitSystem.IMPERIAL)

    metric = convert_package(package, "metric")

    assert metric.unit_system == UnitSystem.METRIC
    assert metric.weight == 45.36
    assert (metric.length, metric.width, metric.height) == (121.9, 101.6, 91.4)
    # Source is untouched
    assert package.weight == 100


def test_same_unit_is_a_copy():
    package = Package(weight=10, length=1, width=2, height=3)
    converted = convert_package(package, UnitSystem.IMPERIAL)
    assert converted == package
    assert converted is not package


def test_blank_measurements_stay_blank():
    converted = convert_package({"weight": None, "length": 10}, UnitSystem.METRIC)
    assert converted.weight is None
    assert converted.length == 25.4
    assert converted.width is None


def test_convert_all_packages_switches_shipment_unit():
    draft = ShipmentDraft(
        packages=[
            Package(weight=100, length=10, width=10, height=10),
            Package(weight=45.36, length=25.4, width=25.4, height=25.4, unit_system=UnitSystem.METRIC),
        ]
    )

    converted = convert_all_packages(draft, UnitSystem.METRIC)

    assert converted.unit_system == UnitSystem.METRIC
    assert [p.unit_system for p in converted.packages] == [UnitSystem.METRIC, UnitSystem.METRIC]
    assert converted.packages[0].weight == 45.36
    # Already-metric package is not converted twice
    assert converted.packages[1].weight == 45.36
    assert draft.unit_system == UnitSystem.IMPERIAL
