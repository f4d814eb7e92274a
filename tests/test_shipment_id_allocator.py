from __future__ import annotations

import random

import pytest

from app.services.draft_store import SHIPMENTS, DraftStore
from app.services.shipment_errors import AllocationExhausted, ValidationFailed
from app.services.shipment_id_allocator import (
    ALPHABET,
    ShipmentIdAllocator,
    encode_sequence,
    is_well_formed,
    parse,
)


class _StubStore:
    """Reports the first `taken` candidates as already used."""

    def __init__(self, taken: int = 0, count: int = 0):
        self.taken = taken
        self.count = count
        self.checked: list[str] = []

    def count_by_field(self, collection, field, value):
        return self.count

    def find_by_field(self, collection, field, value, limit=None):
        self.checked.append(value)
        return [{"shipment_id": value}] if len(self.checked) <= self.taken else []


def test_encode_sequence_uses_alphabet_and_wraps():
    assert encode_sequence(0) == "222"
    assert encode_sequence(1) == "223"
    assert encode_sequence(32) == "232"
    assert encode_sequence(32**3 - 1) == "ZZZ"
    assert encode_sequence(32**3) == "222"


def test_first_attempt_is_sequence_seeded():
    allocator = ShipmentIdAllocator(_StubStore(count=0), rng=random.Random(7))

    shipment_id = allocator.allocate("ACME")

    assert shipment_id.startswith("ACME-223")
    parsed = parse(shipment_id)
    assert parsed is not None
    assert parsed.company_id == "ACME"
    assert all(ch in ALPHABET for ch in parsed.code)


def test_collision_retries_with_random_codes():
    store = _StubStore(taken=2)
    allocator = ShipmentIdAllocator(store, rng=random.Random(11))

    shipment_id = allocator.allocate("ACME")

    assert len(store.checked) == 3
    assert shipment_id == store.checked[-1]
    assert len(set(store.checked)) == 3


def test_exhaustion_after_retry_ceiling():
    store = _StubStore(taken=1000)
    allocator = ShipmentIdAllocator(store, max_attempts=15, rng=random.Random(3))

    with pytest.raises(AllocationExhausted) as exc_info:
        allocator.allocate("ACME")

    assert exc_info.value.attempts == 15
    assert exc_info.value.status_code == 503
    assert len(store.checked) == 15


def test_blank_company_is_rejected():
    allocator = ShipmentIdAllocator(_StubStore())
    with pytest.raises(ValidationFailed):
        allocator.allocate("  ")


def test_parse_keeps_hyphenated_company_ids():
    parsed = parse("ACME-CO-23ABCD")
    assert parsed.company_id == "ACME-CO"
    assert parsed.code == "23ABCD"


@pytest.mark.parametrize(
    "value",
    [None, "", "ACME", "-23ABCD", "ACME-23ABC", "ACME-0OI1AB", "ACME-23abcd"],
)
def test_malformed_ids_do_not_parse(value):
    assert parse(value) is None
    assert not is_well_formed(value)


def test_allocation_skips_ids_already_in_store(db_session):
    store = DraftStore(db_session)
    store.insert(SHIPMENTS, {"company_id": "ACME", "shipment_id": "ACME-223XYZ"})
    allocator = ShipmentIdAllocator(store, rng=random.Random(5))

    shipment_id = allocator.allocate("ACME")

    # One existing record: the seed moves on to sequence 2.
    assert shipment_id.startswith("ACME-224")
    assert allocator.is_taken("ACME-223XYZ")
    assert not allocator.is_taken(shipment_id)
