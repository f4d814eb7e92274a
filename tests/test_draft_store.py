from __future__ import annotations

import pytest

from app.services.draft_store import SHIPMENTS, DraftStore, DraftStoreError


def test_insert_get_update_round(db_session):
    store = DraftStore(db_session)

    key = store.insert(
        SHIPMENTS,
        {
            "company_id": "ACME",
            "shipment_id": "ACME-223ABC",
            "packages": [{"weight": 10}],
            "total_weight": 12.5,
        },
    )

    record = store.get_by_key(SHIPMENTS, key)
    assert record["id"] == key
    assert record["status"] == "draft"
    assert record["packages"] == [{"weight": 10}]
    assert record["total_weight"] == 12.5
    assert record["created_at"] is not None

    assert store.update(SHIPMENTS, key, {"carrier": "Northline", "draft_version": 2}) is True
    updated = store.get_by_key(SHIPMENTS, key)
    assert updated["carrier"] == "Northline"
    assert updated["draft_version"] == 2
    # Untouched fields survive a partial update
    assert updated["shipment_id"] == "ACME-223ABC"


def test_update_missing_key_returns_false(db_session):
    store = DraftStore(db_session)
    assert store.update(SHIPMENTS, 999, {"carrier": "x"}) is False
    assert store.get_by_key(SHIPMENTS, 999) is None


def test_find_and_count_by_field(db_session):
    store = DraftStore(db_session)
    for shipment_id in ("ACME-223AAA", "ACME-224AAA"):
        store.insert(SHIPMENTS, {"company_id": "ACME", "shipment_id": shipment_id})
    store.insert(SHIPMENTS, {"company_id": "OTHER", "shipment_id": "OTHER-223AAA"})

    assert store.count_by_field(SHIPMENTS, "company_id", "ACME") == 2
    rows = store.find_by_field(SHIPMENTS, "company_id", "ACME")
    assert [r["shipment_id"] for r in rows] == ["ACME-223AAA", "ACME-224AAA"]
    assert len(store.find_by_field(SHIPMENTS, "company_id", "ACME", 1)) == 1
    assert store.find_by_field(SHIPMENTS, "shipment_id", "NOPE-222222") == []


def test_unknown_collection_or_field_is_rejected(db_session):
    store = DraftStore(db_session)
    with pytest.raises(ValueError):
        store.find_by_field("invoices", "id", 1)
    with pytest.raises(ValueError):
        store.find_by_field(SHIPMENTS, "no_such_column", 1)
    with pytest.raises(ValueError):
        store.insert(SHIPMENTS, {"company_id": "ACME", "colour": "red"})


def test_duplicate_shipment_id_surfaces_as_store_error(db_session):
    store = DraftStore(db_session)
    store.insert(SHIPMENTS, {"company_id": "ACME", "shipment_id": "ACME-223AAA"})

    with pytest.raises(DraftStoreError):
        store.insert(SHIPMENTS, {"company_id": "ACME", "shipment_id": "ACME-223AAA"})

    # Session stays usable after the rollback
    assert store.count_by_field(SHIPMENTS, "company_id", "ACME") == 1
