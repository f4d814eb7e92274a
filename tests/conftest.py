from __future__ import annotations

import os
import sys

import pytest
import requests
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import importlib

fastapi_app = importlib.import_module("app.main").app
from app.db.base import Base
from app.db.session import get_db

# Ensure all models are registered with SQLAlchemy metadata
import app.models  # noqa: F401
from app.services.document_pipeline import (
    STEP_BOL,
    STEP_CARRIER_CONFIRMATION,
    STEP_NOTIFICATIONS,
    DocumentCallables,
)


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, _connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture(scope="function")
def db_session(engine):
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def client(engine, db_session):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def _override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    with TestClient(fastapi_app) as test_client:
        yield test_client
    fastapi_app.dependency_overrides.clear()


def _address(company: str, city: str, state: str, postal_code: str, country: str) -> dict:
    return {
        "company_name": company,
        "contact": "Dispatch",
        "phone": "416-555-0100",
        "email": "dispatch@example.com",
        "street": "100 King St W",
        "city": city,
        "state": state,
        "postal_code": postal_code,
        "country": country,
    }


@pytest.fixture
def bookable_payload() -> dict:
    """A complete imperial quickship draft that passes booking validation."""
    return {
        "creation_method": "quickship",
        "shipment_info": {
            "shipment_type": "freight",
            "shipment_date": "2026-10-20",
            "shipper_reference_number": "PO-7781",
        },
        "ship_from": _address("Maple Tools Inc.", "Toronto", "ON", "M5V 2T6", "CA"),
        "ship_to": _address("Lakeside Supply", "Buffalo", "NY", "14202", "US"),
        "packages": [
            {
                "item_description": "Hand tools",
                "packaging_type": 262,
                "packaging_quantity": 2,
                "weight": 100,
                "length": 48,
                "width": 40,
                "height": 36,
                "unit_system": "imperial",
                "freight_class": "70",
            }
        ],
        "manual_rates": [
            {"code": "FRT", "charge_name": "Freight", "cost": 400, "charge": 500},
            {"code": "FUE", "charge_name": "Fuel", "cost": 20, "charge": 25.5},
        ],
        "carrier": "Northline Freight",
        "carrier_details": {
            "name": "Northline Freight",
            "contact_email": "ops@northline.example.com",
        },
        "unit_system": "imperial",
    }


class FakeDocumentService:
    """Stands in for the remote document callables and records every call."""

    def __init__(self, fail: tuple[str, ...] = (), raise_on: tuple[str, ...] = ()):
        self.fail = fail
        self.raise_on = raise_on
        self.calls: list[tuple] = []

    def _answer(self, step: str, file_name: str) -> dict:
        if step in self.raise_on:
            raise requests.Timeout(f"{step} timed out")
        if step in self.fail:
            return {"success": False, "error": f"{step} template missing"}
        return {"success": True, "data": {"fileName": file_name}}

    def bol(self, shipment_id, record_key):
        self.calls.append((STEP_BOL, shipment_id, record_key))
        return self._answer(STEP_BOL, f"BOL_{shipment_id}.pdf")

    def confirmation(self, shipment_id, record_key, carrier_details):
        self.calls.append((STEP_CARRIER_CONFIRMATION, shipment_id, record_key, carrier_details))
        return self._answer(STEP_CARRIER_CONFIRMATION, f"CC_{shipment_id}.pdf")

    def notify(self, shipment_data, carrier_details, document_results):
        self.calls.append((STEP_NOTIFICATIONS, shipment_data, carrier_details, document_results))
        return self._answer(STEP_NOTIFICATIONS, "")

    def callables(self) -> DocumentCallables:
        return DocumentCallables(
            generate_bol=self.bol,
            generate_carrier_confirmation=self.confirmation,
            send_notifications=self.notify,
        )

    def steps(self) -> list[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def fake_documents():
    return FakeDocumentService
