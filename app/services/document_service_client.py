from __future__ import annotations

from typing import Any

import requests

from app.core.config import settings


def _post(
    procedure: str,
    payload: dict[str, Any],
    *,
    timeout_seconds: float | None = None,
    document_service_url: str | None = None,
) -> dict[str, Any]:
    base_url = (document_service_url or settings.DOCUMENT_SERVICE_URL).rstrip("/")
    url = f"{base_url}/{procedure}"

    headers: dict[str, str] = {}
    if settings.DOCUMENT_SERVICE_API_KEY:
        headers["X-Api-Key"] = settings.DOCUMENT_SERVICE_API_KEY

    response = requests.post(
        url,
        json={"data": payload},
        headers=headers or None,
        timeout=timeout_seconds or settings.DOCUMENT_SERVICE_TIMEOUT_SECONDS,
    )
    response.raise_for_status()
    try:
        body = response.json()
    except ValueError as exc:
        raise requests.RequestException(f"{procedure} returned invalid JSON.") from exc
    if not isinstance(body, dict):
        raise requests.RequestException(f"{procedure} returned a non-object JSON payload.")
    # Callable-style endpoints wrap their answer in "result".
    result = body.get("result", body)
    if not isinstance(result, dict):
        raise requests.RequestException(f"{procedure} returned a non-object result.")
    return result


def generate_bol(shipment_id: str, record_key: int) -> dict[str, Any]:
    return _post(
        "generateGenericBOL",
        {"shipmentId": shipment_id, "firebaseDocId": str(record_key)},
    )


def generate_carrier_confirmation(
    shipment_id: str,
    record_key: int,
    carrier_details: dict[str, Any],
) -> dict[str, Any]:
    return _post(
        "generateCarrierConfirmation",
        {
            "shipmentId": shipment_id,
            "firebaseDocId": str(record_key),
            "carrierDetails": carrier_details,
        },
    )


def send_booking_notifications(
    shipment_data: dict[str, Any],
    carrier_details: dict[str, Any],
    document_results: list[dict[str, Any]],
) -> dict[str, Any]:
    return _post(
        "sendQuickShipNotifications",
        {
            "shipmentData": shipment_data,
            "carrierDetails": carrier_details,
            "documentResults": document_results,
        },
    )
