from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ShipmentLifecycleFailure(Exception):
    code: str
    message: str
    status_code: int = 400

    def __str__(self) -> str:
        return self.message

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationFailed(ShipmentLifecycleFailure):
    def __init__(self, message: str):
        super().__init__(code="VALIDATION_FAILED", message=message, status_code=422)


class AllocationExhausted(ShipmentLifecycleFailure):
    def __init__(self, company_id: str, attempts: int):
        super().__init__(
            code="ALLOCATION_EXHAUSTED",
            message=(
                f"Could not allocate a unique shipment ID for company {company_id} "
                f"after {attempts} attempts."
            ),
            status_code=503,
        )
        self.company_id = company_id
        self.attempts = attempts


class PersistenceFailed(ShipmentLifecycleFailure):
    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(code="PERSISTENCE_FAILED", message=message, status_code=500)
        self.cause = cause


class EditorMismatch(ShipmentLifecycleFailure):
    def __init__(self, message: str):
        super().__init__(code="EDITOR_MISMATCH", message=message, status_code=409)


class DraftNotFound(ShipmentLifecycleFailure):
    def __init__(self, message: str = "Draft shipment not found."):
        super().__init__(code="DRAFT_NOT_FOUND", message=message, status_code=404)
