from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from app.core.config import settings
from app.core.flow_logging import ALLOCATION, flow_info
from app.services.draft_store import SHIPMENTS, DraftStore
from app.services.shipment_errors import AllocationExhausted, ValidationFailed

logger = logging.getLogger(__name__)

# 32 symbols: no 0/O or 1/I so codes survive being read out over the phone.
ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZ"
CODE_LENGTH = 6
SEQUENCE_WIDTH = 3


@dataclass(frozen=True)
class ParsedShipmentId:
    company_id: str
    code: str


def encode_sequence(value: int, width: int = SEQUENCE_WIDTH) -> str:
    """Base-32 encode `value` into exactly `width` alphabet symbols (wraps)."""
    base = len(ALPHABET)
    value %= base**width
    symbols = []
    for _ in range(width):
        value, remainder = divmod(value, base)
        symbols.append(ALPHABET[remainder])
    return "".join(reversed(symbols))


def parse(shipment_id: str | None) -> ParsedShipmentId | None:
    if not isinstance(shipment_id, str) or "-" not in shipment_id:
        return None
    company_id, code = shipment_id.rsplit("-", 1)
    if not company_id:
        return None
    if len(code) != CODE_LENGTH or any(ch not in ALPHABET for ch in code):
        return None
    return ParsedShipmentId(company_id=company_id, code=code)


def is_well_formed(shipment_id: str | None) -> bool:
    return parse(shipment_id) is not None


class ShipmentIdAllocator:
    """
    Produces `{company_id}-{CODE}` identifiers.

    The first attempt seeds the code with the company's record count so IDs
    sort roughly by creation; every retry after a collision is fully random.
    Uniqueness is check-then-act against the store: two allocators racing on
    the same candidate can both pass the check. The unique index on
    shipment_record.shipment_id makes the loser fail at write time.
    """

    def __init__(
        self,
        store: DraftStore,
        *,
        max_attempts: int | None = None,
        rng: random.Random | None = None,
    ):
        self.store = store
        self.max_attempts = max_attempts or settings.SHIPMENT_ID_MAX_ATTEMPTS
        self.rng = rng or random.SystemRandom()

    def _random_symbols(self, count: int) -> str:
        return "".join(self.rng.choice(ALPHABET) for _ in range(count))

    def _sequential_code(self, company_id: str) -> str:
        existing = self.store.count_by_field(SHIPMENTS, "company_id", company_id)
        prefix = encode_sequence(existing + 1)
        return prefix + self._random_symbols(CODE_LENGTH - SEQUENCE_WIDTH)

    def _random_code(self) -> str:
        return self._random_symbols(CODE_LENGTH)

    def is_taken(self, shipment_id: str) -> bool:
        return bool(self.store.find_by_field(SHIPMENTS, "shipment_id", shipment_id, 1))

    def allocate(self, company_id: str) -> str:
        company_id = (company_id or "").strip()
        if not company_id:
            raise ValidationFailed("Company context is required to allocate a shipment ID.")

        for attempt in range(1, self.max_attempts + 1):
            code = self._sequential_code(company_id) if attempt == 1 else self._random_code()
            candidate = f"{company_id}-{code}"
            if not self.is_taken(candidate):
                flow_info(
                    logger,
                    "Allocated shipment_id=%s company_id=%s attempt=%s",
                    candidate,
                    company_id,
                    attempt,
                    category=ALLOCATION,
                )
                return candidate
            logger.info(
                "Shipment ID collision company_id=%s candidate=%s attempt=%s",
                company_id,
                candidate,
                attempt,
            )

        logger.error(
            "Shipment ID allocation exhausted company_id=%s attempts=%s",
            company_id,
            self.max_attempts,
        )
        raise AllocationExhausted(company_id, self.max_attempts)
