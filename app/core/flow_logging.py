"""
Switchable INFO traces for the booking flow.

Traces are grouped by category, each gated by its own settings flag on top of
the master `FLOW_LOGS_ENABLED` switch:

- ``booking``: draft saves, the booking write, and the document pipeline
  summary. On by default.
- ``allocation``: one line per shipment ID the allocator hands out, including
  the attempt it succeeded on. Off by default since every draft save
  and booking allocates.

Traces without a category follow the master switch only.
"""

import logging

from app.core.config import settings

BOOKING = "booking"
ALLOCATION = "allocation"

FLOW_CATEGORIES: dict[str, str] = {
    BOOKING: "FLOW_LOGS_BOOKING_ENABLED",
    ALLOCATION: "FLOW_LOGS_ALLOCATION_ENABLED",
}


def flow_logs_enabled(category: str | None = None) -> bool:
    if not settings.FLOW_LOGS_ENABLED:
        return False
    flag = FLOW_CATEGORIES.get(category or "")
    return True if flag is None else bool(getattr(settings, flag))


def flow_info(
    logger: logging.Logger,
    msg: str,
    *args,
    category: str | None = None,
    **kwargs,
) -> None:
    if flow_logs_enabled(category):
        logger.info(msg, *args, **kwargs)
