from __future__ import annotations

from fastapi import Request

from app.schemas.request_context import RequestContext


def _header(request: Request, *names: str) -> str | None:
    for name in names:
        value = (request.headers.get(name) or "").strip()
        if value:
            return value
    return None


def get_request_context(request: Request) -> RequestContext:
    """
    Company and user for the current call.

    Missing values are passed through as None; the lifecycle service decides
    which operations require them.
    """
    return RequestContext(
        company_id=_header(request, "X-Company-ID"),
        user_id=_header(request, "X-User-ID", "X-User-Email"),
    )
