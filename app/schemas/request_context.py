from __future__ import annotations

from pydantic import BaseModel


class RequestContext(BaseModel):
    company_id: str | None = None
    user_id: str | None = None
