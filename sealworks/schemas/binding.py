"""
binding.py - Pydantic schemas for binding sessions and scan binding.

Scan outcomes are returned as plain dicts: their shape depends on the
outcome status (bound / already_bound / rebind_required / rebound).
"""

from datetime import datetime

from pydantic import Field

from .base import CamelModel


class StartSessionRequest(CamelModel):
    product_id: int


class SessionResponse(CamelModel):
    id: str
    partner_id: int
    product_id: int
    status: str
    scan_count: int
    started_at: datetime
    expires_at: datetime
    ended_at: datetime | None = None


class BindFromScanRequest(CamelModel):
    token: str = Field(..., min_length=1, max_length=2048)


class ConfirmRebindRequest(CamelModel):
    token_id: int
    existing_binding_id: str = Field(..., min_length=1)


class BindingResponse(CamelModel):
    id: str
    token_id: int
    product_id: int
    is_rebind: bool
    previous_binding_id: str | None = None
    bound_at: datetime
