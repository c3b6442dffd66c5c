from datetime import datetime

from .base import CamelModel


class SheetResponse(CamelModel):
    id: str
    status: str
    token_count: int
    tokens_hash: str
    seal_version: str
    partner_id: int | None = None
    assigned_at: datetime | None = None
    revoked_at: datetime | None = None
    revoke_reason: str | None = None
    created_at: datetime


class AssignSheetRequest(CamelModel):
    partner_id: int


class RevokeSheetRequest(CamelModel):
    reason: str


class IntegrityResponse(CamelModel):
    sheet_id: str
    ok: bool
    stored_hash: str
    computed_hash: str
    stored_count: int
    linked_count: int
