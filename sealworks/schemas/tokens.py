"""
tokens.py - Pydantic schemas for token minting and revocation.

Quantity bounds are enforced by the issuer, not here, so an over-cap
request is rejected with the VALIDATION code and nothing is minted.
"""

from datetime import datetime

from pydantic import Field

from .base import CamelModel
from .redirects import RedirectRuleResponse


class TokenBatchRequest(CamelModel):
    entity_type: str = Field(..., min_length=1, max_length=50)
    entity_id: str = Field(..., min_length=1, max_length=100)
    quantity: int
    version_id: str | None = Field(None, max_length=100)


class TokenBatchResponse(CamelModel):
    entity_type: str
    entity_id: str
    version_id: str | None = None
    count: int
    tokens: list[str]


class RevokeTokenRequest(CamelModel):
    reason: str


class RevokeByEntityRequest(CamelModel):
    entity_type: str
    entity_id: str
    reason: str


class RevokeByEntityResponse(CamelModel):
    revoked_count: int


class TokenSummary(CamelModel):
    token: str
    status: str
    entity_type: str
    entity_id: str
    version_id: str | None = None
    sheet_id: str | None = None
    scan_count: int
    last_scanned_at: datetime | None = None
    created_at: datetime


class TokenStats(CamelModel):
    total: int
    unbound: int
    active: int
    revoked: int
    expired: int
    total_scans: int


class EntityTokensResponse(CamelModel):
    tokens: list[TokenSummary]
    total: int
    stats: TokenStats
    active_rule: RedirectRuleResponse | None = None
