"""
verification.py - Public, read-only ground truth for a token.

CRITICAL: This surface never consults redirect rules and never writes:
no scan counters, no status changes, no audit entries.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy.orm import Session as DBSession

from sealworks.core.clock import utcnow
from sealworks.errors import TokenNotFoundError
from sealworks.models import SheetStatus, Token, TokenStatus
from sealworks.services.token_issuer import extract_token


class SealState(str, Enum):
    REVOKED = "REVOKED"
    EXPIRED = "EXPIRED"
    SHEET_REVOKED = "SHEET_REVOKED"
    SHEET_UNASSIGNED = "SHEET_UNASSIGNED"
    UNBOUND = "UNBOUND"
    ACTIVE = "ACTIVE"


TERMINAL_STATES = (SealState.REVOKED, SealState.EXPIRED, SealState.SHEET_REVOKED)


def resolve_state(token: Token, now: datetime | None = None) -> SealState:
    """First matching state wins, in the order of SealState."""
    if token.status == TokenStatus.REVOKED.value:
        return SealState.REVOKED
    if token.is_expired(now or utcnow()):
        return SealState.EXPIRED
    sheet = token.sheet
    if sheet is not None and sheet.status == SheetStatus.REVOKED.value:
        return SealState.SHEET_REVOKED
    if sheet is None or sheet.status == SheetStatus.UNASSIGNED.value:
        return SealState.SHEET_UNASSIGNED
    if token.binding is None:
        return SealState.UNBOUND
    return SealState.ACTIVE


class VerificationService:
    def __init__(self, db: DBSession):
        self.db = db

    def verify(self, value: str) -> dict:
        token_value = extract_token(value)
        token = self.db.query(Token).filter(Token.token == token_value).first()
        if token is None:
            raise TokenNotFoundError("Token not found", {"token": token_value})

        state = resolve_state(token)
        result = {
            "token": token.token,
            "state": state.value,
            "scanCount": token.scan_count,
            "entityType": token.entity_type,
            "entityId": token.entity_id,
            "sheetStatus": token.sheet.status if token.sheet is not None else None,
            "boundProduct": None,
        }
        if state == SealState.ACTIVE:
            result["boundProduct"] = token.binding.product.summary()
        return result
