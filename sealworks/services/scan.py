"""
scan.py - Public scan handling: record the scan, then resolve the redirect.

Unlike verification this path mutates: it expires overdue tokens and bumps
scan_count in place. Terminal tokens are reported, never redirected.
"""

import logging

from sqlalchemy import update
from sqlalchemy.orm import Session as DBSession

from sealworks.core.clock import utcnow
from sealworks.errors import TokenNotFoundError
from sealworks.models import Token, TokenStatus
from sealworks.services.audit import AuditLog
from sealworks.services.redirects import RedirectResolver
from sealworks.services.token_issuer import extract_token
from sealworks.services.verification import TERMINAL_STATES, SealState, resolve_state

logger = logging.getLogger(__name__)


class ScanService:
    def __init__(self, db: DBSession):
        self.db = db
        self.audit = AuditLog(db)
        self.resolver = RedirectResolver(db)

    def resolve_scan(self, value: str) -> dict:
        token_value = extract_token(value)
        token = self.db.query(Token).filter(Token.token == token_value).first()
        if token is None:
            raise TokenNotFoundError(
                "Token not found",
                {"token": token_value},
                audit={
                    "entity_type": "token",
                    "entity_id": token_value,
                    "action": "seal_scan_invalid",
                    "metadata": {"source": "public_scan"},
                },
            )

        now = utcnow()
        state = resolve_state(token, now)
        if state == SealState.EXPIRED and token.status != TokenStatus.EXPIRED.value:
            token.status = TokenStatus.EXPIRED.value
            self.db.flush()
            self.audit.record("token", token.id, "token_expired", None, {"expires_at": token.expires_at.isoformat()})

        if state in TERMINAL_STATES:
            return {"token": token.token, "state": state.value, "redirectUrl": None, "ruleId": None}

        self.db.execute(
            update(Token)
            .where(Token.id == token.id)
            .values(scan_count=Token.scan_count + 1, last_scanned_at=now)
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(token)

        rule = self.resolver.resolve(token, now)
        logger.info("Scan of token %s resolved to rule %s", token.token[-8:], rule.id if rule else None)
        return {
            "token": token.token,
            "state": state.value,
            "scanCount": token.scan_count,
            "redirectUrl": rule.redirect_url if rule else None,
            "ruleId": rule.id if rule else None,
        }
