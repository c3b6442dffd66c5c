"""
token_issuer.py - Batch minting and revocation of seal tokens.

CRITICAL INVARIANTS:
- A batch is all-or-nothing: over-cap or invalid input persists nothing
- Tokens are globally unique for the life of the system (DB unique constraint)
- The mint-time entity label is never rewritten by binding activity
- REVOKED is terminal
"""

import logging
import secrets
import string
from datetime import datetime

from sqlalchemy import func, update
from sqlalchemy.orm import Session as DBSession

from sealworks.config import settings
from sealworks.core.clock import utcnow
from sealworks.errors import NotFoundError, TerminalStateError, ValidationError
from sealworks.models import Token, TokenStatus
from sealworks.services.audit import AuditLog

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "qr_"
TOKEN_BODY_LENGTH = 22
BASE62_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase


def generate_token() -> str:
    """qr_ followed by 22 base62 characters drawn from the OS CSPRNG."""
    return TOKEN_PREFIX + "".join(secrets.choice(BASE62_ALPHABET) for _ in range(TOKEN_BODY_LENGTH))


def extract_token(value: str) -> str:
    """Accept a raw token or a scanned seal URL; the token is the last path segment."""
    candidate = (value or "").strip()
    if "/" in candidate:
        candidate = candidate.split("?", 1)[0].split("#", 1)[0].rstrip("/")
        candidate = candidate.rsplit("/", 1)[-1]
    if not candidate:
        raise ValidationError("Token is required", {"value": value})
    return candidate


class TokenIssuer:
    def __init__(self, db: DBSession):
        self.db = db
        self.audit = AuditLog(db)

    def create_token_batch(
        self,
        entity_type: str,
        entity_id: str,
        quantity: int,
        actor: str | None = None,
        sheet_id: str | None = None,
        expires_at: datetime | None = None,
        version_id: str | None = None,
    ) -> list[Token]:
        """
        Mint `quantity` tokens labelled with the nominal entity.

        Rows are flushed, not committed: the caller owns the transaction so
        that mint, sheet creation and linkage commit together.

        Raises:
            ValidationError: Missing entity, or quantity outside 1..MAX_TOKENS_PER_BATCH.
        """
        if not entity_type or not entity_id:
            raise ValidationError(
                "entityType and entityId are required",
                {"entity_type": entity_type, "entity_id": entity_id},
            )
        if quantity < 1 or quantity > settings.MAX_TOKENS_PER_BATCH:
            raise ValidationError(
                f"quantity must be between 1 and {settings.MAX_TOKENS_PER_BATCH}",
                {"quantity": quantity, "max": settings.MAX_TOKENS_PER_BATCH},
            )

        values: set[str] = set()
        while len(values) < quantity:
            values.add(generate_token())

        tokens = [
            Token(
                token=value,
                entity_type=entity_type,
                entity_id=str(entity_id),
                version_id=version_id,
                status=TokenStatus.UNBOUND.value,
                scan_count=0,
                sheet_id=sheet_id,
                expires_at=expires_at,
                created_by=actor,
            )
            for value in sorted(values)
        ]
        self.db.add_all(tokens)
        self.db.flush()

        self.audit.record(
            "token_batch",
            f"{entity_type}:{entity_id}",
            "tokens_minted",
            actor,
            {
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "version_id": version_id,
                "quantity": quantity,
            },
        )
        logger.info("Minted %d tokens for %s:%s", quantity, entity_type, entity_id)
        return tokens

    def get_by_value(self, value: str, lock: bool = False) -> Token | None:
        query = self.db.query(Token).filter(Token.token == value)
        if lock:
            query = query.with_for_update()
        return query.first()

    def load_existing(self, values: list[str]) -> list[Token]:
        """Fetch tokens for rendering; every value must exist and be unrevoked."""
        rows = self.db.query(Token).filter(Token.token.in_(values)).all()
        found = {row.token: row for row in rows}
        missing = [v for v in values if v not in found]
        if missing:
            raise NotFoundError("Unknown tokens in request", {"missing": missing[:20], "count": len(missing)})
        revoked = [v for v in values if found[v].status == TokenStatus.REVOKED.value]
        if revoked:
            raise TerminalStateError("Revoked tokens cannot be printed", {"revoked": revoked[:20]})
        return [found[v] for v in values]

    def tokens_for_entity(
        self,
        entity_type: str,
        entity_id: str,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Token], int]:
        """Newest-first page of an entity's tokens, plus the unpaged total."""
        if status is not None and status not in {s.value for s in TokenStatus}:
            raise ValidationError(
                f"Unknown token status: {status}",
                {"allowed": [s.value for s in TokenStatus]},
            )
        if offset < 0:
            raise ValidationError("offset cannot be negative", {"offset": offset})

        query = self.db.query(Token).filter(
            Token.entity_type == entity_type, Token.entity_id == str(entity_id)
        )
        if status is not None:
            query = query.filter(Token.status == status)
        total = query.count()
        rows = (
            query.order_by(Token.created_at.desc(), Token.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return rows, total

    def token_stats(self, entity_type: str, entity_id: str) -> dict:
        rows = (
            self.db.query(Token.status, func.count(Token.id), func.coalesce(func.sum(Token.scan_count), 0))
            .filter(Token.entity_type == entity_type, Token.entity_id == str(entity_id))
            .group_by(Token.status)
            .all()
        )
        stats = {s.value.lower(): 0 for s in TokenStatus}
        stats.update(total=0, total_scans=0)
        for status, count, scans in rows:
            stats[status.lower()] = count
            stats["total"] += count
            stats["total_scans"] += int(scans)
        return stats

    def revoke_token(self, value: str, reason: str, actor: str | None = None) -> Token:
        if not reason or not reason.strip():
            raise ValidationError("A revocation reason is required")

        token = self.get_by_value(value, lock=True)
        if token is None:
            raise NotFoundError("Token not found", {"token": value})
        if token.status == TokenStatus.REVOKED.value:
            raise TerminalStateError("Token is already revoked", {"token": value})

        previous = token.status
        token.status = TokenStatus.REVOKED.value
        token.revoked_at = utcnow()
        token.revoked_reason = reason.strip()
        self.db.flush()

        self.audit.record(
            "token", token.id, "token_revoked", actor,
            {"reason": token.revoked_reason, "previous_status": previous},
        )
        logger.info("Token %s revoked by %s", token.token[-8:], actor)
        return token

    def revoke_tokens_for_entity(
        self, entity_type: str, entity_id: str, reason: str, actor: str | None = None
    ) -> int:
        if not reason or not reason.strip():
            raise ValidationError("A revocation reason is required")

        result = self.db.execute(
            update(Token)
            .where(
                Token.entity_type == entity_type,
                Token.entity_id == str(entity_id),
                Token.status != TokenStatus.REVOKED.value,
            )
            .values(
                status=TokenStatus.REVOKED.value,
                revoked_at=utcnow(),
                revoked_reason=reason.strip(),
            )
        )
        count = result.rowcount or 0

        self.audit.record(
            "token_batch", f"{entity_type}:{entity_id}", "tokens_revoked_for_entity", actor,
            {"reason": reason.strip(), "count": count},
        )
        return count
