"""
state_machine.py - Scan-driven token binding.

Per token:  UNBOUND  <->  BOUND(X)

A scan inside the partner's active session (target product Y) resolves to:
- bound             UNBOUND -> BOUND(Y); new Binding row, session scan_count + 1
- already_bound     BOUND(Y); no row, no increment (rescans are harmless)
- rebind_required   BOUND(X), X != Y; read-only detection, returns the
                    existingBindingId needed to confirm
- error             TOKEN_NOT_FOUND, TERMINAL_STATE, FORBIDDEN, VALIDATION

Rebind is two-phase: confirm() only mutates if the token's current binding
is still the one returned at detection, otherwise CONFLICT. Confirming
deletes the old row and inserts a new one pointing back at it through
previous_binding_id.

CRITICAL INVARIANTS:
- At most one Binding per token (unique index); a lost insert race re-reads
  and resolves instead of failing or duplicating
- Detection never increments; confirmation always increments
- Bindings are never updated in place
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from sealworks.core.clock import utcnow
from sealworks.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    TerminalStateError,
    TokenNotFoundError,
    ValidationError,
)
from sealworks.models import Binding, BindingSession, Product, SheetStatus, Token, TokenStatus
from sealworks.services.audit import AuditLog
from sealworks.services.token_issuer import extract_token
from .sessions import BindingSessionManager

logger = logging.getLogger(__name__)

BOUND = "bound"
ALREADY_BOUND = "already_bound"
REBIND_REQUIRED = "rebind_required"
REBOUND = "rebound"

STALE_BINDING_MESSAGE = "Binding state has changed. Please rescan."
LINEAGE_ACTIONS = ("seal_bound_via_session", "seal_rebind_confirmed")


@dataclass
class ScanOutcome:
    status: str
    payload: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"status": self.status, **self.payload}


def short_hash(token_value: str) -> str:
    return token_value[-8:]


class BindingStateMachine:
    def __init__(self, db: DBSession):
        self.db = db
        self.audit = AuditLog(db)
        self.sessions = BindingSessionManager(db)

    # --- reads ---

    def _current_binding(self, token_id: int, lock: bool = False) -> Binding | None:
        query = (
            self.db.query(Binding)
            .filter(Binding.token_id == token_id)
            .execution_options(populate_existing=True)
        )
        if lock:
            query = query.with_for_update()
        return query.first()

    def _require_session(self, partner_id: int) -> BindingSession:
        session = self.sessions.get_active_session(partner_id)
        if session is None:
            raise NotFoundError("No active binding session", {"partner_id": partner_id})
        return session

    def _check_token(self, token: Token, partner_id: int) -> None:
        """Terminal and ownership checks shared by bind and confirm."""
        if token.status == TokenStatus.REVOKED.value:
            raise TerminalStateError("Seal has been revoked", {"token": short_hash(token.token), "state": "REVOKED"})
        if token.is_expired():
            raise TerminalStateError("Seal has expired", {"token": short_hash(token.token), "state": "EXPIRED"})
        sheet = token.sheet
        if sheet is None:
            raise ValidationError("Seal is not part of a seal sheet", {"token": short_hash(token.token)})
        if sheet.status == SheetStatus.REVOKED.value:
            raise ForbiddenError("Seal sheet has been revoked", {"sheet_id": sheet.id})
        if sheet.partner_id != partner_id:
            raise ForbiddenError("Seal sheet is not assigned to this partner", {"sheet_id": sheet.id})

    # --- phase 1: scan ---

    def bind_from_scan(self, partner_id: int, scanned: str, actor: str | None = None) -> ScanOutcome:
        session = self._require_session(partner_id)
        token_value = extract_token(scanned)

        token = self.db.query(Token).filter(Token.token == token_value).with_for_update().first()
        if token is None:
            raise TokenNotFoundError(
                "Seal not recognised",
                {"token": token_value},
                audit={
                    "entity_type": "token",
                    "entity_id": token_value,
                    "action": "seal_scan_invalid",
                    "actor": actor,
                    "metadata": {"partner_id": partner_id, "session_id": session.id},
                },
            )
        self._check_token(token, partner_id)

        current = self._current_binding(token.id, lock=True)
        if current is not None:
            return self._resolve_existing(token, current, session, actor)

        binding = Binding(
            token_id=token.id,
            product_id=session.product_id,
            partner_id=partner_id,
            session_id=session.id,
            is_rebind=False,
            bound_by=actor,
            bound_at=utcnow(),
        )
        try:
            with self.db.begin_nested():
                self.db.add(binding)
        except IntegrityError:
            # A concurrent scan bound this token first
            logger.info("Bind race lost for token %s; re-reading", short_hash(token.token))
            current = self._current_binding(token.id)
            if current is None:
                raise ConflictError(STALE_BINDING_MESSAGE, {"token_id": token.id})
            return self._resolve_existing(token, current, session, actor)

        token.status = TokenStatus.ACTIVE.value
        self.db.flush()
        self.sessions.increment_scan_count(session.id)

        self.audit.record(
            "token", token.id, "seal_bound_via_session", actor,
            {
                "bindingId": binding.id,
                "previousBindingId": None,
                "productId": session.product_id,
                "sessionId": session.id,
                "partnerId": partner_id,
            },
        )
        logger.info("Token %s bound to product %s", short_hash(token.token), session.product_id)
        return ScanOutcome(
            BOUND,
            {
                "bindingId": binding.id,
                "tokenId": token.id,
                "tokenShortHash": short_hash(token.token),
                "boundAt": binding.bound_at.isoformat(),
            },
        )

    def _resolve_existing(
        self, token: Token, current: Binding, session: BindingSession, actor: str | None
    ) -> ScanOutcome:
        if current.product_id == session.product_id:
            return ScanOutcome(
                ALREADY_BOUND,
                {
                    "bindingId": current.id,
                    "tokenId": token.id,
                    "tokenShortHash": short_hash(token.token),
                    "product": self._product_summary(current.product_id),
                },
            )

        previous_product = self._product_summary(current.product_id)
        target_product = self._product_summary(session.product_id)
        self.audit.record(
            "token", token.id, "seal_rebind_detected", actor,
            {
                "existingBindingId": current.id,
                "previousProductId": current.product_id,
                "targetProductId": session.product_id,
                "sessionId": session.id,
            },
        )
        return ScanOutcome(
            REBIND_REQUIRED,
            {
                "tokenId": token.id,
                "existingBindingId": current.id,
                "tokenShortHash": short_hash(token.token),
                "previousProduct": previous_product,
                "currentProduct": target_product,
            },
        )

    # --- phase 2: confirm ---

    def confirm_rebind(
        self, partner_id: int, token_id: int, existing_binding_id: str, actor: str | None = None
    ) -> ScanOutcome:
        if not token_id or not existing_binding_id:
            raise ValidationError("tokenId and existingBindingId are required")

        session = self._require_session(partner_id)
        token = self.db.query(Token).filter(Token.id == token_id).with_for_update().first()
        if token is None:
            raise TokenNotFoundError("Seal not recognised", {"token_id": token_id})
        self._check_token(token, partner_id)

        current = self._current_binding(token.id, lock=True)
        if current is None or current.id != existing_binding_id:
            raise ConflictError(
                STALE_BINDING_MESSAGE,
                {
                    "token_id": token.id,
                    "expected_binding_id": existing_binding_id,
                    "current_binding_id": current.id if current is not None else None,
                },
            )
        if current.product_id == session.product_id:
            raise ConflictError(
                STALE_BINDING_MESSAGE,
                {"token_id": token.id, "reason": "already bound to the session product"},
            )

        previous_product = self._product_summary(current.product_id)
        previous_id = current.id
        replacement = Binding(
            token_id=token.id,
            product_id=session.product_id,
            partner_id=partner_id,
            session_id=session.id,
            is_rebind=True,
            previous_binding_id=previous_id,
            bound_by=actor,
            bound_at=utcnow(),
        )
        try:
            with self.db.begin_nested():
                self.db.delete(current)
                self.db.flush()
                self.db.add(replacement)
        except IntegrityError:
            raise ConflictError(STALE_BINDING_MESSAGE, {"token_id": token.id})

        self.sessions.increment_scan_count(session.id)
        self.audit.record(
            "token", token.id, "seal_rebind_confirmed", actor,
            {
                "bindingId": replacement.id,
                "previousBindingId": previous_id,
                "previousProductId": previous_product["id"],
                "productId": session.product_id,
                "sessionId": session.id,
                "partnerId": partner_id,
            },
        )
        logger.info(
            "Token %s rebound %s -> %s", short_hash(token.token), previous_product["id"], session.product_id
        )
        return ScanOutcome(
            REBOUND,
            {
                "bindingId": replacement.id,
                "previousBindingId": previous_id,
                "tokenId": token.id,
                "tokenShortHash": short_hash(token.token),
                "boundAt": replacement.bound_at.isoformat(),
                "previousProduct": previous_product,
                "newProduct": self._product_summary(session.product_id),
            },
        )

    # --- history ---

    def binding_lineage(self, token_id: int, partner_id: int | None = None) -> list[dict]:
        """Current binding first, then each predecessor, rebuilt from the audit trail."""
        token = self.db.get(Token, token_id)
        if token is None:
            raise TokenNotFoundError("Seal not recognised", {"token_id": token_id})
        if partner_id is not None and (token.sheet is None or token.sheet.partner_id != partner_id):
            raise ForbiddenError("Seal is not assigned to this partner", {"token_id": token_id})

        current = self._current_binding(token_id)
        if current is None:
            return []

        entries = self.audit.entries_for("token", token_id, actions=LINEAGE_ACTIONS)
        by_id = {e.metadata_json.get("bindingId"): e.metadata_json for e in entries if e.metadata_json}

        lineage = []
        binding_id = current.id
        while binding_id is not None and len(lineage) <= len(by_id):
            record = by_id.get(binding_id, {})
            lineage.append(
                {
                    "bindingId": binding_id,
                    "previousBindingId": record.get("previousBindingId"),
                    "productId": record.get("productId"),
                }
            )
            binding_id = record.get("previousBindingId")
        return lineage

    def _product_summary(self, product_id: int) -> dict:
        product = self.db.get(Product, product_id)
        if product is None:
            return {"id": product_id, "name": None, "sku": None}
        return product.summary()
