"""
sessions.py - Partner-scoped, time-boxed binding sessions.

CRITICAL INVARIANTS:
- At most one ACTIVE session per partner (partial unique index; starting a
  new session terminates the old one first)
- scan_count moves only through an in-place SQL increment, so concurrent
  devices of the same partner never lose updates
- A session past expires_at is never returned as active
"""

import logging
from datetime import timedelta

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from sealworks.config import settings
from sealworks.core.clock import utcnow
from sealworks.errors import ConflictError, ForbiddenError, NotFoundError, TerminalStateError
from sealworks.models import Binding, BindingSession, BindingSessionStatus, Product
from sealworks.services.audit import AuditLog

logger = logging.getLogger(__name__)

RECENT_BINDINGS_LIMIT = 5


class BindingSessionManager:
    def __init__(self, db: DBSession):
        self.db = db
        self.audit = AuditLog(db)

    def _active_query(self, partner_id: int):
        return self.db.query(BindingSession).filter(
            BindingSession.partner_id == partner_id,
            BindingSession.status == BindingSessionStatus.ACTIVE.value,
        )

    def start_session(self, partner_id: int, product_id: int, actor: str | None = None) -> BindingSession:
        product = self.db.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product not found", {"product_id": product_id})
        if product.partner_id != partner_id:
            raise ForbiddenError("Product belongs to another partner", {"product_id": product_id})

        now = utcnow()
        previous = self._active_query(partner_id).with_for_update().first()
        if previous is not None:
            previous.status = BindingSessionStatus.TERMINATED.value
            previous.ended_at = now
            self.db.flush()
            self.audit.record(
                "binding_session", previous.id, "binding_session_auto_terminated", actor,
                {"partner_id": partner_id, "scan_count": previous.scan_count},
            )

        session = BindingSession(
            partner_id=partner_id,
            product_id=product_id,
            status=BindingSessionStatus.ACTIVE.value,
            scan_count=0,
            started_by=actor,
            started_at=now,
            expires_at=now + timedelta(minutes=settings.BINDING_SESSION_MINUTES),
        )
        try:
            with self.db.begin_nested():
                self.db.add(session)
        except IntegrityError:
            raise ConflictError(
                "Another binding session was started concurrently for this partner",
                {"partner_id": partner_id},
            )

        self.audit.record(
            "binding_session", session.id, "binding_session_started", actor,
            {
                "partner_id": partner_id,
                "product_id": product_id,
                "expires_at": session.expires_at.isoformat(),
                "replaced_session_id": previous.id if previous is not None else None,
            },
        )
        logger.info("Binding session %s started for partner %s", session.id, partner_id)
        return session

    def get_active_session(self, partner_id: int) -> BindingSession | None:
        """The partner's live session, or None. An overdue session is marked EXPIRED on the way."""
        session = self._active_query(partner_id).first()
        if session is None:
            return None
        if session.expires_at <= utcnow():
            session.status = BindingSessionStatus.EXPIRED.value
            session.ended_at = session.expires_at
            self.db.flush()
            self.audit.record(
                "binding_session", session.id, "binding_session_expired", None,
                {"partner_id": partner_id, "scan_count": session.scan_count},
            )
            return None
        return session

    def get_session(self, session_id: str, partner_id: int) -> BindingSession:
        session = self.db.get(BindingSession, session_id)
        if session is None:
            raise NotFoundError("Binding session not found", {"session_id": session_id})
        if session.partner_id != partner_id:
            raise ForbiddenError("Binding session belongs to another partner", {"session_id": session_id})
        return session

    def end_session(self, session_id: str, partner_id: int, actor: str | None = None) -> BindingSession:
        session = self.get_session(session_id, partner_id)
        if session.status != BindingSessionStatus.ACTIVE.value:
            raise TerminalStateError(
                "Binding session is not active",
                {"session_id": session_id, "status": session.status},
            )
        session.status = BindingSessionStatus.TERMINATED.value
        session.ended_at = utcnow()
        self.db.flush()
        self.audit.record(
            "binding_session", session.id, "binding_session_ended", actor,
            {"scan_count": session.scan_count},
        )
        return session

    def expire_sessions(self) -> int:
        now = utcnow()
        result = self.db.execute(
            update(BindingSession)
            .where(
                BindingSession.status == BindingSessionStatus.ACTIVE.value,
                BindingSession.expires_at <= now,
            )
            .values(status=BindingSessionStatus.EXPIRED.value, ended_at=now)
            .execution_options(synchronize_session=False)
        )
        count = result.rowcount or 0
        if count:
            logger.info("Expired %d binding session(s)", count)
        return count

    def increment_scan_count(self, session_id: str) -> None:
        self.db.execute(
            update(BindingSession)
            .where(BindingSession.id == session_id)
            .values(scan_count=BindingSession.scan_count + 1)
            .execution_options(synchronize_session=False)
        )

    def recent_bindings(self, session_id: str, partner_id: int, limit: int = RECENT_BINDINGS_LIMIT) -> list[Binding]:
        self.get_session(session_id, partner_id)
        return (
            self.db.query(Binding)
            .filter(Binding.session_id == session_id)
            .order_by(Binding.bound_at.desc(), Binding.id)
            .limit(limit)
            .all()
        )
