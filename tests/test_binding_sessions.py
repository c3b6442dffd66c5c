"""
Tests for partner binding sessions.
"""

from datetime import timedelta

import pytest

from sealworks.core.clock import utcnow
from sealworks.errors import ForbiddenError, NotFoundError, TerminalStateError
from sealworks.models import BindingSession, BindingSessionStatus
from sealworks.services.binding import BindingSessionManager


class TestBindingSessions:
    def test_start_session(self, db, partner, products):
        session = BindingSessionManager(db).start_session(partner.id, products[0].id, actor="p-1")
        db.commit()

        assert session.status == BindingSessionStatus.ACTIVE.value
        assert session.scan_count == 0
        assert session.expires_at > session.started_at

    def test_new_session_terminates_previous(self, db, partner, products):
        manager = BindingSessionManager(db)
        first = manager.start_session(partner.id, products[0].id)
        db.commit()
        second = manager.start_session(partner.id, products[1].id)
        db.commit()

        db.refresh(first)
        assert first.status == BindingSessionStatus.TERMINATED.value
        assert manager.get_active_session(partner.id).id == second.id
        active = db.query(BindingSession).filter(BindingSession.status == BindingSessionStatus.ACTIVE.value)
        assert active.count() == 1

    def test_sessions_are_per_partner(self, db, partner, products, other_partner, other_product):
        manager = BindingSessionManager(db)
        mine = manager.start_session(partner.id, products[0].id)
        theirs = manager.start_session(other_partner.id, other_product.id)
        db.commit()

        assert manager.get_active_session(partner.id).id == mine.id
        assert manager.get_active_session(other_partner.id).id == theirs.id

    def test_foreign_product_forbidden(self, db, partner, other_product):
        with pytest.raises(ForbiddenError):
            BindingSessionManager(db).start_session(partner.id, other_product.id)

    def test_unknown_product(self, db, partner):
        with pytest.raises(NotFoundError):
            BindingSessionManager(db).start_session(partner.id, 9999)

    def test_overdue_session_is_not_active(self, db, partner, products):
        manager = BindingSessionManager(db)
        session = manager.start_session(partner.id, products[0].id)
        session.expires_at = utcnow() - timedelta(seconds=1)
        db.commit()

        assert manager.get_active_session(partner.id) is None
        assert session.status == BindingSessionStatus.EXPIRED.value

    def test_expire_sessions_in_bulk(self, db, partner, products, other_partner, other_product):
        manager = BindingSessionManager(db)
        stale = manager.start_session(partner.id, products[0].id)
        stale.expires_at = utcnow() - timedelta(minutes=1)
        manager.start_session(other_partner.id, other_product.id)
        db.commit()

        assert manager.expire_sessions() == 1
        db.commit()
        db.refresh(stale)
        assert stale.status == BindingSessionStatus.EXPIRED.value

    def test_end_session(self, db, partner, products):
        manager = BindingSessionManager(db)
        session = manager.start_session(partner.id, products[0].id)

        ended = manager.end_session(session.id, partner.id)
        assert ended.status == BindingSessionStatus.TERMINATED.value
        assert ended.ended_at is not None

        with pytest.raises(TerminalStateError):
            manager.end_session(session.id, partner.id)

    def test_other_partner_cannot_end_session(self, db, partner, products, other_partner):
        manager = BindingSessionManager(db)
        session = manager.start_session(partner.id, products[0].id)

        with pytest.raises(ForbiddenError):
            manager.end_session(session.id, other_partner.id)

    def test_scan_count_increments_in_place(self, db, partner, products):
        manager = BindingSessionManager(db)
        session = manager.start_session(partner.id, products[0].id)

        manager.increment_scan_count(session.id)
        manager.increment_scan_count(session.id)
        db.commit()
        db.refresh(session)

        assert session.scan_count == 2

    def test_active_index_rejects_second_active_row(self, db, partner, products):
        from sqlalchemy.exc import IntegrityError

        now = utcnow()
        db.add(BindingSession(partner_id=partner.id, product_id=products[0].id, expires_at=now + timedelta(minutes=5)))
        db.commit()
        db.add(BindingSession(partner_id=partner.id, product_id=products[1].id, expires_at=now + timedelta(minutes=5)))

        with pytest.raises(IntegrityError):
            db.commit()