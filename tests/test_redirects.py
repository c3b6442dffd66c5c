"""
Tests for redirect rules, scan resolution and the read-only verification surface.
"""

from datetime import timedelta

import pytest

from sealworks.core.clock import utcnow
from sealworks.errors import ConflictError, NotFoundError, TokenNotFoundError, ValidationError
from sealworks.models import AuditEntry, RedirectRule, Token
from sealworks.services.binding import BindingSessionManager, BindingStateMachine
from sealworks.services.redirects import RedirectResolver, RedirectRuleService
from sealworks.services.scan import ScanService
from sealworks.services.seal_sheets import SealSheetService
from sealworks.services.token_issuer import TokenIssuer
from sealworks.services.verification import SealState, VerificationService, resolve_state


@pytest.fixture
def bound_token(db, partner, products, make_sheet):
    """A token on an assigned sheet, bound to the first product."""
    _, tokens = make_sheet(1, partner=partner)
    BindingSessionManager(db).start_session(partner.id, products[0].id)
    BindingStateMachine(db).bind_from_scan(partner.id, tokens[0].token)
    db.commit()
    return tokens[0]


class TestRedirectRules:
    def test_scope_must_be_exactly_one(self, db):
        service = RedirectRuleService(db)

        with pytest.raises(ValidationError):
            service.create_rule("https://a.example", entity_type="product", entity_id="1", version_id="seal-v1")
        with pytest.raises(ValidationError):
            service.create_rule("https://a.example")
        with pytest.raises(ValidationError):
            service.create_rule("https://a.example", entity_type="product")

    def test_url_must_be_absolute_http(self, db):
        with pytest.raises(ValidationError):
            RedirectRuleService(db).create_rule("ftp://files.example/x", version_id="seal-v1")

    def test_window_must_be_ordered(self, db):
        now = utcnow()

        with pytest.raises(ValidationError):
            RedirectRuleService(db).create_rule(
                "https://a.example", version_id="seal-v1", starts_at=now, ends_at=now - timedelta(hours=1)
            )

    def test_one_active_rule_per_scope(self, db):
        service = RedirectRuleService(db)
        first = service.create_rule("https://a.example", entity_type="product", entity_id="1")

        with pytest.raises(ConflictError):
            service.create_rule("https://b.example", entity_type="product", entity_id="1")

        service.deactivate_rule(first.id)
        replacement = service.create_rule("https://b.example", entity_type="product", entity_id="1")
        assert replacement.id != first.id

    def test_deactivate_twice(self, db):
        service = RedirectRuleService(db)
        rule = service.create_rule("https://a.example", version_id="seal-v1")
        service.deactivate_rule(rule.id)

        with pytest.raises(ConflictError):
            service.deactivate_rule(rule.id)

    def test_list_filters(self, db):
        service = RedirectRuleService(db)
        service.create_rule("https://a.example", entity_type="product", entity_id="1")
        service.create_rule("https://b.example", version_id="seal-v1")

        assert len(service.list_rules()) == 2
        assert [r.version_id for r in service.list_rules(version_id="seal-v1")] == ["seal-v1"]
        assert len(service.list_rules(entity_type="product", active=True)) == 1


class TestFallback:
    def test_upsert_keeps_single_row(self, db):
        service = RedirectRuleService(db)

        first = service.upsert_fallback("https://home.example", actor="admin-1")
        db.commit()
        second = service.upsert_fallback("https://home.example/v2", actor="admin-1")
        db.commit()

        assert first.id == second.id
        assert db.query(RedirectRule).filter(RedirectRule.is_fallback.is_(True)).count() == 1
        assert service.get_fallback().redirect_url == "https://home.example/v2"

    def test_disable_and_reenable(self, db):
        service = RedirectRuleService(db)

        with pytest.raises(NotFoundError):
            service.disable_fallback()

        service.upsert_fallback("https://home.example")
        disabled = service.disable_fallback()
        assert disabled.active is False

        reenabled = service.upsert_fallback("https://home.example")
        assert reenabled.active is True
        assert reenabled.id == disabled.id

    def test_index_rejects_second_fallback_row(self, db):
        from sqlalchemy.exc import IntegrityError

        db.add(RedirectRule(is_fallback=True, redirect_url="https://a.example"))
        db.commit()
        db.add(RedirectRule(is_fallback=True, redirect_url="https://b.example"))

        with pytest.raises(IntegrityError):
            db.commit()


class TestResolutionPrecedence:
    def test_product_then_entity_then_version_then_fallback(self, db, products, bound_token):
        service = RedirectRuleService(db)
        resolver = RedirectResolver(db)
        product_rule = service.create_rule(
            "https://p.example", entity_type="product", entity_id=str(products[0].id)
        )
        entity_rule = service.create_rule("https://e.example", entity_type="batch", entity_id="b-1")
        version_rule = service.create_rule("https://v.example", version_id="label-v1")
        fallback = service.upsert_fallback("https://f.example")
        db.commit()

        assert resolver.resolve(bound_token).id == product_rule.id
        service.deactivate_rule(product_rule.id)
        assert resolver.resolve(bound_token).id == entity_rule.id
        service.deactivate_rule(entity_rule.id)
        assert resolver.resolve(bound_token).id == version_rule.id
        service.deactivate_rule(version_rule.id)
        assert resolver.resolve(bound_token).id == fallback.id
        service.disable_fallback()
        assert resolver.resolve(bound_token) is None

    def test_out_of_window_rule_is_skipped(self, db, bound_token):
        service = RedirectRuleService(db)
        now = utcnow()
        service.create_rule(
            "https://later.example", entity_type="batch", entity_id="b-1", starts_at=now + timedelta(days=1)
        )
        fallback = service.upsert_fallback("https://f.example")

        assert RedirectResolver(db).resolve(bound_token, now).id == fallback.id
        assert RedirectResolver(db).resolve(bound_token, now + timedelta(days=2)).redirect_url == "https://later.example"

    def test_window_end_is_inclusive(self, db, bound_token):
        now = utcnow()
        rule = RedirectRuleService(db).create_rule(
            "https://until.example",
            entity_type="batch",
            entity_id="b-1",
            starts_at=now - timedelta(hours=1),
            ends_at=now,
        )
        db.commit()

        resolver = RedirectResolver(db)
        assert resolver.resolve(bound_token, now).id == rule.id
        assert resolver.resolve(bound_token, now + timedelta(microseconds=1)) is None

    def test_version_rule_matches_only_tokens_minted_with_that_version(self, db, make_sheet):
        _, (current,) = make_sheet(1, entity=("batch", "b-2"), version_id="label-v2")
        _, (older,) = make_sheet(1, entity=("batch", "b-3"), version_id="label-v1")
        rule = RedirectRuleService(db).create_rule("https://v2.example", version_id="label-v2")
        db.commit()

        resolver = RedirectResolver(db)
        assert resolver.resolve(current).id == rule.id
        assert resolver.resolve(older) is None

    def test_sheet_seal_version_does_not_select_version_rules(self, db, make_sheet):
        _, (token,) = make_sheet(1, version_id=None)
        RedirectRuleService(db).create_rule("https://v.example", version_id="seal-v1")
        db.commit()

        assert token.sheet.seal_version == "seal-v1"
        assert RedirectResolver(db).resolve(token) is None


class TestScan:
    def test_scan_counts_and_redirects(self, db, bound_token):
        RedirectRuleService(db).upsert_fallback("https://f.example")
        db.commit()

        result = ScanService(db).resolve_scan(bound_token.token)
        db.commit()

        assert result["state"] == SealState.ACTIVE.value
        assert result["redirectUrl"] == "https://f.example"
        assert result["scanCount"] == 1
        db.refresh(bound_token)
        assert bound_token.scan_count == 1
        assert bound_token.last_scanned_at is not None

    def test_revoked_token_is_never_redirected(self, db, bound_token):
        RedirectRuleService(db).upsert_fallback("https://f.example")
        TokenIssuer(db).revoke_token(bound_token.token, "counterfeit report")
        db.commit()

        result = ScanService(db).resolve_scan(bound_token.token)

        assert result["state"] == SealState.REVOKED.value
        assert result["redirectUrl"] is None

    def test_overdue_token_is_marked_expired(self, db, bound_token):
        bound_token.expires_at = utcnow() - timedelta(minutes=1)
        db.commit()

        result = ScanService(db).resolve_scan(bound_token.token)
        db.commit()

        assert result["state"] == SealState.EXPIRED.value
        db.refresh(bound_token)
        assert bound_token.status == "EXPIRED"
        assert bound_token.scan_count == 0

    def test_unknown_token(self, db):
        with pytest.raises(TokenNotFoundError) as exc:
            ScanService(db).resolve_scan("qr_nothing")

        assert exc.value.audit["entity_id"] == "qr_nothing"


class TestVerification:
    def test_verification_is_read_only_and_ignores_redirects(self, db, products, bound_token):
        RedirectRuleService(db).upsert_fallback("https://f.example")
        db.commit()
        audit_before = db.query(AuditEntry).count()

        result = VerificationService(db).verify(bound_token.token)
        db.commit()

        assert result["state"] == SealState.ACTIVE.value
        assert result["boundProduct"]["id"] == products[0].id
        assert "redirectUrl" not in result
        assert db.query(AuditEntry).count() == audit_before
        assert db.query(Token).filter(Token.id == bound_token.id).one().scan_count == 0

    def test_state_order(self, db, partner, make_sheet):
        sheet, tokens = make_sheet(2)
        token = tokens[0]

        assert resolve_state(token) == SealState.SHEET_UNASSIGNED
        SealSheetService(db).assign_sheet(sheet.id, partner.id)
        assert resolve_state(token) == SealState.UNBOUND
        SealSheetService(db).revoke_sheet(sheet.id, "lost")
        assert resolve_state(token) == SealState.SHEET_REVOKED
        token.expires_at = utcnow() - timedelta(seconds=1)
        assert resolve_state(token) == SealState.EXPIRED
        TokenIssuer(db).revoke_token(token.token, "lost")
        assert resolve_state(token) == SealState.REVOKED

    def test_unknown_token(self, db):
        with pytest.raises(TokenNotFoundError):
            VerificationService(db).verify("qr_nothing")
