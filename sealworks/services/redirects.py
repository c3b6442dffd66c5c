"""
redirects.py - Redirect rules and scan-time resolution.

Resolution precedence for a scanned token:
1. an active, in-window rule scoped to the token's entity (bound product
   first, then the mint-time entity label), newest first
2. an active, in-window rule scoped to the token's label-template version
3. the singleton fallback rule, if active and in window
4. no redirect

CRITICAL: the verification surface never calls into this module.
The single-fallback invariant is a partial unique index; the application
check here is only the friendly error path.
"""

import logging
from datetime import datetime
from urllib.parse import urlparse

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from sealworks.core.clock import utcnow
from sealworks.errors import ConflictError, NotFoundError, ValidationError
from sealworks.models import RedirectRule, Token
from sealworks.services.audit import AuditLog

logger = logging.getLogger(__name__)


def _validate_url(url: str) -> str:
    parsed = urlparse((url or "").strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError("redirectUrl must be an absolute http(s) URL", {"redirect_url": url})
    return url.strip()


def _validate_window(starts_at: datetime | None, ends_at: datetime | None) -> None:
    if starts_at is not None and ends_at is not None and starts_at >= ends_at:
        raise ValidationError(
            "startsAt must be before endsAt",
            {"starts_at": starts_at.isoformat(), "ends_at": ends_at.isoformat()},
        )


class RedirectRuleService:
    def __init__(self, db: DBSession):
        self.db = db
        self.audit = AuditLog(db)

    def create_rule(
        self,
        redirect_url: str,
        actor: str | None = None,
        entity_type: str | None = None,
        entity_id: str | None = None,
        version_id: str | None = None,
        reason: str | None = None,
        starts_at: datetime | None = None,
        ends_at: datetime | None = None,
    ) -> RedirectRule:
        has_entity = bool(entity_type) and bool(entity_id)
        if bool(entity_type) != bool(entity_id):
            raise ValidationError("entityType and entityId must be given together")
        if has_entity == bool(version_id):
            raise ValidationError("A rule is scoped to exactly one of an entity or a version")
        url = _validate_url(redirect_url)
        _validate_window(starts_at, ends_at)

        query = self.db.query(RedirectRule).filter(
            RedirectRule.active.is_(True), RedirectRule.is_fallback.is_(False)
        )
        if has_entity:
            query = query.filter(
                RedirectRule.entity_type == entity_type, RedirectRule.entity_id == str(entity_id)
            )
        else:
            query = query.filter(RedirectRule.version_id == version_id)
        existing = query.first()
        if existing is not None:
            raise ConflictError(
                "An active rule already exists for this scope",
                {"existing_rule_id": existing.id},
            )

        rule = RedirectRule(
            entity_type=entity_type if has_entity else None,
            entity_id=str(entity_id) if has_entity else None,
            version_id=version_id if not has_entity else None,
            redirect_url=url,
            reason=reason,
            starts_at=starts_at,
            ends_at=ends_at,
            active=True,
            is_fallback=False,
            created_by=actor,
        )
        self.db.add(rule)
        self.db.flush()
        self.audit.record("redirect_rule", rule.id, "redirect_rule_created", actor, self._snapshot(rule))
        return rule

    def get_rule(self, rule_id: str) -> RedirectRule:
        rule = self.db.get(RedirectRule, rule_id)
        if rule is None:
            raise NotFoundError("Redirect rule not found", {"rule_id": rule_id})
        return rule

    def deactivate_rule(self, rule_id: str, actor: str | None = None) -> RedirectRule:
        rule = self.get_rule(rule_id)
        if not rule.active:
            raise ConflictError("Redirect rule is already inactive", {"rule_id": rule_id})
        rule.active = False
        rule.deactivated_at = utcnow()
        self.db.flush()
        self.audit.record("redirect_rule", rule.id, "redirect_rule_deactivated", actor, {})
        return rule

    def list_rules(
        self,
        entity_type: str | None = None,
        entity_id: str | None = None,
        version_id: str | None = None,
        active: bool | None = None,
    ) -> list[RedirectRule]:
        query = self.db.query(RedirectRule).filter(RedirectRule.is_fallback.is_(False))
        if entity_type:
            query = query.filter(RedirectRule.entity_type == entity_type)
        if entity_id:
            query = query.filter(RedirectRule.entity_id == str(entity_id))
        if version_id:
            query = query.filter(RedirectRule.version_id == version_id)
        if active is not None:
            query = query.filter(RedirectRule.active.is_(active))
        return query.order_by(RedirectRule.created_at.desc(), RedirectRule.id).all()

    def get_fallback(self) -> RedirectRule | None:
        return self.db.query(RedirectRule).filter(RedirectRule.is_fallback.is_(True)).first()

    def upsert_fallback(
        self,
        redirect_url: str,
        actor: str | None = None,
        reason: str | None = None,
        starts_at: datetime | None = None,
        ends_at: datetime | None = None,
    ) -> RedirectRule:
        url = _validate_url(redirect_url)
        _validate_window(starts_at, ends_at)

        rule = self.get_fallback()
        if rule is not None:
            rule.redirect_url = url
            rule.reason = reason
            rule.starts_at = starts_at
            rule.ends_at = ends_at
            rule.active = True
            rule.deactivated_at = None
            self.db.flush()
            action = "redirect_fallback_updated"
        else:
            rule = RedirectRule(
                is_fallback=True,
                redirect_url=url,
                reason=reason,
                starts_at=starts_at,
                ends_at=ends_at,
                active=True,
                created_by=actor,
            )
            try:
                with self.db.begin_nested():
                    self.db.add(rule)
            except IntegrityError:
                # Lost the race to a concurrent insert; the partial unique index held
                raise ConflictError("Fallback rule was created concurrently; retry the update")
            action = "redirect_fallback_created"

        self.audit.record("redirect_rule", rule.id, action, actor, self._snapshot(rule))
        return rule

    def disable_fallback(self, actor: str | None = None) -> RedirectRule:
        rule = self.get_fallback()
        if rule is None:
            raise NotFoundError("No fallback rule is configured")
        if not rule.active:
            raise ConflictError("Fallback rule is already disabled", {"rule_id": rule.id})
        rule.active = False
        rule.deactivated_at = utcnow()
        self.db.flush()
        self.audit.record("redirect_rule", rule.id, "redirect_fallback_disabled", actor, {})
        return rule

    @staticmethod
    def _snapshot(rule: RedirectRule) -> dict:
        return {
            "entity_type": rule.entity_type,
            "entity_id": rule.entity_id,
            "version_id": rule.version_id,
            "is_fallback": rule.is_fallback,
            "redirect_url": rule.redirect_url,
            "starts_at": rule.starts_at.isoformat() if rule.starts_at else None,
            "ends_at": rule.ends_at.isoformat() if rule.ends_at else None,
        }


class RedirectResolver:
    def __init__(self, db: DBSession):
        self.db = db

    def _first_in_window(self, query, now: datetime) -> RedirectRule | None:
        for rule in query.order_by(RedirectRule.created_at.desc(), RedirectRule.id.desc()).all():
            if rule.in_window(now):
                return rule
        return None

    def _active_scoped(self):
        return self.db.query(RedirectRule).filter(
            RedirectRule.active.is_(True), RedirectRule.is_fallback.is_(False)
        )

    def active_rule_for_entity(
        self, entity_type: str, entity_id: str, now: datetime | None = None
    ) -> RedirectRule | None:
        """The in-window rule scoped to exactly this entity, ignoring version and fallback."""
        query = self._active_scoped().filter(
            RedirectRule.entity_type == entity_type, RedirectRule.entity_id == str(entity_id)
        )
        return self._first_in_window(query, now or utcnow())

    def resolve(self, token: Token, now: datetime | None = None) -> RedirectRule | None:
        now = now or utcnow()

        scopes = []
        if token.binding is not None:
            scopes.append(("product", str(token.binding.product_id)))
        scopes.append((token.entity_type, token.entity_id))
        for entity_type, entity_id in scopes:
            rule = self.active_rule_for_entity(entity_type, entity_id, now)
            if rule is not None:
                return rule

        if token.version_id:
            query = self._active_scoped().filter(RedirectRule.version_id == token.version_id)
            rule = self._first_in_window(query, now)
            if rule is not None:
                return rule

        fallback = (
            self.db.query(RedirectRule)
            .filter(RedirectRule.is_fallback.is_(True), RedirectRule.active.is_(True))
            .first()
        )
        if fallback is not None and fallback.in_window(now):
            return fallback
        return None
