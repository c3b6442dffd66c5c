"""
redirects.py - Redirect rule management and the singleton fallback.

Fallback routes are declared before /{rule_id} so "fallback" is never
captured as a rule id.
"""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session as DBSession

from sealworks.api.deps import get_actor
from sealworks.api.errors import internal_error, rejection
from sealworks.database import get_db
from sealworks.errors import NotFoundError, SealworksError
from sealworks.schemas.redirects import FallbackUpsert, RedirectRuleCreate, RedirectRuleResponse
from sealworks.services.authz import Actor, require_admin
from sealworks.services.redirects import RedirectRuleService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/fallback", response_model=RedirectRuleResponse)
def get_fallback(actor: Actor = Depends(get_actor), db: DBSession = Depends(get_db)):
    try:
        require_admin(actor)
        rule = RedirectRuleService(db).get_fallback()
        if rule is None:
            raise NotFoundError("No fallback rule is configured")
        return rule
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "fallback lookup")


@router.put("/fallback", response_model=RedirectRuleResponse)
def upsert_fallback(
    request: FallbackUpsert,
    actor: Actor = Depends(get_actor),
    db: DBSession = Depends(get_db),
):
    try:
        require_admin(actor)
        rule = RedirectRuleService(db).upsert_fallback(
            request.redirect_url,
            actor=actor.actor_id,
            reason=request.reason,
            starts_at=request.starts_at,
            ends_at=request.ends_at,
        )
        db.commit()
        db.refresh(rule)
        return rule
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "fallback upsert")


@router.delete("/fallback", response_model=RedirectRuleResponse)
def disable_fallback(actor: Actor = Depends(get_actor), db: DBSession = Depends(get_db)):
    try:
        require_admin(actor)
        rule = RedirectRuleService(db).disable_fallback(actor=actor.actor_id)
        db.commit()
        db.refresh(rule)
        return rule
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "fallback disable")


@router.post("", response_model=RedirectRuleResponse, status_code=status.HTTP_201_CREATED)
def create_rule(
    request: RedirectRuleCreate,
    actor: Actor = Depends(get_actor),
    db: DBSession = Depends(get_db),
):
    try:
        require_admin(actor)
        rule = RedirectRuleService(db).create_rule(
            request.redirect_url,
            actor=actor.actor_id,
            entity_type=request.entity_type,
            entity_id=request.entity_id,
            version_id=request.version_id,
            reason=request.reason,
            starts_at=request.starts_at,
            ends_at=request.ends_at,
        )
        db.commit()
        db.refresh(rule)
        return rule
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "redirect rule creation")


@router.get("", response_model=list[RedirectRuleResponse])
def list_rules(
    entity_type: str | None = Query(None, alias="entityType"),
    entity_id: str | None = Query(None, alias="entityId"),
    version_id: str | None = Query(None, alias="versionId"),
    active: bool | None = None,
    actor: Actor = Depends(get_actor),
    db: DBSession = Depends(get_db),
):
    try:
        require_admin(actor)
        return RedirectRuleService(db).list_rules(entity_type, entity_id, version_id, active)
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "redirect rule listing")


@router.get("/{rule_id}", response_model=RedirectRuleResponse)
def get_rule(rule_id: str, actor: Actor = Depends(get_actor), db: DBSession = Depends(get_db)):
    try:
        require_admin(actor)
        return RedirectRuleService(db).get_rule(rule_id)
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "redirect rule lookup")


@router.post("/{rule_id}/deactivate", response_model=RedirectRuleResponse)
def deactivate_rule(rule_id: str, actor: Actor = Depends(get_actor), db: DBSession = Depends(get_db)):
    try:
        require_admin(actor)
        rule = RedirectRuleService(db).deactivate_rule(rule_id, actor=actor.actor_id)
        db.commit()
        db.refresh(rule)
        return rule
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "redirect rule deactivation")
