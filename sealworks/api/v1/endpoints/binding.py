"""
binding.py - Partner binding sessions and scan binding.

All routes run in the calling partner's own scope: the partner id comes
from the actor, never from the request body.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session as DBSession

from sealworks.api.deps import get_actor
from sealworks.api.errors import internal_error, rejection
from sealworks.database import get_db
from sealworks.errors import SealworksError
from sealworks.schemas.binding import (
    BindFromScanRequest,
    BindingResponse,
    ConfirmRebindRequest,
    SessionResponse,
    StartSessionRequest,
)
from sealworks.services.authz import Actor, require_admin, require_partner_scope
from sealworks.services.binding import BindingSessionManager, BindingStateMachine

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/binding-sessions", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def start_binding_session(
    request: StartSessionRequest,
    actor: Actor = Depends(get_actor),
    db: DBSession = Depends(get_db),
):
    try:
        partner_id = require_partner_scope(actor)
        session = BindingSessionManager(db).start_session(partner_id, request.product_id, actor=actor.actor_id)
        db.commit()
        db.refresh(session)
        return session
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "binding session start")


@router.get("/binding-sessions/active", response_model=SessionResponse)
def get_active_binding_session(actor: Actor = Depends(get_actor), db: DBSession = Depends(get_db)):
    try:
        partner_id = require_partner_scope(actor)
        session = BindingSessionManager(db).get_active_session(partner_id)
        db.commit()
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "binding session lookup")
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"status": "rejected", "code": "NOT_FOUND", "message": "No active binding session", "details": {}},
        )
    db.refresh(session)
    return session


@router.post("/binding-sessions/expire")
def expire_binding_sessions(actor: Actor = Depends(get_actor), db: DBSession = Depends(get_db)):
    """Sweep: mark every overdue ACTIVE session EXPIRED. Sessions also expire lazily on read."""
    try:
        require_admin(actor)
        count = BindingSessionManager(db).expire_sessions()
        db.commit()
        return {"expiredCount": count}
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "binding session expiry")


@router.post("/binding-sessions/{session_id}/end", response_model=SessionResponse)
def end_binding_session(session_id: str, actor: Actor = Depends(get_actor), db: DBSession = Depends(get_db)):
    try:
        partner_id = require_partner_scope(actor)
        session = BindingSessionManager(db).end_session(session_id, partner_id, actor=actor.actor_id)
        db.commit()
        db.refresh(session)
        return session
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "binding session end")


@router.get("/binding-sessions/{session_id}/recent", response_model=list[BindingResponse])
def recent_bindings(session_id: str, actor: Actor = Depends(get_actor), db: DBSession = Depends(get_db)):
    try:
        partner_id = require_partner_scope(actor)
        return BindingSessionManager(db).recent_bindings(session_id, partner_id)
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "recent bindings")


@router.post("/partner/bind-from-scan")
def bind_from_scan(
    request: BindFromScanRequest,
    actor: Actor = Depends(get_actor),
    db: DBSession = Depends(get_db),
):
    """
    Resolve one scan inside the partner's active session.

    Returns one of:
    - {"status": "bound", "bindingId", "tokenShortHash", "boundAt", ...}
    - {"status": "already_bound", "bindingId", ...}
    - {"status": "rebind_required", "tokenId", "existingBindingId", "previousProduct", "currentProduct", ...}
    """
    try:
        partner_id = require_partner_scope(actor)
        outcome = BindingStateMachine(db).bind_from_scan(partner_id, request.token, actor=actor.actor_id)
        db.commit()
        return outcome.to_dict()
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "bind from scan")


@router.post("/partner/confirm-rebind")
def confirm_rebind(
    request: ConfirmRebindRequest,
    actor: Actor = Depends(get_actor),
    db: DBSession = Depends(get_db),
):
    """Second phase of a rebind. 409 CONFLICT when the binding moved since detection."""
    try:
        partner_id = require_partner_scope(actor)
        outcome = BindingStateMachine(db).confirm_rebind(
            partner_id, request.token_id, request.existing_binding_id, actor=actor.actor_id
        )
        db.commit()
        return outcome.to_dict()
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "rebind confirmation")


@router.get("/partner/tokens/{token_id}/lineage")
def binding_lineage(token_id: int, actor: Actor = Depends(get_actor), db: DBSession = Depends(get_db)):
    try:
        partner_id = require_partner_scope(actor)
        return {"tokenId": token_id, "lineage": BindingStateMachine(db).binding_lineage(token_id, partner_id)}
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "binding lineage")
