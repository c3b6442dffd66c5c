"""
tokens.py - Token minting, per-entity listing and revocation endpoints.
"""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session as DBSession

from sealworks.api.deps import get_actor
from sealworks.api.errors import internal_error, rejection
from sealworks.database import get_db
from sealworks.errors import SealworksError
from sealworks.schemas.redirects import RedirectRuleResponse
from sealworks.schemas.tokens import (
    EntityTokensResponse,
    RevokeByEntityRequest,
    RevokeByEntityResponse,
    RevokeTokenRequest,
    TokenBatchRequest,
    TokenBatchResponse,
    TokenStats,
    TokenSummary,
)
from sealworks.services.authz import Actor, require_operational
from sealworks.services.redirects import RedirectResolver
from sealworks.services.token_issuer import TokenIssuer

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/batch", response_model=TokenBatchResponse, status_code=status.HTTP_201_CREATED)
def mint_batch(
    request: TokenBatchRequest,
    actor: Actor = Depends(get_actor),
    db: DBSession = Depends(get_db),
):
    """Mint a batch of tokens. All-or-nothing: an over-cap quantity persists nothing."""
    try:
        require_operational(actor)
        tokens = TokenIssuer(db).create_token_batch(
            request.entity_type,
            request.entity_id,
            request.quantity,
            actor=actor.actor_id,
            version_id=request.version_id,
        )
        db.commit()
        return TokenBatchResponse(
            entity_type=request.entity_type,
            entity_id=request.entity_id,
            version_id=request.version_id,
            count=len(tokens),
            tokens=[t.token for t in tokens],
        )
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "token mint")


@router.get("/for-entity", response_model=EntityTokensResponse)
def tokens_for_entity(
    entity_type: str = Query(..., alias="entityType", min_length=1),
    entity_id: str = Query(..., alias="entityId", min_length=1),
    status_filter: str | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_actor),
    db: DBSession = Depends(get_db),
):
    """An entity's tokens (newest first) with status counts and its active redirect rule."""
    try:
        require_operational(actor)
        issuer = TokenIssuer(db)
        rows, total = issuer.tokens_for_entity(entity_type, entity_id, status_filter, limit, offset)
        rule = RedirectResolver(db).active_rule_for_entity(entity_type, entity_id)
        return EntityTokensResponse(
            tokens=[TokenSummary.model_validate(row) for row in rows],
            total=total,
            stats=TokenStats(**issuer.token_stats(entity_type, entity_id)),
            active_rule=RedirectRuleResponse.model_validate(rule) if rule is not None else None,
        )
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "token listing")


@router.post("/revoke-by-entity", response_model=RevokeByEntityResponse)
def revoke_by_entity(
    request: RevokeByEntityRequest,
    actor: Actor = Depends(get_actor),
    db: DBSession = Depends(get_db),
):
    try:
        require_operational(actor)
        count = TokenIssuer(db).revoke_tokens_for_entity(
            request.entity_type, request.entity_id, request.reason, actor=actor.actor_id
        )
        db.commit()
        return RevokeByEntityResponse(revoked_count=count)
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "token revocation")


@router.post("/{token}/revoke")
def revoke_token(
    token: str,
    request: RevokeTokenRequest,
    actor: Actor = Depends(get_actor),
    db: DBSession = Depends(get_db),
):
    try:
        require_operational(actor)
        row = TokenIssuer(db).revoke_token(token, request.reason, actor=actor.actor_id)
        db.commit()
        return {"token": row.token, "status": row.status, "revokedAt": row.revoked_at.isoformat()}
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "token revocation")
