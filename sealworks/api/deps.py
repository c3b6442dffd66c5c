"""
deps.py - Request-scoped dependencies.

Identity is established upstream; requests arrive with the caller's id, role
and (for partner staff) partner id in headers.
"""

from fastapi import Header, HTTPException, status

from sealworks.models import ActorRole
from sealworks.services.authz import Actor


def get_actor(
    x_actor_id: str | None = Header(None),
    x_actor_role: str | None = Header(None),
    x_partner_id: int | None = Header(None),
) -> Actor:
    if not x_actor_id or not x_actor_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "status": "rejected",
                "code": "UNAUTHENTICATED",
                "message": "X-Actor-Id and X-Actor-Role headers are required",
                "details": {},
            },
        )
    try:
        role = ActorRole(x_actor_role.strip().upper())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "status": "rejected",
                "code": "FORBIDDEN",
                "message": f"Unknown role: {x_actor_role}",
                "details": {"allowed": [r.value for r in ActorRole]},
            },
        )
    return Actor(actor_id=x_actor_id, role=role, partner_id=x_partner_id)
