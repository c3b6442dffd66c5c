"""
authz.py - Authorization check.

Role management lives outside this service; callers arrive with an Actor
already identified and this module only answers "may this actor do X".
"""

from dataclasses import dataclass

from sealworks.errors import ForbiddenError
from sealworks.models import ActorRole

OPERATIONAL_ROLES = (ActorRole.ADMIN, ActorRole.WAREHOUSE)


@dataclass(frozen=True)
class Actor:
    actor_id: str
    role: ActorRole
    partner_id: int | None = None


def require_operational(actor: Actor) -> None:
    """Mint, generate and sheet management."""
    if actor.role not in OPERATIONAL_ROLES:
        raise ForbiddenError(
            "Operation requires an operational role",
            {"role": actor.role.value, "allowed": [r.value for r in OPERATIONAL_ROLES]},
        )


def require_admin(actor: Actor) -> None:
    if actor.role != ActorRole.ADMIN:
        raise ForbiddenError("Operation requires ADMIN role", {"role": actor.role.value})


def require_partner_scope(actor: Actor) -> int:
    """Binding operations run in the calling partner's own scope. Returns the partner id."""
    if actor.role != ActorRole.PARTNER or actor.partner_id is None:
        raise ForbiddenError(
            "Operation requires a partner scope",
            {"role": actor.role.value, "partner_id": actor.partner_id},
        )
    return actor.partner_id
