"""
audit.py - Append-only audit log writer.

Audit failures are reported operationally and never fail the primary
operation: the entry is written inside a SAVEPOINT so a failed insert
rolls back alone.
"""

import logging
from typing import Any

from sqlalchemy.orm import Session as DBSession

from sealworks.models import AuditEntry

logger = logging.getLogger(__name__)


class AuditLog:
    def __init__(self, db: DBSession):
        self.db = db

    def record(
        self,
        entity_type: str,
        entity_id: Any,
        action: str,
        actor: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        try:
            with self.db.begin_nested():
                self.db.add(
                    AuditEntry(
                        entity_type=entity_type,
                        entity_id=str(entity_id),
                        action=action,
                        actor=actor,
                        metadata_json=metadata or {},
                    )
                )
        except Exception:
            logger.exception(
                "Audit write failed: action=%s entity=%s:%s", action, entity_type, entity_id
            )

    def entries_for(self, entity_type: str, entity_id: Any, actions=None) -> list[AuditEntry]:
        """Oldest-first trail for one entity, optionally limited to some actions."""
        query = self.db.query(AuditEntry).filter(
            AuditEntry.entity_type == entity_type,
            AuditEntry.entity_id == str(entity_id),
        )
        if actions is not None:
            query = query.filter(AuditEntry.action.in_(actions))
        return query.order_by(AuditEntry.id.asc()).all()
