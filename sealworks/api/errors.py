"""
errors.py - Maps service exceptions onto HTTP responses.

Every endpoint follows the same shape:

    try:
        ...
        db.commit()
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "context")
"""

import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session as DBSession

from sealworks.errors import SealworksError
from sealworks.services.audit import AuditLog

logger = logging.getLogger(__name__)


def rejection(db: DBSession, e: SealworksError) -> HTTPException:
    db.rollback()
    logger.warning("Request rejected: %s - %s", e.code.value, e.message)
    if e.audit:
        AuditLog(db).record(
            e.audit["entity_type"],
            e.audit["entity_id"],
            e.audit["action"],
            e.audit.get("actor"),
            e.audit.get("metadata"),
        )
        db.commit()
    return HTTPException(status_code=e.status_code, detail=e.to_dict())


def internal_error(db: DBSession, e: Exception, context: str) -> HTTPException:
    db.rollback()
    logger.exception("%s internal error: %s", context, str(e))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "status": "error",
            "code": "INTERNAL_ERROR",
            "message": f"Internal server error during {context}",
        },
    )
