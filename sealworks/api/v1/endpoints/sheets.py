"""
sheets.py - SealSheet lifecycle endpoints.
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session as DBSession

from sealworks.api.deps import get_actor
from sealworks.api.errors import internal_error, rejection
from sealworks.database import get_db
from sealworks.errors import SealworksError
from sealworks.schemas.sheets import (
    AssignSheetRequest,
    IntegrityResponse,
    RevokeSheetRequest,
    SheetResponse,
)
from sealworks.services.authz import Actor, require_operational
from sealworks.services.seal_sheets import SealSheetService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/sheets", response_model=list[SheetResponse])
def list_unassigned_sheets(
    limit: int = Query(100, ge=1, le=500),
    actor: Actor = Depends(get_actor),
    db: DBSession = Depends(get_db),
):
    try:
        require_operational(actor)
        return SealSheetService(db).list_unassigned(limit=limit)
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "sheet listing")


@router.get("/sheets/{sheet_id}", response_model=SheetResponse)
def get_sheet(sheet_id: str, actor: Actor = Depends(get_actor), db: DBSession = Depends(get_db)):
    try:
        sheet = SealSheetService(db).get_sheet(sheet_id)
        if actor.partner_id is None or sheet.partner_id != actor.partner_id:
            require_operational(actor)
        return sheet
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "sheet lookup")


@router.post("/sheets/{sheet_id}/assign", response_model=SheetResponse)
def assign_sheet(
    sheet_id: str,
    request: AssignSheetRequest,
    actor: Actor = Depends(get_actor),
    db: DBSession = Depends(get_db),
):
    try:
        require_operational(actor)
        sheet = SealSheetService(db).assign_sheet(sheet_id, request.partner_id, actor=actor.actor_id)
        db.commit()
        db.refresh(sheet)
        return sheet
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "sheet assignment")


@router.post("/sheets/{sheet_id}/revoke", response_model=SheetResponse)
def revoke_sheet(
    sheet_id: str,
    request: RevokeSheetRequest,
    actor: Actor = Depends(get_actor),
    db: DBSession = Depends(get_db),
):
    try:
        require_operational(actor)
        sheet = SealSheetService(db).revoke_sheet(sheet_id, request.reason, actor=actor.actor_id)
        db.commit()
        db.refresh(sheet)
        return sheet
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "sheet revocation")


@router.get("/sheets/{sheet_id}/integrity", response_model=IntegrityResponse)
def check_sheet_integrity(sheet_id: str, actor: Actor = Depends(get_actor), db: DBSession = Depends(get_db)):
    try:
        require_operational(actor)
        return IntegrityResponse(**_snake(SealSheetService(db).verify_integrity(sheet_id)))
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "sheet integrity check")


@router.get("/partners/{partner_id}/sheets", response_model=list[SheetResponse])
def list_partner_sheets(partner_id: int, actor: Actor = Depends(get_actor), db: DBSession = Depends(get_db)):
    try:
        if actor.partner_id != partner_id:
            require_operational(actor)
        return SealSheetService(db).list_for_partner(partner_id)
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "partner sheet listing")


def _snake(report) -> dict:
    return {
        "sheet_id": report.sheet_id,
        "ok": report.ok,
        "stored_hash": report.stored_hash,
        "computed_hash": report.computed_hash,
        "stored_count": report.stored_count,
        "linked_count": report.linked_count,
    }
