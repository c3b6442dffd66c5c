"""
verify.py - Public token surfaces (no actor headers).

GET /verify/{token}  read-only ground truth; never redirected
GET /scan/{token}    records the scan and resolves the redirect
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session as DBSession

from sealworks.api.errors import internal_error, rejection
from sealworks.database import get_db
from sealworks.errors import SealworksError
from sealworks.services.scan import ScanService
from sealworks.services.verification import VerificationService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/verify/{token}")
def verify_token(token: str, db: DBSession = Depends(get_db)):
    try:
        return VerificationService(db).verify(token)
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "verification")


@router.get("/scan/{token}")
def scan_token(token: str, db: DBSession = Depends(get_db)):
    try:
        result = ScanService(db).resolve_scan(token)
        db.commit()
        return result
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "scan resolution")
