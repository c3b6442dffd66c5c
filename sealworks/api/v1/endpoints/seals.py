"""
seals.py - Seal generation, PDF export and layout preview.

Generation and export accept the same body and run through the same
preparation, so a PDF is always the raster of the SVG sheets returned by
/generate for the same tokens and config.
"""

import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session as DBSession

from sealworks.api.deps import get_actor
from sealworks.api.errors import internal_error, rejection
from sealworks.database import get_db
from sealworks.errors import SealworksError
from sealworks.schemas.seals import (
    GenerateRequest,
    GenerateResponse,
    LayoutInfo,
    PreviewRequest,
    SealGraphic,
)
from sealworks.services.authz import Actor, require_operational
from sealworks.services.seal_generation import SealGenerationService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/generate", response_model=GenerateResponse)
def generate_seals(
    request: GenerateRequest,
    actor: Actor = Depends(get_actor),
    db: DBSession = Depends(get_db),
):
    try:
        require_operational(actor)
        result = SealGenerationService(db).generate(
            request.config.to_options(), actor=actor.actor_id, **request.source()
        )
        db.commit()
        return GenerateResponse(
            sheet_id=result.sheet.id,
            seal_svgs=[SealGraphic(token=s.token, svg=s.svg) for s in result.seals],
            sheet_svgs=[sheet.svg for sheet in result.sheets],
            page_count=len(result.sheets),
            seals_per_sheet=result.layout.per_sheet,
            layout=LayoutInfo(**_layout_fields(result.layout)),
            metadata=result.metadata(),
        )
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "seal generation")


@router.post("/pdf")
def generate_pdf(
    request: GenerateRequest,
    actor: Actor = Depends(get_actor),
    db: DBSession = Depends(get_db),
):
    try:
        require_operational(actor)
        pdf, result = SealGenerationService(db).generate_pdf(
            request.config.to_options(), actor=actor.actor_id, **request.source()
        )
        db.commit()
        headers = result.layout.headers()
        headers.update(
            {
                "X-Sheet-Id": result.sheet.id,
                "X-Tokens-Hash": result.contract.tokens_hash,
                "Content-Disposition": f'attachment; filename="seal_sheet_{result.sheet.id}.pdf"',
            }
        )
        return Response(content=pdf, media_type="application/pdf", headers=headers)
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "seal PDF export")


@router.post("/preview", response_model=LayoutInfo)
def preview_layout(
    request: PreviewRequest,
    response: Response,
    actor: Actor = Depends(get_actor),
    db: DBSession = Depends(get_db),
):
    """Layout for `quantity` seals, in the body and as X-* headers. Nothing is minted."""
    try:
        require_operational(actor)
        layout = SealGenerationService(db).preview(request.quantity, request.config.to_options())
        response.headers.update(layout.headers())
        return LayoutInfo(**_layout_fields(layout))
    except SealworksError as e:
        raise rejection(db, e)
    except Exception as e:
        raise internal_error(db, e, "layout preview")


def _layout_fields(layout) -> dict:
    return {
        "columns": layout.columns,
        "rows": layout.rows,
        "per_sheet": layout.per_sheet,
        "rotation_used": layout.rotation_used,
        "total_sheets": layout.total_sheets,
    }
