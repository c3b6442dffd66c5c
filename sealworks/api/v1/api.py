from fastapi import APIRouter

from sealworks.api.v1.endpoints import binding, redirects, seals, sheets, tokens, verify

# Create the main API router
router = APIRouter()

# Include all endpoint routers
router.include_router(tokens.router, prefix="/tokens", tags=["tokens"])
router.include_router(seals.router, prefix="/seals", tags=["seals"])
router.include_router(sheets.router, tags=["sheets"])
router.include_router(binding.router, tags=["binding"])
router.include_router(redirects.router, prefix="/redirect-rules", tags=["redirect-rules"])
router.include_router(verify.router, tags=["verify"])
