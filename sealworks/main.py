import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sealworks.api.v1.api import router as api_router
from sealworks.config import settings

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Sealworks API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Columns", "X-Rows", "X-Per-Sheet", "X-Rotation-Used", "X-Total-Sheets", "X-Sheet-Id", "X-Tokens-Hash"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies use the same VALIDATION envelope as service rejections."""
    logger.warning("Malformed request to %s: %d error(s)", request.url.path, len(exc.errors()))
    return JSONResponse(
        status_code=400,
        content={
            "detail": {
                "status": "rejected",
                "code": "VALIDATION",
                "message": "Request body failed validation",
                "details": {"errors": [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]},
            }
        },
    )


# Health check route
@app.get("/health")
def health_check():
    return {"status": "ok"}


# Include v1 routers
app.include_router(api_router, prefix="/api/v1")
