import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront.core.config import settings
from storefront.api.v1.api import router as api_v1_router
from storefront.services.pricing.errors import (
    CommitConflictError,
    NoShippingRateError,
    StaleCartError,
    StorefrontError,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Storefront Pricing API", version="0.1.0")

# set up CORS so the frontend can talk to us
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# mount our API routes
app.include_router(api_v1_router, prefix="/api/v1")


def _status_for(exc: StorefrontError) -> int:
    if isinstance(exc, (StaleCartError, CommitConflictError)):
        return 409
    if isinstance(exc, NoShippingRateError):
        return 422
    return 400


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    status_code = _status_for(exc)
    logger.info(f"{request.method} {request.url.path} -> {status_code} {exc.kind}: {exc.detail}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.get("/health")
def health():
    return {"status": "ok", "env": settings.APP_ENV}
