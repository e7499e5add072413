"""FastAPI application entry point."""

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from pixtag.database import SessionLocal
from pixtag.errors import (
    InvalidColor,
    NotFound,
    ParseError,
    PixtagError,
    SourceUnreadable,
    StoreError,
    UpstreamError,
)
from pixtag.settings import settings

from pixtag.routers import images, processing, search

app = FastAPI(
    title=settings.app_name,
    description="Image ingestion, annotation and similarity search",
    version="0.1.0"
)
logger = logging.getLogger(__name__)

# First match wins; subclasses before their bases.
ERROR_STATUS_CODES = (
    (NotFound, 404),
    (InvalidColor, 400),
    (SourceUnreadable, 400),
    (StoreError, 500),
    (UpstreamError, 502),
    (ParseError, 502),
)


def status_code_for(exc: PixtagError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


@app.exception_handler(PixtagError)
async def handle_domain_error(request: Request, exc: PixtagError):
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


_allowed_origins = [settings.app_url]
if settings.is_development:
    _allowed_origins += [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(images.router)
app.include_router(processing.router)
app.include_router(search.router)


@app.get("/health")
async def health_check():
    """Health check endpoint with DB connectivity verification."""
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy"}
    except Exception as exc:
        raise HTTPException(status_code=503, detail=f"Database unavailable: {exc}")
    finally:
        db.close()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
    uvicorn.run(
        "pixtag.api:app",
        host=settings.api_host,
        port=settings.api_port,
        workers=settings.api_workers,
        reload=settings.debug
    )
