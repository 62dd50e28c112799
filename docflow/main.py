import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from docflow.config import get_settings
from docflow.routes import (
    cache_router,
    file_router,
    health_router,
    ocr_router,
    session_router,
)
from docflow.sessions import session_manager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
    settings = get_settings()
    logger.info(
        "Starting DocFlow OCR service (model=%s, timeout=%dms, max_retries=%d, "
        "cache_suffix=%s)",
        settings.OCR_MODEL,
        settings.OCR_TIMEOUT_MS,
        settings.OCR_MAX_RETRIES,
        settings.CACHE_SUFFIX,
    )
    if not settings.MISTRAL_API_KEY:
        logger.warning("MISTRAL_API_KEY is not set, OCR requests will fail")

    yield

    logger.info(
        "Shutting down DocFlow OCR service, closing %d open session(s)",
        session_manager.session_count,
    )
    session_manager.clear()


app = FastAPI(
    title="DocFlow OCR Service",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(ocr_router)
app.include_router(cache_router)
app.include_router(file_router)
app.include_router(session_router)
app.include_router(health_router)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception: %s", exc, exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
