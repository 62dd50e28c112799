import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response

from docflow.cache_store import CacheReadError, CacheStore
from docflow.config import get_settings
from docflow.file_handler import validate_file
from docflow.ocr_backends.base import OCRError, OCRErrorKind
from docflow.ocr_client import OCRClient
from docflow.orchestrator import DocumentSession
from docflow.schemas import (
    CacheCheckResponse,
    CacheReadResponse,
    ErrorDetail,
    FileValidationResult,
    HealthResponse,
    MarkdownResponse,
    OCROptions,
    OCRProcessRequest,
    OCRProcessResponse,
    OpenSessionRequest,
    PageContent,
    PageUpdateRequest,
    SaveFileRequest,
    SaveFileResponse,
    SaveSessionRequest,
    SessionResponse,
    ValidateFileRequest,
)
from docflow.sessions import session_manager

logger = logging.getLogger(__name__)

ocr_router = APIRouter(prefix="/ocr")
cache_router = APIRouter(prefix="/cache")
file_router = APIRouter(prefix="/files")
session_router = APIRouter(prefix="/sessions")
health_router = APIRouter()

_ocr_client: Optional[OCRClient] = None


def get_ocr_client() -> OCRClient:
    global _ocr_client
    if _ocr_client is None:
        _ocr_client = OCRClient()
    return _ocr_client


def get_cache_store() -> CacheStore:
    return CacheStore()


def _error_detail(error: OCRError) -> ErrorDetail:
    return ErrorDetail(message=error.message, code=error.kind.value)


@ocr_router.post("/process", response_model=OCRProcessResponse)
async def process_file(
    request: OCRProcessRequest, client: OCRClient = Depends(get_ocr_client)
):
    try:
        result = await client.process(request.file_path, request.options)
    except OCRError as e:
        return OCRProcessResponse(success=False, error=_error_detail(e))
    except Exception as e:
        logger.error(f"Unexpected OCR failure: {e}", exc_info=True)
        return OCRProcessResponse(
            success=False,
            error=ErrorDetail(
                message=str(e) or "Unknown error occurred",
                code=OCRErrorKind.API_ERROR.value,
            ),
        )
    return OCRProcessResponse(success=True, result=result)


@cache_router.get("/check", response_model=CacheCheckResponse)
async def check_cache(file_path: str, store: CacheStore = Depends(get_cache_store)):
    return store.check(file_path)


@cache_router.get("/read", response_model=CacheReadResponse)
async def read_cache(file_path: str, store: CacheStore = Depends(get_cache_store)):
    if not store.exists(file_path):
        raise HTTPException(status_code=404, detail="OCR cache not found")
    try:
        content = store.read(file_path)
    except CacheReadError as e:
        logger.warning("Cache read failed: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    return CacheReadResponse(content=content)


@file_router.post("/validate", response_model=FileValidationResult)
async def validate(request: ValidateFileRequest):
    return validate_file(request.file_path)


@file_router.post("/save", response_model=SaveFileResponse)
async def save_file(
    request: SaveFileRequest, store: CacheStore = Depends(get_cache_store)
):
    return store.write(request.file_path, request.content, request.metadata)


def _session_view(session_id: str, session: DocumentSession) -> SessionResponse:
    return SessionResponse(
        session_id=session_id,
        document=session.document,
        status=session.status,
        loaded_from_cache=session.loaded_from_cache,
        notice=session.notice,
        error=_error_detail(session.error) if session.error else None,
        total_pages=session.pages.total_pages,
        pages=session.pages.as_list(),
    )


def _get_session(session_id: str) -> DocumentSession:
    session = session_manager.get(session_id)
    if session is None or session.document is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def _check_page(session: DocumentSession, page: int) -> None:
    if page < 1 or page > session.pages.total_pages:
        raise HTTPException(
            status_code=404,
            detail=f"Page {page} out of range (1-{session.pages.total_pages})",
        )


@session_router.post("", response_model=SessionResponse)
async def open_session(
    request: OpenSessionRequest,
    client: OCRClient = Depends(get_ocr_client),
    store: CacheStore = Depends(get_cache_store),
):
    validation = validate_file(request.file_path)
    if not validation.valid:
        raise HTTPException(
            status_code=400,
            detail=f"{validation.error.code}: {validation.error.message}",
        )

    session_id, session = session_manager.create(client, store)
    try:
        await session.open(validation.file_info, request.options)
    except OCRError as e:
        # The session stays open in the failed state so it can be retried
        logger.warning(f"Session {session_id} OCR failed: {e.kind.value} {e}")

    return _session_view(session_id, session)


@session_router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str):
    return _session_view(session_id, _get_session(session_id))


@session_router.delete("/{session_id}", status_code=204)
async def close_session(session_id: str):
    if not session_manager.remove(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return Response(status_code=204)


@session_router.get("/{session_id}/pages/{page}", response_model=PageContent)
async def get_page(session_id: str, page: int):
    session = _get_session(session_id)
    _check_page(session, page)
    return PageContent(page=page, content=session.pages.get_page_markdown(page))


@session_router.put("/{session_id}/pages/{page}", response_model=PageContent)
async def update_page(session_id: str, page: int, request: PageUpdateRequest):
    session = _get_session(session_id)
    _check_page(session, page)
    session.pages.set_page_markdown(page, request.content)
    return PageContent(page=page, content=session.pages.get_page_markdown(page))


@session_router.get("/{session_id}/markdown", response_model=MarkdownResponse)
async def get_markdown(session_id: str):
    session = _get_session(session_id)
    return MarkdownResponse(
        markdown=session.pages.get_all_markdown(),
        has_content=session.pages.has_content,
    )


@session_router.post("/{session_id}/retry", response_model=SessionResponse)
async def retry_session(session_id: str, options: Optional[OCROptions] = None):
    session = _get_session(session_id)
    try:
        await session.retry(options)
    except OCRError as e:
        logger.warning(f"Session {session_id} retry failed: {e.kind.value} {e}")
    return _session_view(session_id, session)


@session_router.post("/{session_id}/save", response_model=SaveFileResponse)
async def save_session(
    session_id: str, request: Optional[SaveSessionRequest] = None
):
    session = _get_session(session_id)
    return session.save(request.file_path if request else None)


@health_router.get("/health", response_model=HealthResponse)
async def health_check():
    settings = get_settings()
    return HealthResponse(
        status="ok",
        open_sessions=session_manager.session_count,
        ocr_backend_configured=bool(settings.MISTRAL_API_KEY),
    )
