import asyncio
import base64
import logging
import os
from typing import Any, Dict, List, Optional

import httpx

from docflow.config import get_settings
from docflow.ocr_backends.base import OCRBackend, OCRError, OCRErrorKind
from docflow.ocr_backends.mistral import MistralBackend
from docflow.page_markdown import PAGE_SEPARATOR
from docflow.schemas import OCROptions, OCRResult

logger = logging.getLogger(__name__)

MIME_TYPES = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


def get_ocr_backend() -> OCRBackend:
    settings = get_settings()
    if not settings.MISTRAL_API_KEY:
        raise OCRError(
            "MISTRAL_API_KEY environment variable is not set",
            OCRErrorKind.API_ERROR,
        )
    return MistralBackend(
        api_key=settings.MISTRAL_API_KEY,
        api_url=settings.OCR_API_URL,
        model=settings.OCR_MODEL,
    )


def get_mime_type(file_path: str) -> str:
    ext = os.path.splitext(file_path)[1].lower()
    try:
        return MIME_TYPES[ext]
    except KeyError:
        raise OCRError(
            f"Unsupported file format: {ext or '(none)'}",
            OCRErrorKind.UNSUPPORTED_FORMAT,
        ) from None


def build_document_reference(data_url: str, mime_type: str) -> Dict[str, Any]:
    # The OCR API takes PDFs and images under different reference types
    if mime_type == "application/pdf":
        return {"type": "document_url", "document_url": data_url}
    return {"type": "image_url", "image_url": data_url}


def classify_error(error: Exception) -> OCRError:
    """Map a failed network attempt onto an OCRError kind."""
    if isinstance(error, OCRError):
        return error
    if isinstance(
        error, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException)
    ):
        return OCRError("OCR request timed out", OCRErrorKind.TIMEOUT)

    status = getattr(error, "status_code", None)
    if status is None and isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
    if status == 429:
        return OCRError("Rate limit exceeded", OCRErrorKind.RATE_LIMIT)

    return OCRError(f"OCR API error: {error}", OCRErrorKind.API_ERROR)


class OCRClient:
    """Turns a document on disk into an OCRResult via an OCRBackend.

    Each attempt is raced against a timeout. RATE_LIMIT, TIMEOUT and API_ERROR
    raised during an attempt are retried with exponential backoff
    (retry_base_delay * 2**attempt); INVALID_RESPONSE is not. Errors raised
    before the first attempt (unsupported format, unreadable file, missing
    credentials) are never retried.
    """

    def __init__(
        self,
        backend: Optional[OCRBackend] = None,
        timeout_ms: Optional[int] = None,
        max_retries: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
    ):
        settings = get_settings()
        self._backend = backend
        self._timeout_ms = timeout_ms or settings.OCR_TIMEOUT_MS
        self._max_retries = max_retries or settings.OCR_MAX_RETRIES
        self._retry_base_delay = (
            settings.OCR_RETRY_BASE_DELAY
            if retry_base_delay is None
            else retry_base_delay
        )

    def _get_backend(self) -> OCRBackend:
        if self._backend is None:
            self._backend = get_ocr_backend()
        return self._backend

    async def process(
        self, file_path: str, options: Optional[OCROptions] = None
    ) -> OCRResult:
        timeout_ms = (options and options.timeout_ms) or self._timeout_ms
        max_retries = (options and options.max_retries) or self._max_retries

        mime_type = get_mime_type(file_path)
        document = build_document_reference(
            self._encode_file(file_path, mime_type), mime_type
        )
        backend = self._get_backend()

        last_error: Optional[OCRError] = None
        for attempt in range(max_retries):
            try:
                return await self._call_api(backend, document, timeout_ms)
            except OCRError as e:
                last_error = e
                if e.kind == OCRErrorKind.INVALID_RESPONSE:
                    raise
                if attempt < max_retries - 1:
                    delay = self._retry_base_delay * 2**attempt
                    logger.warning(
                        f"OCR attempt {attempt + 1}/{max_retries} for "
                        f"{file_path} failed ({e.kind.value}): {e}, "
                        f"retrying in {delay}s"
                    )
                    await self._sleep(delay)

        logger.error(
            f"OCR failed for {file_path} after {max_retries} attempt(s): "
            f"{last_error}"
        )
        raise last_error

    async def _call_api(
        self, backend: OCRBackend, document: Dict[str, Any], timeout_ms: int
    ) -> OCRResult:
        # wait_for cancels the backend call when the timer wins
        try:
            pages: List[str] = await asyncio.wait_for(
                backend.process_document(document), timeout=timeout_ms / 1000
            )
        except OCRError:
            raise
        except Exception as e:
            raise classify_error(e) from e

        if not pages:
            raise OCRError(
                "No pages returned from OCR", OCRErrorKind.INVALID_RESPONSE
            )
        if not all(isinstance(page, str) for page in pages):
            raise OCRError(
                "OCR returned non-text page content",
                OCRErrorKind.INVALID_RESPONSE,
            )

        return OCRResult(
            markdown=PAGE_SEPARATOR.join(pages), page_count=len(pages)
        )

    @staticmethod
    def _encode_file(file_path: str, mime_type: str) -> str:
        try:
            with open(file_path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise OCRError(
                f"Failed to read file: {e}", OCRErrorKind.API_ERROR
            ) from e
        base64_str = base64.b64encode(data).decode("utf-8")
        return f"data:{mime_type};base64,{base64_str}"

    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
