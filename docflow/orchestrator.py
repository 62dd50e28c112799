import logging
from datetime import datetime, timezone
from typing import Optional

from docflow.cache_store import CacheReadError, CacheStore
from docflow.ocr_backends.base import OCRError, OCRErrorKind
from docflow.ocr_client import OCRClient
from docflow.page_markdown import PageMarkdown
from docflow.schemas import Document, MarkdownMetadata, OCROptions, SaveFileResponse

logger = logging.getLogger(__name__)

CACHE_NOTICE = "Loaded from cached OCR result"


class DocumentSession:
    """Acquisition and editing state for the document currently open.

    open() consults the cache first and only calls the OCR client on a miss
    (or when the cached file cannot be read). Pages are only initialized from
    a successful acquisition, so a failure leaves them empty and the document
    can be retried with retry().

    Every open/retry/close bumps a generation counter. An acquisition that
    finishes after the session moved on is discarded instead of being written
    into the pages of another document.
    """

    def __init__(self, ocr_client: OCRClient, cache_store: CacheStore):
        self._ocr_client = ocr_client
        self._cache_store = cache_store
        self._generation = 0
        self.document: Optional[Document] = None
        self.pages = PageMarkdown(0)
        self.status = "idle"  # idle/processing/ready/failed
        self.loaded_from_cache = False
        self.notice: Optional[str] = None
        self.error: Optional[OCRError] = None

    async def open(
        self, document: Document, options: Optional[OCROptions] = None
    ) -> bool:
        """Bind the session to document and acquire its OCR text.

        Returns False when the result was discarded because the session was
        switched to something else in the meantime.
        """
        generation = self._reset(document)

        if self._cache_store.exists(document.path):
            try:
                content = self._cache_store.read(document.path)
            except CacheReadError as e:
                logger.warning(f"Failed to read OCR cache, falling back to OCR: {e}")
            else:
                self.pages.initialize_from_ocr(content, document.total_pages)
                self.loaded_from_cache = True
                self.notice = CACHE_NOTICE
                self.status = "ready"
                logger.info(f"Loaded {document.path} from OCR cache")
                return True

        return await self._acquire(generation, options)

    async def retry(self, options: Optional[OCROptions] = None) -> bool:
        """Re-run OCR for the bound document, ignoring the cache."""
        if self.document is None:
            raise ValueError("No document is open")
        if self.status == "processing":
            raise ValueError("OCR is already in progress for this document")
        generation = self._reset(self.document)
        return await self._acquire(generation, options)

    def close(self) -> None:
        self._generation += 1
        self.document = None
        self.pages.clear_all()
        self.pages.total_pages = 0
        self.status = "idle"
        self.loaded_from_cache = False
        self.notice = None
        self.error = None

    def save(self, target_path: Optional[str] = None) -> SaveFileResponse:
        """Write the reassembled pages, by default to the document's cache file."""
        if self.document is None:
            raise ValueError("No document is open")

        markdown = self.pages.get_all_markdown()
        if not markdown.strip():
            return SaveFileResponse(success=False, error="No content to save")

        metadata = MarkdownMetadata(
            original_file=self.document.path,
            processed_at=datetime.now(timezone.utc).isoformat(),
        )
        target = target_path or self._cache_store.cache_path(self.document.path)
        return self._cache_store.write(target, markdown, metadata)

    def _reset(self, document: Document) -> int:
        self._generation += 1
        self.document = document
        self.pages.clear_all()
        self.pages.total_pages = document.total_pages
        self.loaded_from_cache = False
        self.notice = None
        self.error = None
        self.status = "idle"
        return self._generation

    async def _acquire(
        self, generation: int, options: Optional[OCROptions]
    ) -> bool:
        document = self.document
        self.status = "processing"
        try:
            result = await self._ocr_client.process(document.path, options)
        except OCRError as e:
            if generation != self._generation:
                logger.info(f"Discarding stale OCR failure for {document.path}")
                return False
            self.status = "failed"
            self.error = e
            raise
        except BaseException as e:
            # Cancellation or an unexpected error must not leave the
            # session stuck in "processing"
            if generation == self._generation:
                self.status = "failed"
                self.error = OCRError(
                    f"OCR did not complete: {e!r}", OCRErrorKind.API_ERROR
                )
            raise

        if generation != self._generation:
            logger.info(f"Discarding stale OCR result for {document.path}")
            return False

        page_count = document.page_count or result.page_count
        self.pages.initialize_from_ocr(result.markdown, page_count)
        self.status = "ready"
        logger.info(
            f"OCR finished for {document.path}: "
            f"{result.page_count} page(s) returned, {page_count} expected"
        )
        return True
