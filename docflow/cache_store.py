import errno
import logging
import os
import stat
from typing import Optional

from docflow.config import get_settings
from docflow.schemas import CacheCheckResponse, MarkdownMetadata, SaveFileResponse

logger = logging.getLogger(__name__)


class CacheReadError(Exception):
    """Raised when a cached OCR result exists but cannot be read."""
    pass


def format_front_matter(metadata: MarkdownMetadata) -> str:
    return (
        "---\n"
        f"original_file: {metadata.original_file}\n"
        f"processed_at: {metadata.processed_at}\n"
        "---\n"
    )


class CacheStore:
    """OCR results stored as Markdown files next to the source document.

    The cache file for /a/doc.pdf is /a/doc_ocr.md. Only the file name's last
    extension is stripped, so /a/doc.pdf and /a/doc.png share a cache file.
    """

    def __init__(self, suffix: Optional[str] = None):
        self.suffix = suffix or get_settings().CACHE_SUFFIX

    def cache_path(self, document_path: str) -> str:
        root, _ext = os.path.splitext(document_path)
        return root + self.suffix

    def exists(self, document_path: str) -> bool:
        path = self.cache_path(document_path)
        try:
            return stat.S_ISREG(os.stat(path).st_mode)
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.debug(f"Cache probe failed for {path}: {e}")
            return False

    def check(self, document_path: str) -> CacheCheckResponse:
        return CacheCheckResponse(
            exists=self.exists(document_path),
            cache_path=self.cache_path(document_path),
        )

    def read(self, document_path: str) -> str:
        path = self.cache_path(document_path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise CacheReadError(f"Failed to read OCR cache {path}: {e}") from e

    def write(
        self,
        target_path: str,
        content: str,
        metadata: Optional[MarkdownMetadata] = None,
    ) -> SaveFileResponse:
        """Write exported Markdown, prefixed with front matter if given."""
        body = format_front_matter(metadata) + content if metadata else content
        try:
            with open(target_path, "w", encoding="utf-8") as f:
                f.write(body)
        except OSError as e:
            logger.error(f"Failed to save {target_path}: {e}")
            return SaveFileResponse(success=False, error=_save_error_message(e))

        logger.info(f"Saved markdown to {target_path}")
        return SaveFileResponse(success=True, file_path=target_path)


def _save_error_message(error: OSError) -> str:
    if error.errno in (errno.EACCES, errno.EPERM):
        return "Permission denied: Cannot write to the specified location"
    if error.errno == errno.ENOSPC:
        return "Disk space is full"
    return f"Failed to save file: {error.strerror or error}"
