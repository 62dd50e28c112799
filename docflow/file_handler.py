import logging
import os
from typing import Optional, Tuple

from pdf2image import pdfinfo_from_path
from PIL import Image

from docflow.config import get_settings
from docflow.schemas import Document, ErrorDetail, FileValidationResult

logger = logging.getLogger(__name__)

FILE_TYPES = {
    ".pdf": "pdf",
    ".png": "png",
    ".jpg": "jpeg",
    ".jpeg": "jpeg",
}


class FileInputError(Exception):
    """Raised when an input document fails validation.

    code is one of UNSUPPORTED_FORMAT, FILE_CORRUPTED, FILE_TOO_LARGE,
    READ_ERROR.
    """

    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.message = message
        self.code = code


def validate_file(file_path: str) -> FileValidationResult:
    """Check an input document and describe it as a Document."""
    try:
        return FileValidationResult(valid=True, file_info=inspect_file(file_path))
    except FileInputError as e:
        logger.info(f"Rejected {file_path}: {e.code} {e.message}")
        return FileValidationResult(
            valid=False, error=ErrorDetail(message=e.message, code=e.code)
        )


def inspect_file(file_path: str) -> Document:
    settings = get_settings()

    try:
        size = os.stat(file_path).st_size
    except FileNotFoundError:
        raise FileInputError("File not found", "READ_ERROR") from None
    except OSError as e:
        raise FileInputError(
            f"Failed to validate file: {e}", "READ_ERROR"
        ) from e

    if size > settings.MAX_FILE_SIZE_MB * 1024 * 1024:
        raise FileInputError(
            f"File size exceeds {settings.MAX_FILE_SIZE_MB}MB limit",
            "FILE_TOO_LARGE",
        )

    ext = os.path.splitext(file_path)[1].lower()
    mime_kind = FILE_TYPES.get(ext)
    if mime_kind is None:
        raise FileInputError(
            f"Unsupported file format: {ext}", "UNSUPPORTED_FORMAT"
        )

    page_count: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    if mime_kind == "pdf":
        page_count = extract_pdf_page_count(file_path)
    else:
        width, height = extract_image_size(file_path)

    return Document(
        path=file_path,
        name=os.path.basename(file_path),
        mime_kind=mime_kind,
        byte_size=size,
        page_count=page_count,
        width=width,
        height=height,
    )


def extract_pdf_page_count(file_path: str) -> int:
    try:
        info = pdfinfo_from_path(file_path)
        return int(info["Pages"])
    except Exception as e:
        raise FileInputError(
            f"Failed to extract PDF metadata: {e}", "FILE_CORRUPTED"
        ) from e


def extract_image_size(file_path: str) -> Tuple[int, int]:
    try:
        with Image.open(file_path) as img:
            return img.size
    except Exception as e:
        raise FileInputError(
            f"Failed to read image: {e}", "FILE_CORRUPTED"
        ) from e
