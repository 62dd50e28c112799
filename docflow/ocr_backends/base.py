from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List


class OCRBackend(ABC):
    """Abstract base class for remote OCR backends.

    A backend performs exactly one request per call. Retrying, timeouts and
    error classification are left to OCRClient.
    """

    @abstractmethod
    async def process_document(self, document: Dict[str, Any]) -> List[str]:
        """Send one OCR request and return the markdown of every page.

        Args:
            document: Reference payload, either
                {"type": "document_url", "document_url": <data url>} or
                {"type": "image_url", "image_url": <data url>}

        Returns:
            Markdown fragments in page order (may be empty)
        """
        ...


class OCRErrorKind(str, Enum):
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    TIMEOUT = "TIMEOUT"
    RATE_LIMIT = "RATE_LIMIT"
    API_ERROR = "API_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"


class OCRError(Exception):
    """Raised when OCR acquisition fails."""

    def __init__(self, message: str, kind: OCRErrorKind):
        super().__init__(message)
        self.message = message
        self.kind = kind

    def __repr__(self) -> str:
        return f"OCRError({self.message!r}, {self.kind.value})"
