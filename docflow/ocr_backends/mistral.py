import logging
from typing import Any, Dict, List, Optional

import httpx

from docflow.ocr_backends.base import OCRBackend, OCRError, OCRErrorKind

logger = logging.getLogger(__name__)


class MistralBackend(OCRBackend):
    """Mistral OCR backend via the hosted REST API (POST /v1/ocr).

    PDFs go out as document_url references and images as image_url
    references, both carrying base64 data URLs. Response shape:
    {"pages": [{"index": 0, "markdown": "..."}, ...], ...}
    """

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://api.mistral.ai/v1/ocr",
        model: str = "mistral-ocr-latest",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self._api_url = api_url
        self._model = model
        self._transport = transport

    async def process_document(self, document: Dict[str, Any]) -> List[str]:
        # No transport timeout; OCRClient bounds each attempt with wait_for
        async with httpx.AsyncClient(
            timeout=None, transport=self._transport
        ) as client:
            response = await client.post(
                self._api_url,
                headers={"Authorization": f"Bearer {self._api_key}"},
                json={"model": self._model, "document": document},
            )
            response.raise_for_status()
            try:
                data = response.json()
            except ValueError as e:
                raise OCRError(
                    f"OCR response is not valid JSON: {e}",
                    OCRErrorKind.INVALID_RESPONSE,
                ) from e

        pages = data.get("pages") if isinstance(data, dict) else None
        if pages is None:
            logger.warning("OCR response carried no 'pages' field")
            return []
        return _page_markdowns(pages)


def _page_markdowns(pages: Any) -> List[str]:
    if not isinstance(pages, list):
        raise OCRError(
            f"Unexpected OCR response format: 'pages' is {type(pages).__name__}",
            OCRErrorKind.INVALID_RESPONSE,
        )
    markdowns = []
    for index, page in enumerate(pages):
        markdown = page.get("markdown") if isinstance(page, dict) else None
        if not isinstance(page, dict) or (
            markdown is not None and not isinstance(markdown, str)
        ):
            raise OCRError(
                f"Unexpected OCR response format: page {index} has no markdown text",
                OCRErrorKind.INVALID_RESPONSE,
            )
        markdowns.append(markdown or "")
    return markdowns
