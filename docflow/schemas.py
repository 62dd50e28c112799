from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

MimeKind = Literal["pdf", "png", "jpeg"]


class Document(BaseModel):
    """A validated input document.

    page_count is only known up front for PDFs; images are a single page.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    name: str
    mime_kind: MimeKind
    byte_size: int
    page_count: Optional[int] = None
    width: Optional[int] = None  # images only
    height: Optional[int] = None  # images only

    @property
    def total_pages(self) -> int:
        return self.page_count or 1


class OCRResult(BaseModel):
    markdown: str
    page_count: int = Field(ge=1)


class OCROptions(BaseModel):
    timeout_ms: Optional[int] = Field(default=None, gt=0)
    max_retries: Optional[int] = Field(default=None, ge=1)


class ErrorDetail(BaseModel):
    message: str
    code: str


class OCRProcessRequest(BaseModel):
    file_path: str
    options: Optional[OCROptions] = None


class OCRProcessResponse(BaseModel):
    success: bool
    result: Optional[OCRResult] = None
    error: Optional[ErrorDetail] = None


class CacheCheckResponse(BaseModel):
    exists: bool
    cache_path: str


class CacheReadResponse(BaseModel):
    content: str


class MarkdownMetadata(BaseModel):
    original_file: str
    processed_at: str  # ISO-8601


class SaveFileRequest(BaseModel):
    file_path: str
    content: str
    metadata: Optional[MarkdownMetadata] = None


class SaveFileResponse(BaseModel):
    success: bool
    file_path: Optional[str] = None
    error: Optional[str] = None


class ValidateFileRequest(BaseModel):
    file_path: str


class FileValidationResult(BaseModel):
    valid: bool
    error: Optional[ErrorDetail] = None
    file_info: Optional[Document] = None


class OpenSessionRequest(BaseModel):
    file_path: str
    options: Optional[OCROptions] = None


class SessionResponse(BaseModel):
    session_id: str
    document: Document
    status: str
    loaded_from_cache: bool
    notice: Optional[str] = None
    error: Optional[ErrorDetail] = None
    total_pages: int
    pages: List[str]


class PageContent(BaseModel):
    page: int
    content: str


class PageUpdateRequest(BaseModel):
    content: str


class MarkdownResponse(BaseModel):
    markdown: str
    has_content: bool


class SaveSessionRequest(BaseModel):
    file_path: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    open_sessions: int
    ocr_backend_configured: bool
