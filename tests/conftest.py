import asyncio
from typing import AsyncGenerator, List, Optional

import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from PIL import Image

from docflow.cache_store import CacheStore
from docflow.config import get_settings
from docflow.main import app
from docflow.ocr_backends.base import OCRBackend
from docflow.ocr_client import OCRClient
from docflow.routes import get_cache_store, get_ocr_client
from docflow.sessions import session_manager


class FakeBackend(OCRBackend):
    """Returns canned pages, raising queued errors first."""

    def __init__(self, pages: Optional[List[str]] = None, errors=None):
        self.pages = pages if pages is not None else ["# Page"]
        self.errors = list(errors or [])
        self.calls = []

    async def process_document(self, document):
        self.calls.append(document)
        if self.errors:
            raise self.errors.pop(0)
        return list(self.pages)


class GatedBackend(OCRBackend):
    """Blocks every call until release() is called."""

    def __init__(self, pages: List[str]):
        self.pages = pages
        self.calls = []
        self.started = asyncio.Event()
        self._gate = asyncio.Event()

    def release(self) -> None:
        self._gate.set()

    async def process_document(self, document):
        self.calls.append(document)
        self.started.set()
        await self._gate.wait()
        return list(self.pages)


def rate_limit_error() -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://ocr.test/v1/ocr")
    response = httpx.Response(429, request=request)
    return httpx.HTTPStatusError(
        "Too Many Requests", request=request, response=response
    )


def connect_error() -> httpx.ConnectError:
    return httpx.ConnectError("connection refused")


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def pdf_file(tmp_path):
    path = tmp_path / "scan.pdf"
    path.write_bytes(b"%PDF-1.4 fake")
    return path


@pytest.fixture
def png_file(tmp_path):
    path = tmp_path / "photo.png"
    Image.new("RGB", (40, 20), "white").save(path, "PNG")
    return path


@pytest.fixture
def fake_backend():
    return FakeBackend(pages=["P1", "P2"])


@pytest.fixture
def ocr_client(fake_backend):
    return OCRClient(
        backend=fake_backend, timeout_ms=1000, max_retries=3, retry_base_delay=0
    )


@pytest.fixture
def cache_store():
    return CacheStore(suffix="_ocr.md")


@pytest_asyncio.fixture(scope="function")
async def client(ocr_client, cache_store) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_ocr_client] = lambda: ocr_client
    app.dependency_overrides[get_cache_store] = lambda: cache_store

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
    session_manager.clear()
