from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    MISTRAL_API_KEY: str = ""
    OCR_API_URL: str = "https://api.mistral.ai/v1/ocr"
    OCR_MODEL: str = "mistral-ocr-latest"
    OCR_TIMEOUT_MS: int = 30000
    OCR_MAX_RETRIES: int = 3
    OCR_RETRY_BASE_DELAY: float = 1.0  # seconds, doubled per attempt
    CACHE_SUFFIX: str = "_ocr.md"
    MAX_FILE_SIZE_MB: int = 100

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
