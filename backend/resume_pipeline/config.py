from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./resume_pipeline.db"
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Credits
    CREDIT_COST_PER_FILE: int = 100
    DEFAULT_USER_CREDITS: int = 1000

    # Uploads
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10MB
    UPLOAD_DIR: Optional[str] = None  # Keep bytes inline when unset

    # Text extraction
    MIN_TEXT_LENGTH: int = 50  # Below this the PDF is treated as scanned
    OCR_DPI: int = 300
    OCR_LANG: str = "eng"

    # LLM extraction
    LLM_MODEL: str = "llama3"
    LLM_BASE_URL: Optional[str] = None
    LLM_TEMPERATURE: float = 0.1
    LLM_TIMEOUT_SECONDS: float = 60.0
    LLM_MAX_RETRIES: int = 3
    LLM_RETRY_BASE_DELAY: float = 1.0
    LLM_MAX_TEXT_LENGTH: int = 20000

    # Processing
    PROCESS_INLINE: bool = False
    PROCESSING_WORKERS: int = 2

    LOG_LEVEL: str = "INFO"

    # Pydantic v2 settings configuration
    model_config = SettingsConfigDict(env_file=["../.env", ".env"], env_file_encoding="utf-8", extra="ignore")


def get_settings() -> Settings:
    return Settings()
