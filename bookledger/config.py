from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./bookledger.db"
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 300
    SQLITE_BUSY_TIMEOUT: int = 30

    # Application
    APP_NAME: str = "School Book Stock Ledger"
    APP_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    # CORS
    ALLOWED_ORIGINS: List[str] = ["*"]  # Restrict in production

    # Identifiers
    RECEIPT_PREFIX: str = "RCP"
    STUDENT_CODE_PREFIX: str = "STU"
    IDENTIFIER_SOURCE: str = "database"  # "database" or "local"

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    return Settings()
