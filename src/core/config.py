from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List, Optional
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    # Environment setting
    ENVIRONMENT: str = Field(
        "development", description="Environment: development, testing, production"
    )

    # API settings
    API_PREFIX: str = Field("/api")
    API_VERSION: str = Field("1.0.0")
    DEBUG: bool = Field(False)
    ALLOWED_ORIGINS: str = Field("*")

    # Database settings
    DB_HOST: str = Field("localhost")
    DB_PORT: int = Field(5432)
    DB_USER: str = Field("")
    DB_PASSWORD: str = Field("")
    DB_NAME: str = Field("mdt_connect")
    DB_DRIVER: str = Field("postgresql+asyncpg")
    DATABASE_URL_OVERRIDE: Optional[str] = Field(
        None, description="Full SQLAlchemy URL, takes precedence over DB_* parts"
    )

    SQLITE_MODE: bool = False

    # Jwt Security settings
    SECRET_KEY: str = Field("change-me")
    ALGORITHM: str = Field("HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(60 * 12)

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = Field(True)
    LOGIN_RATE_LIMIT: str = Field("5/minute")
    SIGNUP_RATE_LIMIT: str = Field("10/hour")

    # Case extraction service
    EXTRACTION_API_KEY: str = Field("")
    AUDIO_EXTRACTION_URL: str = Field("https://runtime.codewords.ai/run/mp3_to_mdt_v2")
    IMAGE_EXTRACTION_URL: str = Field(
        "https://runtime.codewords.ai/run/image_ocr_workflow_v2/"
    )
    EXTRACTION_TIMEOUT_SECONDS: float = Field(60.0)

    # Messaging
    MESSAGE_POLL_INTERVAL_SECONDS: int = Field(
        3, description="Client polling interval hint for MDT chat"
    )

    # Reference data
    SEED_SPECIALTIES_ON_STARTUP: bool = Field(True)

    # Logging
    LOG_LEVEL: str = Field("INFO")
    LOG_FILE: Optional[str] = Field(None)

    # Uvicorn settings
    UVICORN_HOST: str = Field("0.0.0.0")
    UVICORN_PORT: int = Field(8000)
    WORKERS_COUNT: int = Field(1)
    RELOAD: bool = Field(False)
    SHUTDOWN_GRACE_SECONDS: int = Field(10)

    @property
    def POSTGRESQL_DATABASE_URL(self) -> str:
        return (
            f"{self.DB_DRIVER}://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    @property
    def SQLITE_DATABASE_URL(self) -> str:
        return f"sqlite+aiosqlite:///{self.DB_NAME}.db"

    @property
    def DATABASE_URL(self) -> str:
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return (
            self.SQLITE_DATABASE_URL
            if self.SQLITE_MODE
            else self.POSTGRESQL_DATABASE_URL
        )

    @field_validator("ALLOWED_ORIGINS")
    def validate_origins(cls, v: str) -> List[str]:
        return v.split(",") if v else []

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


settings = Settings()
