from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "AMap Distance API"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/api/v1"

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    AMAP_API_KEY: str | None = None
    AMAP_BASE_URL: str = "https://restapi.amap.com"
    # None disables the per-request timeout entirely
    AMAP_REQUEST_TIMEOUT: float | None = None

    BATCH_SIZE: int = 10
    PAGE_SIZE: int = 100
    CALL_DELAY_SECONDS: float = 0.05
    BATCH_DELAY_SECONDS: float = 0.1

    @field_validator("AMAP_BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("BATCH_SIZE", "PAGE_SIZE")
    @classmethod
    def positive_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be a positive integer")
        return v


settings = Settings()
