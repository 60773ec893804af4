from typing import Annotated, List

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    # --- Database ---
    DATABASE_URL: str = "sqlite:///./news.db"

    # --- File storage ---
    # Root directory for uploaded files, served under /storage
    STORAGE_DIR: str = "./storage"
    THUMBNAIL_DIR: str = "thumbnails"
    THUMBNAIL_MAX_KB: int = 2048
    # Comma separated in the environment, e.g. THUMBNAIL_EXTENSIONS="jpg, png, jpeg"
    THUMBNAIL_EXTENSIONS: Annotated[List[str], NoDecode] = ["jpg", "png", "jpeg", "gif", "svg"]

    # Validation failures have always been answered with 200
    VALIDATION_STATUS_CODE: int = 200

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("THUMBNAIL_EXTENSIONS", mode="before")
    @classmethod
    def split_extensions(cls, value):
        if isinstance(value, str):
            return [part.strip().lower() for part in value.split(",") if part.strip()]
        return value


settings = Settings()
