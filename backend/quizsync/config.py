import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings

DATA_DIR = Path(__file__).resolve().parent / "data"


class Settings(BaseSettings):
    database_url: Optional[str] = Field(None, alias="QUIZSYNC_DATABASE_URL")
    database_pool_size: int = Field(10, alias="QUIZSYNC_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(10, alias="QUIZSYNC_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="QUIZSYNC_DATABASE_ECHO")
    remote_backend: Literal["database", "rest"] = Field("database", alias="QUIZSYNC_REMOTE_BACKEND")
    rest_url: Optional[str] = Field(None, alias="QUIZSYNC_REST_URL")
    rest_api_key: Optional[str] = Field(None, alias="QUIZSYNC_REST_API_KEY")
    rest_timeout_seconds: float = Field(10.0, alias="QUIZSYNC_REST_TIMEOUT_SECONDS")
    rest_knowledge_column: str = Field("theme_knowledge", alias="QUIZSYNC_REST_KNOWLEDGE_COLUMN")
    rest_topic_column: str = Field("theme", alias="QUIZSYNC_REST_TOPIC_COLUMN")
    cache_path: Path = Field(DATA_DIR / "profile_cache.json", alias="QUIZSYNC_CACHE_PATH")
    cache_key: str = Field("local_user_profile", alias="QUIZSYNC_CACHE_KEY")
    serialize_completions: bool = Field(False, alias="QUIZSYNC_SERIALIZE_COMPLETIONS")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid quizsync configuration: {exc}") from exc
