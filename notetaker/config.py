from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Runtime configuration. Every field can be set with a NOTETAKER_ prefixed
    environment variable, e.g. NOTETAKER_PERSISTENCE_BACKEND=sqlite.
    """

    model_config = SettingsConfigDict(env_prefix="NOTETAKER_", env_file=".env", extra="ignore")

    # External services
    openai_api_key: Optional[str] = None  # None lets the SDK read OPENAI_API_KEY
    transcription_backend: Literal["openai", "whisper"] = "openai"
    transcription_model: str = "whisper-1"
    whisper_model: str = "base"  # tiny, base, small, medium, large
    chat_model: str = "gpt-4o-mini"
    request_timeout_seconds: float = 300.0

    # Pipeline policy
    background_threshold_seconds: int = 1800
    chunk_window_seconds: int = 600
    fallback_duration_seconds: int = 300
    max_words: int = 2000
    max_parallel_transcriptions: int = 4
    worker_count: int = 2
    preprocess_audio: bool = True
    preprocess_min_seconds: int = 180

    # Storage
    upload_dir: Path = Path("uploads")
    chunks_dir: Path = Path("chunks")
    max_upload_mb: int = 100  # 0 means no limit
    persistence_backend: Literal["memory", "sqlite"] = "memory"
    database_path: Path = Path("notetaker.db")

    # HTTP
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024 if self.max_upload_mb else 0


@lru_cache
def get_settings() -> Settings:
    return Settings()
