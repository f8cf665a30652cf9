"""設定管理"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """アプリケーション設定"""

    # Server
    SERVER_NAME: str = "youtube-transcript-remote"
    SERVER_VERSION: str = "1.0.0"
    HOST: str = "0.0.0.0"
    PORT: int = 8787
    # SSE接続のキープアライブ間隔（秒）
    SSE_KEEPALIVE_SEC: int = 30

    # Cache / Analytics store
    # "memory" / "file" / "none"（none ではキャッシュ・解析ともに無効）
    CACHE_BACKEND: str = "memory"
    CACHE_DIR: str = "cache"
    TRANSCRIPT_TTL_SEC: int = 60 * 60 * 24 * 7  # 7日
    ERROR_TTL_SEC: int = 60 * 5  # 5分

    # Retry
    MAX_FETCH_ATTEMPTS: int = 3
    INITIAL_BACKOFF_SEC: float = 1.0

    # Timeouts
    SUBTITLE_FETCH_TIMEOUT: int = 30

    # Language
    FALLBACK_LANGUAGE: str = "en"
    # language="auto" のとき先頭から順に試す
    AUTO_DETECT_LANGUAGES: list[str] = [
        "en", "es", "fr", "de", "tr", "pt", "ja", "ko", "zh", "it", "ru", "ar",
    ]

    # Logging & Observability
    LOG_LEVEL: str = "INFO"
    LANGSMITH_TRACING: bool = False
    LANGSMITH_API_KEY: str | None = None
    LANGSMITH_PROJECT: str = "youtube-transcript-remote"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


@lru_cache
def get_settings() -> Settings:
    """シングルトンで設定を取得"""
    return Settings()
