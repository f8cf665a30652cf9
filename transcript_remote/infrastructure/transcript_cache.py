"""字幕キャッシュ（キーバリューストア上の薄いラッパー）"""

from transcript_remote.application.interfaces.key_value_store import KeyValueStore
from transcript_remote.domain.entities import CachedError, CachedTranscript, CacheEntry
from transcript_remote.infrastructure.logging_config import get_logger

logger = get_logger(__name__)

SUCCESSFUL_TRANSCRIPT_TTL_SEC = 60 * 60 * 24 * 7  # 7日
ERROR_RESPONSE_TTL_SEC = 60 * 5  # 5分

# エラー値の予約プレフィックス（字幕テキストと区別する）
ERROR_PREFIX = "Error: "


def transcript_cache_key(video_id: str, language: str) -> str:
    return f"transcript:{video_id}:{language}"


class TranscriptCache:
    """
    (動画ID, 言語) → 字幕テキスト or エラー のキャッシュ

    - 成功は長いTTL、エラーは短いTTL（一時的な失敗は自然に解消される）
    - ストアがない・ストアが失敗した場合は常にミス扱い（例外は投げない）
    """

    def __init__(
        self,
        store: KeyValueStore | None,
        transcript_ttl_sec: int = SUCCESSFUL_TRANSCRIPT_TTL_SEC,
        error_ttl_sec: int = ERROR_RESPONSE_TTL_SEC,
    ):
        self.store = store
        self.transcript_ttl_sec = transcript_ttl_sec
        self.error_ttl_sec = error_ttl_sec

    @property
    def enabled(self) -> bool:
        return self.store is not None

    async def get(self, video_id: str, language: str) -> CacheEntry | None:
        """キャッシュを参照（ミス・無効時はNone）"""
        if self.store is None:
            logger.warning("Transcript cache store is not configured")
            return None

        key = transcript_cache_key(video_id, language)
        try:
            raw = await self.store.get(key)
        except Exception as e:
            logger.error(f"Error getting from cache ({key}): {e}")
            return None

        if raw is None:
            return None
        if raw.startswith(ERROR_PREFIX):
            return CachedError(raw[len(ERROR_PREFIX):])
        return CachedTranscript(raw)

    async def put_transcript(self, video_id: str, language: str, text: str) -> None:
        await self._put(video_id, language, text, self.transcript_ttl_sec)

    async def put_error(self, video_id: str, language: str, message: str) -> None:
        await self._put(video_id, language, ERROR_PREFIX + message, self.error_ttl_sec)

    async def put(self, video_id: str, language: str, entry: CacheEntry) -> None:
        """エントリ型に応じたTTLで保存"""
        if isinstance(entry, CachedError):
            await self.put_error(video_id, language, entry.message)
        else:
            await self.put_transcript(video_id, language, entry.text)

    async def _put(self, video_id: str, language: str, value: str, ttl_sec: int) -> None:
        if self.store is None:
            logger.warning("Transcript cache store is not configured")
            return

        key = transcript_cache_key(video_id, language)
        try:
            await self.store.put(key, value, ttl_sec=ttl_sec)
        except Exception as e:
            logger.error(f"Error putting to cache ({key}): {e}")
