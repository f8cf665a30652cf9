"""メインユースケース: YouTube URL から字幕テキストを取得"""

from dataclasses import dataclass, field

from transcript_remote.application.interfaces.caption_fetcher import TranscriptFetcher
from transcript_remote.domain.entities import CachedError, CachedTranscript
from transcript_remote.domain.error_classification import (
    error_from_message,
    is_language_related,
    user_message,
)
from transcript_remote.domain.exceptions import (
    InvalidUrlError,
    NoLanguageAvailableError,
    TranscriptServiceError,
    VideoNotFoundError,
)
from transcript_remote.domain.url_utils import extract_video_id, is_valid_url, normalize_url
from transcript_remote.infrastructure.analytics import AnalyticsRecorder
from transcript_remote.infrastructure.logging_config import get_logger, trace_chain
from transcript_remote.infrastructure.transcript_cache import TranscriptCache

logger = get_logger(__name__)

AUTO_LANGUAGE = "auto"

DEFAULT_AUTO_DETECT_LANGUAGES = (
    "en", "es", "fr", "de", "tr", "pt", "ja", "ko", "zh", "it", "ru", "ar",
)


@dataclass
class ResolveTranscriptConfig:
    """ユースケースの設定"""

    # 自動検出で試す言語（先頭から順に）
    auto_detect_languages: list[str] = field(
        default_factory=lambda: list(DEFAULT_AUTO_DETECT_LANGUAGES)
    )
    fallback_language: str = "en"


def auto_detected_note(language: str, text: str) -> str:
    return f"[Auto-detected language: {language}]\n\n{text}"


def fallback_label(language: str) -> str:
    """フォールバック言語の表示名（英語以外は言語コードをそのまま示す）"""
    return "English" if language == "en" else f"'{language}'"


def fallback_note(requested: str, text: str, fallback: str = "en") -> str:
    return (
        f"[Requested language '{requested}' not available, "
        f"showing {fallback_label(fallback)} instead]\n\n{text}"
    )


class ResolveTranscriptUseCase:
    """
    メインユースケース: URL と言語指定から字幕テキストを解決

    - language="auto": 候補言語を順に試す（言語起因でない失敗は即終了）
    - それ以外: 指定言語 → 言語起因の失敗なら英語にフォールバック
    - キャッシュは具体的な言語コードでのみ読み書きする（"auto" では保存しない）
    """

    def __init__(
        self,
        transcript_fetcher: TranscriptFetcher,
        cache: TranscriptCache,
        analytics: AnalyticsRecorder | None = None,
        config: ResolveTranscriptConfig | None = None,
    ):
        self.transcript_fetcher = transcript_fetcher
        self.cache = cache
        self.analytics = analytics
        self.config = config or ResolveTranscriptConfig()

    @trace_chain(name="resolve_transcript")
    async def execute(self, url: str, language: str = AUTO_LANGUAGE) -> str:
        """
        メイン実行フロー

        Args:
            url: YouTube動画URL（任意の形式）
            language: 言語コード、または "auto"

        Returns:
            字幕テキスト（フォールバック・自動検出時は注記付き）

        Raises:
            TranscriptServiceError: 分類済みのエラー
        """
        if not is_valid_url(url):
            raise InvalidUrlError("Invalid YouTube URL provided.")

        video_id = extract_video_id(normalize_url(url))
        if not video_id:
            raise VideoNotFoundError("Could not extract video ID from the URL.")

        self._track_request(video_id)

        language = (language or "").strip() or AUTO_LANGUAGE
        logger.info(f"[Transcript] 解決開始: {video_id} (lang={language})")

        if language == AUTO_LANGUAGE:
            return await self._resolve_auto(video_id)
        return await self._resolve_with_fallback(video_id, language)

    def _track_request(self, video_id: str) -> None:
        if self.analytics is None:
            return
        self.analytics.schedule(self.analytics.track_daily_request())
        self.analytics.schedule(self.analytics.increment_video_request_count(video_id))

    def _log_failure(self, video_id: str, error: TranscriptServiceError) -> None:
        if self.analytics is None:
            return
        self.analytics.schedule(
            self.analytics.log_request(video_id, success=False, error_type=error.kind.value)
        )

    async def _fetch_and_cache(self, video_id: str, language: str) -> str:
        """取得してキャッシュ（失敗時はキャッシュしない）"""
        transcript = await self.transcript_fetcher.fetch_with_retry(video_id, language)
        await self.cache.put_transcript(video_id, language, transcript)
        return transcript

    async def _resolve_auto(self, video_id: str) -> str:
        """候補言語を順に試す"""
        tried: list[str] = []

        for lang in self.config.auto_detect_languages:
            logger.debug(f"  自動検出: {lang} を試行")

            # キャッシュ済みエラーは無視して再取得する
            cached = await self.cache.get(video_id, lang)
            if isinstance(cached, CachedTranscript):
                logger.info(f"[Transcript] 自動検出: キャッシュ命中 ({lang})")
                return auto_detected_note(lang, cached.text)

            try:
                transcript = await self._fetch_and_cache(video_id, lang)
            except TranscriptServiceError as e:
                logger.debug(f"  自動検出: {lang} 失敗 - {e}")
                if not is_language_related(str(e)):
                    # 動画自体の問題は他の言語でも解決しない
                    self._log_failure(video_id, e)
                    raise type(e)(user_message(e)) from e
                tried.append(f"{lang}: {e}")
                continue

            logger.info(f"[Transcript] 自動検出成功: {video_id} ({lang})")
            return auto_detected_note(lang, transcript)

        error = NoLanguageAvailableError(
            "No transcript available in any tested language. Tried: " + ", ".join(tried)
        )
        self._log_failure(video_id, error)
        raise error

    async def _resolve_with_fallback(self, video_id: str, requested: str) -> str:
        """指定言語を試し、言語起因の失敗なら英語にフォールバック"""
        cached = await self.cache.get(video_id, requested)
        # キャッシュ済みエラーは再保存しない（TTLを延長しない）
        from_cache = isinstance(cached, CachedError)

        try:
            if isinstance(cached, CachedError):
                raise error_from_message(cached.message)
            if isinstance(cached, CachedTranscript):
                logger.info(f"[Transcript] キャッシュ命中: {video_id} ({requested})")
                return cached.text

            return await self._fetch_and_cache(video_id, requested)

        except TranscriptServiceError as error:
            logger.info(f"[Transcript] 指定言語 {requested} 失敗: {error}")

            if is_language_related(str(error)) and requested != self.config.fallback_language:
                return await self._resolve_fallback(video_id, requested, error, from_cache)

            message = error.message if from_cache else user_message(error)
            if not from_cache:
                await self.cache.put_error(video_id, requested, message)
            self._log_failure(video_id, error)
            raise type(error)(message) from error

    async def _resolve_fallback(
        self,
        video_id: str,
        requested: str,
        original_error: TranscriptServiceError,
        from_cache: bool,
    ) -> str:
        fallback = self.config.fallback_language
        logger.info(f"[Transcript] {fallback} へフォールバック: {video_id}")

        try:
            cached = await self.cache.get(video_id, fallback)
            if isinstance(cached, CachedTranscript):
                return fallback_note(requested, cached.text, fallback)

            transcript = await self._fetch_and_cache(video_id, fallback)
            return fallback_note(requested, transcript, fallback)

        except TranscriptServiceError as fallback_error:
            logger.info(f"[Transcript] フォールバックも失敗: {fallback_error}")
            if not from_cache:
                await self.cache.put_error(video_id, requested, user_message(original_error))
            self._log_failure(video_id, original_error)
            raise type(original_error)(
                f"Transcript not available in '{requested}' and "
                f"{fallback_label(fallback)} fallback failed: "
                f"{user_message(fallback_error)}"
            ) from fallback_error
