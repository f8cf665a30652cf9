"""リトライ戦略（字幕取得用）"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)

from transcript_remote.application.interfaces.caption_fetcher import CaptionFetcher
from transcript_remote.domain.error_classification import FailureClass, classify_failure
from transcript_remote.domain.exceptions import (
    InvalidVideoError,
    NetworkError,
    RateLimitedError,
    TranscriptFetchError,
    TranscriptServiceError,
    VideoUnavailableError,
)
from transcript_remote.domain.text_utils import join_segments
from transcript_remote.infrastructure.logging_config import LogContext, get_logger, trace_tool

logger = get_logger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """リトライ回数とバックオフの設定"""

    max_attempts: int = 3
    initial_backoff_sec: float = 1.0

    def backoff_for(self, failure_class: FailureClass, attempt_number: int) -> float:
        """
        attempt_number 回目の失敗後の待機時間（秒）

        - 通常: initial * 2^(n-1)
        - レート制限: さらに (n+1) 倍
        """
        base = self.initial_backoff_sec * (2 ** (attempt_number - 1))
        if failure_class is FailureClass.RATE_LIMIT:
            return base * (attempt_number + 1)
        return base


class RetryableFailure(Exception):
    """リトライ対象の1回分の失敗"""

    def __init__(self, failure_class: FailureClass, message: str):
        super().__init__(message)
        self.failure_class = failure_class
        self.message = message


def wait_by_failure_class(policy: RetryPolicy) -> Callable[[RetryCallState], float]:
    """失敗分類に応じた待機時間を返す tenacity の wait"""

    def wait(retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        failure_class = exc.failure_class if isinstance(exc, RetryableFailure) else FailureClass.OTHER
        return policy.backoff_for(failure_class, retry_state.attempt_number)

    return wait


class RetryingTranscriptFetcher:
    """
    上流の字幕取得をリトライ・エラー分類付きで呼び出す

    - 字幕なし / 無効な動画: 即座に失敗（リトライしない）
    - ネットワーク・レート制限・その他: 指数バックオフで最大 max_attempts 回
    - 待機は asyncio のサスペンドなので他のリクエストを止めない
    """

    def __init__(
        self,
        caption_fetcher: CaptionFetcher,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.caption_fetcher = caption_fetcher
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    @trace_tool(name="fetch_with_retry")
    async def fetch_with_retry(self, video_id: str, language: str) -> str:
        """
        字幕テキストを取得

        Args:
            video_id: YouTube動画ID
            language: 言語コード

        Returns:
            整形済みの字幕テキスト

        Raises:
            VideoUnavailableError: 字幕なし・無効化
            InvalidVideoError: 非公開・削除済み・存在しない動画
            NetworkError: リトライを使い切った通信エラー
            RateLimitedError: リトライを使い切ったレート制限
            TranscriptFetchError: その他の終端エラー
        """
        ctx = LogContext(video_id=video_id, language=language)
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.policy.max_attempts),
            wait=wait_by_failure_class(self.policy),
            retry=retry_if_exception_type(RetryableFailure),
            sleep=self._sleep,
            before_sleep=lambda state: self._log_retry(state, ctx),
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    text = await self._attempt(video_id, language, attempt.retry_state.attempt_number)
        except RetryableFailure as failure:
            raise self._terminal_error(failure, video_id) from failure

        logger.debug(f"[Retry] 取得成功: {ctx}")
        return text

    async def _attempt(self, video_id: str, language: str, attempt_number: int) -> str:
        try:
            segments = await asyncio.to_thread(
                self.caption_fetcher.fetch_captions, video_id, language
            )
        except TranscriptServiceError:
            raise
        except Exception as e:
            message = str(e) or type(e).__name__
            failure_class = classify_failure(message)
            logger.warning(
                f"[Retry] 試行{attempt_number}回目失敗 ({failure_class.value}): "
                f"{video_id} (lang: {language}): {message}"
            )
            if failure_class is FailureClass.NO_TRANSCRIPT:
                raise VideoUnavailableError(
                    f"No transcript found for {video_id} (lang: {language}). "
                    "Transcripts may be disabled."
                ) from e
            if failure_class is FailureClass.INVALID_VIDEO:
                raise InvalidVideoError(f"Video {video_id} not found or is private.") from e
            raise RetryableFailure(failure_class, message) from e

        return join_segments(segments)

    def _terminal_error(self, failure: RetryableFailure, video_id: str) -> TranscriptServiceError:
        attempts = self.policy.max_attempts
        if failure.failure_class is FailureClass.NETWORK:
            return NetworkError(f"Network error after {attempts} attempts: {failure.message}")
        if failure.failure_class is FailureClass.RATE_LIMIT:
            return RateLimitedError(f"Rate limited after {attempts} attempts: {failure.message}")
        logger.error(f"[Retry] 最終試行も失敗: {video_id} - {failure.message}")
        return TranscriptFetchError(
            f"Failed to fetch transcript for {video_id} after {attempts} attempts: "
            f"{failure.message}"
        )

    @staticmethod
    def _log_retry(retry_state: RetryCallState, ctx: LogContext) -> None:
        sleep_sec = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.info(
            f"[Retry] {sleep_sec:.1f}秒後に再試行 "
            f"({retry_state.attempt_number + 1}回目): {ctx}"
        )
