"""
上流エラーメッセージの分類テーブル

字幕取得ライブラリはエラー種別をメッセージ文字列でしか表さないため、
(パターン → 分類) の対応をこのモジュールに集約する。
上流の文言が変わった場合はここだけを修正すればよい。
"""

import re
from dataclasses import dataclass
from enum import Enum

from transcript_remote.domain.exceptions import (
    InvalidVideoError,
    NetworkError,
    RateLimitedError,
    TranscriptFetchError,
    TranscriptServiceError,
    VideoUnavailableError,
)


class FailureClass(str, Enum):
    """1回の取得失敗の分類"""

    NETWORK = "network"
    RATE_LIMIT = "rate_limit"
    NO_TRANSCRIPT = "no_transcript"
    INVALID_VIDEO = "invalid_video"
    OTHER = "other"

    @property
    def is_retryable(self) -> bool:
        return self not in (FailureClass.NO_TRANSCRIPT, FailureClass.INVALID_VIDEO)


@dataclass(frozen=True)
class ClassificationRule:
    """メッセージ断片のパターンと分類の組"""

    pattern: re.Pattern[str]
    failure_class: FailureClass

    def matches(self, message: str) -> bool:
        return self.pattern.search(message) is not None


def _rule(pattern: str, failure_class: FailureClass) -> ClassificationRule:
    return ClassificationRule(re.compile(pattern, re.IGNORECASE), failure_class)


# 上から順に評価する
# ステータスコードは動画ID内の数字と区別するため単独のトークンのみ一致させる
CLASSIFICATION_RULES: tuple[ClassificationRule, ...] = (
    _rule(r"timed out", FailureClass.NETWORK),
    _rule(r"network", FailureClass.NETWORK),
    _rule(r"econnreset|connection reset", FailureClass.NETWORK),
    _rule(r"too many requests", FailureClass.RATE_LIMIT),
    _rule(r"(?<![\w-])(?:429|403)(?![\w-])", FailureClass.RATE_LIMIT),
    _rule(r"no transcript found", FailureClass.NO_TRANSCRIPT),
    _rule(r"disabled", FailureClass.NO_TRANSCRIPT),
    _rule(r"unavailable", FailureClass.INVALID_VIDEO),
    _rule(r"private", FailureClass.INVALID_VIDEO),
    _rule(r"invalid video id", FailureClass.INVALID_VIDEO),
    _rule(r"not found or private", FailureClass.INVALID_VIDEO),
)

LANGUAGE_RELATED_FRAGMENTS: tuple[str, ...] = (
    "language",
    "subtitle",
    "caption",
    "transcript",
    "not available",
    "no transcript found",
)


def classify_failure(message: str) -> FailureClass:
    """上流エラーメッセージを分類"""
    for rule in CLASSIFICATION_RULES:
        if rule.matches(message):
            return rule.failure_class
    return FailureClass.OTHER


def is_language_related(message: str) -> bool:
    """要求言語の字幕トラック固有の失敗かどうか"""
    lowered = message.lower()
    return any(fragment in lowered for fragment in LANGUAGE_RELATED_FRAGMENTS)


MESSAGE_VIDEO_UNAVAILABLE = "No transcript available for this video."
MESSAGE_RATE_LIMITED = "Service temporarily busy, try again in a few minutes."
MESSAGE_NETWORK = "Unable to fetch transcript, please try again."
MESSAGE_INVALID_VIDEO = "Video not found or private."
MESSAGE_TRANSCRIPTS_DISABLED = "Transcripts are disabled for this video."
MESSAGE_UNEXPECTED = "An unexpected error occurred while fetching the transcript."


def user_message(error: BaseException) -> str:
    """エラーを利用者向けの説明文に変換"""
    if isinstance(error, VideoUnavailableError):
        return MESSAGE_VIDEO_UNAVAILABLE
    if isinstance(error, RateLimitedError):
        return MESSAGE_RATE_LIMITED
    if isinstance(error, NetworkError):
        return MESSAGE_NETWORK
    if isinstance(error, InvalidVideoError):
        return MESSAGE_INVALID_VIDEO

    message = str(error)
    if "not found or private" in message or "Invalid video ID" in message:
        return MESSAGE_INVALID_VIDEO
    if "transcripts disabled" in message:
        return MESSAGE_TRANSCRIPTS_DISABLED
    if "No transcript found" in message:
        return MESSAGE_VIDEO_UNAVAILABLE
    return MESSAGE_UNEXPECTED


_ERROR_TYPES_BY_MESSAGE: dict[str, type[TranscriptServiceError]] = {
    MESSAGE_VIDEO_UNAVAILABLE: VideoUnavailableError,
    MESSAGE_TRANSCRIPTS_DISABLED: VideoUnavailableError,
    MESSAGE_RATE_LIMITED: RateLimitedError,
    MESSAGE_NETWORK: NetworkError,
    MESSAGE_INVALID_VIDEO: InvalidVideoError,
}


def error_from_message(message: str) -> TranscriptServiceError:
    """キャッシュ済みの利用者向けメッセージから分類済みの例外を復元"""
    error_type = _ERROR_TYPES_BY_MESSAGE.get(message, TranscriptFetchError)
    return error_type(message)
