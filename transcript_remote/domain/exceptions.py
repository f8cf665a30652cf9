"""ドメイン固有の例外定義"""

from enum import Enum


class ErrorKind(str, Enum):
    """呼び出し側に公開するエラー分類"""

    INVALID_URL = "InvalidUrl"
    VIDEO_NOT_FOUND = "VideoNotFound"
    VIDEO_UNAVAILABLE = "VideoUnavailable"
    INVALID_VIDEO = "InvalidVideo"
    RATE_LIMITED = "RateLimited"
    NETWORK_ERROR = "NetworkError"
    NO_LANGUAGE_AVAILABLE = "NoLanguageAvailable"
    UNKNOWN = "Unknown"


class TranscriptServiceError(Exception):
    """基底例外クラス"""

    kind: ErrorKind = ErrorKind.UNKNOWN

    @property
    def message(self) -> str:
        return str(self)


class InvalidUrlError(TranscriptServiceError):
    """YouTube動画URLとして認識できない"""

    kind = ErrorKind.INVALID_URL


class VideoNotFoundError(TranscriptServiceError):
    """URLから動画IDを抽出できない"""

    kind = ErrorKind.VIDEO_NOT_FOUND


class VideoUnavailableError(TranscriptServiceError):
    """字幕がない、または字幕が無効化されている"""

    kind = ErrorKind.VIDEO_UNAVAILABLE


class InvalidVideoError(TranscriptServiceError):
    """非公開・削除済み・存在しない動画"""

    kind = ErrorKind.INVALID_VIDEO


class RateLimitedError(TranscriptServiceError):
    """上流側のレート制限"""

    kind = ErrorKind.RATE_LIMITED


class NetworkError(TranscriptServiceError):
    """リトライを使い切った一時的な通信エラー"""

    kind = ErrorKind.NETWORK_ERROR


class NoLanguageAvailableError(TranscriptServiceError):
    """自動検出ですべての候補言語が失敗した"""

    kind = ErrorKind.NO_LANGUAGE_AVAILABLE


class TranscriptFetchError(TranscriptServiceError):
    """分類できない終端エラー"""

    kind = ErrorKind.UNKNOWN
