# Domain Layer
from transcript_remote.domain.entities import (
    CachedError,
    CachedTranscript,
    CacheEntry,
    CaptionSegment,
    DailyStats,
    PopularVideo,
)
from transcript_remote.domain.exceptions import (
    ErrorKind,
    InvalidUrlError,
    InvalidVideoError,
    NetworkError,
    NoLanguageAvailableError,
    RateLimitedError,
    TranscriptFetchError,
    TranscriptServiceError,
    VideoNotFoundError,
    VideoUnavailableError,
)

__all__ = [
    "CaptionSegment",
    "CachedTranscript",
    "CachedError",
    "CacheEntry",
    "DailyStats",
    "PopularVideo",
    "ErrorKind",
    "TranscriptServiceError",
    "InvalidUrlError",
    "VideoNotFoundError",
    "VideoUnavailableError",
    "InvalidVideoError",
    "RateLimitedError",
    "NetworkError",
    "NoLanguageAvailableError",
    "TranscriptFetchError",
]
