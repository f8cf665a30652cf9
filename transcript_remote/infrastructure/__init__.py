# Infrastructure Layer
from transcript_remote.infrastructure.analytics import AnalyticsRecorder
from transcript_remote.infrastructure.kv_store import (
    FileKeyValueStore,
    InMemoryKeyValueStore,
    create_store,
)
from transcript_remote.infrastructure.retry import RetryingTranscriptFetcher, RetryPolicy
from transcript_remote.infrastructure.transcript_cache import TranscriptCache
from transcript_remote.infrastructure.youtube_transcript import YtDlpCaptionFetcher

__all__ = [
    "AnalyticsRecorder",
    "InMemoryKeyValueStore",
    "FileKeyValueStore",
    "create_store",
    "RetryingTranscriptFetcher",
    "RetryPolicy",
    "TranscriptCache",
    "YtDlpCaptionFetcher",
]
