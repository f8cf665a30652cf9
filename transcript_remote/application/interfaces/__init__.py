# Application Interfaces (Protocols)
from transcript_remote.application.interfaces.caption_fetcher import (
    CaptionFetcher,
    TranscriptFetcher,
)
from transcript_remote.application.interfaces.key_value_store import (
    KeyListResult,
    KeyValueStore,
)

__all__ = [
    "CaptionFetcher",
    "TranscriptFetcher",
    "KeyValueStore",
    "KeyListResult",
]
