"""字幕テキストの整形ユーティリティ"""

import re
from collections.abc import Iterable

from transcript_remote.domain.entities import CaptionSegment

_NEWLINE_RUNS = re.compile(r"\n+")


def sanitize_transcript_text(transcript: str) -> str:
    """
    連続する改行を1つにまとめ、前後の空白を除去

    Example:
        "a\\n\\n\\nb  \\n" → "a\\nb"
    """
    if not transcript:
        return ""
    return _NEWLINE_RUNS.sub("\n", transcript).strip()


def join_segments(segments: Iterable[CaptionSegment]) -> str:
    """セグメントを半角スペースで結合して整形"""
    return sanitize_transcript_text(" ".join(segment.text for segment in segments))
