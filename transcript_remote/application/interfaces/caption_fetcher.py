"""字幕取得インターフェース"""

from typing import Protocol

from transcript_remote.domain.entities import CaptionSegment


class CaptionFetcher(Protocol):
    """上流の字幕取得機能（1回の呼び出し）のインターフェース"""

    def fetch_captions(self, video_id: str, language: str) -> list[CaptionSegment]:
        """
        指定言語の字幕セグメントを取得

        Args:
            video_id: YouTube動画ID
            language: 言語コード（検証せずそのまま上流に渡す）

        Returns:
            時系列順の字幕セグメント

        Raises:
            Exception: 上流の失敗。メッセージ文字列が唯一の分類材料となる
        """
        ...


class TranscriptFetcher(Protocol):
    """リトライ・エラー分類込みの字幕テキスト取得インターフェース"""

    async def fetch_with_retry(self, video_id: str, language: str) -> str:
        """
        整形済みの字幕テキストを取得

        Raises:
            TranscriptServiceError: 分類済みのエラー
        """
        ...
