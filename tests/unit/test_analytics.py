"""アクセス解析のテスト"""

import asyncio
import json
from datetime import date

import pytest

from transcript_remote.domain.entities import PopularVideo
from transcript_remote.infrastructure import analytics
from transcript_remote.infrastructure.analytics import (
    AnalyticsRecorder,
    daily_errors_key,
    daily_requests_key,
    popular_videos_weekly_key,
    video_requests_key,
)
from transcript_remote.infrastructure.kv_store import InMemoryKeyValueStore

TODAY = date(2026, 10, 17)


def _recorder(store: InMemoryKeyValueStore | None) -> AnalyticsRecorder:
    return AnalyticsRecorder(store, today=lambda: TODAY)


class TestKeys:
    """キー形式のテスト"""

    def test_key_formats(self) -> None:
        """日次・動画別・エラーのキー"""
        assert daily_requests_key("2026-10-17") == "analytics:requests:2026-10-17"
        assert video_requests_key("abc") == "analytics:videos:abc"
        assert daily_errors_key("2026-10-17", "RateLimited") == "analytics:errors:2026-10-17:RateLimited"

    def test_weekly_key_uses_iso_week(self) -> None:
        """ISO週番号"""
        assert popular_videos_weekly_key(date(2026, 10, 17)) == "analytics:popular:weekly:2026-W42"
        assert popular_videos_weekly_key(date(2027, 1, 1)) == "analytics:popular:weekly:2026-W53"


class TestCounters:
    """カウンタ更新のテスト"""

    def test_daily_and_video_counters(self) -> None:
        """リクエスト数と動画別件数が増える"""
        store = InMemoryKeyValueStore()
        recorder = _recorder(store)

        async def scenario() -> None:
            await recorder.track_daily_request()
            await recorder.track_daily_request()
            await recorder.increment_video_request_count("abc")
            assert await store.get("analytics:requests:2026-10-17") == "2"
            assert await store.get("analytics:videos:abc") == "1"

        asyncio.run(scenario())

    def test_invalid_count_resets_to_one(self) -> None:
        """数値でない保存値は1にリセット"""
        store = InMemoryKeyValueStore()
        recorder = _recorder(store)

        async def scenario() -> None:
            await store.put("analytics:videos:abc", "garbage")
            await recorder.increment_video_request_count("abc")
            assert await store.get("analytics:videos:abc") == "1"

        asyncio.run(scenario())

    def test_log_request_counts_only_failures(self) -> None:
        """失敗のみエラー種別ごとに記録"""
        store = InMemoryKeyValueStore()
        recorder = _recorder(store)

        async def scenario() -> None:
            await recorder.log_request("abc", success=True)
            await recorder.log_request("abc", success=False, error_type="RateLimited")
            await recorder.log_request("abc", success=False)
            stats = await recorder.get_daily_stats("2026-10-17")
            assert stats.errors == {"RateLimited": 1, "unknown": 1}
            assert stats.total_errors == 2

        asyncio.run(scenario())

    def test_schedule_and_drain(self) -> None:
        """バックグラウンド実行した更新は drain 後に反映されている"""
        store = InMemoryKeyValueStore()
        recorder = _recorder(store)

        async def scenario() -> None:
            for _ in range(3):
                recorder.schedule(recorder.track_daily_request())
            await recorder.drain()
            assert await store.get("analytics:requests:2026-10-17") == "3"

        asyncio.run(scenario())

    def test_without_store(self) -> None:
        """ストアなしでも例外にならない"""
        recorder = _recorder(None)

        async def scenario() -> None:
            await recorder.track_daily_request()
            await recorder.log_request("abc", success=False, error_type="Unknown")
            stats = await recorder.get_daily_stats("2026-10-17")
            assert stats.requests == 0
            assert await recorder.get_popular_videos(10) == []
            assert await recorder.update_popular_videos_list() == []

        asyncio.run(scenario())


class TestPopularVideos:
    """人気動画リストのテスト"""

    def test_update_and_get(self) -> None:
        """件数順に上位を保存して読み出す"""
        store = InMemoryKeyValueStore()
        recorder = _recorder(store)

        async def scenario() -> None:
            for video_id, count in [("a", 3), ("b", 10), ("c", 1), ("d", 0)]:
                await store.put(video_requests_key(video_id), str(count))

            top = await recorder.update_popular_videos_list(top_n=2)
            assert top == [PopularVideo("b", 10), PopularVideo("a", 3)]

            raw = await store.get(popular_videos_weekly_key(TODAY))
            assert json.loads(raw or "[]") == [
                {"video_id": "b", "count": 10},
                {"video_id": "a", "count": 3},
            ]
            assert await recorder.get_popular_videos(1) == [PopularVideo("b", 10)]

        asyncio.run(scenario())

    def test_empty(self) -> None:
        """データがない場合は何も保存しない"""
        store = InMemoryKeyValueStore()
        recorder = _recorder(store)

        async def scenario() -> None:
            assert await recorder.update_popular_videos_list() == []
            assert await recorder.get_popular_videos(10) == []

        asyncio.run(scenario())


class TestPagedScan:
    """複数ページにまたがる集計のテスト"""

    def test_daily_stats_across_pages(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """ページサイズを超えるエラー種別もすべて集計"""
        monkeypatch.setattr(analytics, "LIST_PAGE_SIZE", 2)
        store = InMemoryKeyValueStore()
        recorder = _recorder(store)

        async def scenario() -> None:
            for kind in ("InvalidVideo", "NetworkError", "RateLimited", "Unknown", "VideoUnavailable"):
                await store.put(daily_errors_key("2026-10-17", kind), "2")
            stats = await recorder.get_daily_stats("2026-10-17")
            assert len(stats.errors) == 5
            assert stats.total_errors == 10

        asyncio.run(scenario())
