"""
アクセス解析（キーバリューストア上のカウンタ）

カウンタ更新は「読み取り → +1 → 書き込み」でありアトミックではない。
同時更新時に一部の加算が失われることは許容する（正確な件数は保証しない）。
失敗はすべてログに出して握りつぶし、呼び出し元には伝播させない。
"""

import asyncio
import json
from datetime import date, datetime, timezone
from typing import Any, Callable, Coroutine

from transcript_remote.application.interfaces.key_value_store import KeyValueStore
from transcript_remote.domain.entities import DailyStats, PopularVideo
from transcript_remote.infrastructure.logging_config import get_logger

logger = get_logger(__name__)

ANALYTICS_TTL_SEC = 60 * 60 * 24  # 24時間
POPULAR_VIDEOS_TTL_SEC = 60 * 60 * 24 * 7  # 7日
LIST_PAGE_SIZE = 1000

VIDEO_REQUESTS_PREFIX = "analytics:videos:"


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def daily_requests_key(day: str) -> str:
    return f"analytics:requests:{day}"


def daily_errors_prefix(day: str) -> str:
    return f"analytics:errors:{day}:"


def daily_errors_key(day: str, error_type: str | None = None) -> str:
    return daily_errors_prefix(day) + (error_type or "general")


def video_requests_key(video_id: str) -> str:
    return VIDEO_REQUESTS_PREFIX + video_id


def popular_videos_weekly_key(today: date) -> str:
    """ISO週番号ベースのキー（例: analytics:popular:weekly:2026-W42）"""
    year, week, _ = today.isocalendar()
    return f"analytics:popular:weekly:{year}-W{week:02d}"


def _parse_count(raw: str | None) -> int | None:
    """保存値をカウントとして解釈（不正値はNone）"""
    if raw is None:
        return 0
    try:
        return int(raw)
    except ValueError:
        return None


async def _scan(store: KeyValueStore, prefix: str) -> list[str]:
    """プレフィックスに一致するキーを全ページ取得"""
    keys: list[str] = []
    cursor: str | None = None
    while True:
        page = await store.list(prefix=prefix, cursor=cursor, limit=LIST_PAGE_SIZE)
        keys.extend(page.keys)
        if page.complete or page.cursor is None:
            return keys
        cursor = page.cursor


async def _read_count(store: KeyValueStore, key: str) -> int:
    return _parse_count(await store.get(key)) or 0


class AnalyticsRecorder:
    """リクエスト数・エラー数・人気動画の記録"""

    def __init__(
        self,
        store: KeyValueStore | None,
        today: Callable[[], date] = _utc_today,
    ):
        self.store = store
        self._today = today
        self._pending: set[asyncio.Task[Any]] = set()

    # ---- fire-and-forget ----

    def schedule(self, coro: Coroutine[Any, Any, None]) -> None:
        """
        記録処理をバックグラウンドタスクとして実行

        完了を待たずに戻る。例外は各記録メソッド内でログ出力済み。
        """
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: "asyncio.Task[Any]") -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Analytics task failed: {task.exception()}")

    async def drain(self) -> None:
        """未完了の記録タスクをすべて待つ（終了処理・テスト用）"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ---- counters ----

    async def _increment(self, key: str, ttl_sec: int | None = None) -> None:
        if self.store is None:
            logger.warning("Analytics store is not configured, skipping")
            return
        try:
            current = await self.store.get(key)
            count = _parse_count(current)
            if count is None:
                logger.warning(f"Invalid count for {key}: {current!r}. Resetting to 1.")
                count = 0
            await self.store.put(key, str(count + 1), ttl_sec=ttl_sec)
        except Exception as e:
            logger.error(f"Error incrementing counter ({key}): {e}")

    async def track_daily_request(self) -> None:
        """当日（UTC）のリクエスト数 +1"""
        await self._increment(daily_requests_key(self._today().isoformat()))

    async def increment_video_request_count(self, video_id: str) -> None:
        """動画ごとのリクエスト数 +1"""
        await self._increment(video_requests_key(video_id))

    async def log_request(
        self,
        video_id: str,
        success: bool,
        error_type: str | None = None,
    ) -> None:
        """
        リクエスト結果を記録

        失敗時のみ、エラー種別ごとの当日カウンタを +1 する。
        """
        if success:
            return
        key = daily_errors_key(self._today().isoformat(), error_type or "unknown")
        logger.debug(f"[Analytics] error recorded: {video_id} ({error_type})")
        await self._increment(key, ttl_sec=ANALYTICS_TTL_SEC * 2)

    # ---- queries ----

    async def get_daily_stats(self, day: str) -> DailyStats:
        """
        指定日のリクエスト数とエラー内訳

        Args:
            day: YYYY-MM-DD 形式の日付
        """
        if self.store is None:
            logger.warning("Analytics store is not configured, cannot get daily stats")
            return DailyStats(date=day, requests=0, errors={})

        requests = 0
        try:
            requests = await _read_count(self.store, daily_requests_key(day))
        except Exception as e:
            logger.error(f"Error fetching daily request count ({day}): {e}")

        errors: dict[str, int] = {}
        prefix = daily_errors_prefix(day)
        try:
            for key in await _scan(self.store, prefix):
                errors[key[len(prefix):]] = await _read_count(self.store, key)
        except Exception as e:
            logger.error(f"Error fetching daily error stats for date {day}: {e}")

        return DailyStats(date=day, requests=requests, errors=errors)

    async def get_popular_videos(self, limit: int) -> list[PopularVideo]:
        """今週の人気動画リスト（update_popular_videos_list で事前集計したもの）"""
        if self.store is None:
            logger.warning("Analytics store is not configured, cannot get popular videos")
            return []

        key = popular_videos_weekly_key(self._today())
        try:
            raw = await self.store.get(key)
            if raw:
                return [PopularVideo.from_dict(item) for item in json.loads(raw)][:limit]
        except Exception as e:
            logger.error(f"Error fetching or parsing popular videos ({key}): {e}")
        return []

    async def update_popular_videos_list(self, top_n: int = 20) -> list[PopularVideo]:
        """
        動画ごとのリクエスト数を走査して今週の人気動画リストを更新

        全キーを走査するため重い。定期実行を想定し、通常リクエストでは呼ばない。

        Returns:
            保存した上位リスト
        """
        if self.store is None:
            logger.warning("Analytics store is not configured, cannot update popular videos")
            return []

        logger.info("Updating popular videos list...")
        try:
            counts = []
            for key in await _scan(self.store, VIDEO_REQUESTS_PREFIX):
                count = await _read_count(self.store, key)
                if count > 0:
                    counts.append(PopularVideo(key[len(VIDEO_REQUESTS_PREFIX):], count))

            top_videos = sorted(counts, key=lambda v: v.count, reverse=True)[:top_n]
            if not top_videos:
                logger.info("No video data found to update popular videos list.")
                return []

            key = popular_videos_weekly_key(self._today())
            await self.store.put(
                key,
                json.dumps([v.to_dict() for v in top_videos]),
                ttl_sec=POPULAR_VIDEOS_TTL_SEC,
            )
            logger.info(f"Updated popular videos list ({key}) with {len(top_videos)} videos.")
            return top_videos
        except Exception as e:
            logger.error(f"Error updating popular videos list: {e}")
            return []
