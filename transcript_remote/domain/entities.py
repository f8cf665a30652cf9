"""ドメインエンティティ定義"""

from dataclasses import dataclass


@dataclass(frozen=True)
class CaptionSegment:
    """字幕の1セグメント"""

    text: str
    start_sec: float | None = None
    duration_sec: float | None = None

    @property
    def end_sec(self) -> float | None:
        """終了時刻（タイミング情報がない場合はNone）"""
        if self.start_sec is None or self.duration_sec is None:
            return None
        return self.start_sec + self.duration_sec


@dataclass(frozen=True)
class CachedTranscript:
    """キャッシュ済みの字幕テキスト"""

    text: str


@dataclass(frozen=True)
class CachedError:
    """キャッシュ済みのエラー（短いTTLで保存される）"""

    message: str


CacheEntry = CachedTranscript | CachedError


@dataclass
class DailyStats:
    """1日分のリクエスト統計"""

    date: str  # YYYY-MM-DD (UTC)
    requests: int
    errors: dict[str, int]

    @property
    def total_errors(self) -> int:
        return sum(self.errors.values())

    def to_dict(self) -> dict[str, object]:
        return {
            "date": self.date,
            "requests": self.requests,
            "errors": dict(self.errors),
            "total_errors": self.total_errors,
        }


@dataclass(frozen=True)
class PopularVideo:
    """人気動画（リクエスト数付き）"""

    video_id: str
    count: int

    def to_dict(self) -> dict[str, object]:
        return {"video_id": self.video_id, "count": self.count}

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "PopularVideo":
        return cls(video_id=str(data["video_id"]), count=int(data["count"]))
