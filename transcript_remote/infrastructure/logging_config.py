"""ロギング設定とLangSmithトレーシング統合"""

import inspect
import logging
import sys
import uuid
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, TypeVar

from langsmith import traceable

from config.settings import get_settings

F = TypeVar("F", bound=Callable[..., Any])

DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# WARNING 以上のみ出力する外部ライブラリ
NOISY_LOGGERS = ("httpx", "httpcore", "yt_dlp", "uvicorn.access")


def get_logger(name: str) -> logging.Logger:
    """名前付きロガーを取得（通常は __name__ を渡す）"""
    return logging.getLogger(name)


def parse_log_level(value: str | int) -> int:
    """ログレベル名（DEBUG など）を数値に変換。不明な値は INFO"""
    if isinstance(value, int):
        return value
    return getattr(logging, value.upper(), logging.INFO)


def setup_logging(
    level: int = logging.INFO,
    format_string: str | None = None,
) -> None:
    """
    アプリケーション全体のロギングを設定

    uvicorn が先にハンドラを登録していても上書きする。

    Args:
        level: ログレベル
        format_string: ログフォーマット文字列
    """
    logging.basicConfig(
        level=level,
        format=format_string or DEFAULT_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def is_langsmith_enabled() -> bool:
    """LANGSMITH_TRACING と API キーの両方が設定されているか"""
    settings = get_settings()
    return settings.LANGSMITH_TRACING and bool(settings.LANGSMITH_API_KEY)


def generate_trace_metadata() -> dict[str, Any]:
    """トレースを識別する短縮セッションIDとUTCタイムスタンプ"""
    return {
        "session_id": uuid.uuid4().hex[:8],
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def _traced(
    func: Callable[..., Any],
    name: str,
    run_type: str,
    metadata: dict[str, Any] | None,
) -> Callable[..., Any]:
    """毎回新しいrun_idとmetadataでtraceableを適用"""
    return traceable(
        name=name,
        run_type=run_type,
        metadata={**(metadata or {}), **generate_trace_metadata()},
        run_id=uuid.uuid4(),
    )(func)


def trace_run(
    name: str | None = None,
    run_type: str = "chain",
    metadata: dict[str, Any] | None = None,
) -> Callable[[F], F]:
    """
    関数呼び出しをトレースするデコレータ

    LangSmithが無効の場合はパススルー。
    同期関数・コルーチン関数のどちらにも使える。

    Args:
        name: トレース名（デフォルトは関数名）
        run_type: 実行タイプ ("chain", "tool", etc.)
        metadata: 追加メタデータ

    Example:
        @trace_tool(name="fetch_captions")
        def fetch_captions(self, video_id: str, language: str) -> list[CaptionSegment]:
            ...
    """

    def decorator(func: F) -> F:
        if not is_langsmith_enabled():
            return func

        trace_name = name or func.__name__

        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                return await _traced(func, trace_name, run_type, metadata)(*args, **kwargs)

            return async_wrapper  # type: ignore

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return _traced(func, trace_name, run_type, metadata)(*args, **kwargs)

        return wrapper  # type: ignore

    return decorator


def trace_chain(
    name: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> Callable[[F], F]:
    """ユースケース全体をトレースするデコレータ"""
    return trace_run(name=name, run_type="chain", metadata=metadata)


def trace_tool(
    name: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> Callable[[F], F]:
    """上流呼び出し（字幕取得など）をトレースするデコレータ"""
    return trace_run(name=name, run_type="tool", metadata=metadata)


class LogContext:
    """
    ログに付ける key=value のコンテキスト

    Example:
        ctx = LogContext(video_id="abc123", language="en")
        logger.info(f"[Retry] 取得成功: {ctx}")
    """

    def __init__(self, **fields: Any):
        self._fields = fields

    def __str__(self) -> str:
        return " | ".join(f"{key}={value!r}" for key, value in self._fields.items())

    def update(self, **fields: Any) -> "LogContext":
        """項目を追加した新しいインスタンスを返す"""
        return LogContext(**{**self._fields, **fields})
