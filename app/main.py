"""FastAPI アプリケーションエントリーポイント"""

import asyncio
import json
from contextlib import asynccontextmanager
from datetime import date
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable

# .envファイルを最初に読み込む（LangSmith等の環境変数を設定するため）
from dotenv import load_dotenv

project_root = Path(__file__).parent.parent
load_dotenv(project_root / ".env")

import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from app.rpc import JsonRpcDispatcher, internal_error_response
from config.settings import Settings, get_settings
from transcript_remote.application.interfaces.caption_fetcher import TranscriptFetcher
from transcript_remote.application.usecases.resolve_transcript import (
    ResolveTranscriptConfig,
    ResolveTranscriptUseCase,
)
from transcript_remote.infrastructure.analytics import AnalyticsRecorder
from transcript_remote.infrastructure.kv_store import create_store
from transcript_remote.infrastructure.logging_config import (
    get_logger,
    is_langsmith_enabled,
    parse_log_level,
    setup_logging,
)
from transcript_remote.infrastructure.retry import RetryingTranscriptFetcher, RetryPolicy
from transcript_remote.infrastructure.transcript_cache import TranscriptCache
from transcript_remote.infrastructure.youtube_transcript import YtDlpCaptionFetcher

logger = get_logger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

INITIALIZED_NOTIFICATION = {
    "jsonrpc": "2.0",
    "method": "notifications/initialized",
    "params": {},
}


def sse_frame(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


async def sse_event_stream(
    keepalive_sec: float,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> AsyncIterator[str]:
    """接続通知を送った後、切断されるまでキープアライブのコメント行を送り続ける"""
    yield sse_frame(INITIALIZED_NOTIFICATION)
    while True:
        await sleep(keepalive_sec)
        yield ": keepalive\n\n"


def build_transcript_fetcher(settings: Settings) -> TranscriptFetcher:
    return RetryingTranscriptFetcher(
        caption_fetcher=YtDlpCaptionFetcher(timeout_sec=settings.SUBTITLE_FETCH_TIMEOUT),
        policy=RetryPolicy(
            max_attempts=settings.MAX_FETCH_ATTEMPTS,
            initial_backoff_sec=settings.INITIAL_BACKOFF_SEC,
        ),
    )


def create_app(
    settings: Settings | None = None,
    transcript_fetcher: TranscriptFetcher | None = None,
) -> FastAPI:
    """
    設定から依存関係を組み立ててアプリを生成

    Args:
        settings: 省略時は環境変数と .env から読み込む
        transcript_fetcher: 省略時は yt-dlp + リトライ
    """
    settings = settings or get_settings()

    store = create_store(settings.CACHE_BACKEND, settings.CACHE_DIR)
    analytics = AnalyticsRecorder(store)
    usecase = ResolveTranscriptUseCase(
        transcript_fetcher=transcript_fetcher or build_transcript_fetcher(settings),
        cache=TranscriptCache(
            store,
            transcript_ttl_sec=settings.TRANSCRIPT_TTL_SEC,
            error_ttl_sec=settings.ERROR_TTL_SEC,
        ),
        analytics=analytics,
        config=ResolveTranscriptConfig(
            auto_detect_languages=list(settings.AUTO_DETECT_LANGUAGES),
            fallback_language=settings.FALLBACK_LANGUAGE,
        ),
    )
    dispatcher = JsonRpcDispatcher(usecase, settings.SERVER_NAME, settings.SERVER_VERSION)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            f"{settings.SERVER_NAME} {settings.SERVER_VERSION} 起動 "
            f"(store={settings.CACHE_BACKEND}, langsmith={is_langsmith_enabled()})"
        )
        yield
        # 未完了の解析カウンタ更新を待ってから終了
        await analytics.drain()
        logger.info("シャットダウン完了")

    app = FastAPI(title=settings.SERVER_NAME, version=settings.SERVER_VERSION, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Cache-Control", "Accept"],
        max_age=86400,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.analytics = analytics
    app.state.dispatcher = dispatcher

    @app.get("/")
    async def info() -> dict[str, Any]:
        return {
            "name": "YouTube Transcript Remote MCP Server",
            "version": settings.SERVER_VERSION,
            "description": "Remote MCP server for extracting YouTube video transcripts",
            "endpoints": {"sse": "/sse", "mcp": "/mcp"},
            "tools": ["get_transcript"],
            "status": "ready",
        }

    @app.post("/mcp")
    async def mcp(request: Request) -> JSONResponse:
        try:
            payload = await request.json()
        except ValueError as e:
            logger.error(f"MCP request error: {e}")
            return JSONResponse(internal_error_response(), status_code=500)
        return JSONResponse(await dispatcher.handle(payload))

    @app.post("/sse")
    async def sse_post(request: Request) -> StreamingResponse:
        try:
            payload = await request.json()
            response = await dispatcher.handle(payload)
        except ValueError as e:
            logger.error(f"SSE POST error: {e}")
            response = internal_error_response()
        return StreamingResponse(
            iter([sse_frame(response)]),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    @app.get("/sse")
    async def sse_stream() -> StreamingResponse:
        logger.info("[SSE] 接続開始")
        return StreamingResponse(
            sse_event_stream(settings.SSE_KEEPALIVE_SEC),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    @app.get("/stats/daily/{day}")
    async def daily_stats(day: str) -> dict[str, object]:
        try:
            date.fromisoformat(day)
        except ValueError:
            raise HTTPException(status_code=400, detail="Date must be in YYYY-MM-DD format")
        stats = await analytics.get_daily_stats(day)
        return stats.to_dict()

    @app.get("/stats/popular")
    async def popular_videos(limit: int = Query(10, ge=1, le=100)) -> dict[str, Any]:
        videos = await analytics.get_popular_videos(limit)
        return {"videos": [v.to_dict() for v in videos]}

    @app.post("/stats/popular/refresh")
    async def refresh_popular_videos(
        top_n: int = Query(20, ge=1, le=100),
    ) -> dict[str, Any]:
        videos = await analytics.update_popular_videos_list(top_n=top_n)
        return {"updated": len(videos), "videos": [v.to_dict() for v in videos]}

    return app


def main() -> None:
    settings = get_settings()
    setup_logging(level=parse_log_level(settings.LOG_LEVEL))
    uvicorn.run(create_app(settings), host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    main()
