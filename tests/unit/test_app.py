"""FastAPI アプリのテスト"""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from app.main import create_app, sse_event_stream
from config.settings import Settings
from transcript_remote.domain.exceptions import VideoUnavailableError


class FakeTranscriptFetcher:
    def __init__(self, transcripts: dict[str, str]):
        self.transcripts = transcripts

    async def fetch_with_retry(self, video_id: str, language: str) -> str:
        if language not in self.transcripts:
            raise VideoUnavailableError(f"No transcript found for {video_id} (lang: {language}).")
        return self.transcripts[language]


@pytest.fixture
def client():
    settings = Settings(CACHE_BACKEND="memory", _env_file=None)
    app = create_app(settings, transcript_fetcher=FakeTranscriptFetcher({"en": "hello world"}))
    with TestClient(app) as test_client:
        yield test_client


def _tools_call(url: str, language: str = "en") -> dict:
    return {
        "jsonrpc": "2.0",
        "id": 1,
        "method": "tools/call",
        "params": {"name": "get_transcript", "arguments": {"url": url, "language": language}},
    }


class TestInfo:
    """GET / のテスト"""

    def test_info(self, client: TestClient) -> None:
        """サーバー情報"""
        response = client.get("/")
        assert response.status_code == 200
        body = response.json()
        assert body["endpoints"] == {"sse": "/sse", "mcp": "/mcp"}
        assert body["tools"] == ["get_transcript"]
        assert body["status"] == "ready"

    def test_cors_preflight(self, client: TestClient) -> None:
        """プリフライトに CORS ヘッダーを返す"""
        response = client.options(
            "/mcp",
            headers={
                "Origin": "https://example.com",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.headers["access-control-max-age"] == "86400"


class TestMcp:
    """POST /mcp のテスト"""

    def test_tools_call(self, client: TestClient) -> None:
        """字幕を返す"""
        response = client.post("/mcp", json=_tools_call("https://youtu.be/abc"))
        assert response.status_code == 200
        assert response.json()["result"]["content"][0]["text"] == "hello world"

    def test_domain_error(self, client: TestClient) -> None:
        """ドメインエラーは 200 + code -1"""
        response = client.post("/mcp", json=_tools_call("https://example.com/x"))
        assert response.status_code == 200
        assert response.json()["error"]["code"] == -1

    def test_invalid_json(self, client: TestClient) -> None:
        """不正なJSONは 500 + -32603"""
        response = client.post(
            "/mcp", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 500
        assert response.json() == {
            "jsonrpc": "2.0",
            "id": None,
            "error": {"code": -32603, "message": "Internal error"},
        }


class TestSse:
    """/sse のテスト"""

    def test_post_returns_single_frame(self, client: TestClient) -> None:
        """POST は data フレーム1つ"""
        response = client.post("/sse", json={"jsonrpc": "2.0", "id": 5, "method": "tools/list"})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.text.startswith("data: ")
        assert response.text.endswith("\n\n")
        payload = json.loads(response.text[len("data: "):])
        assert payload["id"] == 5
        assert payload["result"]["tools"][0]["name"] == "get_transcript"

    def test_post_invalid_json(self, client: TestClient) -> None:
        """不正なJSONは -32603 のフレーム"""
        response = client.post(
            "/sse", content=b"oops", headers={"Content-Type": "application/json"}
        )
        payload = json.loads(response.text[len("data: "):])
        assert payload["error"]["code"] == -32603

    def test_event_stream(self) -> None:
        """接続通知の後にキープアライブが続く"""
        waits: list[float] = []

        async def fake_sleep(seconds: float) -> None:
            waits.append(seconds)

        async def scenario() -> list[str]:
            stream = sse_event_stream(30, sleep=fake_sleep)
            frames = [await stream.__anext__() for _ in range(3)]
            await stream.aclose()
            return frames

        frames = asyncio.run(scenario())

        assert json.loads(frames[0][len("data: "):])["method"] == "notifications/initialized"
        assert frames[1:] == [": keepalive\n\n", ": keepalive\n\n"]
        assert waits == [30, 30]


class TestStats:
    """/stats のテスト"""

    def test_daily_stats(self, client: TestClient) -> None:
        """保存済みカウンタを集計"""
        store = client.app.state.store
        asyncio.run(store.put("analytics:requests:2026-10-17", "4"))
        asyncio.run(store.put("analytics:errors:2026-10-17:RateLimited", "1"))

        response = client.get("/stats/daily/2026-10-17")

        assert response.status_code == 200
        assert response.json() == {
            "date": "2026-10-17",
            "requests": 4,
            "errors": {"RateLimited": 1},
            "total_errors": 1,
        }

    def test_daily_stats_bad_date(self, client: TestClient) -> None:
        """日付形式が不正なら 400"""
        assert client.get("/stats/daily/yesterday").status_code == 400

    def test_popular_refresh_and_get(self, client: TestClient) -> None:
        """人気動画リストの更新と取得"""
        store = client.app.state.store
        asyncio.run(store.put("analytics:videos:abc", "5"))
        asyncio.run(store.put("analytics:videos:def", "2"))

        refreshed = client.post("/stats/popular/refresh")
        assert refreshed.json()["updated"] == 2

        response = client.get("/stats/popular", params={"limit": 1})
        assert response.json() == {"videos": [{"video_id": "abc", "count": 5}]}
