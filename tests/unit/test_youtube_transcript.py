"""yt-dlp 字幕取得クライアントのテスト"""

import json
from typing import Any

import pytest

from transcript_remote.domain.error_classification import FailureClass, classify_failure
from transcript_remote.infrastructure.youtube_transcript import (
    UpstreamCaptionError,
    YtDlpCaptionFetcher,
    parse_subtitle,
    parse_timestamp,
)

JSON3 = json.dumps(
    {
        "events": [
            {"tStartMs": 0, "dDurationMs": 1500, "segs": [{"utf8": "hello "}, {"utf8": "there"}]},
            {"tStartMs": 1500, "dDurationMs": 500, "segs": [{"utf8": "\n"}]},
            {"tStartMs": 2000, "dDurationMs": 1000},
            {"tStartMs": 3000, "dDurationMs": 1000, "segs": [{"utf8": "world"}]},
        ]
    }
)


def _fetcher(monkeypatch: pytest.MonkeyPatch, info: dict[str, Any], body: str = JSON3) -> YtDlpCaptionFetcher:
    fetcher = YtDlpCaptionFetcher()
    downloaded: list[str] = []

    def fake_download(url: str) -> str:
        downloaded.append(url)
        return body

    monkeypatch.setattr(fetcher, "_extract_info", lambda video_id: info)
    monkeypatch.setattr(fetcher, "_download", fake_download)
    fetcher.downloaded = downloaded  # type: ignore[attr-defined]
    return fetcher


class TestParseSubtitle:
    """字幕形式ごとのパースのテスト"""

    def test_json3(self) -> None:
        """json3 形式（空セグメントは除外）"""
        segments = parse_subtitle(JSON3, "json3")
        assert [s.text for s in segments] == ["hello there", "world"]
        assert segments[0].start_sec == 0.0
        assert segments[0].duration_sec == 1.5

    def test_srv_xml(self) -> None:
        """srv 形式（HTMLエンティティを復元）"""
        data = '<transcript><text start="1.0" dur="2.5">Tom &amp; Jerry</text></transcript>'
        segments = parse_subtitle(data, "srv1")
        assert segments[0].text == "Tom & Jerry"
        assert segments[0].end_sec == 3.5

    def test_ttml(self) -> None:
        """TTML 形式"""
        data = '<tt><body><p begin="00:00:01.000" end="00:00:02.500">hi <br/>there</p></body></tt>'
        segments = parse_subtitle(data, "ttml")
        assert segments[0].text == "hi there"
        assert segments[0].duration_sec == 1.5

    def test_vtt(self) -> None:
        """VTT 形式"""
        data = "WEBVTT\n\n00:00:01.000 --> 00:00:02.000\n<c>first</c> line\n\n00:01.500 --> 00:03.000\nsecond\n"
        segments = parse_subtitle(data, "vtt")
        assert [s.text for s in segments] == ["first line", "second"]
        assert segments[1].start_sec == 1.5

    def test_unknown_format(self) -> None:
        """未対応形式は空"""
        assert parse_subtitle("data", "srt") == []

    def test_parse_timestamp(self) -> None:
        """タイムスタンプ変換"""
        assert parse_timestamp("01:02:03.500") == 3723.5
        assert parse_timestamp("02:03,250") == 123.25
        assert parse_timestamp("4.5s") == 4.5


class TestYtDlpCaptionFetcher:
    """トラック選択とエラー文言のテスト"""

    def test_prefers_manual_track(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """手動字幕を優先"""
        info = {
            "subtitles": {"en": [{"ext": "json3", "url": "https://manual"}]},
            "automatic_captions": {"en": [{"ext": "json3", "url": "https://auto"}]},
        }
        fetcher = _fetcher(monkeypatch, info)

        segments = fetcher.fetch_captions("vid", "en")

        assert [s.text for s in segments] == ["hello there", "world"]
        assert fetcher.downloaded == ["https://manual"]  # type: ignore[attr-defined]

    def test_auto_orig_track(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """自動生成の原語トラックを使用"""
        info = {
            "subtitles": {},
            "automatic_captions": {
                "es-orig": [{"ext": "json3", "url": "https://auto-orig"}],
                "es": [{"ext": "json3", "url": "https://auto-es"}],
            },
        }
        fetcher = _fetcher(monkeypatch, info)

        fetcher.fetch_captions("vid", "es")

        assert fetcher.downloaded == ["https://auto-orig"]  # type: ignore[attr-defined]

    def test_translated_track_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """自動翻訳トラックは字幕なし扱い"""
        info = {
            "subtitles": {},
            "automatic_captions": {
                "en": [{"ext": "json3", "url": "https://auto-en"}],
                "tr": [{"ext": "json3", "url": "https://auto?lang=en&tlang=tr"}],
            },
        }
        fetcher = _fetcher(monkeypatch, info)

        with pytest.raises(UpstreamCaptionError) as exc_info:
            fetcher.fetch_captions("vid", "tr")

        message = str(exc_info.value)
        assert message.startswith("No transcript found for this video in language 'tr'")
        assert "Available languages: en" in message
        assert classify_failure(message) is FailureClass.NO_TRANSCRIPT

    def test_no_captions_at_all(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """字幕が1つもない動画は無効化扱い"""
        fetcher = _fetcher(monkeypatch, {"subtitles": {}, "automatic_captions": {}})

        with pytest.raises(UpstreamCaptionError, match="Transcripts are disabled") as exc_info:
            fetcher.fetch_captions("vid", "en")

        assert classify_failure(str(exc_info.value)) is FailureClass.NO_TRANSCRIPT

    def test_format_preference(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """json3 が無い場合は次の優先形式"""
        info = {
            "subtitles": {
                "en": [
                    {"ext": "vtt", "url": "https://vtt"},
                    {"ext": "srv3", "url": "https://srv3"},
                ]
            }
        }
        body = '<timedtext><text start="0" dur="1">srv</text></timedtext>'
        fetcher = _fetcher(monkeypatch, info, body)

        segments = fetcher.fetch_captions("vid", "en")

        assert [s.text for s in segments] == ["srv"]
        assert fetcher.downloaded == ["https://srv3"]  # type: ignore[attr-defined]
