"""yt-dlp ベースの字幕取得クライアント"""

import html
import json
import re
from typing import Any

import httpx
import yt_dlp

from transcript_remote.domain.entities import CaptionSegment
from transcript_remote.infrastructure.logging_config import get_logger, trace_tool

logger = get_logger(__name__)

# json3 形式を優先（タイムスタンプが正確）
PREFERRED_FORMATS = ("json3", "srv3", "srv2", "srv1", "vtt", "ttml")

_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
_TAG = re.compile(r"<[^>]+>")
_XML_TEXT = re.compile(
    r'<text[^>]*start="([^"]+)"[^>]*dur="([^"]+)"[^>]*>(.*?)</text>', re.DOTALL
)
_XML_P = re.compile(r'<p[^>]*begin="([^"]+)"[^>]*end="([^"]+)"[^>]*>(.*?)</p>', re.DOTALL)
_VTT_CUE = re.compile(
    r"(\d{2}:\d{2}:\d{2}[.,]\d{3}|\d{2}:\d{2}[.,]\d{3})\s*-->\s*"
    r"(\d{2}:\d{2}:\d{2}[.,]\d{3}|\d{2}:\d{2}[.,]\d{3})"
)


class UpstreamCaptionError(Exception):
    """
    上流（YouTube / yt-dlp）での取得失敗

    メッセージには上流の文言をそのまま含める（分類テーブルの入力になる）。
    """


class YtDlpCaptionFetcher:
    """
    yt-dlp を使用した字幕取得クライアント

    - 手動字幕を優先し、なければ自動生成字幕を使用
    - 自動翻訳された字幕トラックは使わない
    - 字幕ファイル本体は httpx で取得
    """

    def __init__(self, timeout_sec: float = 30.0) -> None:
        self.timeout_sec = timeout_sec
        # yt-dlp のオプション（字幕取得用）
        self.ydl_opts = {
            "quiet": True,
            "no_warnings": True,
            "skip_download": True,
            "writesubtitles": False,  # ファイル書き出しはしない
            "writeautomaticsub": False,
            "socket_timeout": timeout_sec,
        }

    @trace_tool(name="fetch_captions")
    def fetch_captions(self, video_id: str, language: str) -> list[CaptionSegment]:
        """
        動画の字幕を取得

        Args:
            video_id: YouTube動画ID
            language: 言語コード

        Returns:
            字幕セグメントのリスト

        Raises:
            UpstreamCaptionError: 動画情報・字幕の取得失敗
        """
        logger.debug(f"[字幕] 取得開始: {video_id} (lang={language})")

        info = self._extract_info(video_id)
        manual_subs: dict[str, list[dict[str, Any]]] = info.get("subtitles") or {}
        auto_subs: dict[str, list[dict[str, Any]]] = info.get("automatic_captions") or {}

        if not manual_subs and not auto_subs:
            raise UpstreamCaptionError(
                f"Transcripts are disabled for this video ({video_id})"
            )

        tracks = self._select_tracks(manual_subs, auto_subs, language)
        if not tracks:
            available = sorted(set(manual_subs) | self._original_auto_languages(auto_subs))
            raise UpstreamCaptionError(
                f"No transcript found for this video in language '{language}'. "
                f"Available languages: {', '.join(available) or 'none'}"
            )

        segments = self._download_segments(tracks)
        if not segments:
            raise UpstreamCaptionError(
                f"No transcript found for this video in language '{language}' "
                "(caption track is empty)"
            )

        logger.debug(f"[字幕] 取得成功: {video_id} - {len(segments)}セグメント")
        return segments

    def _extract_info(self, video_id: str) -> dict[str, Any]:
        url = f"https://www.youtube.com/watch?v={video_id}"
        try:
            with yt_dlp.YoutubeDL(self.ydl_opts) as ydl:
                info = ydl.extract_info(url, download=False)
        except yt_dlp.utils.DownloadError as e:
            logger.debug(f"[字幕] yt-dlp エラー: {video_id} - {e}")
            raise UpstreamCaptionError(str(e)) from e

        if not info:
            raise UpstreamCaptionError(f"This video is unavailable ({video_id})")
        return info

    @staticmethod
    def _is_translated(track: dict[str, Any]) -> bool:
        return "tlang=" in track.get("url", "")

    def _original_auto_languages(self, auto_subs: dict[str, list[dict[str, Any]]]) -> set[str]:
        return {
            lang.removesuffix("-orig")
            for lang, tracks in auto_subs.items()
            if any(not self._is_translated(t) for t in tracks)
        }

    def _select_tracks(
        self,
        manual_subs: dict[str, list[dict[str, Any]]],
        auto_subs: dict[str, list[dict[str, Any]]],
        language: str,
    ) -> list[dict[str, Any]]:
        """手動字幕 → 自動生成字幕（翻訳トラック除外）の順に探す"""
        if manual_subs.get(language):
            logger.debug(f"  手動字幕を使用: {language}")
            return manual_subs[language]

        for key in (f"{language}-orig", language):
            tracks = [t for t in auto_subs.get(key, []) if not self._is_translated(t)]
            if tracks:
                logger.debug(f"  自動生成字幕を使用: {key}")
                return tracks
        return []

    def _download_segments(self, tracks: list[dict[str, Any]]) -> list[CaptionSegment]:
        """優先形式の順に字幕をダウンロードしてパース"""
        by_format = {t.get("ext"): t for t in tracks if t.get("url")}
        for fmt in PREFERRED_FORMATS:
            track = by_format.get(fmt)
            if track is None:
                continue
            data = self._download(track["url"])
            try:
                segments = parse_subtitle(data, fmt)
            except (ValueError, KeyError) as e:
                logger.debug(f"  {fmt} 形式のパース失敗: {e}")
                continue
            if segments:
                return segments
        return []

    def _download(self, url: str) -> str:
        try:
            response = httpx.get(
                url,
                headers={"User-Agent": _USER_AGENT},
                timeout=self.timeout_sec,
                follow_redirects=True,
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise UpstreamCaptionError(f"Download timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise UpstreamCaptionError(
                f"HTTP Error {status}: {e.response.reason_phrase}"
            ) from e
        except httpx.TransportError as e:
            raise UpstreamCaptionError(f"Network error during download: {e}") from e
        return response.text


def parse_subtitle(data: str, fmt: str) -> list[CaptionSegment]:
    """字幕データを形式に応じてパース"""
    if fmt == "json3":
        return _parse_json3(data)
    if fmt in ("srv3", "srv2", "srv1", "ttml"):
        return _parse_xml_subtitle(data)
    if fmt == "vtt":
        return _parse_vtt(data)
    return []


def _clean(text: str) -> str:
    return html.unescape(_TAG.sub("", text)).strip()


def _parse_json3(data: str) -> list[CaptionSegment]:
    """json3 形式をパース"""
    segments = []
    for event in json.loads(data).get("events", []):
        # tStartMs / dDurationMs はミリ秒
        segs = event.get("segs")
        if not segs:
            continue
        text = "".join(seg.get("utf8", "") for seg in segs).strip()
        if not text:
            continue
        segments.append(
            CaptionSegment(
                text=text,
                start_sec=event.get("tStartMs", 0) / 1000.0,
                duration_sec=event.get("dDurationMs", 0) / 1000.0,
            )
        )
    return segments


def _parse_xml_subtitle(data: str) -> list[CaptionSegment]:
    """srv3/srv2/srv1/ttml 形式（XML）をパース"""
    segments = []

    # <text start="0.0" dur="1.5">...</text>
    matches = _XML_TEXT.findall(data)
    if matches:
        for start, dur, text in matches:
            cleaned = _clean(text)
            if cleaned:
                segments.append(
                    CaptionSegment(text=cleaned, start_sec=float(start), duration_sec=float(dur))
                )
        return segments

    # <p begin="00:00:00.000" end="00:00:01.500">...</p>（TTML形式）
    for begin, end, text in _XML_P.findall(data):
        cleaned = _clean(text)
        if cleaned:
            start_sec = parse_timestamp(begin)
            segments.append(
                CaptionSegment(
                    text=cleaned,
                    start_sec=start_sec,
                    duration_sec=parse_timestamp(end) - start_sec,
                )
            )
    return segments


def _parse_vtt(data: str) -> list[CaptionSegment]:
    """VTT 形式をパース"""
    segments = []
    lines = data.split("\n")
    i = 0
    while i < len(lines):
        match = _VTT_CUE.match(lines[i].strip())
        i += 1
        if not match:
            continue
        text_lines = []
        while i < len(lines) and lines[i].strip():
            text_lines.append(lines[i].strip())
            i += 1
        text = _clean(" ".join(text_lines))
        if text:
            start_sec = parse_timestamp(match.group(1))
            segments.append(
                CaptionSegment(
                    text=text,
                    start_sec=start_sec,
                    duration_sec=parse_timestamp(match.group(2)) - start_sec,
                )
            )
    return segments


def parse_timestamp(ts: str) -> float:
    """タイムスタンプ（00:00:00.000 / 00:00.000 / 秒数）を秒に変換"""
    parts = ts.replace(",", ".").split(":")
    if len(parts) == 3:
        h, m, s = parts
        return float(h) * 3600 + float(m) * 60 + float(s)
    if len(parts) == 2:
        m, s = parts
        return float(m) * 60 + float(s)
    return float(ts.rstrip("s"))
