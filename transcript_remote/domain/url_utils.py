"""YouTube URL の解析・正規化ユーティリティ"""

import re
from urllib.parse import ParseResult, parse_qs, urlencode, urlparse, urlunparse

from transcript_remote.domain.exceptions import InvalidUrlError

CANONICAL_WATCH_URL = "https://www.youtube.com/watch?v={video_id}"

# "www." を除いた形で比較する
VALID_HOSTNAMES = frozenset(
    {
        "youtube.com",
        "m.youtube.com",
        "youtu.be",
        # 主要な国別ドメイン
        "youtube.co.uk",
        "youtube.de",
        "youtube.fr",
        "youtube.jp",
        "youtube.ca",
        "youtube.es",
        "youtube.br",
        "youtube.com.br",
        "youtube.co.in",
        "youtube.co.kr",
    }
)

_ID_IN_SECOND_SEGMENT = ("/live/", "/embed/", "/shorts/")

# 先頭のスキームのみ判定する（クエリ内のURLは無視）
_LEADING_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


def _parse(url: str) -> ParseResult | None:
    """スキーム省略形（youtube.com/shorts/ID）も https として解析"""
    candidate = url.strip()
    if not candidate:
        return None
    if not _LEADING_SCHEME.match(candidate):
        candidate = "https://" + candidate.lstrip("/")
    try:
        return urlparse(candidate)
    except ValueError:
        return None


def _bare_hostname(parsed: ParseResult) -> str:
    hostname = parsed.hostname or ""
    return hostname[4:] if hostname.startswith("www.") else hostname


def _first_query_value(parsed: ParseResult, name: str) -> str | None:
    values = parse_qs(parsed.query).get(name)
    return values[0] if values else None


def _extract_from_parsed(parsed: ParseResult) -> str | None:
    """
    解析済みURLから動画IDを取り出す

    優先順位:
    1. youtu.be/<id>
    2. /watch?v=<id>（複数ある場合は先頭）
    3. /live/<id>, /embed/<id>, /shorts/<id>
    4. /?v=<id>
    """
    hostname = _bare_hostname(parsed)
    if hostname not in VALID_HOSTNAMES:
        return None

    path = parsed.path

    if hostname == "youtu.be":
        parts = path.split("/")
        return parts[1] if len(parts) > 1 and parts[1] else None

    if path.startswith("/watch"):
        video_id = _first_query_value(parsed, "v")
        if video_id:
            return video_id

    if path.startswith(_ID_IN_SECOND_SEGMENT):
        parts = path.split("/")
        return parts[2] if len(parts) > 2 and parts[2] else None

    if path in ("", "/"):
        return _first_query_value(parsed, "v")

    return None


def extract_video_id(url: str | None) -> str | None:
    """
    URLから動画IDを抽出

    Returns:
        動画ID、認識できないURLの場合はNone
    """
    if not url:
        return None
    parsed = _parse(url)
    if parsed is None:
        return None
    return _extract_from_parsed(parsed)


def is_valid_url(url: str | None) -> bool:
    """動画IDが抽出できるURLかどうか"""
    return extract_video_id(url) is not None


def normalize_url(url: str) -> str:
    """
    URLを https://www.youtube.com/watch?v=<id> 形式に正規化

    Raises:
        InvalidUrlError: 動画IDを抽出できない場合
    """
    video_id = extract_video_id(url)
    if video_id is None:
        raise InvalidUrlError(f"Invalid or non-video YouTube URL: {url}")
    return CANONICAL_WATCH_URL.format(video_id=video_id)


def clean_tracking_params(url: str) -> str:
    """
    トラッキング用パラメータを除去

    動画URLは正規形に変換し、その他のYouTube URLは v パラメータのみ残す。
    YouTube以外・解析できない入力はそのまま返す。
    """
    if not url:
        return url
    parsed = _parse(url)
    if parsed is None:
        return url

    video_id = _extract_from_parsed(parsed)
    if video_id:
        return CANONICAL_WATCH_URL.format(video_id=video_id)

    if "youtube." not in (parsed.hostname or ""):
        return url

    v = _first_query_value(parsed, "v")
    query = urlencode({"v": v}) if v else ""
    return urlunparse(("https", "www.youtube.com", parsed.path, "", query, ""))
