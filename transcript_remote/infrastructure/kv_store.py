"""キーバリューストアの実装（メモリ / JSONファイル）"""

import asyncio
import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable
from urllib.parse import quote, unquote

from transcript_remote.application.interfaces.key_value_store import (
    KeyListResult,
    KeyValueStore,
)
from transcript_remote.infrastructure.logging_config import get_logger

logger = get_logger(__name__)

# デフォルトの保存ディレクトリ
DEFAULT_STORE_DIR = Path("cache")


@dataclass
class StoredValue:
    """保存値と有効期限"""

    value: str
    expires_at: float | None = None  # UNIX時刻。Noneは無期限

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.value, "expires_at": self.expires_at}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StoredValue":
        return cls(value=data["value"], expires_at=data.get("expires_at"))


def _expires_at(now: float, ttl_sec: int | None) -> float | None:
    return now + ttl_sec if ttl_sec is not None else None


def _paginate(keys: list[str], cursor: str | None, limit: int) -> KeyListResult:
    """ソート済みキーをカーソル（前ページ最後のキー）以降から切り出す"""
    if cursor is not None:
        keys = [k for k in keys if k > cursor]
    page = keys[:limit]
    if len(keys) > limit:
        return KeyListResult(keys=page, cursor=page[-1], complete=False)
    return KeyListResult(keys=page, cursor=None, complete=True)


class InMemoryKeyValueStore:
    """
    プロセス内メモリのストア（再起動で消える）

    期限切れのエントリは put / list のたびにまとめて削除する。
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._data: dict[str, StoredValue] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    def __len__(self) -> int:
        return len(self._data)

    def _evict_expired(self, now: float) -> None:
        """ロック保持中に呼ぶこと"""
        expired = [k for k, v in self._data.items() if v.is_expired(now)]
        for key in expired:
            del self._data[key]

    async def get(self, key: str) -> str | None:
        async with self._lock:
            stored = self._data.get(key)
            if stored is None:
                return None
            if stored.is_expired(self._clock()):
                del self._data[key]
                return None
            return stored.value

    async def put(self, key: str, value: str, ttl_sec: int | None = None) -> None:
        async with self._lock:
            now = self._clock()
            self._evict_expired(now)
            self._data[key] = StoredValue(value, _expires_at(now, ttl_sec))

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)

    async def list(
        self,
        prefix: str = "",
        cursor: str | None = None,
        limit: int = 1000,
    ) -> KeyListResult:
        async with self._lock:
            self._evict_expired(self._clock())
            keys = sorted(k for k in self._data if k.startswith(prefix))
        return _paginate(keys, cursor, limit)


class FileKeyValueStore:
    """
    1キー1ファイルのJSONストア

    ファイル名はキーをURLエンコードしたもの。
    ファイルI/Oはワーカースレッドで実行する。
    """

    def __init__(self, store_dir: Path | None = None, clock: Callable[[], float] = time.time):
        self.store_dir = store_dir or DEFAULT_STORE_DIR
        self.store_dir.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()
        self._clock = clock
        logger.debug(f"FileKeyValueStore initialized: {self.store_dir}")

    def _path_for(self, key: str) -> Path:
        return self.store_dir / f"{quote(key, safe='')}.json"

    def _read(self, key: str) -> StoredValue | None:
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return StoredValue.from_dict(json.load(f))
        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"Failed to load stored value: {path} - {e}")
            return None

    def _write(self, key: str, stored: StoredValue) -> None:
        path = self._path_for(key)
        tmp_path = path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(stored.to_dict(), f, ensure_ascii=False)
        tmp_path.replace(path)

    def _remove(self, key: str) -> None:
        self._path_for(key).unlink(missing_ok=True)

    def _get_sync(self, key: str) -> str | None:
        stored = self._read(key)
        if stored is None:
            return None
        if stored.is_expired(self._clock()):
            self._remove(key)
            return None
        return stored.value

    def _list_sync(self, prefix: str) -> list[str]:
        now = self._clock()
        keys = []
        for path in self.store_dir.glob("*.json"):
            key = unquote(path.stem)
            if not key.startswith(prefix):
                continue
            stored = self._read(key)
            if stored is not None and not stored.is_expired(now):
                keys.append(key)
        return sorted(keys)

    async def get(self, key: str) -> str | None:
        async with self._lock:
            return await asyncio.to_thread(self._get_sync, key)

    async def put(self, key: str, value: str, ttl_sec: int | None = None) -> None:
        stored = StoredValue(value, _expires_at(self._clock(), ttl_sec))
        async with self._lock:
            await asyncio.to_thread(self._write, key, stored)

    async def delete(self, key: str) -> None:
        async with self._lock:
            await asyncio.to_thread(self._remove, key)

    async def list(
        self,
        prefix: str = "",
        cursor: str | None = None,
        limit: int = 1000,
    ) -> KeyListResult:
        async with self._lock:
            keys = await asyncio.to_thread(self._list_sync, prefix)
        return _paginate(keys, cursor, limit)


def create_store(backend: str, store_dir: str | Path | None = None) -> KeyValueStore | None:
    """
    設定値からストアを生成

    Args:
        backend: "memory" / "file" / "none"
        store_dir: "file" の場合の保存ディレクトリ

    Returns:
        ストア。"none" の場合はNone（キャッシュ・解析は無効になる）
    """
    backend = backend.lower()
    if backend == "memory":
        return InMemoryKeyValueStore()
    if backend == "file":
        return FileKeyValueStore(Path(store_dir) if store_dir else None)
    if backend == "none":
        logger.warning("Key-value store disabled: caching and analytics are no-ops")
        return None
    raise ValueError(f"Unknown cache backend: {backend!r}")
