"""キーバリューストアのインターフェース"""

from dataclasses import dataclass, field
from typing import Protocol


@dataclass
class KeyListResult:
    """キー一覧の1ページ分"""

    keys: list[str] = field(default_factory=list)
    cursor: str | None = None  # 次ページ取得用（complete=True の場合はNone）
    complete: bool = True


class KeyValueStore(Protocol):
    """
    字幕キャッシュとアクセス解析で共有する外部ストア

    キー単位の get/put はアトミックとみなす（CAS は使わない）。
    """

    async def get(self, key: str) -> str | None:
        """値を取得（存在しない・期限切れの場合はNone）"""
        ...

    async def put(self, key: str, value: str, ttl_sec: int | None = None) -> None:
        """
        値を保存

        Args:
            key: キー
            value: 値
            ttl_sec: 有効期限（秒）。Noneの場合は無期限
        """
        ...

    async def delete(self, key: str) -> None:
        """値を削除（存在しなくてもエラーにしない）"""
        ...

    async def list(
        self,
        prefix: str = "",
        cursor: str | None = None,
        limit: int = 1000,
    ) -> KeyListResult:
        """
        プレフィックスに一致するキーをページ単位で列挙

        Args:
            prefix: キーのプレフィックス
            cursor: 前ページの KeyListResult.cursor
            limit: 1ページあたりの最大件数

        Returns:
            KeyListResult: キー一覧と続きのカーソル
        """
        ...
