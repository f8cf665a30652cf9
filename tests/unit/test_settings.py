"""設定・ロギング設定のテスト"""

import logging

import pytest

from config.settings import Settings
from transcript_remote.infrastructure.logging_config import LogContext, parse_log_level


class TestSettings:
    """Settingsのテスト"""

    def test_defaults(self) -> None:
        """デフォルト値"""
        settings = Settings(_env_file=None)
        assert settings.PORT == 8787
        assert settings.CACHE_BACKEND == "memory"
        assert settings.TRANSCRIPT_TTL_SEC == 604800
        assert settings.ERROR_TTL_SEC == 300
        assert settings.MAX_FETCH_ATTEMPTS == 3
        assert settings.AUTO_DETECT_LANGUAGES[:2] == ["en", "es"]

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """環境変数で上書き"""
        monkeypatch.setenv("CACHE_BACKEND", "file")
        monkeypatch.setenv("AUTO_DETECT_LANGUAGES", '["ja", "en"]')
        settings = Settings(_env_file=None)
        assert settings.CACHE_BACKEND == "file"
        assert settings.AUTO_DETECT_LANGUAGES == ["ja", "en"]


class TestLoggingHelpers:
    """ロギング補助関数のテスト"""

    def test_parse_log_level(self) -> None:
        """ログレベル名の変換"""
        assert parse_log_level("debug") == logging.DEBUG
        assert parse_log_level("nonsense") == logging.INFO
        assert parse_log_level(logging.ERROR) == logging.ERROR

    def test_log_context(self) -> None:
        """key=value 形式"""
        ctx = LogContext(video_id="abc").update(language="en")
        assert str(ctx) == "video_id='abc' | language='en'"
