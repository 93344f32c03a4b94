"""Alcovia テスト設定"""

from unittest.mock import patch

import pytest

from alcovia.core import InterventionEngine, MemoryStudentStore, NotificationChannel
from alcovia.core.config import AlcoviaSettings, StoreConfig


@pytest.fixture
def memory_store():
    """テスト用のインメモリストア"""
    return MemoryStudentStore()


@pytest.fixture
def channel():
    """テスト用の通知チャネル"""
    return NotificationChannel(max_queue_size=10)


@pytest.fixture
def engine(memory_store, channel):
    """テスト用の介入エンジン"""
    return InterventionEngine(memory_store, channel, store_timeout=1.0)


@pytest.fixture
def test_settings(tmp_path):
    """テスト用の設定（インメモリストア）"""
    return AlcoviaSettings(store=StoreConfig(backend="memory", data_path=str(tmp_path / "data")))


@pytest.fixture
def client(test_settings):
    """テスト用FastAPIクライアント"""
    from fastapi.testclient import TestClient

    from alcovia.api.dependencies import AppState
    from alcovia.api.server import app

    # グローバル状態をリセット
    AppState.reset()

    with (
        patch("alcovia.api.server.get_settings", return_value=test_settings),
        patch("alcovia.api.dependencies.get_settings", return_value=test_settings),
        patch("alcovia.api.auth.get_settings", return_value=test_settings),
        TestClient(app) as client,
    ):
        yield client

    # クリーンアップ
    AppState.reset()
