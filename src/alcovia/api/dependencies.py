"""API 依存性注入

FastAPIの依存性注入パターンでストア・チャネル・エンジンを管理。
テスト時にモックへの差し替えが容易になります。
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from ..core import (
    AlcoviaSettings,
    InterventionEngine,
    JsonlStudentStore,
    MemoryStudentStore,
    NotificationChannel,
    StudentStore,
    get_settings,
)


def build_store(settings: AlcoviaSettings) -> StudentStore:
    """設定に従ってストアを生成"""
    retention = settings.logs.retention
    if settings.store.backend == "memory":
        return MemoryStudentStore(log_retention=retention)
    return JsonlStudentStore(settings.get_data_path(), log_retention=retention)


class AppState:
    """アプリケーション状態

    シングルトンパターンで状態を管理。
    テスト時は reset() でリセット可能。
    """

    _instance: AppState | None = None

    def __init__(self) -> None:
        self._store: StudentStore | None = None
        self._channel: NotificationChannel | None = None
        self._engine: InterventionEngine | None = None

    @classmethod
    def get_instance(cls) -> AppState:
        """シングルトンインスタンスを取得"""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """インスタンスをリセット（テスト用）"""
        cls._instance = None

    @property
    def has_store(self) -> bool:
        """ストアが設定済みか"""
        return self._store is not None

    @property
    def store(self) -> StudentStore:
        """ストアを取得（未設定なら設定から生成）"""
        if self._store is None:
            self._store = build_store(get_settings())
        return self._store

    @store.setter
    def store(self, value: StudentStore | None) -> None:
        self._store = value
        self._engine = None

    @property
    def channel(self) -> NotificationChannel:
        """通知チャネルを取得"""
        if self._channel is None:
            settings = get_settings()
            self._channel = NotificationChannel(max_queue_size=settings.channel.max_queue_size)
        return self._channel

    @channel.setter
    def channel(self, value: NotificationChannel | None) -> None:
        self._channel = value
        self._engine = None

    @property
    def engine(self) -> InterventionEngine:
        """介入エンジンを取得"""
        if self._engine is None:
            settings = get_settings()
            self._engine = InterventionEngine(
                self.store,
                self.channel,
                store_timeout=settings.store.timeout_seconds,
                pass_quiz_score=settings.gate.pass_quiz_score,
                pass_focus_minutes=settings.gate.pass_focus_minutes,
                auto_enroll=settings.students.auto_enroll,
                default_name=settings.students.default_name,
            )
        return self._engine


def get_app_state() -> AppState:
    """アプリケーション状態を取得（依存性注入用）"""
    return AppState.get_instance()


def get_engine() -> InterventionEngine:
    """介入エンジンを取得（依存性注入用）"""
    return get_app_state().engine


def get_channel() -> NotificationChannel:
    """通知チャネルを取得（依存性注入用）"""
    return get_app_state().channel


# 型エイリアス（FastAPIの Depends で使用）
AppStateDep = Annotated[AppState, Depends(get_app_state)]
EngineDep = Annotated[InterventionEngine, Depends(get_engine)]
ChannelDep = Annotated[NotificationChannel, Depends(get_channel)]
