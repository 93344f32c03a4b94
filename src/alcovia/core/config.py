"""Alcovia 設定管理モジュール

Pydantic Settingsを使用した型安全な設定管理。
alcovia.config.yaml と環境変数から設定を読み込む。
"""

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CORSConfig(BaseModel):
    """CORS設定"""

    enabled: bool = Field(default=True, description="CORSを有効にするか")
    allow_origins: list[str] = Field(
        default=["*"],
        description="許可するオリジン（本番ではフロントエンドのURLを指定）",
    )
    allow_credentials: bool = Field(default=True)
    allow_methods: list[str] = Field(default=["GET", "POST"])
    allow_headers: list[str] = Field(default=["*"])


class ServerConfig(BaseModel):
    """サーバー設定"""

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3001, ge=1, le=65535)
    cors: CORSConfig = Field(default_factory=CORSConfig)


class StoreConfig(BaseModel):
    """ストア設定"""

    backend: Literal["memory", "jsonl"] = Field(default="jsonl", description="永続化方式")
    data_path: str = Field(default="./alcovia-data", description="JSONLストアの保存先")
    timeout_seconds: float = Field(
        default=3.0, gt=0, le=60, description="ストア操作のタイムアウト秒"
    )


class GateConfig(BaseModel):
    """ロジックゲート設定

    合格条件は quiz_score > pass_quiz_score かつ focus_minutes > pass_focus_minutes。
    """

    pass_quiz_score: float = Field(default=7, ge=0, le=10, description="クイズ得点のしきい値")
    pass_focus_minutes: float = Field(default=60, ge=0, description="集中時間(分)のしきい値")


class StudentsConfig(BaseModel):
    """生徒登録設定"""

    auto_enroll: bool = Field(default=True, description="未登録生徒のチェックイン時に自動登録するか")
    default_name: str = Field(default="Demo Student", description="自動登録時の表示名")


class LogsConfig(BaseModel):
    """チェックインログ設定"""

    retention: int = Field(default=10, ge=1, le=1000, description="生徒ごとの保持件数")


class ChannelConfig(BaseModel):
    """リアルタイム通知チャネル設定"""

    max_queue_size: int = Field(default=100, ge=1, description="接続ごとの未配信イベント上限")


class AuthConfig(BaseModel):
    """メンター側オートメーションの認証設定

    介入割り当てエンドポイントのみに適用される。
    """

    enabled: bool = Field(default=False)
    api_key_env: str = Field(default="ALCOVIA_MENTOR_API_KEY")


class LoggingConfig(BaseModel):
    """ロギング設定"""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")


class AlcoviaSettings(BaseSettings):
    """Alcovia全体設定

    設定の優先順位:
    1. 環境変数
    2. alcovia.config.yaml
    3. デフォルト値
    """

    model_config = SettingsConfigDict(
        env_prefix="ALCOVIA_",
        env_nested_delimiter="__",
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    gate: GateConfig = Field(default_factory=GateConfig)
    students: StudentsConfig = Field(default_factory=StudentsConfig)
    logs: LogsConfig = Field(default_factory=LogsConfig)
    channel: ChannelConfig = Field(default_factory=ChannelConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, config_path: Path | str | None = None) -> "AlcoviaSettings":
        """YAMLファイルから設定を読み込む

        Args:
            config_path: 設定ファイルパス。Noneの場合はデフォルトパスを探索

        Returns:
            AlcoviaSettings インスタンス
        """
        if config_path is None:
            search_paths = [
                Path.cwd() / "alcovia.config.yaml",
                Path.cwd() / "alcovia.config.yml",
                Path.home() / ".alcovia" / "config.yaml",
            ]
            for path in search_paths:
                if path.exists():
                    config_path = path
                    break

        if config_path and Path(config_path).exists():
            with open(config_path, encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f) or {}
            return cls.model_validate(yaml_config)

        return cls()

    def get_data_path(self) -> Path:
        """データディレクトリを絶対パスで取得"""
        data = Path(self.store.data_path)
        if not data.is_absolute():
            data = Path.cwd() / data
        return data.resolve()


# グローバル設定インスタンス（遅延初期化）
_settings: AlcoviaSettings | None = None


def get_settings() -> AlcoviaSettings:
    """設定シングルトンを取得"""
    global _settings
    if _settings is None:
        _settings = AlcoviaSettings.from_yaml()
    return _settings


def reload_settings(config_path: Path | str | None = None) -> AlcoviaSettings:
    """設定を再読み込み"""
    global _settings
    _settings = AlcoviaSettings.from_yaml(config_path)
    return _settings
