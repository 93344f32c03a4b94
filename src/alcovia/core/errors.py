"""エラー分類

エンジン内部で送出される型付きエラー。
APIレイヤーは kind をそのまま呼び出し元に返す。
"""

from __future__ import annotations


class AlcoviaError(Exception):
    """Alcoviaエラー基底クラス"""

    kind: str = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        """レスポンス用の辞書に変換"""
        return {"kind": self.kind, "message": self.message}


class ValidationError(AlcoviaError):
    """必須フィールドの欠落・不正な値（状態は変更されない）"""

    kind = "validation_error"


class NotFoundError(AlcoviaError):
    """生徒または介入が存在しない、もしくは保留中の介入と一致しない"""

    kind = "not_found"


class InvalidTransitionError(AlcoviaError):
    """現在の状態では受け付けられないイベント"""

    kind = "invalid_transition"


class StoreUnavailableError(AlcoviaError):
    """ストアに到達できない、またはタイムアウト"""

    kind = "store_unavailable"


class TransientDeliveryFailure(AlcoviaError):
    """プッシュ通知を配信できなかった

    ログに記録するのみで、再送もしないし呼び出し元にも伝播しない。
    """

    kind = "delivery_failure"
