"""Alcovia Core モジュール

介入エンジンのバックエンドロジックを提供:
- Evaluator: チェックインの合否判定
- State: 生徒の状態機械
- Store: 生徒・介入・ログの永続化
- Channel: リアルタイム通知
- Config: 設定管理
"""

from .channel import NotificationChannel, Subscription
from .config import AlcoviaSettings, get_settings, reload_settings
from .engine import InterventionEngine, StudentState
from .errors import (
    AlcoviaError,
    InvalidTransitionError,
    NotFoundError,
    StoreUnavailableError,
    TransientDeliveryFailure,
    ValidationError,
)
from .evaluator import evaluate
from .events import PushEvent, PushEventType
from .models import (
    CheckInLogEntry,
    Intervention,
    InterventionStatus,
    Student,
    StudentStatus,
    Verdict,
)
from .state import StudentStateMachine
from .store import JsonlStudentStore, MemoryStudentStore, StudentStore

__all__ = [
    # Config
    "AlcoviaSettings",
    "get_settings",
    "reload_settings",
    # Errors
    "AlcoviaError",
    "ValidationError",
    "NotFoundError",
    "InvalidTransitionError",
    "StoreUnavailableError",
    "TransientDeliveryFailure",
    # Models
    "Student",
    "StudentStatus",
    "Intervention",
    "InterventionStatus",
    "CheckInLogEntry",
    "Verdict",
    # Logic
    "evaluate",
    "StudentStateMachine",
    "InterventionEngine",
    "StudentState",
    # Store
    "StudentStore",
    "MemoryStudentStore",
    "JsonlStudentStore",
    # Channel
    "NotificationChannel",
    "Subscription",
    "PushEvent",
    "PushEventType",
]
