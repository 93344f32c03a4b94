"""状態機械への入力イベントと、外部へのプッシュイベント

入力イベントは生成時にペイロードを検証する。
検証に失敗した場合は状態を読む前に ValidationError を送出する。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from .errors import ValidationError
from .models import Intervention, Verdict


class StudentEventType(StrEnum):
    """生徒状態機械のイベント種別"""

    CHECK_IN_PASSED = "checkin.passed"
    CHECK_IN_FAILED = "checkin.failed"
    INTERVENTION_ASSIGNED = "intervention.assigned"
    INTERVENTION_COMPLETED = "intervention.completed"


def _require_text(name: str, value: str | None) -> None:
    if value is None or not str(value).strip():
        raise ValidationError(f"Missing required field: {name}")


@dataclass(frozen=True)
class CheckInSubmitted:
    """チェックイン提出イベント

    判定結果によってイベント種別が決まる。
    """

    student_id: str
    verdict: Verdict
    quiz_score: float
    focus_minutes: float
    tab_switches: int = 0

    def __post_init__(self) -> None:
        _require_text("student_id", self.student_id)
        if self.tab_switches < 0:
            raise ValidationError("Field tab_switches must be >= 0")

    @property
    def type(self) -> StudentEventType:
        if self.verdict == Verdict.PASS:
            return StudentEventType.CHECK_IN_PASSED
        return StudentEventType.CHECK_IN_FAILED


@dataclass(frozen=True)
class InterventionAssigned:
    """メンター承認による介入割り当てイベント"""

    student_id: str
    task_description: str
    mentor_notes: str = ""

    def __post_init__(self) -> None:
        _require_text("student_id", self.student_id)
        _require_text("task_description", self.task_description)

    @property
    def type(self) -> StudentEventType:
        return StudentEventType.INTERVENTION_ASSIGNED


@dataclass(frozen=True)
class InterventionCompleted:
    """生徒による介入完了イベント"""

    student_id: str
    intervention_id: str

    def __post_init__(self) -> None:
        _require_text("student_id", self.student_id)
        _require_text("intervention_id", self.intervention_id)

    @property
    def type(self) -> StudentEventType:
        return StudentEventType.INTERVENTION_COMPLETED


StudentEvent = CheckInSubmitted | InterventionAssigned | InterventionCompleted


# =============================================================================
# プッシュイベント
# =============================================================================


class PushEventType(StrEnum):
    """クライアントへ配信するイベント種別"""

    INTERVENTION_ASSIGNED = "intervention_assigned"


@dataclass
class PushEvent:
    """クライアントへ配信するイベント

    配信は一度きりで、リプレイはしない。
    """

    event_type: PushEventType
    student_id: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    event_id: str = field(default_factory=lambda: str(uuid4())[:8])

    @classmethod
    def intervention_assigned(cls, intervention: Intervention) -> PushEvent:
        """介入割り当て通知を作成（介入レコード全体を含む）"""
        return cls(
            event_type=PushEventType.INTERVENTION_ASSIGNED,
            student_id=intervention.student_id,
            data={"intervention": intervention.model_dump(mode="json")},
        )

    def to_dict(self) -> dict[str, Any]:
        """WebSocket配信用の辞書に変換"""
        return {
            "event_id": self.event_id,
            "type": str(self.event_type),
            "student_id": self.student_id,
            "timestamp": self.timestamp,
            **self.data,
        }
